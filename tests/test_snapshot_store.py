from __future__ import annotations


def test_empty_store_lists_nothing(repo):
    assert repo.snapshots.list_snapshots() == []


def test_get_missing_returns_none(repo):
    assert repo.snapshots.get("backup-nope.json") is None


def test_put_is_upsert_by_name(repo):
    repo.snapshots.put("manual.json", {"name": "A"})
    repo.snapshots.put("manual.json", {"name": "B"})

    listed = repo.snapshots.list_snapshots()
    assert [s.filename for s in listed] == ["manual.json"]
    assert repo.snapshots.get("manual.json") == {"name": "B"}


def test_list_is_newest_first(repo):
    repo.snapshots.put("first.json", {"n": 1})
    repo.snapshots.put("second.json", {"n": 2})
    repo.snapshots.put("third.json", {"n": 3})

    assert [s.filename for s in repo.snapshots.list_snapshots()] == ["third.json", "second.json", "first.json"]


def test_overwrite_refreshes_timestamp(repo):
    repo.snapshots.put("a.json", {"n": 1})
    repo.snapshots.put("b.json", {"n": 2})
    repo.snapshots.put("a.json", {"n": 3})

    listed = repo.snapshots.list_snapshots()
    assert [s.filename for s in listed] == ["a.json", "b.json"]
    assert listed[0].model_dump(by_alias=True)["createdAt"] > listed[1].created_at


def test_snapshots_are_independent(repo):
    repo.snapshots.put("a.json", {"nested": {"x": 1}})
    repo.snapshots.put("b.json", {"nested": {"x": 2}})
    repo.snapshots.put("a.json", {})

    assert repo.snapshots.get("b.json") == {"nested": {"x": 2}}
