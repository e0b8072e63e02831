from __future__ import annotations

import sqlite3
import threading

import pytest

from errors import StorageFailure, ValidationError
from persistence.repositories import AsyncSqliteResumeRepository
from persistence.resume_state import Resume, shallow_merge


def _fail_on_prefix(monkeypatch, repo, prefix: str) -> None:
    original = repo.snapshots._upsert

    def _upsert(conn, name, data):
        if name.startswith(prefix):
            raise sqlite3.OperationalError("database is locked")
        return original(conn, name, data)

    monkeypatch.setattr(repo.snapshots, "_upsert", _upsert)


def test_read_uninitialised_is_empty_object(repo):
    assert repo.resumes.read() == {}


def test_replace_round_trip_and_backup(repo):
    repo.resumes.replace({"name": "Ada"})
    doc = {"name": "Grace", "skills": ["COBOL"], "customField": {"anything": [1, 2]}}

    assert repo.resumes.replace(doc) == doc
    assert repo.resumes.read() == doc

    backups = [s.filename for s in repo.snapshots.list_snapshots()]
    assert len(backups) == 2
    assert all(name.startswith("backup-") and name.endswith(".json") for name in backups)
    assert repo.snapshots.get(backups[0]) == {"name": "Ada"}
    assert repo.snapshots.get(backups[1]) == {}


def test_patch_is_shallow_merge_with_backup(repo):
    repo.resumes.replace({"name": "Ada", "meta": {"a": 1, "b": 2}, "skills": ["math"]})

    merged = repo.resumes.patch({"meta": {"c": 3}, "email": "ada@example.com"})

    assert merged == {"name": "Ada", "meta": {"c": 3}, "skills": ["math"], "email": "ada@example.com"}
    assert repo.resumes.read() == merged
    newest = repo.snapshots.list_snapshots()[0].filename
    assert repo.snapshots.get(newest) == {"name": "Ada", "meta": {"a": 1, "b": 2}, "skills": ["math"]}


def test_shallow_merge_does_not_touch_inputs():
    current = {"a": {"x": 1}, "b": 1}
    partial = {"a": {"y": 2}}
    assert shallow_merge(current, partial) == {"a": {"y": 2}, "b": 1}
    assert current == {"a": {"x": 1}, "b": 1}


def test_unknown_fields_survive_round_trip(repo):
    doc = {
        "name": "Ada",
        "experience": [{"company": "Analytical Engines", "team": "core", "achievements": ["notes"]}],
        "links": {"blog": "https://example.com"},
    }
    repo.resumes.replace(doc)
    assert repo.resumes.read() == doc

    model = Resume.model_validate(doc)
    assert model.unknown_fields == {"links": {"blog": "https://example.com"}}


def test_invalid_replace_is_rejected_without_write(repo):
    with pytest.raises(ValidationError) as exc:
        repo.resumes.replace({"email": "not-an-email"})

    assert exc.value.details[0]["loc"] == ["email"]
    assert repo.resumes.read() == {}
    assert repo.snapshots.list_snapshots() == []


def test_invalid_patch_is_rejected_without_write(repo):
    repo.resumes.replace({"name": "Ada"})

    with pytest.raises(ValidationError):
        repo.resumes.patch({"skills": "not-a-list"})
    with pytest.raises(ValidationError):
        repo.resumes.patch({"projects": [{"url": "not a url"}]})

    assert repo.resumes.read() == {"name": "Ada"}
    assert len(repo.snapshots.list_snapshots()) == 1


def test_non_object_document_is_rejected(repo):
    with pytest.raises(ValidationError):
        repo.resumes.replace(["not", "an", "object"])


def test_storage_failure_rolls_back_whole_mutation(repo, monkeypatch):
    repo.resumes.replace({"name": "Ada"})
    _fail_on_prefix(monkeypatch, repo, "backup-")

    with pytest.raises(StorageFailure):
        repo.resumes.patch({"name": "Grace"})

    assert repo.resumes.read() == {"name": "Ada"}
    assert len(repo.snapshots.list_snapshots()) == 1


def test_document_persists_across_instances(repo, sandbox_project):
    repo.resumes.replace({"name": "Ada"})

    again = AsyncSqliteResumeRepository()
    assert again.resumes.read() == {"name": "Ada"}


def test_concurrent_patches_are_linearised(repo):
    lock = threading.Lock()
    base = repo.resumes._clock

    def _locked_clock():
        with lock:
            return base()

    repo.resumes._clock = _locked_clock
    repo.snapshots._clock = _locked_clock

    errors: list[BaseException] = []

    def _worker(i: int) -> None:
        try:
            repo.resumes.patch({f"k{i}": i})
        except BaseException as e:  # surfaced below
            errors.append(e)

    threads = [threading.Thread(target=_worker, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    final = repo.resumes.read()
    assert final == {f"k{i}": i for i in range(8)}

    # Every backup captured a complete earlier state: sizes 0..7, each seen once.
    sizes = sorted(len(repo.snapshots.get(s.filename)) for s in repo.snapshots.list_snapshots())
    assert sizes == list(range(8))


def _corrupt_current(repo, raw: str) -> None:
    with repo.db.connect() as conn:
        conn.execute("UPDATE resumes SET data = ? WHERE id = 1", (raw,))


def _raw_current(repo) -> str:
    with repo.db.connect() as conn:
        return conn.execute("SELECT data FROM resumes WHERE id = 1").fetchone()["data"]


@pytest.mark.parametrize("raw", ["{truncated", "[1, 2, 3]", "null"])
def test_unreadable_current_document_is_a_storage_failure(repo, raw):
    _corrupt_current(repo, raw)

    with pytest.raises(StorageFailure):
        repo.resumes.read()
    with pytest.raises(StorageFailure):
        repo.resumes.patch({"name": "Ada"})
    with pytest.raises(StorageFailure):
        repo.resumes.replace({"name": "Ada"})

    # The stored bytes are left for manual recovery and no empty backup was recorded.
    assert _raw_current(repo) == raw
    assert repo.snapshots.list_snapshots() == []


@pytest.mark.parametrize(
    "doc",
    [
        {"email": None},
        {"name": None},
        {"skills": None},
        {"experience": [{"company": None}]},
    ],
)
def test_known_fields_reject_null(repo, doc):
    with pytest.raises(ValidationError):
        repo.resumes.replace(doc)
    assert repo.resumes.read() == {}


def test_unknown_fields_may_be_null(repo):
    assert repo.resumes.replace({"nickname": None}) == {"nickname": None}


def test_project_urls_must_be_http(repo):
    with pytest.raises(ValidationError) as exc:
        repo.resumes.replace({"projects": [{"url": "ftp://example.com/file"}]})
    assert exc.value.details[0]["loc"] == ["projects", "0", "url"]

    doc = {"projects": [{"url": "https://example.com", "github": "https://github.com/ada/engine"}]}
    assert repo.resumes.replace(doc) == doc
