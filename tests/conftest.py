from __future__ import annotations

import importlib
from datetime import datetime, timedelta, timezone
from pathlib import Path
import sys


import pytest


# Ensure the repository root (parent of ./tests) is importable during pytest collection.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

TEST_API_KEY = "test-key"


class StepClock:
    """
    Deterministic clock: every call advances one second, so snapshot names never collide.
    """

    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2025, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + timedelta(seconds=1)
        return value


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def sandbox_project(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """
    Redirect persistence paths to a temp project directory so tests never touch real ./data.
    """
    import persistence.paths as paths

    def _project_root() -> Path:
        return tmp_path

    def _data_dir() -> Path:
        p = tmp_path / "data"
        p.mkdir(parents=True, exist_ok=True)
        return p

    monkeypatch.setattr(paths, "project_root", _project_root)
    monkeypatch.setattr(paths, "data_dir", _data_dir)
    monkeypatch.delenv("DATABASE_PATH", raising=False)
    return tmp_path


@pytest.fixture
def repo(sandbox_project: Path, clock: StepClock):
    from persistence.repositories import AsyncSqliteResumeRepository

    return AsyncSqliteResumeRepository(clock=clock)


@pytest.fixture
def reload_endpoints(sandbox_project: Path, monkeypatch: pytest.MonkeyPatch, clock: StepClock) -> None:
    """
    Endpoints create repo singletons and read settings at import time; reload after sandboxing.
    """
    monkeypatch.setenv("API_KEY", TEST_API_KEY)
    import endpoints.mcp_endpoints as mcp_endpoints
    from persistence.repositories import AsyncSqliteResumeRepository

    importlib.reload(mcp_endpoints)
    # Same database file, but with a clock that never produces colliding snapshot names.
    monkeypatch.setattr(mcp_endpoints, "RESUME_REPO", AsyncSqliteResumeRepository(clock=clock))
