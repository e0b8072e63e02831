from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol

from errors import StorageFailure

from .database import Clock, ResumeDatabase, utc_now
from .paths import database_file
from .restore import RestoreEngine
from .resume_state import SqliteResumeStore
from .snapshot_store import SnapshotInfo, SqliteSnapshotStore
from .versioning import create_emergency_backup

logger = logging.getLogger(__name__)


class AsyncResumeRepository(Protocol):
    """
    Domain-level resume persistence interface used by the MCP tools.
    """

    async def get_resume(self) -> dict[str, Any]: ...
    async def replace_resume(self, resume: dict[str, Any]) -> dict[str, Any]: ...
    async def patch_resume(self, partial: dict[str, Any]) -> dict[str, Any]: ...

    async def list_versions(self) -> list[SnapshotInfo]: ...
    async def get_version(self, filename: str) -> dict[str, Any]: ...
    async def restore_version(self, filename: str) -> dict[str, Any]: ...


class AsyncSqliteResumeRepository(AsyncResumeRepository):
    """
    SQLite-backed resume repository.

    Uses asyncio.to_thread to keep blocking sqlite3 calls off the event loop. Failed
    replace/patch transactions leave an emergency backup of the document as it was
    before the attempt.
    """

    def __init__(
        self,
        *,
        database_path: str | Path | None = None,
        busy_timeout_ms: int = 5000,
        clock: Clock = utc_now,
    ) -> None:
        path = database_path if isinstance(database_path, Path) else database_file(database_path or None)
        self._clock = clock
        self.db = ResumeDatabase(path, busy_timeout_ms=busy_timeout_ms)
        self.db.initialize(now=clock)
        self.snapshots = SqliteSnapshotStore(self.db, clock=clock)
        self.resumes = SqliteResumeStore(self.db, self.snapshots, clock=clock)
        self.restorer = RestoreEngine(self.resumes, self.snapshots, clock=clock)

    def _with_emergency_backup(
        self, op: Callable[[dict[str, Any]], dict[str, Any]], arg: dict[str, Any]
    ) -> dict[str, Any]:
        current = self.resumes.read()
        try:
            return op(arg)
        except StorageFailure as e:
            create_emergency_backup(self.snapshots, current, e, clock=self._clock)
            raise

    async def get_resume(self) -> dict[str, Any]:
        return await asyncio.to_thread(self.resumes.read)

    async def replace_resume(self, resume: dict[str, Any]) -> dict[str, Any]:
        return await asyncio.to_thread(self._with_emergency_backup, self.resumes.replace, resume)

    async def patch_resume(self, partial: dict[str, Any]) -> dict[str, Any]:
        return await asyncio.to_thread(self._with_emergency_backup, self.resumes.patch, partial)

    async def list_versions(self) -> list[SnapshotInfo]:
        return await asyncio.to_thread(self.snapshots.list_snapshots)

    async def get_version(self, filename: str) -> dict[str, Any]:
        return await asyncio.to_thread(self.restorer.get_version, filename)

    async def restore_version(self, filename: str) -> dict[str, Any]:
        return await asyncio.to_thread(self.restorer.restore, filename)
