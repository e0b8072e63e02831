from __future__ import annotations

from .database import ResumeDatabase
from .repositories import AsyncResumeRepository, AsyncSqliteResumeRepository
from .restore import RestoreEngine
from .resume_state import Resume, SqliteResumeStore
from .snapshot_store import SnapshotInfo, SqliteSnapshotStore

__all__ = [
    "ResumeDatabase",
    "Resume",
    "SqliteResumeStore",
    "SnapshotInfo",
    "SqliteSnapshotStore",
    "RestoreEngine",
    "AsyncResumeRepository",
    "AsyncSqliteResumeRepository",
]
