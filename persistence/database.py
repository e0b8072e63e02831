from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from errors import StorageFailure

logger = logging.getLogger(__name__)

CURRENT_RESUME_ID = 1

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso_timestamp(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def dump_json(doc: Any) -> str:
    return json.dumps(doc, ensure_ascii=False, separators=(",", ":"))


class CorruptBlobError(ValueError):
    """Stored data could not be decoded into a JSON object."""


def load_json_object(raw: str | None) -> dict[str, Any]:
    """
    Decode a stored blob, raising CorruptBlobError unless it holds a JSON object.
    """
    if raw is None:
        raise CorruptBlobError("stored blob is NULL")
    try:
        doc = json.loads(raw)
    except ValueError as e:
        raise CorruptBlobError(f"stored blob is not valid JSON: {e}") from e
    if not isinstance(doc, dict):
        raise CorruptBlobError(f"stored blob is a JSON {type(doc).__name__}, not an object")
    return doc


class ResumeDatabase:
    """
    Owns the SQLite file that holds the current resume slot and the snapshot table.

    Every call opens its own connection; there is no shared in-process cache.
    Mutations use ``BEGIN IMMEDIATE`` so the write lock is held from the read of the
    pre-mutation document through the commit, which linearises concurrent writers.

    Tables:
        resumes:
            - id INTEGER PRIMARY KEY (the current document lives in id = 1)
            - data TEXT (JSON object)
            - created_at TEXT, updated_at TEXT (ISO-8601)

        resume_versions:
            - filename TEXT PRIMARY KEY
            - data TEXT (JSON object)
            - created_at TEXT (ISO-8601)
    """

    def __init__(self, path: Path, *, busy_timeout_ms: int = 5000):
        self._path = path
        self._busy_timeout_ms = busy_timeout_ms

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(
                str(self._path),
                timeout=self._busy_timeout_ms / 1000.0,
                isolation_level=None,  # autocommit; transactions are explicit
            )
        except (sqlite3.Error, OSError) as e:
            raise StorageFailure(f"Could not open database {self._path}: {e}") from e

        conn.row_factory = sqlite3.Row
        try:
            conn.execute(f"PRAGMA busy_timeout = {int(self._busy_timeout_ms)}")
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            yield conn
        except sqlite3.Error as e:
            raise StorageFailure(f"Database error: {e}") from e
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Run the body as one write transaction: commit on success, roll back on any error.

        ``sqlite3.Error`` raised inside the body surfaces as ``StorageFailure``; other
        exceptions (e.g. ``ValidationError``) propagate unchanged after the rollback.
        """
        with self.connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
                conn.execute("COMMIT")
            except BaseException:
                try:
                    conn.execute("ROLLBACK")
                except sqlite3.Error as rollback_error:
                    logger.error("DB: rollback failed: %r", rollback_error)
                raise

    def initialize(self, *, now: Clock = utc_now) -> None:
        """
        Create the schema and make sure the current-document slot exists.
        """
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS resumes (
                    id INTEGER PRIMARY KEY,
                    data TEXT NOT NULL DEFAULT '{}',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS resume_versions (
                    filename TEXT PRIMARY KEY,
                    data TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_resume_versions_created ON resume_versions(created_at DESC)"
            )
            ts = iso_timestamp(now())
            conn.execute(
                "INSERT OR IGNORE INTO resumes (id, data, created_at, updated_at) VALUES (?, ?, ?, ?)",
                (CURRENT_RESUME_ID, "{}", ts, ts),
            )
        logger.info("DB: initialized %s", self._path)
