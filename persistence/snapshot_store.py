from __future__ import annotations

import logging
import sqlite3
from typing import Any

from pydantic import BaseModel, Field

from .database import Clock, ResumeDatabase, dump_json, iso_timestamp, load_json_object, utc_now

logger = logging.getLogger(__name__)


class SnapshotInfo(BaseModel):
    filename: str
    created_at: str = Field(serialization_alias="createdAt")


class SqliteSnapshotStore:
    """
    Snapshot table backed by ``resume_versions``.

    - ``put`` is an upsert: a second write under the same name replaces data and timestamp.
    - ``get`` returns None for unknown names; callers decide whether that is an error.
      A stored blob that is not a JSON object raises CorruptBlobError rather than reading as empty.
    """

    def __init__(self, db: ResumeDatabase, *, clock: Clock = utc_now):
        self._db = db
        self._clock = clock

    def list_snapshots(self) -> list[SnapshotInfo]:
        with self._db.connect() as conn:
            rows = conn.execute(
                "SELECT filename, created_at FROM resume_versions ORDER BY created_at DESC, rowid DESC"
            ).fetchall()
        return [SnapshotInfo(filename=row["filename"], created_at=row["created_at"]) for row in rows]

    def get(self, name: str) -> dict[str, Any] | None:
        with self._db.connect() as conn:
            row = conn.execute("SELECT data FROM resume_versions WHERE filename = ?", (name,)).fetchone()
        if row is None:
            return None
        return load_json_object(row["data"])

    def put(self, name: str, data: dict[str, Any], *, conn: sqlite3.Connection | None = None) -> None:
        if conn is not None:
            self._upsert(conn, name, data)
            return
        with self._db.transaction() as own:
            self._upsert(own, name, data)

    def _upsert(self, conn: sqlite3.Connection, name: str, data: dict[str, Any]) -> None:
        conn.execute(
            """
            INSERT INTO resume_versions (filename, data, created_at)
            VALUES (?, ?, ?)
            ON CONFLICT(filename) DO UPDATE SET data = excluded.data, created_at = excluded.created_at
            """,
            (name, dump_json(data), iso_timestamp(self._clock())),
        )
        logger.debug("SNAPSHOT: wrote %s", name)
