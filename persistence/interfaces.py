from __future__ import annotations

import sqlite3
from typing import Any, Protocol

from .snapshot_store import SnapshotInfo


class SnapshotStore(Protocol):
    """
    Keyed collection of named JSON snapshots with upsert-by-name writes.
    """

    def list_snapshots(self) -> list[SnapshotInfo]:
        """Return every snapshot, newest first (empty list when there are none)."""
        ...

    def get(self, name: str) -> dict[str, Any] | None:
        """Return the snapshot data, or None if no snapshot has that name."""
        ...

    def put(self, name: str, data: dict[str, Any], *, conn: sqlite3.Connection | None = None) -> None:
        """Create or overwrite the snapshot; joins ``conn``'s transaction when given."""
        ...

