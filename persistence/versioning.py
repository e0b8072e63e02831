from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from .database import Clock, utc_now

if TYPE_CHECKING:
    from .interfaces import SnapshotStore

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "backup"
PRE_RESTORE_PREFIX = "pre-restore"
EMERGENCY_BACKUP_PREFIX = "emergency-backup"


def snapshot_timestamp(dt: datetime) -> str:
    """
    ISO-8601 UTC with millisecond precision, made key-safe:
    2025-01-02T03:04:05.678Z -> 2025-01-02T03-04-05-678Z
    """
    utc = dt.astimezone(timezone.utc)
    iso = utc.strftime("%Y-%m-%dT%H:%M:%S") + f".{utc.microsecond // 1000:03d}Z"
    return iso.replace(":", "-").replace(".", "-")


def snapshot_name(prefix: str, dt: datetime) -> str:
    return f"{prefix}-{snapshot_timestamp(dt)}.json"


def backup_name(dt: datetime) -> str:
    return snapshot_name(BACKUP_PREFIX, dt)


def pre_restore_name(dt: datetime) -> str:
    return snapshot_name(PRE_RESTORE_PREFIX, dt)


def emergency_backup_name(dt: datetime) -> str:
    return snapshot_name(EMERGENCY_BACKUP_PREFIX, dt)


def create_emergency_backup(
    snapshots: "SnapshotStore",
    data: dict[str, Any],
    error: BaseException,
    *,
    clock: Clock = utc_now,
) -> str | None:
    """
    Best-effort copy of the pre-mutation document after a failed write.

    Runs in its own transaction. Never raises: a failure here is logged and the caller
    re-raises the original error.
    """
    name = emergency_backup_name(clock())
    try:
        snapshots.put(name, data)
    except Exception:
        logger.exception("EMERGENCY BACKUP: failed to write %s (after %r)", name, error)
        return None
    logger.info("EMERGENCY BACKUP: created %s after %r", name, error)
    return name
