from __future__ import annotations

import logging
from typing import Any

from errors import InvalidSnapshot, NotFound, StorageFailure, ValidationError
from security import sanitize_filename

from .database import Clock, CorruptBlobError, utc_now
from .interfaces import SnapshotStore
from .resume_state import SqliteResumeStore, validate_resume
from .versioning import create_emergency_backup, pre_restore_name

logger = logging.getLogger(__name__)


def clean_snapshot_name(filename: Any) -> str:
    """
    Sanitize an untrusted snapshot name; a name with nothing left is rejected outright.
    """
    if not isinstance(filename, str) or not filename.strip():
        raise ValidationError(
            "Validation error",
            details=[{"loc": ["filename"], "msg": "Filename is required", "type": "missing"}],
        )
    cleaned = sanitize_filename(filename)
    if not cleaned:
        raise ValidationError(
            "Validation error",
            details=[{"loc": ["filename"], "msg": "Filename contains invalid characters", "type": "value_error"}],
        )
    return cleaned


class RestoreEngine:
    """
    Replays a snapshot into the current-document slot.

    Idle -> Validating -> Backing-up-current + Applying (one transaction) -> Done.
    A missing snapshot raises NotFound and a malformed one InvalidSnapshot, both before
    any write. A storage failure while applying triggers a best-effort emergency backup
    of the document read beforehand, then re-raises.
    """

    def __init__(
        self,
        resumes: SqliteResumeStore,
        snapshots: SnapshotStore,
        *,
        clock: Clock = utc_now,
    ):
        self._resumes = resumes
        self._snapshots = snapshots
        self._clock = clock

    def _load(self, name: str) -> dict[str, Any]:
        try:
            data = self._snapshots.get(name)
        except CorruptBlobError as e:
            logger.warning("RESTORE: snapshot %s is unreadable: %s", name, e)
            raise InvalidSnapshot(
                "Version data is invalid and cannot be restored",
                details=[{"loc": [], "msg": str(e), "type": "json_invalid"}],
            ) from e
        if data is None:
            raise NotFound(f"Version {name} not found")
        return data

    def get_version(self, filename: str) -> dict[str, Any]:
        return self._load(clean_snapshot_name(filename))

    def restore(self, filename: str) -> dict[str, Any]:
        name = clean_snapshot_name(filename)
        data = self._load(name)

        try:
            restored = validate_resume(data)
        except ValidationError as e:
            logger.warning("RESTORE: snapshot %s failed validation", name)
            raise InvalidSnapshot("Version data is invalid and cannot be restored", details=e.details) from e

        current = self._resumes.read()

        try:
            self._resumes.mutate(lambda _current: restored, snapshot_name=pre_restore_name)
        except StorageFailure as e:
            create_emergency_backup(self._snapshots, current, e, clock=self._clock)
            raise

        logger.info("RESTORE: resume restored from %s", name)
        return restored
