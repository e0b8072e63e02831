from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from pydantic import AnyHttpUrl, BaseModel, ConfigDict, EmailStr, field_validator
from pydantic import ValidationError as PydanticValidationError

from errors import StorageFailure, ValidationError

from .database import (
    CURRENT_RESUME_ID,
    Clock,
    CorruptBlobError,
    ResumeDatabase,
    dump_json,
    iso_timestamp,
    load_json_object,
    utc_now,
)
from .snapshot_store import SqliteSnapshotStore
from .versioning import backup_name

logger = logging.getLogger(__name__)


class _Passthrough(BaseModel):
    # Unknown keys are accepted; validation never decides what gets stored.
    model_config = ConfigDict(extra="allow")

    @field_validator("*", mode="before")
    @classmethod
    def reject_null(cls, value: Any) -> Any:
        # Known fields may be omitted, but an explicit null is rejected.
        if value is None:
            raise ValueError("Field may be omitted but must not be null")
        return value


class ExperienceRecord(_Passthrough):
    company: str | None = None
    position: str | None = None
    startDate: str | None = None
    endDate: str | None = None
    description: str | None = None
    achievements: list[str] | None = None


class EducationRecord(_Passthrough):
    institution: str | None = None
    degree: str | None = None
    field: str | None = None
    startDate: str | None = None
    endDate: str | None = None
    gpa: str | None = None


class CertificationRecord(_Passthrough):
    name: str | None = None
    issuer: str | None = None
    date: str | None = None
    expiryDate: str | None = None


class ProjectRecord(_Passthrough):
    name: str | None = None
    description: str | None = None
    technologies: list[str] | None = None
    url: AnyHttpUrl | None = None
    github: AnyHttpUrl | None = None


class LanguageRecord(_Passthrough):
    language: str | None = None
    proficiency: str | None = None


class Resume(_Passthrough):
    """
    Known resume fields, all optional. Anything else rides along in ``model_extra``:
      { "name": "...", "email": "...", "experience": [...], "customField": ... }
    """

    name: str | None = None
    email: EmailStr | None = None
    phone: str | None = None
    location: str | None = None
    summary: str | None = None
    experience: list[ExperienceRecord] | None = None
    education: list[EducationRecord] | None = None
    skills: list[str] | None = None
    certifications: list[CertificationRecord] | None = None
    projects: list[ProjectRecord] | None = None
    languages: list[LanguageRecord] | None = None

    @property
    def unknown_fields(self) -> dict[str, Any]:
        return dict(self.model_extra or {})


def _error_details(e: PydanticValidationError) -> list[dict[str, Any]]:
    return [
        {"loc": [str(p) for p in err.get("loc", ())], "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in e.errors()
    ]


def validate_resume(doc: Any, *, message: str = "Validation error") -> dict[str, Any]:
    """
    Check a full document against the resume schema.

    Returns the caller's object untouched (unknown keys included) or raises ValidationError
    with field-level details.
    """
    if not isinstance(doc, Mapping):
        raise ValidationError(message, details=[{"loc": [], "msg": "Resume must be a JSON object", "type": "dict_type"}])
    try:
        Resume.model_validate(dict(doc))
    except PydanticValidationError as e:
        raise ValidationError(message, details=_error_details(e)) from e
    return dict(doc)


def validate_partial(partial: Any) -> dict[str, Any]:
    """
    Every resume field is optional, so a partial document is checked with the same model.
    """
    return validate_resume(partial)


def shallow_merge(current: Mapping[str, Any], partial: Mapping[str, Any]) -> dict[str, Any]:
    # Top-level only: nested values from ``partial`` replace, never combine.
    merged = dict(current)
    merged.update(partial)
    return merged


class SqliteResumeStore:
    """
    The current-document slot (``resumes`` row id = 1).

    Each mutation runs as one transaction: read the current document, snapshot it,
    write the new document. A failure anywhere rolls all three back.
    """

    def __init__(self, db: ResumeDatabase, snapshots: SqliteSnapshotStore, *, clock: Clock = utc_now):
        self._db = db
        self._snapshots = snapshots
        self._clock = clock

    def read(self) -> dict[str, Any]:
        with self._db.connect() as conn:
            return self._read_current(conn)

    def replace(self, new_document: dict[str, Any]) -> dict[str, Any]:
        doc = validate_resume(new_document)
        _, updated = self.mutate(lambda _current: doc)
        logger.info("RESUME: replaced (%d top-level keys)", len(updated))
        return updated

    def patch(self, partial: dict[str, Any]) -> dict[str, Any]:
        changes = validate_partial(partial)

        def _merge(current: dict[str, Any]) -> dict[str, Any]:
            return validate_resume(shallow_merge(current, changes), message="Merged resume failed validation")

        _, merged = self.mutate(_merge)
        logger.info("RESUME: patched keys=%s", sorted(changes))
        return merged

    def mutate(
        self,
        compute: Callable[[dict[str, Any]], dict[str, Any]],
        *,
        snapshot_name: Callable[[datetime], str] = backup_name,
    ) -> tuple[dict[str, Any], dict[str, Any]]:
        """
        Read-snapshot-write under a single write transaction.

        ``compute`` receives the pre-mutation document and returns the new one; raising
        from it aborts the transaction. Returns ``(previous, updated)``.
        """
        with self._db.transaction() as conn:
            previous = self._read_current(conn)
            updated = compute(dict(previous))
            now = self._clock()
            self._snapshots.put(snapshot_name(now), previous, conn=conn)
            self._write_current(conn, updated, now)
        return previous, updated

    def _read_current(self, conn: sqlite3.Connection) -> dict[str, Any]:
        row = conn.execute("SELECT data FROM resumes WHERE id = ?", (CURRENT_RESUME_ID,)).fetchone()
        if row is None:
            return {}
        try:
            return load_json_object(row["data"])
        except CorruptBlobError as e:
            logger.error("RESUME: current document is unreadable: %s", e)
            raise StorageFailure(f"Current resume could not be read: {e}") from e

    def _write_current(self, conn: sqlite3.Connection, doc: dict[str, Any], now: datetime) -> None:
        ts = iso_timestamp(now)
        conn.execute(
            """
            INSERT INTO resumes (id, data, created_at, updated_at) VALUES (?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET data = excluded.data, updated_at = excluded.updated_at
            """,
            (CURRENT_RESUME_ID, dump_json(doc), ts, ts),
        )
