from __future__ import annotations

from typing import Any


class ResumeError(Exception):
    """
    Base class for conditions the tool layer reports as a structured error payload.
    """

    code = "error"

    def __init__(self, message: str, *, details: Any | None = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self, context: str | None = None) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": True, "code": self.code, "message": self.message}
        if self.details is not None:
            payload["details"] = self.details
        if context:
            payload["context"] = context
        return payload


class ValidationError(ResumeError):
    code = "validation_error"


class Unauthorized(ResumeError):
    code = "unauthorized"

    def __init__(self, message: str = "Invalid API key"):
        super().__init__(message)


class NotFound(ResumeError):
    code = "not_found"


class InvalidSnapshot(ResumeError):
    code = "invalid_snapshot"


class StorageFailure(ResumeError):
    code = "storage_failure"
