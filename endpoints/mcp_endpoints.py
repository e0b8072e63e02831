from __future__ import annotations

import json
import logging
from typing import Any, Literal

from typing_extensions import NotRequired, TypedDict

from mcp.server.fastmcp import FastMCP
from mcp.server.transport_security import TransportSecuritySettings

from errors import ResumeError, StorageFailure, ValidationError
from persistence import repositories as persistence_repositories
from security import require_api_key, sanitize_filename
from settings import get_settings

SETTINGS = get_settings()
DEBUG_LOG_REQUESTS = SETTINGS.debug_log_requests

logger = logging.getLogger(__name__)


class ToolTextContent(TypedDict):
    type: Literal["text"]
    text: str


class ResumeToolResponse(TypedDict):
    content: list[ToolTextContent]
    structuredContent: dict[str, Any]
    isError: NotRequired[bool]


RESUME_REPO = persistence_repositories.AsyncSqliteResumeRepository(
    database_path=SETTINGS.database_path or None,
    busy_timeout_ms=SETTINGS.db_busy_timeout_ms,
)

if not SETTINGS.api_key.strip():
    logger.warning("API_KEY not set or is empty. Update operations will be rejected.")


def _reply(payload: dict[str, Any], *, is_error: bool = False) -> ResumeToolResponse:
    response: ResumeToolResponse = {
        "content": [{"type": "text", "text": json.dumps(payload, indent=2, ensure_ascii=False)}],
        "structuredContent": payload,
    }
    if is_error:
        response["isError"] = True
    return response


def _error_reply(error: BaseException, context: str) -> ResumeToolResponse:
    if isinstance(error, StorageFailure):
        logger.error("MCP %s: %s", context, error.message)
        return _reply(error.to_payload(context), is_error=True)
    if isinstance(error, ResumeError):
        logger.warning("MCP %s: %s (%s)", context, error.message, error.code)
        return _reply(error.to_payload(context), is_error=True)
    logger.exception("MCP %s: unexpected error", context)
    return _reply({"error": True, "code": "error", "message": "An unexpected error occurred", "context": context}, is_error=True)


def _coerce_object_arg(value: Any, field: str) -> dict[str, Any]:
    """
    Some clients deliver object arguments as JSON strings; decode them before they reach the store.
    """
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError as e:
            raise ValidationError(
                "Validation error",
                details=[{"loc": [field], "msg": f"`{field}` is not valid JSON", "type": "json_invalid"}],
            ) from e
    if not isinstance(value, dict):
        raise ValidationError(
            "Validation error",
            details=[{"loc": [field], "msg": f"`{field}` must be a JSON object", "type": "dict_type"}],
        )
    return value


mcp = FastMCP(
    SETTINGS.mcp_name,
    stateless_http=True,
    json_response=True,
    # FastMCP auto-enables DNS rebinding protection on localhost, which rejects proxied Host headers.
    transport_security=TransportSecuritySettings(enable_dns_rebinding_protection=False),
)


@mcp.tool()
async def get_resume() -> ResumeToolResponse:
    """
    Returns the current resume JSON.
    """
    try:
        resume = await RESUME_REPO.get_resume()
    except Exception as e:
        return _error_reply(e, "getResume")
    return _reply(resume)


@mcp.tool()
async def update_resume(resume: dict[str, Any] | str, apiKey: str = "") -> ResumeToolResponse:
    """
    Replace the entire resume. Requires { resume, apiKey } parameters.
    """
    if DEBUG_LOG_REQUESTS:
        logger.debug("MCP update_resume: resume type=%s", type(resume).__name__)
    try:
        require_api_key(apiKey, SETTINGS.api_key)
        updated = await RESUME_REPO.replace_resume(_coerce_object_arg(resume, "resume"))
    except Exception as e:
        return _error_reply(e, "updateResume")
    return _reply({"success": True, "message": "Resume updated successfully", "resume": updated})


@mcp.tool()
async def patch_resume(partialResume: dict[str, Any] | str, apiKey: str = "") -> ResumeToolResponse:
    """
    Merge partial resume data with existing resume. Requires { partialResume, apiKey } parameters.
    """
    if DEBUG_LOG_REQUESTS:
        logger.debug("MCP patch_resume: partialResume type=%s", type(partialResume).__name__)
    try:
        require_api_key(apiKey, SETTINGS.api_key)
        merged = await RESUME_REPO.patch_resume(_coerce_object_arg(partialResume, "partialResume"))
    except Exception as e:
        return _error_reply(e, "patchResume")
    return _reply({"success": True, "message": "Resume patched successfully", "resume": merged})


@mcp.tool()
async def list_versions() -> ResumeToolResponse:
    """
    List all snapshot filenames, newest first.
    """
    try:
        versions = await RESUME_REPO.list_versions()
    except Exception as e:
        return _error_reply(e, "listVersions")
    return _reply(
        {
            "success": True,
            "versions": [v.filename for v in versions],
            "details": [v.model_dump(mode="json", by_alias=True) for v in versions],
        }
    )


@mcp.tool()
async def get_version(filename: str) -> ResumeToolResponse:
    """
    Returns the resume JSON stored in one snapshot.
    """
    try:
        data = await RESUME_REPO.get_version(filename)
    except Exception as e:
        return _error_reply(e, "getVersion")
    return _reply({"success": True, "filename": sanitize_filename(filename), "resume": data})


@mcp.tool()
async def restore_version(filename: str, apiKey: str = "") -> ResumeToolResponse:
    """
    Restore resume from a snapshot. Requires { filename, apiKey } parameters.
    """
    if DEBUG_LOG_REQUESTS:
        logger.debug("MCP restore_version: filename=%r", filename)
    try:
        require_api_key(apiKey, SETTINGS.api_key)
        restored = await RESUME_REPO.restore_version(filename)
    except Exception as e:
        return _error_reply(e, "restoreVersion")
    return _reply({"success": True, "message": f"Resume restored from {sanitize_filename(filename)}", "resume": restored})
