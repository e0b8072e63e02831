from __future__ import annotations

import hmac
import logging
import re

from errors import Unauthorized

logger = logging.getLogger(__name__)

_SEPARATORS_RE = re.compile(r"[/\\]")
_DISALLOWED_RE = re.compile(r"[^a-zA-Z0-9._-]")


def validate_api_key(provided: str | None, configured: str | None) -> bool:
    """
    Compare a caller-supplied key with the configured shared secret.

    No configured secret means every mutating call is rejected; there is no open mode.
    """
    if not isinstance(configured, str) or not configured.strip():
        return False
    if not isinstance(provided, str) or not provided.strip():
        return False
    return hmac.compare_digest(provided.encode("utf-8"), configured.encode("utf-8"))


def require_api_key(provided: str | None, configured: str | None) -> None:
    if not validate_api_key(provided, configured):
        if not isinstance(configured, str) or not configured.strip():
            logger.warning("AUTH: rejected mutating call, API_KEY is not configured")
        else:
            logger.warning("AUTH: rejected mutating call, API key mismatch")
        raise Unauthorized()


def sanitize_filename(filename: str) -> str:
    # Order matters: "../../etc/passwd" -> "....etcpasswd" -> "etcpasswd"
    cleaned = _SEPARATORS_RE.sub("", filename)
    cleaned = cleaned.replace("..", "")
    return _DISALLOWED_RE.sub("", cleaned)
