from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Server
    host: str
    port: int

    # MCP identity
    mcp_name: str
    mcp_version: str

    # Shared secret for mutating tools (empty -> every mutation is rejected)
    api_key: str

    # Storage
    database_path: str
    db_busy_timeout_ms: int

    # Logging / debug
    log_level: str
    debug_log_requests: bool


def get_settings() -> Settings:
    # Empty DATABASE_PATH means "<project>/data/resume.db" (resolved by persistence.paths).
    database_path = os.getenv("DATABASE_PATH", "").strip()

    return Settings(
        host=os.getenv("HOST", "0.0.0.0"),
        port=_env_int("PORT", 3000),
        mcp_name=os.getenv("MCP_NAME", "resume-mcp"),
        mcp_version=os.getenv("MCP_VERSION", "1.0.0"),
        api_key=os.getenv("API_KEY", ""),
        database_path=database_path,
        db_busy_timeout_ms=_env_int("DB_BUSY_TIMEOUT_MS", 5000),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        debug_log_requests=_env_bool("DEBUG_LOG_REQUESTS", False),
    )
