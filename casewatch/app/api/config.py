from __future__ import annotations

import logging
import os

logger = logging.getLogger(__name__)

LOCAL_DEV_ORIGINS = ("http://localhost:5173", "http://127.0.0.1:5173")


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r; using %s", name, raw, default)
        return default


def cors_origins() -> list[str]:
    raw = os.getenv("CORS_ALLOW_ORIGINS")
    if raw is None:
        origins = list(LOCAL_DEV_ORIGINS)
    else:
        origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    if not origins:
        raise RuntimeError("CORS_ALLOW_ORIGINS must not be empty.")
    if not any(origin in origins for origin in LOCAL_DEV_ORIGINS):
        logger.warning("CORS allowlist does not include local dev origins: %s", origins)
    return origins


def reminder_days() -> int:
    return max(_int_env("CASEWATCH_REMINDER_DAYS", 7), 0)


def reminder_cooldown_days() -> int:
    """0 disables the cooldown: every sweep re-sends reminders for stale cases."""
    return max(_int_env("CASEWATCH_REMINDER_COOLDOWN_DAYS", 0), 0)


def log_level() -> str:
    return (os.getenv("CASEWATCH_LOG_LEVEL") or "INFO").upper()
