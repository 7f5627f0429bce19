"""
Turning raw database / Supabase failures into short user-facing messages
"""

import re
from typing import Any

from sqlalchemy.exc import IntegrityError

UNIQUE_VIOLATION = "23505"

RETRYABLE_SUPABASE_ERROR = re.compile(
    r"(aborterror|operation was aborted|aborted|timeout|timed out|error code 522|gateway timeout"
    r"|service unavailable|fetch failed|network|temporarily unavailable)",
    re.IGNORECASE,
)
HTML_BODY = re.compile(r"<(!doctype|html)", re.IGNORECASE)
CLOUDFLARE_CODE = re.compile(r"error code\s+(\d{3})", re.IGNORECASE)

MAX_MESSAGE_LENGTH = 220


def _raw_message(value: Any) -> str:
    if isinstance(value, str):
        return value
    message = getattr(value, "message", None)
    if isinstance(message, str):
        return message
    if isinstance(value, dict) and isinstance(value.get("message"), str):
        return value["message"]
    if isinstance(value, Exception):
        return str(value)
    return ""


def _normalized(value: Any) -> str:
    return re.sub(r"\s+", " ", _raw_message(value)).strip()


def sanitize_supabase_error_message(value: Any) -> str:
    normalized = _normalized(value)
    if not normalized:
        return "Error inesperado al consultar Supabase"

    if HTML_BODY.search(normalized):
        match = CLOUDFLARE_CODE.search(normalized)
        if match:
            return f"Supabase no respondió a tiempo (Cloudflare {match.group(1)})"
        return "Supabase devolvió una respuesta HTML inesperada"

    if len(normalized) > MAX_MESSAGE_LENGTH:
        return f"{normalized[:MAX_MESSAGE_LENGTH]}..."
    return normalized


def is_retryable_supabase_error(value: Any) -> bool:
    return bool(RETRYABLE_SUPABASE_ERROR.search(_normalized(value)))


def get_user_facing_supabase_error(value: Any, fallback: str) -> str:
    if is_retryable_supabase_error(value):
        return fallback
    return sanitize_supabase_error_message(value)


def error_code(exc: Exception) -> str | None:
    """SQLSTATE of a DBAPI error when the driver exposes one"""
    orig = getattr(exc, "orig", exc)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None) or getattr(exc, "code", None)
    return str(code) if code else None


def is_unique_violation(exc: Exception) -> bool:
    if error_code(exc) == UNIQUE_VIOLATION:
        return True
    return isinstance(exc, IntegrityError) and "UNIQUE constraint failed" in str(exc)
