"""
Security utilities: rate limiting and staff authentication
"""

import logging
import math
import time
from dataclasses import dataclass
from typing import Dict, Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db import get_db
from app.models import Staff
from app.services.supabase_client import get_supabase_client
from app.utils.responses import forbidden_error, rate_limit_error, unauthorized_error
from app.utils.roles import has_role

logger = logging.getLogger(__name__)


# -------- Rate limiting --------

@dataclass
class RateLimitResult:
    ok: bool
    remaining: int
    reset_ms: int
    reset_at: int
    limit: int
    key: str


class FixedWindowRateLimiter:
    """In-memory fixed-window counter; process-local, not shared between instances"""

    def __init__(self):
        self._store: Dict[str, Dict[str, int]] = {}

    def hit(self, key: str, limit: int, window_ms: int, now_ms: Optional[int] = None) -> RateLimitResult:
        now = int(time.time() * 1000) if now_ms is None else now_ms
        entry = self._store.get(key)
        if entry is None or entry["reset_at"] <= now:
            entry = {"count": 0, "reset_at": now + window_ms}
            self._store[key] = entry

        if entry["count"] >= limit:
            return RateLimitResult(
                ok=False,
                remaining=0,
                reset_ms=max(entry["reset_at"] - now, 0),
                reset_at=entry["reset_at"],
                limit=limit,
                key=key,
            )

        entry["count"] += 1
        return RateLimitResult(
            ok=True,
            remaining=max(limit - entry["count"], 0),
            reset_ms=max(entry["reset_at"] - now, 0),
            reset_at=entry["reset_at"],
            limit=limit,
            key=key,
        )

    def reset(self) -> None:
        self._store.clear()


rate_limiter = FixedWindowRateLimiter()


def get_client_ip(request) -> str:
    """Extract client IP from request"""
    # Check for forwarded IP first (for reverse proxy setups)
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    # Check for real IP header
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    # Fall back to direct client IP
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def rate_limit(
    request,
    key_prefix: str,
    limit: int,
    window_ms: Optional[int] = None,
    key: Optional[str] = None,
) -> RateLimitResult:
    """Count one hit for ``{prefix}:{key or ip}``"""
    window = window_ms if window_ms is not None else settings.RATE_LIMIT_WINDOW_SECONDS * 1000
    store_key = f"{key_prefix}:{key or get_client_ip(request)}"
    return rate_limiter.hit(store_key, limit, window)


def rate_limit_headers(result: RateLimitResult) -> Dict[str, str]:
    return {
        "Retry-After": str(math.ceil(result.reset_ms / 1000)),
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_at),
    }


def enforce_rate_limit(request, key_prefix: str, limit: int, key: Optional[str] = None) -> RateLimitResult:
    """Raise 429 with rate limit headers when the window is exhausted"""
    result = rate_limit(request, key_prefix, limit, key=key)
    if not result.ok:
        logger.warning("Rate limited %s", result.key)
        rate_limit_error(result.reset_ms, headers=rate_limit_headers(result))
    return result


# -------- Staff authentication --------

@dataclass
class StaffContext:
    staff: Staff
    auth_user_id: str
    role: Optional[str]

    @property
    def staff_id(self) -> str:
        return self.staff.id


def get_bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization") or ""
    if header.lower().startswith("bearer "):
        token = header[7:].strip()
        return token or None
    return None


def get_staff_context(request: Request, db: Session = Depends(get_db)) -> StaffContext:
    """Resolve the staff row behind the request's Supabase access token"""
    token = get_bearer_token(request)
    if not token:
        unauthorized_error("Auth requerido")

    client = get_supabase_client()
    try:
        response = client.auth.get_user(token)
    except Exception as exc:
        logger.info("Supabase rejected access token: %s", exc)
        response = None
    user = getattr(response, "user", None)
    if not user:
        unauthorized_error("Sesión inválida")

    staff = db.query(Staff).filter(Staff.auth_user_id == str(user.id)).first()
    if not staff:
        forbidden_error("No autorizado")
    if not staff.is_active:
        forbidden_error("Usuario inactivo")
    if staff.deleted_at is not None:
        forbidden_error("Usuario archivado")

    return StaffContext(staff=staff, auth_user_id=str(user.id), role=staff.role.code if staff.role else None)


def require_staff_role(*roles: str):
    """Dependency factory: any active staff when no roles are given, else one of ``roles``"""

    def dependency(context: StaffContext = Depends(get_staff_context)) -> StaffContext:
        if roles and not has_role(context.role, list(roles)):
            forbidden_error("Rol sin permisos")
        return context

    return dependency
