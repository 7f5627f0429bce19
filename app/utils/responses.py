"""
Standardized response utilities
"""

from typing import Any, Optional
from fastapi import HTTPException, status
from fastapi.responses import JSONResponse


def success_response(data: Optional[dict] = None, status_code: int = 200, headers: Optional[dict] = None) -> JSONResponse:
    """Create standardized success response"""
    content = {"success": True}
    if data:
        content.update(data)
    return JSONResponse(content=content, status_code=status_code, headers=headers)


def error_response(error: str, status_code: int = 400, headers: Optional[dict] = None, **extra: Any) -> JSONResponse:
    """Create standardized error response"""
    content = {"success": False, "error": error}
    content.update(extra)
    return JSONResponse(content=content, status_code=status_code, headers=headers)


def api_error(message: str, status_code: int = 400, headers: Optional[dict] = None, **extra: Any):
    """Raise an HTTPException rendered as the error shape (extra keys are kept)"""
    detail: Any = {"error": message, **extra} if extra else message
    raise HTTPException(status_code=status_code, detail=detail, headers=headers)


def bad_request(message: str, **extra: Any):
    api_error(message, status.HTTP_400_BAD_REQUEST, **extra)


def not_found_error(message: str = "No encontrado"):
    """Create not found error"""
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=message)


def conflict_error(message: str):
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=message)


def unauthorized_error(message: str = "Auth requerido"):
    """Create unauthorized error"""
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=message)


def forbidden_error(message: str = "No autorizado"):
    """Create forbidden error"""
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=message)


def rate_limit_error(retry_after_ms: int, headers: Optional[dict] = None):
    """Create rate limit error"""
    api_error("rate_limited", status.HTTP_429_TOO_MANY_REQUESTS, headers=headers, retryAfterMs=retry_after_ms)


def http_exception_content(exc: HTTPException) -> dict:
    """Body for an HTTPException in the {success, error} shape"""
    if isinstance(exc.detail, dict):
        content = {"success": False, **exc.detail}
        content.setdefault("error", "Error")
        return content
    return {"success": False, "error": str(exc.detail)}
