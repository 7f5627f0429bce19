"""
Tests for the fixed-window rate limiter
"""

import pytest
from types import SimpleNamespace

from fastapi import HTTPException

from app.core.config import Settings, parse_rate_limit_env
from app.utils.security import (
    FixedWindowRateLimiter,
    enforce_rate_limit,
    get_client_ip,
    rate_limit_headers,
    rate_limiter,
)


def make_request(headers=None, host="10.0.0.1"):
    return SimpleNamespace(headers=headers or {}, client=SimpleNamespace(host=host) if host else None)


@pytest.fixture(autouse=True)
def reset_limiter():
    rate_limiter.reset()
    yield
    rate_limiter.reset()


def test_window_allows_up_to_limit():
    limiter = FixedWindowRateLimiter()
    first = limiter.hit("k", 2, 60_000, now_ms=1_000)
    second = limiter.hit("k", 2, 60_000, now_ms=2_000)
    third = limiter.hit("k", 2, 60_000, now_ms=3_000)

    assert first.ok and first.remaining == 1
    assert second.ok and second.remaining == 0
    assert not third.ok
    assert third.reset_at == 61_000
    assert third.reset_ms == 58_000


def test_window_resets():
    limiter = FixedWindowRateLimiter()
    limiter.hit("k", 1, 1_000, now_ms=0)
    assert not limiter.hit("k", 1, 1_000, now_ms=500).ok
    assert limiter.hit("k", 1, 1_000, now_ms=1_000).ok


def test_keys_are_independent():
    limiter = FixedWindowRateLimiter()
    assert limiter.hit("a", 1, 60_000, now_ms=0).ok
    assert limiter.hit("b", 1, 60_000, now_ms=0).ok
    assert not limiter.hit("a", 1, 60_000, now_ms=1).ok


def test_rate_limit_headers():
    limiter = FixedWindowRateLimiter()
    result = limiter.hit("k", 5, 60_000, now_ms=0)
    result = limiter.hit("k", 5, 60_000, now_ms=1_500)
    headers = rate_limit_headers(result)
    assert headers["Retry-After"] == "59"
    assert headers["X-RateLimit-Limit"] == "5"
    assert headers["X-RateLimit-Remaining"] == "3"
    assert headers["X-RateLimit-Reset"] == "60000"


def test_client_ip_resolution():
    assert get_client_ip(make_request({"X-Forwarded-For": "1.2.3.4, 5.6.7.8"})) == "1.2.3.4"
    assert get_client_ip(make_request({"X-Real-IP": " 9.9.9.9 "})) == "9.9.9.9"
    assert get_client_ip(make_request()) == "10.0.0.1"
    assert get_client_ip(make_request(host=None)) == "unknown"


def test_enforce_rate_limit_raises_429():
    request = make_request()
    enforce_rate_limit(request, "landing:reniec", 1)
    with pytest.raises(HTTPException) as exc_info:
        enforce_rate_limit(request, "landing:reniec", 1)

    exc = exc_info.value
    assert exc.status_code == 429
    assert exc.detail["error"] == "rate_limited"
    assert "retryAfterMs" in exc.detail
    assert exc.headers["X-RateLimit-Limit"] == "1"


def test_enforce_rate_limit_custom_key():
    """Keys like ip:staff keep separate counters per staff member"""
    request = make_request()
    enforce_rate_limit(request, "admin:scan", 1, key="10.0.0.1:staff-a")
    enforce_rate_limit(request, "admin:scan", 1, key="10.0.0.1:staff-b")
    with pytest.raises(HTTPException):
        enforce_rate_limit(request, "admin:scan", 1, key="10.0.0.1:staff-a")


@pytest.mark.parametrize(
    "raw,expected",
    [("45", 45), (" 10 ", 10), ("0", 30), ("-3", 30), ("abc", 30), (None, 30)],
)
def test_parse_rate_limit_env(raw, expected):
    assert parse_rate_limit_env(raw, 30) == expected


@pytest.mark.parametrize("raw", ["0", "-5", "abc", ""])
def test_settings_fall_back_on_bad_env(monkeypatch, raw):
    monkeypatch.setenv("RATE_LIMIT_SCAN_PER_MIN", raw)
    monkeypatch.setenv("SUPABASE_TIMEOUT_SECONDS", raw)
    fresh = Settings(_env_file=None)
    assert fresh.RATE_LIMIT_SCAN_PER_MIN == 120
    assert fresh.SUPABASE_TIMEOUT_SECONDS == 10


def test_settings_read_positive_env(monkeypatch):
    monkeypatch.setenv("RATE_LIMIT_PUBLIC_PER_MIN", "7")
    assert Settings(_env_file=None).RATE_LIMIT_PUBLIC_PER_MIN == 7
