"""
Configuration settings for the application
"""

import os
from typing import List
from pydantic import field_validator
from pydantic_settings import BaseSettings


def parse_rate_limit_env(value: str | None, fallback: int) -> int:
    """Parse a positive integer from the environment, falling back on bad input"""
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        return fallback
    return parsed if parsed > 0 else fallback


# Positive integer settings and their fallbacks
POSITIVE_INT_DEFAULTS = {
    "SUPABASE_TIMEOUT_SECONDS": 10,
    "RATE_LIMIT_WINDOW_SECONDS": 60,
    "RATE_LIMIT_SCAN_PER_MIN": 120,
    "RATE_LIMIT_RENIEC_PER_MIN": 20,
    "RATE_LIMIT_PUBLIC_PER_MIN": 30,
}


class Settings(BaseSettings):
    """Application settings"""

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./nightlife_access.db")

    # Supabase (auth + storage)
    SUPABASE_URL: str | None = os.getenv("SUPABASE_URL")
    SUPABASE_SERVICE_ROLE_KEY: str | None = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
    SUPABASE_ANON_KEY: str | None = os.getenv("SUPABASE_ANON_KEY")
    STORAGE_BUCKET: str = os.getenv("STORAGE_BUCKET", "event-assets")
    SUPABASE_TIMEOUT_SECONDS: int = parse_rate_limit_env(os.getenv("SUPABASE_TIMEOUT_SECONDS"), 10)

    # Application
    APP_NAME: str = os.getenv("APP_NAME", "Nightlife Access")
    BASE_URL: str = os.getenv("BASE_URL", "http://localhost:8000")
    DEFAULT_ORGANIZER_ID: str | None = os.getenv("DEFAULT_ORGANIZER_ID")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # CORS
    ALLOW_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:3001",
        "http://localhost:8000",
    ]

    # File limits
    MAX_UPLOAD_SIZE: int = 10 * 1024 * 1024  # 10MB

    # Rate limiting
    RATE_LIMIT_WINDOW_SECONDS: int = parse_rate_limit_env(os.getenv("RATE_LIMIT_WINDOW_SECONDS"), 60)
    RATE_LIMIT_SCAN_PER_MIN: int = parse_rate_limit_env(os.getenv("RATE_LIMIT_SCAN_PER_MIN"), 120)
    RATE_LIMIT_RENIEC_PER_MIN: int = parse_rate_limit_env(os.getenv("RATE_LIMIT_RENIEC_PER_MIN"), 20)
    RATE_LIMIT_PUBLIC_PER_MIN: int = parse_rate_limit_env(os.getenv("RATE_LIMIT_PUBLIC_PER_MIN"), 30)

    # Email
    RESEND_API_KEY: str | None = os.getenv("RESEND_API_KEY")
    EMAIL_ALLOWED_DOMAIN: str = os.getenv("EMAIL_ALLOWED_DOMAIN", "@babyclubaccess.com")
    RESEND_FROM: str = os.getenv("RESEND_FROM", "BabyClub Access <no-reply@babyclubaccess.com>")

    # National ID lookup
    API_PERU_TOKEN: str | None = os.getenv("API_PERU_TOKEN")
    API_PERU_BASE_URL: str = os.getenv("API_PERU_BASE_URL", "https://apiperu.dev/api")

    # Payments
    ENABLE_PAYMENTS: bool = os.getenv("ENABLE_PAYMENTS", "false").lower() in ("1", "true", "yes")
    CULQI_SECRET_KEY: str | None = os.getenv("CULQI_SECRET_KEY")
    CULQI_API_BASE_URL: str = os.getenv("CULQI_API_BASE_URL", "https://api.culqi.com/v2")

    @field_validator(*POSITIVE_INT_DEFAULTS, mode="before")
    @classmethod
    def positive_int_or_default(cls, value, info):
        return parse_rate_limit_env(value, POSITIVE_INT_DEFAULTS[info.field_name])

    class Config:
        env_file = ".env"
        extra = "ignore"

settings = Settings()
