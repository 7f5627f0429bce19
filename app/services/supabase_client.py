"""
Supabase initialization and helpers (auth admin + storage)
"""

from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import HTTPException
from supabase import Client, create_client

from app.core.config import settings

logger = logging.getLogger(__name__)


def supabase_configured() -> bool:
    return bool(settings.SUPABASE_URL and settings.SUPABASE_SERVICE_ROLE_KEY)


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """Return a cached service-role client.

    Raises HTTP 500 "Supabase config missing" when URL or key are not set.
    """
    if not supabase_configured():
        raise HTTPException(status_code=500, detail="Supabase config missing")

    logger.info("Creating Supabase client for %s", settings.SUPABASE_URL)
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
