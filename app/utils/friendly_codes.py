"""
Human-friendly code builders for events, promoters and table reservations
"""

import re
import unicodedata
from datetime import date, datetime
from typing import List, Optional, Union

from app.utils.lima_time import parse_db_to_lima

FRIENDLY_EVENT_CODE_RE = re.compile(r"^[A-Z0-9]+-\d{4}(-[A-Z0-9]+)?$")
RESERVATION_CODE_RE = re.compile(r"^BC-([A-Z0-9-]+)-([A-Z0-9]+)-(\d{3})$")


def strip_accents(value: str) -> str:
    normalized = unicodedata.normalize("NFD", value)
    return "".join(ch for ch in normalized if unicodedata.category(ch) != "Mn")


def slugify(value: str) -> str:
    """Uppercase slug with dashes, max 30 chars"""
    slug = re.sub(r"[^A-Z0-9]+", "-", strip_accents(value).upper())
    return slug.strip("-")[:30]


def clean_token(value: str, max_length: int = 12) -> str:
    """Lowercase slug used for batch prefixes"""
    token = re.sub(r"[^a-z0-9]+", "-", strip_accents(value or "").lower())
    token = re.sub(r"-{2,}", "-", token).strip("-")
    return token[:max_length]


def generate_event_code(event_name: str, event_date: Union[str, date, datetime]) -> str:
    """BABY Deluxe + 27/02/2026 -> BABY-DELUXE-0227"""
    if isinstance(event_date, datetime) or isinstance(event_date, str):
        local = parse_db_to_lima(event_date)
        month, day = local.month, local.day
    else:
        month, day = event_date.month, event_date.day
    return f"{slugify(event_name)}-{month:02d}{day:02d}"


def generate_promoter_event_code(event_code: str, promoter_code: str) -> str:
    return f"{event_code}-{slugify(promoter_code)}"


def is_valid_friendly_code(code: str) -> bool:
    return bool(FRIENDLY_EVENT_CODE_RE.match(code or ""))


def add_suffix_if_needed(base_code: str, attempt: int = 1) -> str:
    if attempt == 1:
        return base_code
    return f"{base_code}-{attempt}"


def generate_friendly_code(event_prefix: str, table_name: str, person_index: int) -> str:
    """BC-{EVENT_PREFIX}-{TABLE}-{NNN}, e.g. BC-LOVE-M1-001"""
    prefix = re.sub(r"\s+", "-", event_prefix.upper())
    table = re.sub(r"MESA\s*", "", table_name.upper(), count=1).strip()
    return f"BC-{prefix}-{table}-{person_index:03d}"


def parse_friendly_code(code: str) -> Optional[dict]:
    match = RESERVATION_CODE_RE.match(code or "")
    if not match:
        return None
    return {
        "event_prefix": match.group(1),
        "table_name": match.group(2),
        "person_index": int(match.group(3)),
    }


def generate_reservation_codes(event_prefix: str, table_name: str, quantity: int) -> List[str]:
    return [generate_friendly_code(event_prefix, table_name, i) for i in range(1, quantity + 1)]
