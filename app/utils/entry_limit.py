"""
Entry cutoff helpers: the latest Lima time a general code lets people in
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Tuple

from app.utils.lima_time import LIMA, parse_db_to_lima, to_utc_iso

DEFAULT_ENTRY_LIMIT = "23:30"

ENTRY_LIMIT_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::\d{2})?$")


@dataclass
class EntryCutoff:
    cutoff: datetime
    is_next_day: bool


def parse_entry_limit(value: Optional[str]) -> Optional[Tuple[int, int]]:
    if not value:
        return None
    match = ENTRY_LIMIT_RE.match(value.strip())
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        return None
    return hour, minute


def normalize_entry_limit(value: Optional[str]) -> Optional[str]:
    parsed = parse_entry_limit(value)
    if not parsed:
        return None
    return f"{parsed[0]:02d}:{parsed[1]:02d}"


def get_entry_cutoff(
    event_starts_at,
    entry_limit: Optional[str] = None,
    fallback: str = DEFAULT_ENTRY_LIMIT,
) -> Optional[EntryCutoff]:
    """Cutoff on the event's Lima date; rolls to the next day when the limit is before the start"""
    if not event_starts_at:
        return None
    try:
        event_start = parse_db_to_lima(event_starts_at)
    except ValueError:
        return None

    parts = parse_entry_limit(normalize_entry_limit(entry_limit) or normalize_entry_limit(fallback))
    if not parts:
        return None

    start_minutes = event_start.hour * 60 + event_start.minute
    limit_minutes = parts[0] * 60 + parts[1]

    cutoff = datetime(
        event_start.year, event_start.month, event_start.day, parts[0], parts[1], tzinfo=LIMA
    )
    is_next_day = limit_minutes < start_minutes
    if is_next_day:
        cutoff = cutoff + timedelta(days=1)

    return EntryCutoff(cutoff=cutoff, is_next_day=is_next_day)


def get_entry_cutoff_display(
    event_starts_at,
    entry_limit: Optional[str] = None,
    fallback: str = DEFAULT_ENTRY_LIMIT,
) -> Optional[dict]:
    info = get_entry_cutoff(event_starts_at, entry_limit, fallback)
    if not info:
        return None
    return {
        "timeLabel": info.cutoff.strftime("%I:%M %p"),
        "dateLabel": info.cutoff.strftime("%d/%m"),
        "isNextDay": info.is_next_day,
        "cutoffIso": to_utc_iso(info.cutoff),
    }


def is_past_cutoff(event_starts_at, entry_limit: Optional[str], now: Optional[datetime] = None) -> Tuple[bool, Optional[EntryCutoff]]:
    info = get_entry_cutoff(event_starts_at, entry_limit)
    if not info:
        return False, None
    current = (now or datetime.now(tz=LIMA)).astimezone(LIMA)
    return current > info.cutoff, info
