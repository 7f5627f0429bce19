"""
Conversions between America/Lima wall-clock time and UTC ISO strings
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

EVENT_TZ = "America/Lima"
LIMA = ZoneInfo(EVENT_TZ)

DATETIME_LOCAL_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}$")
HAS_ZONE_RE = re.compile(r"([zZ]|[+-]\d{2}:?\d{2})$")


@dataclass
class LimaParts:
    date: str  # dd/mm/yyyy
    hour12: int
    minute: int
    ampm: str


def to_utc_iso(value: datetime) -> str:
    """Render an aware datetime as UTC ISO with milliseconds, e.g. 2025-12-21T03:00:00.000Z"""
    utc = value.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored timestamps may come back naive (SQLite); they are UTC"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def iso_or_none(value: Optional[datetime]) -> Optional[str]:
    return to_utc_iso(as_utc(value)) if value else None


def parse_iso(value: str) -> datetime:
    """Parse an ISO string; naive values are taken as UTC"""
    raw = value.strip()
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_24h(hour12: int, ampm: str) -> int:
    try:
        hour = int(hour12)
    except (TypeError, ValueError):
        raise ValueError(f"Hora inválida: {hour12}")
    if hour < 1 or hour > 12:
        raise ValueError(f"Hora inválida: {hour12}")
    if str(ampm).upper() == "AM":
        return 0 if hour == 12 else hour
    return 12 if hour == 12 else hour + 12


def _debug(label: str, raw, dt: datetime, iso: str) -> None:
    logger.debug("[lima_time:%s] raw=%r dt=%s zone=%s iso=%s", label, raw, dt.isoformat(), dt.tzinfo, iso)


def to_utc_iso_from_lima_parts(date: str, hour12: int, minute: int, ampm: str) -> str:
    """Convert a Lima dd/mm/yyyy + 12h clock reading to a UTC ISO string"""
    try:
        day, month, year = (int(part) for part in date.split("/"))
    except (AttributeError, ValueError):
        raise ValueError(f"Fecha inválida: {date}")
    if not year or not month or not day:
        raise ValueError(f"Fecha inválida: {date}")

    hour = to_24h(hour12, ampm)
    try:
        dt = datetime(year, month, day, hour, int(minute), tzinfo=LIMA)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Fecha/hora inválida: {exc}")

    iso = to_utc_iso(dt)
    _debug("to_utc_iso_from_lima_parts", {"date": date, "hour12": hour12, "minute": minute, "ampm": ampm}, dt, iso)
    return iso


def parse_datetime_local_as_zone(datetime_local: str, zone: str = EVENT_TZ) -> datetime:
    """Parse a YYYY-MM-DDTHH:MM value as wall-clock time in ``zone``"""
    if not isinstance(datetime_local, str) or not DATETIME_LOCAL_RE.match(datetime_local):
        raise ValueError(f"datetime-local inválido: {datetime_local}")
    try:
        naive = datetime.strptime(datetime_local, "%Y-%m-%dT%H:%M")
    except ValueError:
        raise ValueError(f"No se pudo parsear datetime-local: {datetime_local}")
    return naive.replace(tzinfo=ZoneInfo(zone))


def to_db_timestamptz_from_lima(datetime_local: str) -> str:
    dt = parse_datetime_local_as_zone(datetime_local, EVENT_TZ)
    iso = to_utc_iso(dt)
    _debug("to_db_timestamptz_from_lima", datetime_local, dt, iso)
    return iso


def parse_db_to_lima(iso_from_db) -> datetime:
    """Read a stored timestamp (ISO string or datetime) into Lima time"""
    if isinstance(iso_from_db, datetime):
        value = iso_from_db if iso_from_db.tzinfo else iso_from_db.replace(tzinfo=timezone.utc)
        return value.astimezone(LIMA)
    try:
        return parse_iso(iso_from_db).astimezone(LIMA)
    except (AttributeError, TypeError, ValueError):
        raise ValueError(f"Fecha inválida desde DB: {iso_from_db}")


def format_lima_from_db(iso_from_db) -> str:
    dt = parse_db_to_lima(iso_from_db)
    return dt.strftime("%d/%m/%Y %I:%M %p")


def to_lima_parts_from_db(iso_from_db) -> LimaParts:
    dt = parse_db_to_lima(iso_from_db)
    return LimaParts(
        date=dt.strftime("%d/%m/%Y"),
        hour12=int(dt.strftime("%I")),
        minute=dt.minute,
        ampm=dt.strftime("%p"),
    )


def to_datetime_local_from_db(iso_from_db) -> str:
    dt = parse_db_to_lima(iso_from_db)
    return dt.strftime("%Y-%m-%dT%H:%M")


def to_datetime_local_value_from_db(iso_from_db) -> str:
    """Lenient variant for form inputs: invalid values become an empty string"""
    try:
        return to_datetime_local_from_db(iso_from_db)
    except ValueError:
        return ""


def format_event_datetime(iso: Optional[str]) -> str:
    if not iso:
        return "—"
    try:
        return format_lima_from_db(iso)
    except ValueError:
        return "—"


def parse_date_to_lima(date_input) -> Optional[datetime]:
    """Accept an ISO value with or without zone; bare values are Lima wall-clock time"""
    if not date_input or not isinstance(date_input, str):
        return None
    raw = date_input.strip()
    try:
        if HAS_ZONE_RE.search(raw):
            return parse_iso(raw).astimezone(LIMA)
        return datetime.fromisoformat(raw).replace(tzinfo=LIMA)
    except ValueError:
        return None
