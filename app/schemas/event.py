"""
Event, organizer and event-table schemas
"""

from typing import Any, Optional
from pydantic import BaseModel


class EventPayload(BaseModel):
    """Create / update body; fields are validated by the events service"""
    id: Optional[str] = None
    name: Optional[str] = None
    starts_at: Optional[str] = None
    date: Optional[str] = None
    location: Optional[str] = None
    capacity: Optional[Any] = None
    entry_limit: Optional[str] = None
    code: Optional[str] = None
    header_image: Optional[str] = None
    cover_image: Optional[str] = None
    is_active: Optional[bool] = None
    organizer_id: Optional[str] = None
    event_prefix: Optional[str] = None


class EventClose(BaseModel):
    id: Optional[str] = None
    reason: Optional[str] = None


class EventTablePayload(BaseModel):
    """Per-event availability override of a table"""
    tableId: Optional[str] = None
    is_available: bool = True
    custom_price: Optional[float] = None
    custom_min_consumption: Optional[float] = None
    notes: Optional[str] = None


class OrganizerPayload(BaseModel):
    id: Optional[str] = None
    slug: Optional[str] = None
    name: Optional[str] = None
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None


class LayoutUrlPayload(BaseModel):
    layout_url: Optional[str] = None
