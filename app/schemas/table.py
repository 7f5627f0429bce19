"""
Table and table product schemas
"""

from typing import Any, List, Optional
from pydantic import BaseModel


class TablePayload(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    organizer_id: Optional[str] = None
    event_id: Optional[str] = None
    ticket_count: Optional[Any] = None
    min_consumption: Optional[Any] = None
    price: Optional[Any] = None
    notes: Optional[str] = None
    is_active: Optional[bool] = None
    pos_x: Optional[Any] = None
    pos_y: Optional[Any] = None
    pos_w: Optional[Any] = None
    pos_h: Optional[Any] = None


class TableProductPayload(BaseModel):
    id: Optional[str] = None
    table_id: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    items: Optional[List[str]] = None
    price: Optional[Any] = None
    tickets_included: Optional[Any] = None
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None
