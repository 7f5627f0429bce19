"""
Branding, layout and payment schemas
"""

from typing import Any, Dict, Optional
from pydantic import BaseModel


class BrandingPayload(BaseModel):
    logo_url: Optional[str] = None


class LayoutPayload(BaseModel):
    layout_url: Optional[str] = None


class CulqiOrderCreate(BaseModel):
    reservation_id: Optional[str] = None
    amount: Optional[Any] = None
    description: Optional[str] = None
    currency_code: Optional[str] = "PEN"
    expiration_minutes: Optional[Any] = None
    order_number: Optional[str] = None
    idempotency_key: Optional[str] = None


class CulqiRefund(BaseModel):
    payment_id: Optional[str] = None
    amount: Optional[Any] = None
    reason: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
