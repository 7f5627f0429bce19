"""
Code batch and promoter schemas
"""

from typing import Any, Optional
from pydantic import BaseModel


class BatchGenerate(BaseModel):
    event_id: Optional[str] = None
    type: Optional[str] = None
    promoter_id: Optional[str] = None
    quantity: Optional[Any] = None
    max_uses: Optional[Any] = None
    expires_at: Optional[str] = None
    prefix: Optional[str] = None
    notes: Optional[str] = None


class BatchAction(BaseModel):
    batch_id: Optional[str] = None


class PromoterPayload(BaseModel):
    id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    dni: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    code: Optional[str] = None
    instagram: Optional[str] = None
    tiktok: Optional[str] = None
    notes: Optional[str] = None
    organizer_id: Optional[str] = None
    is_active: Optional[bool] = None


class PromoterCodesGenerate(BaseModel):
    promoter_id: Optional[str] = None
    event_id: Optional[str] = None
    quantity: Optional[Any] = None
    max_uses: Optional[Any] = None
    expires_at: Optional[str] = None
    prefix: Optional[str] = None
    notes: Optional[str] = None
