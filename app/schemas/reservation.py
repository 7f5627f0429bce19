"""
Table reservation schemas
"""

from typing import Optional
from pydantic import BaseModel


class ReservationAdminCreate(BaseModel):
    """Staff-created reservation (new customer or existing ticket)"""
    mode: str = "new_customer"
    table_id: Optional[str] = None
    event_id: Optional[str] = None
    product_id: Optional[str] = None
    ticket_id: Optional[str] = None
    full_name: Optional[str] = None
    doc_type: Optional[str] = "dni"
    document: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    status: Optional[str] = "approved"
    ticket_quantity: Optional[int] = None
    notes: Optional[str] = None
    promoter_id: Optional[str] = None


class ReservationPublicCreate(BaseModel):
    """Landing reservation request with payment voucher"""
    table_id: Optional[str] = None
    event_id: Optional[str] = None
    product_id: Optional[str] = None
    code: Optional[str] = None
    full_name: Optional[str] = None
    doc_type: Optional[str] = "dni"
    document: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    voucher_url: Optional[str] = None
    promoter_id: Optional[str] = None


class ReservationUpdate(BaseModel):
    id: Optional[str] = None
    status: Optional[str] = None
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None
    ticket_quantity: Optional[int] = None
