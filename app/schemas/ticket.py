"""
Ticket, scan and person schemas
"""

from typing import Optional
from pydantic import BaseModel


class TicketCreate(BaseModel):
    """Landing registration with an access code"""
    code: Optional[str] = None
    doc_type: Optional[str] = "dni"
    document: Optional[str] = None
    dni: Optional[str] = None
    nombre: Optional[str] = None
    apellido_paterno: Optional[str] = None
    apellido_materno: Optional[str] = None
    email: Optional[str] = None
    telefono: Optional[str] = None
    birthdate: Optional[str] = None
    promoter_id: Optional[str] = None


class TicketEmailRequest(BaseModel):
    ticket_id: Optional[str] = None
    email: Optional[str] = None


class ScanRequest(BaseModel):
    code: Optional[str] = None
    event_id: Optional[str] = None


class ScanConfirm(BaseModel):
    code_id: Optional[str] = None
    ticket_id: Optional[str] = None
