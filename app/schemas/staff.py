"""
Staff user schemas
"""

from typing import Optional
from pydantic import BaseModel


class StaffCreate(BaseModel):
    dni: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    password: Optional[str] = None
    role_code: Optional[str] = None


class StaffUpdate(BaseModel):
    id: Optional[str] = None
    staff_id: Optional[str] = None
    dni: Optional[str] = None
    role_code: Optional[str] = None
    is_active: Optional[bool] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
