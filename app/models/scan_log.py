"""
Door scan log model
"""

from sqlalchemy import Column, String

from app.core.db import Base
from app.models.mixins import TimestampMixin, new_id


class ScanLog(TimestampMixin, Base):
    __tablename__ = "scan_logs"

    id = Column(String(36), primary_key=True, default=new_id)
    event_id = Column(String(36), nullable=False, index=True)
    code_id = Column(String(36), nullable=True)
    ticket_id = Column(String(36), nullable=True)
    raw_value = Column(String(255), nullable=True)
    result = Column(String(20), nullable=False)
    scanned_by_staff_id = Column(String(36), nullable=True)
