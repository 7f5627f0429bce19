"""
Process log model
"""

from sqlalchemy import JSON, Column, String, Text

from app.core.db import Base
from app.models.mixins import TimestampMixin, new_id


class ProcessLog(TimestampMixin, Base):
    __tablename__ = "process_logs"

    id = Column(String(36), primary_key=True, default=new_id)
    category = Column(String(50), nullable=False, index=True)
    action = Column(String(100), nullable=False)
    status = Column(String(20), nullable=False, index=True)
    message = Column(Text, nullable=True)
    to_email = Column(String(255), nullable=True)
    provider = Column(String(50), nullable=True)
    provider_id = Column(String(255), nullable=True)
    reservation_id = Column(String(36), nullable=True)
    ticket_id = Column(String(36), nullable=True)
    meta = Column(JSON, nullable=True)
