"""
Access code and code batch models
"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from app.core.db import Base
from app.models.mixins import ArchivableMixin, TimestampMixin, new_id

CODE_TYPES = ["general", "courtesy", "promoter", "table"]


class CodeBatch(ArchivableMixin, TimestampMixin, Base):
    __tablename__ = "code_batches"

    id = Column(String(36), primary_key=True, default=new_id)
    event_id = Column(String(36), ForeignKey("events.id"), nullable=False, index=True)
    promoter_id = Column(String(36), ForeignKey("promoters.id"), nullable=True)
    type = Column(String(20), nullable=False)
    quantity = Column(Integer, nullable=False)
    prefix = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)

    # Relationships
    codes = relationship("Code", back_populates="batch")


class Code(ArchivableMixin, TimestampMixin, Base):
    __tablename__ = "codes"

    id = Column(String(36), primary_key=True, default=new_id)
    code = Column(String(100), unique=True, nullable=False, index=True)
    event_id = Column(String(36), ForeignKey("events.id"), nullable=False, index=True)
    promoter_id = Column(String(36), ForeignKey("promoters.id"), nullable=True, index=True)
    batch_id = Column(String(36), ForeignKey("code_batches.id"), nullable=True, index=True)
    table_reservation_id = Column(String(36), nullable=True, index=True)
    type = Column(String(20), nullable=False, default="general")
    max_uses = Column(Integer, nullable=True)
    uses = Column(Integer, default=0)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    person_index = Column(Integer, nullable=True)

    # Relationships
    event = relationship("Event", back_populates="codes")
    batch = relationship("CodeBatch", back_populates="codes")
    promoter = relationship("Promoter")
