"""
Staff and staff role models
"""

from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.core.db import Base
from app.models.mixins import ArchivableMixin, TimestampMixin, new_id


class StaffRole(Base):
    __tablename__ = "staff_roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(50), unique=True, nullable=False)
    name = Column(String(100), nullable=False)


class Staff(ArchivableMixin, TimestampMixin, Base):
    __tablename__ = "staff"

    id = Column(String(36), primary_key=True, default=new_id)
    auth_user_id = Column(String(36), unique=True, nullable=True, index=True)
    person_id = Column(String(36), ForeignKey("persons.id"), nullable=False)
    role_id = Column(Integer, ForeignKey("staff_roles.id"), nullable=False)

    # Relationships
    person = relationship("Person")
    role = relationship("StaffRole")
