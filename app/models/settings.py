"""
Single-row branding and layout settings
"""

from sqlalchemy import Column, Integer, String

from app.core.db import Base
from app.models.mixins import TimestampMixin


class BrandSettings(TimestampMixin, Base):
    __tablename__ = "brand_settings"

    id = Column(Integer, primary_key=True)
    logo_url = Column(String(1024), nullable=True)


class LayoutSettings(TimestampMixin, Base):
    __tablename__ = "layout_settings"

    id = Column(Integer, primary_key=True)
    layout_url = Column(String(1024), nullable=True)
