"""
Single-row branding / layout settings and per-organizer layout
"""

from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.models import BrandSettings, LayoutSettings, Organizer
from app.services.repositories import get_active
from app.utils.responses import bad_request

SETTINGS_ROW_ID = 1


def _row(db: Session, model):
    row = db.query(model).filter(model.id == SETTINGS_ROW_ID).first()
    if not row:
        row = model(id=SETTINGS_ROW_ID)
        db.add(row)
    return row


class SettingsService:
    """Service for branding and layout settings"""

    @staticmethod
    def get_branding(db: Session) -> Dict[str, Any]:
        row = db.query(BrandSettings).filter(BrandSettings.id == SETTINGS_ROW_ID).first()
        return {"logo_url": row.logo_url if row else None}

    @staticmethod
    def save_branding(db: Session, logo_url: Optional[str]) -> Dict[str, Any]:
        logo_url = (logo_url or "").strip()
        if not logo_url:
            bad_request("logo_url es requerido")
        row = _row(db, BrandSettings)
        row.logo_url = logo_url
        db.commit()
        return {"logo_url": row.logo_url}

    @staticmethod
    def get_layout(db: Session, organizer_id: Optional[str] = None) -> Dict[str, Any]:
        """Organizer layout first, then the shared single layout"""
        if organizer_id:
            organizer = get_active(db, Organizer, organizer_id)
            if organizer and organizer.layout_url:
                return {"layout_url": organizer.layout_url, "source": "organizer"}
        row = db.query(LayoutSettings).filter(LayoutSettings.id == SETTINGS_ROW_ID).first()
        return {"layout_url": row.layout_url if row else None, "source": "default"}

    @staticmethod
    def save_layout(db: Session, layout_url: Optional[str]) -> Dict[str, Any]:
        row = _row(db, LayoutSettings)
        row.layout_url = (layout_url or "").strip() or None
        db.commit()
        return {"layout_url": row.layout_url}
