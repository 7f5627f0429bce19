"""
Landing API routes - public registration, reservations and ticket pages
"""

import time
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db import get_db
from app.schemas.reservation import ReservationPublicCreate
from app.schemas.ticket import TicketCreate
from app.services.code_service import CodeService
from app.services.promoter_service import PromoterService
from app.services.qr_service import QRService
from app.services.reniec_service import lookup_dni
from app.services.reservation_service import ReservationService
from app.services.settings_service import SettingsService
from app.services.storage_service import IMAGE_TYPES, extension_for, read_upload, upload_bytes
from app.services.table_service import TableService
from app.services.ticket_service import TicketService
from app.utils.friendly_codes import clean_token
from app.utils.responses import success_response
from app.utils.security import enforce_rate_limit

router = APIRouter()


def public_rate_limit(request: Request, prefix: str) -> None:
    enforce_rate_limit(request, prefix, settings.RATE_LIMIT_PUBLIC_PER_MIN)


@router.get("/tables")
async def list_tables(event_id: Optional[str] = None, db: Session = Depends(get_db)):
    """Active tables with reservation state, for the landing layout"""
    return success_response({"tables": TableService.list_public_tables(db, event_id)})


@router.post("/reservations")
async def create_reservation(body: ReservationPublicCreate, request: Request, db: Session = Depends(get_db)):
    public_rate_limit(request, "landing:reservations")
    return success_response(ReservationService.create_public(db, body), status_code=201)


@router.post("/tickets")
async def register_ticket(body: TicketCreate, request: Request, db: Session = Depends(get_db)):
    """Register a guest with an access code and issue a ticket"""
    public_rate_limit(request, "landing:tickets")
    return success_response(TicketService.register(db, body))


@router.get("/tickets/{ticket_id}")
async def get_ticket(ticket_id: str, db: Session = Depends(get_db)):
    return success_response(TicketService.get_public_ticket(db, ticket_id))


@router.get("/tickets/{ticket_id}/qr.png")
async def get_ticket_qr(ticket_id: str, db: Session = Depends(get_db)):
    token = TicketService.get_qr_token(db, ticket_id)
    return Response(
        content=QRService.generate_qr_png(token),
        media_type="image/png",
        headers={"Cache-Control": "no-store"},
    )


@router.get("/codes/info")
async def code_info(code: Optional[str] = None, db: Session = Depends(get_db)):
    return success_response(CodeService.get_code_info(db, code))


@router.get("/aforo")
async def aforo(code: Optional[str] = None, db: Session = Depends(get_db)):
    return success_response(CodeService.get_aforo(db, code))


@router.get("/promoters")
async def list_promoters(db: Session = Depends(get_db)):
    return success_response({"promoters": PromoterService.list_public(db)})


@router.get("/branding")
async def get_branding(db: Session = Depends(get_db)):
    return success_response(SettingsService.get_branding(db))


@router.get("/layout")
async def get_layout(organizer_id: Optional[str] = None, db: Session = Depends(get_db)):
    return success_response(SettingsService.get_layout(db, organizer_id))


@router.get("/reniec")
async def reniec(request: Request, dni: Optional[str] = None):
    enforce_rate_limit(request, "landing:reniec", settings.RATE_LIMIT_RENIEC_PER_MIN)
    return success_response({"data": await lookup_dni((dni or "").strip())})


@router.post("/uploads/voucher")
async def upload_voucher(
    request: Request,
    file: Optional[UploadFile] = File(None),
    tableName: Optional[str] = Form(None),
):
    """Payment voucher image for a public reservation"""
    public_rate_limit(request, "landing:voucher")
    content = await read_upload(file, IMAGE_TYPES)
    name = clean_token(tableName or "", 24) or "mesa"
    path = f"vouchers/{name}-{int(time.time() * 1000)}.{extension_for(file.content_type, 'jpg')}"
    return success_response({"url": upload_bytes(path, content, file.content_type)})
