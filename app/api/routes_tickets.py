"""
Admin API routes - tickets, person search and door scanning
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db import get_db
from app.schemas.common import IdPayload
from app.schemas.ticket import ScanConfirm, ScanRequest, TicketEmailRequest
from app.services.person_service import PersonService
from app.services.scan_service import ScanService
from app.services.ticket_service import TicketService
from app.utils.responses import success_response
from app.utils.roles import SCAN_ROLES
from app.utils.security import StaffContext, enforce_rate_limit, get_client_ip, require_staff_role

router = APIRouter()

staff_required = require_staff_role()
scan_required = require_staff_role(*SCAN_ROLES)


def _scan_rate_limit(request: Request, staff: StaffContext, prefix: str) -> None:
    key = f"{get_client_ip(request)}:{staff.staff_id}"
    enforce_rate_limit(request, prefix, settings.RATE_LIMIT_SCAN_PER_MIN, key=key)


# -------- Tickets --------

@router.get("/tickets")
async def list_tickets(
    event_id: Optional[str] = None,
    code_type: Optional[str] = None,
    q: Optional[str] = None,
    page: int = 1,
    pageSize: int = 50,
    db: Session = Depends(get_db),
    staff: StaffContext = Depends(staff_required),
):
    return success_response(TicketService.list_tickets(db, event_id, code_type, q, page, pageSize))


@router.get("/tickets/export")
async def export_tickets(
    event_id: Optional[str] = None,
    code_type: Optional[str] = None,
    q: Optional[str] = None,
    format: str = "csv",
    db: Session = Depends(get_db),
    staff: StaffContext = Depends(staff_required),
):
    content, media_type, filename = TicketService.export_tickets(db, event_id, format, code_type, q)
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.post("/tickets/delete")
async def delete_ticket(body: IdPayload, db: Session = Depends(get_db), staff: StaffContext = Depends(staff_required)):
    """Archive a ticket; reservations sharing its contact are released"""
    released = TicketService.delete_ticket(db, body.id, staff.staff_id)
    return success_response({"archived": True, "releasedReservations": released})


@router.post("/tickets/send-email")
async def send_ticket_email(
    body: TicketEmailRequest,
    db: Session = Depends(get_db),
    staff: StaffContext = Depends(staff_required),
):
    return success_response(TicketService.send_email(db, body.ticket_id, body.email))


@router.get("/tickets/{ticket_id}")
async def get_ticket(ticket_id: str, db: Session = Depends(get_db), staff: StaffContext = Depends(staff_required)):
    return success_response({"ticket": TicketService.get_ticket(db, ticket_id)})


# -------- Persons --------

@router.get("/persons/search")
async def search_persons(
    q: Optional[str] = None,
    db: Session = Depends(get_db),
    staff: StaffContext = Depends(staff_required),
):
    return success_response({"persons": PersonService.search(db, q)})


# -------- Door scanning --------

@router.post("/scan")
async def scan(
    body: ScanRequest,
    request: Request,
    db: Session = Depends(get_db),
    staff: StaffContext = Depends(scan_required),
):
    """Classify a scanned code or QR token without consuming it"""
    _scan_rate_limit(request, staff, "admin:scan")
    return success_response(ScanService.scan(db, body.code, body.event_id, staff.staff_id))


@router.post("/scan/confirm")
async def confirm_scan(
    body: ScanConfirm,
    request: Request,
    db: Session = Depends(get_db),
    staff: StaffContext = Depends(scan_required),
):
    """Let the guest in: mark the ticket used or count one code use"""
    _scan_rate_limit(request, staff, "admin:scan-confirm")
    return success_response(ScanService.confirm(db, body.code_id, body.ticket_id, staff.staff_id))
