"""
Admin API routes - table reservations
"""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.schemas.common import IdPayload
from app.schemas.reservation import ReservationAdminCreate, ReservationUpdate
from app.services.reservation_service import ReservationService
from app.utils.responses import success_response
from app.utils.security import StaffContext, require_staff_role

router = APIRouter()

staff_required = require_staff_role()


@router.get("/reservations")
async def list_reservations(
    event_id: Optional[str] = None,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    staff: StaffContext = Depends(staff_required),
):
    return success_response({"reservations": ReservationService.list_reservations(db, event_id, status)})


@router.post("/reservations")
async def create_reservation(
    body: ReservationAdminCreate,
    db: Session = Depends(get_db),
    staff: StaffContext = Depends(staff_required),
):
    """Staff reservation for a new customer or an existing ticket"""
    return success_response(ReservationService.create_admin(db, body, staff.staff_id), status_code=201)


@router.post("/reservations/update")
async def update_reservation(
    body: ReservationUpdate,
    db: Session = Depends(get_db),
    staff: StaffContext = Depends(staff_required),
):
    """Edit contact data or move the reservation to approved / rejected"""
    return success_response(ReservationService.update_reservation(db, body))


@router.post("/reservations/delete")
async def delete_reservation(body: IdPayload, db: Session = Depends(get_db), staff: StaffContext = Depends(staff_required)):
    ReservationService.delete_reservation(db, body.id, staff.staff_id)
    return success_response({"archived": True})


@router.get("/reservations/{reservation_id}")
async def get_reservation(reservation_id: str, db: Session = Depends(get_db), staff: StaffContext = Depends(staff_required)):
    return success_response({"reservation": ReservationService.get_reservation(db, reservation_id)})


@router.post("/reservations/{reservation_id}/resend")
async def resend_reservation_email(
    reservation_id: str,
    db: Session = Depends(get_db),
    staff: StaffContext = Depends(staff_required),
):
    return success_response(ReservationService.resend_email(db, reservation_id))
