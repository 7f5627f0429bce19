"""
Payment routes - Culqi orders and webhook (landing), refunds (backoffice)
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.schemas.settings import CulqiOrderCreate, CulqiRefund
from app.services.payment_service import PaymentService
from app.utils.responses import success_response
from app.utils.roles import ADMIN_ROLES
from app.utils.security import StaffContext, require_staff_role

router = APIRouter()
admin_router = APIRouter()


@router.post("/payments/culqi/create-order")
async def create_order(
    body: CulqiOrderCreate,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    db: Session = Depends(get_db),
):
    return success_response(await PaymentService.create_order(db, body, idempotency_key))


@router.post("/payments/culqi/webhook")
async def culqi_webhook(
    request: Request,
    x_culqi_signature: Optional[str] = Header(None),
    db: Session = Depends(get_db),
):
    """Provider callback; duplicates are acknowledged without reprocessing"""
    raw_body = await request.body()
    return success_response(PaymentService.handle_webhook(db, raw_body, x_culqi_signature))


@router.get("/payments/receipt")
async def payment_receipt(
    payment_id: Optional[str] = None,
    order_id: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return success_response({"receipt": PaymentService.get_receipt(db, payment_id, order_id)})


@admin_router.post("/payments/culqi/refund")
async def refund(
    body: CulqiRefund,
    db: Session = Depends(get_db),
    staff: StaffContext = Depends(require_staff_role(*ADMIN_ROLES)),
):
    return success_response(await PaymentService.refund(db, body, staff.staff_id))
