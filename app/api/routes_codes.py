"""
Admin API routes - access code batches and promoters
"""

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.schemas.code import BatchAction, BatchGenerate, PromoterCodesGenerate, PromoterPayload
from app.schemas.common import IdPayload
from app.services.code_service import CODE_STATUSES, CodeService
from app.services.promoter_service import PromoterService
from app.utils.responses import success_response
from app.utils.security import StaffContext, require_staff_role

router = APIRouter()

staff_required = require_staff_role()


def _status(value: Optional[str]) -> str:
    value = (value or "all").strip().lower()
    return value if value in CODE_STATUSES else "all"


# -------- Code batches --------

@router.post("/codes/batches/generate")
async def generate_batch(body: BatchGenerate, db: Session = Depends(get_db), staff: StaffContext = Depends(staff_required)):
    """Generate a batch of courtesy, promoter or table codes"""
    return success_response(CodeService.generate_batch(db, body))


@router.post("/codes/batches/deactivate")
async def deactivate_batch(body: BatchAction, db: Session = Depends(get_db), staff: StaffContext = Depends(staff_required)):
    return success_response({"affected": CodeService.deactivate_batch(db, body.batch_id)})


@router.post("/codes/batches/delete")
async def delete_batch(body: BatchAction, db: Session = Depends(get_db), staff: StaffContext = Depends(staff_required)):
    return success_response({"deleted_codes": CodeService.delete_batch(db, body.batch_id, staff.staff_id)})


@router.get("/codes")
async def list_codes(
    event_id: Optional[str] = None,
    type: Optional[str] = None,
    promoter_id: Optional[str] = None,
    batch_id: Optional[str] = None,
    status: Optional[str] = None,
    page: int = 1,
    pageSize: int = 50,
    db: Session = Depends(get_db),
    staff: StaffContext = Depends(staff_required),
):
    result = CodeService.list_codes(db, event_id, type, promoter_id, batch_id, _status(status), page, pageSize)
    return success_response(result)


@router.get("/codes/export")
async def export_codes(
    event_id: Optional[str] = None,
    type: Optional[str] = None,
    promoter_id: Optional[str] = None,
    batch_id: Optional[str] = None,
    status: Optional[str] = None,
    format: str = "csv",
    db: Session = Depends(get_db),
    staff: StaffContext = Depends(staff_required),
):
    content, media_type, filename = CodeService.export_codes(
        db, event_id, format, type=type, promoter_id=promoter_id, batch_id=batch_id, status=_status(status)
    )
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


# -------- Promoters --------

@router.get("/promoters")
async def list_promoters(
    organizer_id: Optional[str] = None,
    db: Session = Depends(get_db),
    staff: StaffContext = Depends(staff_required),
):
    return success_response({"promoters": PromoterService.list_promoters(db, organizer_id)})


@router.post("/promoters/create")
async def create_promoter(body: PromoterPayload, db: Session = Depends(get_db), staff: StaffContext = Depends(staff_required)):
    return success_response({"promoter": PromoterService.create_promoter(db, body)}, status_code=201)


@router.post("/promoters/update")
async def update_promoter(body: PromoterPayload, db: Session = Depends(get_db), staff: StaffContext = Depends(staff_required)):
    return success_response({"promoter": PromoterService.update_promoter(db, body)})


@router.post("/promoters/delete")
async def delete_promoter(body: IdPayload, db: Session = Depends(get_db), staff: StaffContext = Depends(staff_required)):
    """Archive the promoter; the person row stays"""
    PromoterService.delete_promoter(db, body.id, staff.staff_id)
    return success_response({"archived": True})


@router.post("/promoters/generate-codes")
async def generate_promoter_codes(
    body: PromoterCodesGenerate,
    db: Session = Depends(get_db),
    staff: StaffContext = Depends(staff_required),
):
    return success_response(PromoterService.generate_codes(db, body))
