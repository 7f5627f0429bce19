"""
Admin API routes - staff users (admin roles)
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.schemas.common import IdPayload
from app.schemas.staff import StaffCreate, StaffUpdate
from app.services.staff_service import StaffService
from app.utils.responses import success_response
from app.utils.roles import ADMIN_ROLES
from app.utils.security import StaffContext, require_staff_role

router = APIRouter()

admin_required = require_staff_role(*ADMIN_ROLES)


@router.get("/users")
async def list_users(db: Session = Depends(get_db), staff: StaffContext = Depends(admin_required)):
    return success_response({"staff": StaffService.list_staff(db)})


@router.get("/users/roles")
async def list_roles(db: Session = Depends(get_db), staff: StaffContext = Depends(admin_required)):
    return success_response({"roles": StaffService.list_roles(db)})


@router.post("/users/create")
async def create_user(body: StaffCreate, db: Session = Depends(get_db), staff: StaffContext = Depends(admin_required)):
    """Create the auth account (or reuse it) and the staff row"""
    return success_response({"staff": StaffService.create_staff(db, body)}, status_code=201)


@router.post("/users/update")
async def update_user(body: StaffUpdate, db: Session = Depends(get_db), staff: StaffContext = Depends(admin_required)):
    return success_response({"staff": StaffService.update_staff(db, body)})


@router.post("/users/delete")
async def delete_user(body: IdPayload, db: Session = Depends(get_db), staff: StaffContext = Depends(admin_required)):
    StaffService.delete_staff(db, body.id, staff.staff_id)
    return success_response({"archived": True})
