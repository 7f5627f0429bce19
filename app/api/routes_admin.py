"""
Admin API routes - events, organizers, tables, settings, uploads and reports (staff only)
"""

import time
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db import get_db
from app.schemas.common import IdPayload
from app.schemas.event import EventClose, EventPayload, EventTablePayload, LayoutUrlPayload, OrganizerPayload
from app.schemas.settings import BrandingPayload, LayoutPayload
from app.schemas.table import TablePayload, TableProductPayload
from app.services.event_service import EventService
from app.services.organizer_service import OrganizerService
from app.services.process_log import list_process_logs
from app.services.reniec_service import lookup_dni
from app.services.settings_service import SettingsService
from app.services.storage_service import IMAGE_TYPES, LOGO_TYPES, MANIFEST_TYPES, extension_for, read_upload, upload_bytes
from app.services.summary_service import SummaryService
from app.services.table_service import TableService
from app.utils.responses import bad_request, success_response
from app.utils.roles import ADMIN_ROLES
from app.utils.security import StaffContext, enforce_rate_limit, require_staff_role

router = APIRouter()

staff_required = require_staff_role()
admin_required = require_staff_role(*ADMIN_ROLES)


def download(content: bytes, media_type: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


# -------- Events --------

@router.get("/events")
async def list_events(
    organizer_id: Optional[str] = None,
    db: Session = Depends(get_db),
    staff: StaffContext = Depends(staff_required),
):
    """List non-archived events, newest first"""
    return success_response({"events": EventService.list_events(db, organizer_id)})


@router.post("/events/create")
async def create_event(body: EventPayload, db: Session = Depends(get_db), staff: StaffContext = Depends(staff_required)):
    """Create an event and its general code"""
    event_id = EventService.create_event(db, body)
    return success_response({"id": event_id}, status_code=201)


@router.post("/events/update")
async def update_event(body: EventPayload, db: Session = Depends(get_db), staff: StaffContext = Depends(staff_required)):
    return success_response({"id": EventService.update_event(db, body)})


@router.post("/events/close")
async def close_event(body: EventClose, db: Session = Depends(get_db), staff: StaffContext = Depends(admin_required)):
    """Close an event: disable codes and archive reservations"""
    return success_response(EventService.close_event(db, body.id, body.reason, staff.staff_id))


@router.post("/events/delete")
async def delete_event(body: IdPayload, db: Session = Depends(get_db), staff: StaffContext = Depends(staff_required)):
    EventService.delete_event(db, body.id, staff.staff_id)
    return success_response({"archived": True})


@router.get("/events/{event_id}/tables")
async def list_event_tables(event_id: str, db: Session = Depends(get_db), staff: StaffContext = Depends(staff_required)):
    return success_response({"tables": EventService.list_event_tables(db, event_id)})


@router.put("/events/{event_id}/tables")
async def upsert_event_table(
    event_id: str,
    body: EventTablePayload,
    db: Session = Depends(get_db),
    staff: StaffContext = Depends(staff_required),
):
    return success_response({"id": EventService.upsert_event_table(db, event_id, body)})


@router.delete("/events/{event_id}/tables")
async def remove_event_table(
    event_id: str,
    tableId: Optional[str] = None,
    db: Session = Depends(get_db),
    staff: StaffContext = Depends(staff_required),
):
    EventService.remove_event_table(db, event_id, tableId, staff.staff_id)
    return success_response({"archived": True})


# -------- Organizers --------

@router.get("/organizers")
async def list_organizers(db: Session = Depends(get_db), staff: StaffContext = Depends(staff_required)):
    return success_response({"organizers": OrganizerService.list_organizers(db)})


@router.post("/organizers/create")
async def create_organizer(body: OrganizerPayload, db: Session = Depends(get_db), staff: StaffContext = Depends(admin_required)):
    return success_response({"organizer": OrganizerService.create_organizer(db, body)}, status_code=201)


@router.post("/organizers/update")
async def update_organizer(body: OrganizerPayload, db: Session = Depends(get_db), staff: StaffContext = Depends(admin_required)):
    return success_response({"organizer": OrganizerService.update_organizer(db, body)})


@router.post("/organizers/delete")
async def delete_organizer(body: IdPayload, db: Session = Depends(get_db), staff: StaffContext = Depends(admin_required)):
    OrganizerService.delete_organizer(db, body.id, staff.staff_id)
    return success_response({"archived": True})


@router.post("/organizers/{organizer_id}/layout")
async def set_organizer_layout(
    organizer_id: str,
    body: LayoutUrlPayload,
    db: Session = Depends(get_db),
    staff: StaffContext = Depends(staff_required),
):
    return success_response({"organizer": OrganizerService.set_layout(db, organizer_id, body.layout_url)})


# -------- Tables and products --------

@router.get("/tables")
async def list_tables(
    organizer_id: Optional[str] = None,
    event_id: Optional[str] = None,
    db: Session = Depends(get_db),
    staff: StaffContext = Depends(staff_required),
):
    return success_response({"tables": TableService.list_tables(db, organizer_id, event_id)})


@router.post("/tables/create")
async def create_table(body: TablePayload, db: Session = Depends(get_db), staff: StaffContext = Depends(staff_required)):
    return success_response({"table": TableService.create_table(db, body)}, status_code=201)


@router.post("/tables/update")
async def update_table(body: TablePayload, db: Session = Depends(get_db), staff: StaffContext = Depends(staff_required)):
    return success_response({"table": TableService.update_table(db, body)})


@router.post("/tables/delete")
async def delete_table(body: IdPayload, db: Session = Depends(get_db), staff: StaffContext = Depends(staff_required)):
    """Archive a table; refused while it holds an active reservation"""
    TableService.delete_table(db, body.id, staff.staff_id)
    return success_response({"archived": True})


@router.post("/table-products/create")
async def create_product(body: TableProductPayload, db: Session = Depends(get_db), staff: StaffContext = Depends(staff_required)):
    return success_response({"product": TableService.create_product(db, body)}, status_code=201)


@router.post("/table-products/update")
async def update_product(body: TableProductPayload, db: Session = Depends(get_db), staff: StaffContext = Depends(staff_required)):
    return success_response({"product": TableService.update_product(db, body)})


@router.post("/table-products/delete")
async def delete_product(body: IdPayload, db: Session = Depends(get_db), staff: StaffContext = Depends(staff_required)):
    TableService.delete_product(db, body.id, staff.staff_id)
    return success_response({"archived": True})


# -------- Branding, layout, uploads --------

@router.post("/branding/save")
async def save_branding(body: BrandingPayload, db: Session = Depends(get_db), staff: StaffContext = Depends(staff_required)):
    return success_response(SettingsService.save_branding(db, body.logo_url))


@router.get("/layout")
async def get_layout(db: Session = Depends(get_db), staff: StaffContext = Depends(staff_required)):
    return success_response(SettingsService.get_layout(db))


@router.post("/layout")
async def save_layout(body: LayoutPayload, db: Session = Depends(get_db), staff: StaffContext = Depends(staff_required)):
    return success_response(SettingsService.save_layout(db, body.layout_url))


@router.post("/uploads/logo")
async def upload_logo(
    file: Optional[UploadFile] = File(None),
    path: Optional[str] = Form(None),
    staff: StaffContext = Depends(staff_required),
):
    content = await read_upload(file, LOGO_TYPES)
    url = upload_bytes((path or "").strip() or "branding/logo.png", content, file.content_type)
    return success_response({"url": url})


@router.post("/uploads/layout")
async def upload_layout(
    file: Optional[UploadFile] = File(None),
    organizer_id: Optional[str] = Form(None),
    staff: StaffContext = Depends(staff_required),
):
    content = await read_upload(file, IMAGE_TYPES)
    folder = f"layouts/{organizer_id}" if organizer_id else "layouts"
    path = f"{folder}/layout-{int(time.time() * 1000)}.{extension_for(file.content_type, 'png')}"
    return success_response({"url": upload_bytes(path, content, file.content_type)})


@router.post("/uploads/manifest")
async def upload_manifest(
    file: Optional[UploadFile] = File(None),
    event_id: Optional[str] = Form(None),
    staff: StaffContext = Depends(staff_required),
):
    """Event manifest image or PDF, stored under manifests/{event_id}"""
    if not (event_id or "").strip():
        bad_request("event_id es requerido")
    content = await read_upload(file, MANIFEST_TYPES)
    path = f"manifests/{event_id.strip()}/manifest-{int(time.time() * 1000)}.{extension_for(file.content_type)}"
    return success_response({"url": upload_bytes(path, content, file.content_type)})


# -------- National-ID lookup --------

@router.get("/reniec/dni/{dni}")
async def admin_reniec(dni: str, request: Request, staff: StaffContext = Depends(staff_required)):
    enforce_rate_limit(request, "admin:reniec", settings.RATE_LIMIT_RENIEC_PER_MIN, key=staff.staff_id)
    return success_response({"data": await lookup_dni(dni.strip())})


# -------- Summaries, reports, logs --------

@router.get("/qr-summary")
async def qr_summary(db: Session = Depends(get_db), staff: StaffContext = Depends(staff_required)):
    return success_response({"events": SummaryService.qr_summary(db)})


@router.get("/promoters/summary")
async def promoters_summary(
    top: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    staff: StaffContext = Depends(staff_required),
):
    return success_response({"events": SummaryService.promoter_summary(db, top)})


@router.get("/reports/export")
async def export_report(
    event_id: Optional[str] = None,
    format: str = "csv",
    db: Session = Depends(get_db),
    staff: StaffContext = Depends(staff_required),
):
    content, media_type, filename = SummaryService.export_report(db, event_id, format)
    return download(content, media_type, filename)


@router.get("/logs")
async def list_logs(
    category: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = 100,
    db: Session = Depends(get_db),
    staff: StaffContext = Depends(admin_required),
):
    return success_response({"logs": list_process_logs(db, category, status, limit)})
