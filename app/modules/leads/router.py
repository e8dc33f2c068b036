"""Leads API router."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, File, Query, UploadFile, status

from app.modules.leads.schemas import LeadCreate, LeadCreated, LeadImportResult, LeadRead
from app.modules.leads.service import LeadsService, get_leads_service
from app.shared.exceptions import InvalidException
from app.shared.pagination import Page, build_page, get_pagination_params
from app.shared.responses import Envelope, success
from app.shared.utils import ensure_utc

router = APIRouter(prefix="/leads", tags=["leads"])

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.post("", response_model=Envelope[LeadCreated], status_code=status.HTTP_201_CREATED)
async def create_lead(
    payload: LeadCreate,
    service: LeadsService = Depends(get_leads_service),
) -> Envelope[LeadCreated]:
    """Admit a new lead and assign a counselor."""
    admission = await service.create_lead(payload)
    return success(
        LeadCreated(
            student_id=admission.lead.id,
            counselor_id=admission.lead.counselor_id,
            counselor_name=admission.counselor_name,
            email=admission.lead.email,
        ),
        "Lead created successfully",
    )


@router.post("/upload", response_model=Envelope[LeadImportResult])
async def upload_leads(
    file: UploadFile = File(...),
    service: LeadsService = Depends(get_leads_service),
) -> Envelope[LeadImportResult]:
    """Bulk-admit leads from an .xlsx spreadsheet."""
    filename = (file.filename or "").lower()
    if not filename.endswith(".xlsx") and file.content_type != XLSX_CONTENT_TYPE:
        raise InvalidException("Only .xlsx files are supported")
    content = await file.read()
    if not content:
        raise InvalidException("Uploaded file is empty")
    result = await service.import_leads(content)
    return success(result, "Lead upload processed")


@router.get("", response_model=Envelope[Page[LeadRead]])
async def list_leads(
    created_after: datetime | None = Query(default=None),
    created_before: datetime | None = Query(default=None),
    pagination=Depends(get_pagination_params),
    service: LeadsService = Depends(get_leads_service),
) -> Envelope[Page[LeadRead]]:
    """List leads, newest first."""
    items, total = await service.list_leads(
        created_after=ensure_utc(created_after) if created_after else None,
        created_before=ensure_utc(created_before) if created_before else None,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    serialized = [LeadRead.model_validate(item) for item in items]
    return success(build_page(serialized, total, pagination), "Leads retrieved")


@router.get("/{lead_id}", response_model=Envelope[LeadRead])
async def get_lead(
    lead_id: int,
    service: LeadsService = Depends(get_leads_service),
) -> Envelope[LeadRead]:
    """Return one lead."""
    lead = await service.get_lead(lead_id)
    return success(LeadRead.model_validate(lead), "Lead retrieved")
