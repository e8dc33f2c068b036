"""Applications API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.modules.applications.schemas import (
    ApplicationActionRequest,
    ApplicationDecision,
    InterviewScheduled,
    ScheduleMeetRequest,
)
from app.modules.applications.service import ApplicationsService, get_applications_service
from app.shared.responses import Envelope, success

router = APIRouter(prefix="/applications", tags=["applications"])


@router.post("/schedule-meet", response_model=Envelope[InterviewScheduled])
async def schedule_meet(
    payload: ScheduleMeetRequest,
    service: ApplicationsService = Depends(get_applications_service),
) -> Envelope[InterviewScheduled]:
    """Schedule the admission interview."""
    scheduled = await service.schedule_meet(payload.student_id)
    return success(scheduled, "Interview scheduled")


@router.post("/action", response_model=Envelope[ApplicationDecision])
async def application_action(
    payload: ApplicationActionRequest,
    service: ApplicationsService = Depends(get_applications_service),
) -> Envelope[ApplicationDecision]:
    """Accept or reject an application."""
    decision = await service.decide(payload)
    return success(decision, f"Application {decision.application_status.lower()}")
