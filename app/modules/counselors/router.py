"""Counselors API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session
from app.modules.counselors.repository import CounselorsRepository
from app.modules.counselors.schemas import CounselorRead
from app.shared.responses import Envelope, success

router = APIRouter(prefix="/counselors", tags=["counselors"])


@router.get("", response_model=Envelope[list[CounselorRead]])
async def list_counselors(
    session: AsyncSession = Depends(get_db_session),
) -> Envelope[list[CounselorRead]]:
    """List counselors with their current load."""
    counselors = await CounselorsRepository(session).list_counselors()
    return success(
        [CounselorRead.model_validate(item) for item in counselors],
        "Counselors retrieved",
    )
