"""Counselor repository layer."""

from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import LeadSourceEnum
from app.modules.counselors.models import Counselor


def is_referral_source(lead_source: str) -> bool:
    return lead_source.strip().lower() == LeadSourceEnum.REFERRAL


class CounselorsRepository:
    """DB access methods for counselors."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_counselors(self) -> list[Counselor]:
        stmt = select(Counselor).order_by(Counselor.id.asc())
        return (await self.session.scalars(stmt)).all()

    async def get_by_id(self, counselor_id: int, *, for_update: bool = False) -> Counselor | None:
        stmt = select(Counselor).where(Counselor.id == counselor_id)
        if for_update:
            stmt = stmt.with_for_update()
        return await self.session.scalar(stmt)

    async def reserve_available_counselor(self, lead_source: str) -> Counselor | None:
        """Lock the least-loaded eligible counselor, skipping rows locked elsewhere.

        The row lock is held until the surrounding transaction ends, so the
        slot stays reserved for the caller until its increment is committed.
        """
        stmt = select(Counselor).where(Counselor.assigned_count < Counselor.max_capacity)
        if is_referral_source(lead_source):
            stmt = stmt.where(Counselor.is_referral_enabled.is_(True))
        stmt = (
            stmt.order_by(Counselor.assigned_count.asc(), Counselor.id.asc())
            .limit(1)
            .with_for_update(skip_locked=True)
        )
        return await self.session.scalar(stmt)

    async def increment_assigned_count(self, counselor_id: int) -> bool:
        """Add one lead to the counselor load. Returns False if the row is gone."""
        stmt = (
            update(Counselor)
            .where(Counselor.id == counselor_id)
            .values(assigned_count=Counselor.assigned_count + 1)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1
