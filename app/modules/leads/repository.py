"""Student lead repository layer."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import ApplicationStatusEnum, FeeStatusEnum
from app.modules.leads.models import StudentLead


class LeadsRepository:
    """DB access methods for student leads."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find_by_email_or_phone(self, email: str, phone: str) -> StudentLead | None:
        stmt = select(StudentLead).where(
            or_(StudentLead.email == email, StudentLead.phone == phone),
        ).limit(1)
        return await self.session.scalar(stmt)

    async def create_lead(
        self,
        name: str,
        email: str,
        phone: str,
        education: str | None,
        lead_source: str,
        counselor_id: int | None,
    ) -> StudentLead:
        lead = StudentLead(
            name=name,
            email=email,
            phone=phone,
            education=education,
            lead_source=lead_source,
            counselor_id=counselor_id,
            registration_fee_status=FeeStatusEnum.PENDING,
            course_fee_status=FeeStatusEnum.PENDING,
            application_status=ApplicationStatusEnum.NEW,
        )
        self.session.add(lead)
        await self.session.flush()
        return lead

    async def get_lead_by_id(self, lead_id: int, *, for_update: bool = False) -> StudentLead | None:
        stmt = select(StudentLead).where(StudentLead.id == lead_id)
        if for_update:
            stmt = stmt.with_for_update()
        return await self.session.scalar(stmt)

    async def list_leads(
        self,
        created_after: datetime | None,
        created_before: datetime | None,
        limit: int,
        offset: int,
    ) -> tuple[list[StudentLead], int]:
        base_stmt: Select[tuple[StudentLead]] = select(StudentLead)
        if created_after is not None:
            base_stmt = base_stmt.where(StudentLead.created_at >= created_after)
        if created_before is not None:
            base_stmt = base_stmt.where(StudentLead.created_at <= created_before)

        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(StudentLead.created_at.desc()).limit(limit).offset(offset)
        items = (await self.session.scalars(stmt)).all()
        return items, total

    async def mark_registration_paid(
        self,
        lead: StudentLead,
        registration_payment_id: int,
        interview_at: datetime,
        meet_link: str,
    ) -> StudentLead:
        lead.registration_fee_status = FeeStatusEnum.PAID
        lead.registration_payment_id = registration_payment_id
        lead.interview_scheduled_at = interview_at
        lead.meet_link = meet_link
        lead.application_status = ApplicationStatusEnum.INTERVIEW_SCHEDULED
        await self.session.flush()
        return lead

    async def mark_course_paid(
        self,
        lead: StudentLead,
        course_payment_id: int,
        course_id: int,
    ) -> StudentLead:
        lead.course_fee_status = FeeStatusEnum.PAID
        lead.course_payment_id = course_payment_id
        lead.selected_course_id = course_id
        await self.session.flush()
        return lead

    async def schedule_interview(
        self,
        lead: StudentLead,
        interview_at: datetime,
        meet_link: str,
    ) -> StudentLead:
        lead.interview_scheduled_at = interview_at
        lead.meet_link = meet_link
        lead.application_status = ApplicationStatusEnum.INTERVIEW_SCHEDULED
        await self.session.flush()
        return lead

    async def set_application_decision(
        self,
        lead: StudentLead,
        status: ApplicationStatusEnum,
        selected_course_id: int | None = None,
    ) -> StudentLead:
        lead.application_status = status
        if selected_course_id is not None:
            lead.selected_course_id = selected_course_id
        await self.session.flush()
        return lead
