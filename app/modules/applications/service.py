"""Interview scheduling and application decisions."""

from __future__ import annotations

import logging
from collections.abc import Callable
from decimal import Decimal

from fastapi import Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings, get_settings
from app.core.database import get_db_session
from app.core.enums import ApplicationStatusEnum
from app.modules.applications.schemas import (
    ApplicationActionRequest,
    ApplicationDecision,
    CourseFeeNextStep,
    InterviewScheduled,
)
from app.modules.courses.repository import CoursesRepository
from app.modules.leads.models import StudentLead
from app.modules.leads.repository import LeadsRepository
from app.modules.messaging.events import (
    ApplicationAcceptedEvent,
    ApplicationRejectedEvent,
    EmailSendEvent,
    InterviewScheduleEvent,
)
from app.modules.messaging.publisher import EventPublisher
from app.modules.messaging.runtime import get_event_publisher
from app.modules.notifications import templates
from app.modules.payments.repository import PaymentsRepository
from app.shared.exceptions import (
    AppException,
    InternalException,
    InvalidException,
    NotFoundException,
)
from app.shared.utils import interview_time, meeting_link, utc_now

logger = logging.getLogger(__name__)


class ApplicationsService:
    """Application review domain service."""

    def __init__(
        self,
        session: AsyncSession,
        leads_repository: LeadsRepository,
        payments_repository: PaymentsRepository,
        courses_repository: CoursesRepository,
        publisher: EventPublisher,
        settings: Settings,
        *,
        now_provider: Callable = utc_now,
        link_factory: Callable[[str], str] = meeting_link,
    ) -> None:
        self.session = session
        self.leads_repository = leads_repository
        self.payments_repository = payments_repository
        self.courses_repository = courses_repository
        self.publisher = publisher
        self.settings = settings
        self.now_provider = now_provider
        self.link_factory = link_factory

    async def _get_paid_lead(self, student_id: int, action: str) -> StudentLead:
        lead = await self.leads_repository.get_lead_by_id(student_id, for_update=True)
        if lead is None:
            raise NotFoundException("Student not found")
        if not await self.payments_repository.has_paid_registration(student_id):
            raise InvalidException(f"Registration fee must be paid before {action}")
        return lead

    async def schedule_meet(self, student_id: int) -> InterviewScheduled:
        """Schedule the interview, keeping a time and link that were already set."""
        try:
            lead = await self._get_paid_lead(student_id, "scheduling an interview")
            interview_at = lead.interview_scheduled_at or interview_time(
                self.now_provider(),
                self.settings.interview_delay_minutes,
            )
            link = lead.meet_link or self.link_factory(self.settings.meet_base_url)
            await self.leads_repository.schedule_interview(lead, interview_at, link)
            await self.session.commit()
        except AppException:
            await self.session.rollback()
            raise
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.exception("Scheduling interview for student %s failed", student_id)
            raise InternalException("Failed to schedule interview") from exc

        logger.info("Interview for student %s scheduled at %s", lead.id, interview_at)
        await self.publisher.publish(
            self.settings.kafka_email_topic,
            f"student-{lead.id}",
            InterviewScheduleEvent(
                student_id=lead.id,
                name=lead.name,
                email=lead.email,
                scheduled_at=interview_at,
                meet_link=link,
            ),
        )
        return InterviewScheduled(
            student_id=lead.id,
            application_status=lead.application_status,
            interview_scheduled_at=interview_at,
            meet_link=link,
        )

    async def decide(self, payload: ApplicationActionRequest) -> ApplicationDecision:
        """Accept or reject an application and notify the student."""
        course = None
        try:
            lead = await self._get_paid_lead(payload.student_id, "deciding an application")
            if payload.status.is_acceptance:
                if payload.selected_course_id is None:
                    raise InvalidException("selected_course_id is required to accept an application")
                course = await self.courses_repository.get_course_by_id(payload.selected_course_id)
                if course is None:
                    raise NotFoundException("Course not found")
                await self.leads_repository.set_application_decision(
                    lead,
                    ApplicationStatusEnum.ACCEPTED,
                    selected_course_id=course.id,
                )
            else:
                await self.leads_repository.set_application_decision(
                    lead,
                    ApplicationStatusEnum.REJECTED,
                )
            await self.session.commit()
        except AppException:
            await self.session.rollback()
            raise
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.exception("Application decision for student %s failed", payload.student_id)
            raise InternalException("Failed to update application") from exc

        logger.info("Application of student %s set to %s", lead.id, lead.application_status)
        key = f"student-{lead.id}"
        currency = self.settings.payment_currency
        if course is not None:
            await self.publisher.publish(
                self.settings.kafka_application_topic,
                key,
                ApplicationAcceptedEvent(student_id=lead.id, email=lead.email, course=course.name),
            )
            email = templates.acceptance_email(lead.name, course.name, Decimal(course.fee), currency)
        else:
            await self.publisher.publish(
                self.settings.kafka_application_topic,
                key,
                ApplicationRejectedEvent(student_id=lead.id, email=lead.email),
            )
            email = templates.rejection_email(lead.name)
        await self.publisher.publish(
            self.settings.kafka_email_topic,
            key,
            EmailSendEvent(recipient=lead.email, subject=email.subject, body=email.html),
        )

        next_step = None
        if course is not None:
            next_step = CourseFeeNextStep(
                course_id=course.id,
                course_name=course.name,
                amount=Decimal(course.fee),
                currency=currency,
            )
        return ApplicationDecision(
            student_id=lead.id,
            application_status=lead.application_status,
            next_step=next_step,
        )


async def get_applications_service(
    session: AsyncSession = Depends(get_db_session),
    publisher: EventPublisher = Depends(get_event_publisher),
) -> ApplicationsService:
    """Dependency provider for applications service."""
    return ApplicationsService(
        session=session,
        leads_repository=LeadsRepository(session),
        payments_repository=PaymentsRepository(session),
        courses_repository=CoursesRepository(session),
        publisher=publisher,
        settings=get_settings(),
    )
