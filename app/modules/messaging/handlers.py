"""Side effects triggered by consumed events."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import Settings
from app.core.enums import EventTypeEnum
from app.modules.counselors.repository import CounselorsRepository
from app.modules.leads.repository import LeadsRepository
from app.modules.messaging.dispatcher import EventDispatcher
from app.modules.messaging.events import (
    BaseEvent,
    EmailSendEvent,
    EmailSentEvent,
    InterviewScheduleEvent,
    LeadCreatedEvent,
)
from app.modules.messaging.publisher import EventPublisher
from app.modules.notifications import templates
from app.modules.notifications.sender import EmailDeliveryError, EmailSender

logger = logging.getLogger(__name__)


class AdmissionEventHandlers:
    """Handlers for every event kind. Each one may run more than once per event."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        email_sender: EmailSender,
        publisher: EventPublisher,
        settings: Settings,
    ) -> None:
        self.session_factory = session_factory
        self.email_sender = email_sender
        self.publisher = publisher
        self.settings = settings

    def register(self, dispatcher: EventDispatcher) -> EventDispatcher:
        dispatcher.register(EventTypeEnum.LEAD_CREATED, self.handle_lead_created)
        dispatcher.register(EventTypeEnum.EMAIL_SEND, self.handle_email_send)
        dispatcher.register(EventTypeEnum.INTERVIEW_SCHEDULE, self.handle_interview_schedule)
        for event_type in (
            EventTypeEnum.PAYMENT_INITIATED,
            EventTypeEnum.PAYMENT_VERIFIED,
            EventTypeEnum.EMAIL_SENT,
            EventTypeEnum.APPLICATION_ACCEPTED,
            EventTypeEnum.APPLICATION_REJECTED,
        ):
            dispatcher.register(event_type, self.track_event)
        return dispatcher

    async def handle_lead_created(self, event: LeadCreatedEvent) -> None:
        counselor = None
        if event.counselor_id is not None:
            async with self.session_factory() as session:
                counselor = await CounselorsRepository(session).get_by_id(event.counselor_id)
            if counselor is None:
                logger.warning(
                    "Counselor %s of lead %s not found, sending welcome without details",
                    event.counselor_id,
                    event.lead_id,
                )

        welcome = templates.welcome_email(
            event.student_name,
            self.settings.registration_fee,
            self.settings.payment_currency,
            counselor_name=counselor.name if counselor else None,
            counselor_email=counselor.email if counselor else None,
            counselor_phone=counselor.phone if counselor else None,
        )
        await self.email_sender.send(event.student_email, welcome.subject, welcome.html)

        if counselor is None:
            return
        notice = templates.counselor_assignment_email(
            counselor.name,
            event.student_name,
            event.student_email,
            event.student_phone,
            event.lead_source,
        )
        try:
            await self.email_sender.send(counselor.email, notice.subject, notice.html)
        except EmailDeliveryError as exc:
            # The student email already went out; a replay would duplicate it.
            logger.warning("Counselor notification for lead %s not sent: %s", event.lead_id, exc)

    async def handle_email_send(self, event: EmailSendEvent) -> None:
        await self.email_sender.send(event.recipient, event.subject, event.body)
        await self.publisher.publish(
            self.settings.kafka_email_topic,
            event.recipient,
            EmailSentEvent(recipient=event.recipient, subject=event.subject),
        )

    async def handle_interview_schedule(self, event: InterviewScheduleEvent) -> None:
        async with self.session_factory() as session:
            lead = await LeadsRepository(session).get_lead_by_id(event.student_id)
        if lead is None:
            raise LookupError(f"Student {event.student_id} not found")

        invitation = templates.interview_invitation_email(
            event.name,
            lead.interview_scheduled_at or event.scheduled_at,
            lead.meet_link or event.meet_link,
        )
        await self.email_sender.send(event.email, invitation.subject, invitation.html)

    async def track_event(self, event: BaseEvent) -> None:
        logger.info("Tracked %s event: %s", event.event, event.model_dump(mode="json"))


def build_dispatcher(handlers: AdmissionEventHandlers) -> EventDispatcher:
    dispatcher = handlers.register(EventDispatcher())
    dispatcher.ensure_complete()
    return dispatcher
