"""Lead admission business logic layer."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from fastapi import Depends
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings, get_settings
from app.core.database import get_db_session
from app.core.metrics import COUNSELOR_ASSIGNMENTS_TOTAL
from app.modules.counselors.models import Counselor
from app.modules.counselors.repository import CounselorsRepository
from app.modules.leads.importer import parse_leads_workbook
from app.modules.leads.models import StudentLead
from app.modules.leads.repository import LeadsRepository
from app.modules.leads.schemas import (
    LeadCreate,
    LeadImportFailure,
    LeadImportResult,
)
from app.modules.messaging.events import LeadCreatedEvent
from app.modules.messaging.publisher import EventPublisher
from app.modules.messaging.runtime import get_event_publisher
from app.shared.exceptions import (
    AppException,
    ConflictException,
    InternalException,
    InvalidException,
    NotFoundException,
)

logger = logging.getLogger(__name__)

UNASSIGNED_COUNSELOR = "Not Assigned"


@dataclass(slots=True)
class LeadAdmission:
    lead: StudentLead
    counselor: Counselor | None

    @property
    def counselor_name(self) -> str:
        return self.counselor.name if self.counselor is not None else UNASSIGNED_COUNSELOR


class LeadsService:
    """Lead admission domain service."""

    def __init__(
        self,
        session: AsyncSession,
        repository: LeadsRepository,
        counselors_repository: CounselorsRepository,
        publisher: EventPublisher,
        settings: Settings,
    ) -> None:
        self.session = session
        self.repository = repository
        self.counselors_repository = counselors_repository
        self.publisher = publisher
        self.settings = settings

    async def create_lead(self, payload: LeadCreate) -> LeadAdmission:
        """Admit a lead and reserve a counselor slot in one transaction.

        The lead row and the counselor increment commit together. The
        ``lead.created`` event is queued only after the commit succeeds.
        """
        try:
            existing = await self.repository.find_by_email_or_phone(payload.email, payload.phone)
            if existing is not None:
                raise ConflictException("Lead with this email or phone already exists")

            counselor = await self._resolve_counselor(payload)
            lead = await self.repository.create_lead(
                name=payload.name,
                email=payload.email,
                phone=payload.phone,
                education=payload.education,
                lead_source=payload.lead_source,
                counselor_id=counselor.id if counselor is not None else None,
            )
            if counselor is not None:
                incremented = await self.counselors_repository.increment_assigned_count(counselor.id)
                if not incremented:
                    raise InternalException(f"Counselor {counselor.id} disappeared during admission")
            await self.session.commit()
        except AppException:
            await self.session.rollback()
            raise
        except IntegrityError as exc:
            await self.session.rollback()
            logger.info("Lead insert hit a uniqueness constraint: %s", exc.orig)
            raise ConflictException("Lead with this email or phone already exists") from exc
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.exception("Lead admission transaction failed")
            raise InternalException("Failed to create lead") from exc

        COUNSELOR_ASSIGNMENTS_TOTAL.labels(
            outcome="assigned" if counselor is not None else "unassigned",
        ).inc()
        logger.info(
            "Lead %s admitted with counselor %s",
            lead.id,
            counselor.id if counselor is not None else "none",
        )

        await self.publisher.publish(
            self.settings.kafka_lead_topic,
            f"lead-{lead.id}",
            LeadCreatedEvent(
                lead_id=lead.id,
                student_name=lead.name,
                student_email=lead.email,
                student_phone=lead.phone,
                counselor_id=lead.counselor_id,
                lead_source=lead.lead_source,
            ),
        )
        return LeadAdmission(lead=lead, counselor=counselor)

    async def _resolve_counselor(self, payload: LeadCreate) -> Counselor | None:
        if payload.counselor_id is None:
            counselor = await self.counselors_repository.reserve_available_counselor(
                payload.lead_source,
            )
            if counselor is None:
                # Empty and fully locked pools look the same here.
                logger.warning(
                    "No counselor available for lead source %s, admitting unassigned",
                    payload.lead_source,
                )
            return counselor

        counselor = await self.counselors_repository.get_by_id(payload.counselor_id, for_update=True)
        if counselor is None:
            raise NotFoundException("Counselor not found")
        if counselor.assigned_count >= counselor.max_capacity:
            raise ConflictException("Counselor has reached maximum capacity")
        return counselor

    async def get_lead(self, lead_id: int) -> StudentLead:
        lead = await self.repository.get_lead_by_id(lead_id)
        if lead is None:
            raise NotFoundException("Lead not found")
        return lead

    async def list_leads(
        self,
        created_after: datetime | None,
        created_before: datetime | None,
        limit: int,
        offset: int,
    ) -> tuple[list[StudentLead], int]:
        if created_after and created_before and created_after > created_before:
            raise InvalidException("created_after must not be later than created_before")
        return await self.repository.list_leads(created_after, created_before, limit, offset)

    async def import_leads(self, content: bytes) -> LeadImportResult:
        """Admit every spreadsheet row independently and report per-row failures."""
        rows, row_errors = parse_leads_workbook(content)
        failures = [
            LeadImportFailure(row=row, email=email or None, phone=phone or None, error=error)
            for row, email, phone, error in row_errors
        ]

        success_count = 0
        for row in rows:
            try:
                payload = LeadCreate(
                    name=row.name,
                    email=row.email,
                    phone=row.phone,
                    education=row.education,
                    lead_source=row.lead_source,
                    counselor_id=row.counselor_id,
                )
                await self.create_lead(payload)
            except ValidationError as exc:
                failures.append(
                    LeadImportFailure(
                        row=row.row,
                        email=row.email or None,
                        phone=row.phone or None,
                        error="; ".join(
                            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
                            for error in exc.errors()
                        ),
                    ),
                )
                continue
            except AppException as exc:
                failures.append(
                    LeadImportFailure(
                        row=row.row,
                        email=row.email or None,
                        phone=row.phone or None,
                        error=exc.message,
                    ),
                )
                continue
            success_count += 1

        failures.sort(key=lambda failure: failure.row)
        logger.info("Lead upload processed: %s admitted, %s failed", success_count, len(failures))
        return LeadImportResult(
            success_count=success_count,
            failed_count=len(failures),
            total_count=success_count + len(failures),
            failures=failures,
        )


async def get_leads_service(
    session: AsyncSession = Depends(get_db_session),
    publisher: EventPublisher = Depends(get_event_publisher),
) -> LeadsService:
    """Dependency provider for leads service."""
    return LeadsService(
        session=session,
        repository=LeadsRepository(session),
        counselors_repository=CounselorsRepository(session),
        publisher=publisher,
        settings=get_settings(),
    )
