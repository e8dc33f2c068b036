"""Student lead ORM models."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, BaseModelMixin
from app.core.enums import ApplicationStatusEnum, FeeStatusEnum

if TYPE_CHECKING:
    from app.modules.counselors.models import Counselor
    from app.modules.courses.models import Course


class StudentLead(BaseModelMixin, Base):
    """Prospective student tracked from intake to the admission decision."""

    __tablename__ = "student_lead"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    phone: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    education: Mapped[str | None] = mapped_column(String(200), nullable=True)
    lead_source: Mapped[str] = mapped_column(String(100), nullable=False)
    counselor_id: Mapped[int | None] = mapped_column(
        ForeignKey("counselor.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    registration_fee_status: Mapped[FeeStatusEnum] = mapped_column(
        SAEnum(FeeStatusEnum, name="fee_status_enum", native_enum=False),
        default=FeeStatusEnum.PENDING,
        nullable=False,
    )
    course_fee_status: Mapped[FeeStatusEnum] = mapped_column(
        SAEnum(FeeStatusEnum, name="fee_status_enum", native_enum=False),
        default=FeeStatusEnum.PENDING,
        nullable=False,
    )
    application_status: Mapped[ApplicationStatusEnum] = mapped_column(
        SAEnum(ApplicationStatusEnum, name="application_status_enum", native_enum=False),
        default=ApplicationStatusEnum.NEW,
        nullable=False,
    )
    selected_course_id: Mapped[int | None] = mapped_column(
        ForeignKey("course.id", ondelete="SET NULL"),
        nullable=True,
    )
    registration_payment_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    course_payment_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    interview_scheduled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    meet_link: Mapped[str | None] = mapped_column(String(255), nullable=True)

    counselor: Mapped[Counselor | None] = relationship()
    selected_course: Mapped[Course | None] = relationship()
