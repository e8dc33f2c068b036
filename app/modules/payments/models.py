"""Payment ORM models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy import Enum as SAEnum
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, BaseModelMixin
from app.core.enums import PaymentStatusEnum, PaymentTypeEnum, WebhookStatusEnum


class PaymentRecordMixin:
    """Columns shared by both payment obligations."""

    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="INR", nullable=False)
    status: Mapped[PaymentStatusEnum] = mapped_column(
        SAEnum(PaymentStatusEnum, name="payment_status_enum", native_enum=False),
        default=PaymentStatusEnum.PENDING,
        nullable=False,
        index=True,
    )
    order_id: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    payment_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    signature: Mapped[str | None] = mapped_column(Text, nullable=True)
    refund_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    refund_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)


class RegistrationPayment(PaymentRecordMixin, BaseModelMixin, Base):
    """Registration fee payment, one per student."""

    __tablename__ = "registration_payment"

    payment_type = PaymentTypeEnum.REGISTRATION

    student_id: Mapped[int] = mapped_column(
        ForeignKey("student_lead.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )


class CoursePayment(PaymentRecordMixin, BaseModelMixin, Base):
    """Course fee payment, one per student and course."""

    __tablename__ = "course_payment"
    __table_args__ = (UniqueConstraint("student_id", "course_id"),)

    payment_type = PaymentTypeEnum.COURSE_FEE

    student_id: Mapped[int] = mapped_column(
        ForeignKey("student_lead.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    course_id: Mapped[int] = mapped_column(
        ForeignKey("course.id", ondelete="CASCADE"),
        nullable=False,
    )


class PaymentWebhook(BaseModelMixin, Base):
    """Audit row for every gateway webhook delivery."""

    __tablename__ = "razorpay_webhooks"

    webhook_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    payload: Mapped[dict] = mapped_column(JSONB, default=dict, nullable=False)
    status: Mapped[WebhookStatusEnum] = mapped_column(
        SAEnum(WebhookStatusEnum, name="webhook_status_enum", native_enum=False),
        default=WebhookStatusEnum.RECEIVED,
        nullable=False,
        index=True,
    )
    signature_valid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Number of repeated deliveries of the same webhook id.
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
