"""Payment schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.core.enums import PaymentStatusEnum, PaymentTypeEnum


class PaymentInitiate(BaseModel):
    """Start a payment for a student."""

    student_id: int = Field(gt=0)
    payment_type: PaymentTypeEnum
    course_id: int | None = Field(default=None, gt=0)

    @model_validator(mode="after")
    def require_course_for_course_fee(self) -> "PaymentInitiate":
        if self.payment_type == PaymentTypeEnum.COURSE_FEE and self.course_id is None:
            raise ValueError("course_id is required for COURSE_FEE payments")
        return self


class PaymentOrderRead(BaseModel):
    """Gateway order details for checkout."""

    order_id: str
    student_id: int
    payment_type: PaymentTypeEnum
    course_id: int | None
    amount: Decimal
    amount_minor: int
    currency: str
    key_id: str | None


class PaymentVerify(BaseModel):
    """Checkout callback values."""

    order_id: str = Field(min_length=1)
    payment_id: str = Field(min_length=1)
    signature: str = Field(min_length=1)


class PaymentVerification(BaseModel):
    """Result of a checkout signature check."""

    verified: bool
    order_id: str
    payment_id: str
    status: PaymentStatusEnum


class PaymentRecordRead(BaseModel):
    """Stored payment record."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    student_id: int
    course_id: int | None = None
    amount: Decimal
    currency: str
    status: PaymentStatusEnum
    order_id: str | None
    payment_id: str | None
    error_message: str | None
    created_at: datetime
    updated_at: datetime


class StudentPaymentsRead(BaseModel):
    """Both payment obligations of one student."""

    student_id: int
    registration: PaymentRecordRead | None
    courses: list[PaymentRecordRead]


class WebhookAck(BaseModel):
    """Webhook acknowledgement returned to the gateway."""

    status: str
    event: str
