"""Payments API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header, Request

from app.modules.payments.schemas import (
    PaymentInitiate,
    PaymentOrderRead,
    PaymentVerification,
    PaymentVerify,
    StudentPaymentsRead,
    WebhookAck,
)
from app.modules.payments.service import PaymentsService, get_payments_service
from app.shared.responses import Envelope, success

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/initiate", response_model=Envelope[PaymentOrderRead])
async def initiate_payment(
    payload: PaymentInitiate,
    service: PaymentsService = Depends(get_payments_service),
) -> Envelope[PaymentOrderRead]:
    """Create a gateway order for a registration or course fee."""
    order = await service.initiate_payment(payload)
    return success(order, "Payment order created")


@router.post("/verify", response_model=Envelope[PaymentVerification])
async def verify_payment(
    payload: PaymentVerify,
    service: PaymentsService = Depends(get_payments_service),
) -> Envelope[PaymentVerification]:
    """Check the checkout signature."""
    verification = await service.verify_checkout(payload)
    return success(verification, "Payment signature verified")


@router.post("/webhook", response_model=WebhookAck)
async def payment_webhook(
    request: Request,
    x_razorpay_signature: str | None = Header(default=None),
    x_razorpay_event_id: str | None = Header(default=None),
    service: PaymentsService = Depends(get_payments_service),
) -> WebhookAck:
    """Gateway webhook for payment state changes."""
    body = await request.body()
    return await service.handle_webhook(body, x_razorpay_signature, x_razorpay_event_id)


@router.get("/students/{student_id}", response_model=Envelope[StudentPaymentsRead])
async def get_student_payments(
    student_id: int,
    service: PaymentsService = Depends(get_payments_service),
) -> Envelope[StudentPaymentsRead]:
    """Return registration and course payments for a student."""
    payments = await service.get_student_payments(student_id)
    return success(payments, "Payments retrieved")
