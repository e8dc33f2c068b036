"""Razorpay gateway adapter."""

from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

import httpx

from app.core.config import Settings
from app.shared.exceptions import InternalException

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class GatewayOrder:
    id: str
    amount_minor: int
    currency: str
    receipt: str


def to_minor_units(amount: Decimal) -> int:
    """Convert a rupee amount to paise."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _hmac_sha256(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


class RazorpayGateway:
    """Creates orders and checks Razorpay signatures."""

    def __init__(
        self,
        api_url: str,
        key_id: str | None,
        key_secret: str | None,
        webhook_secret: str | None,
        *,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.key_id = key_id
        self.key_secret = key_secret
        self.webhook_secret = webhook_secret
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> RazorpayGateway:
        return cls(
            api_url=settings.razorpay_api_url,
            key_id=settings.razorpay_key_id,
            key_secret=settings.razorpay_key_secret,
            webhook_secret=settings.razorpay_webhook_secret,
        )

    async def create_order(self, amount: Decimal, currency: str, receipt: str) -> GatewayOrder:
        if not self.key_id or not self.key_secret:
            raise InternalException("Payment gateway credentials are not configured")

        body = {"amount": to_minor_units(amount), "currency": currency, "receipt": receipt}
        try:
            async with httpx.AsyncClient(
                base_url=self.api_url,
                auth=(self.key_id, self.key_secret),
                timeout=self.timeout_seconds,
                transport=self.transport,
            ) as client:
                response = await client.post("/orders", json=body)
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Razorpay order creation rejected with %s: %s",
                exc.response.status_code,
                exc.response.text,
            )
            raise InternalException("Payment gateway rejected the order") from exc
        except httpx.HTTPError as exc:
            logger.error("Razorpay order creation failed: %s", exc)
            raise InternalException("Payment gateway is unavailable") from exc

        data = response.json()
        return GatewayOrder(
            id=data["id"],
            amount_minor=int(data.get("amount", body["amount"])),
            currency=data.get("currency", currency),
            receipt=data.get("receipt", receipt),
        )

    def verify_checkout_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """Check the signature returned by checkout: HMAC(order_id|payment_id)."""
        if not self.key_secret or not signature:
            return False
        expected = _hmac_sha256(self.key_secret, f"{order_id}|{payment_id}".encode("utf-8"))
        return hmac.compare_digest(expected, signature)

    def verify_webhook_signature(self, body: bytes, signature: str | None) -> bool:
        """Check X-Razorpay-Signature against the raw request body."""
        if not self.webhook_secret or not signature:
            return False
        expected = _hmac_sha256(self.webhook_secret, body)
        return hmac.compare_digest(expected, signature)
