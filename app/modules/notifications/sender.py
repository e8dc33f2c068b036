"""Email delivery through Resend."""

from __future__ import annotations

import asyncio
import logging

import resend

from app.core.config import Settings

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """Raised when the email provider rejects or fails a send."""


class EmailSender:
    """Send HTML email, or log it when no API key is configured."""

    def __init__(self, api_key: str | None, sender: str) -> None:
        self.api_key = api_key
        self.sender = sender

    @classmethod
    def from_settings(cls, settings: Settings) -> EmailSender:
        return cls(api_key=settings.resend_api_key, sender=settings.email_from)

    async def send(self, to_email: str, subject: str, html_content: str) -> str | None:
        """Send one email and return the provider message id."""
        if not to_email:
            raise EmailDeliveryError("Recipient email is required")

        if not self.api_key:
            logger.warning("RESEND_API_KEY not set - logging email instead of sending")
            logger.info("EMAIL TO: %s | SUBJECT: %s", to_email, subject)
            return None

        params: resend.Emails.SendParams = {
            "from": self.sender,
            "to": [to_email],
            "subject": subject,
            "html": html_content,
        }
        resend.api_key = self.api_key
        try:
            # Resend's client is synchronous.
            email = await asyncio.to_thread(resend.Emails.send, params)
        except Exception as exc:
            raise EmailDeliveryError(f"Failed to send email to {to_email}: {exc}") from exc

        logger.info("Email sent to %s, id: %s", to_email, email["id"])
        return email["id"]
