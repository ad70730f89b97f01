"""Outbound email API client used by the delivery worker."""

from __future__ import annotations

from typing import Protocol

import httpx
import structlog

from ..core.config import get_settings
from ..domain.deliveries import parse_subscriber_email
from ..domain.errors import NewsletterError

logger = structlog.get_logger(__name__)


class EmailClientConfigError(RuntimeError):
    """Raised when the email API settings are missing or invalid."""


class EmailSender(Protocol):
    async def send_email(
        self,
        recipient: str,
        subject: str,
        html_content: str,
        text_content: str,
    ) -> None: ...


class EmailClient:
    """Sends one email per call through a Postmark style HTTP API.

    Transport failures, timeouts and non-2xx answers are raised as delivery
    errors; retrying is the caller's job.
    """

    def __init__(
        self,
        base_url: str,
        sender: str,
        authorization_token: str,
        timeout_seconds: float,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._sender = parse_subscriber_email(sender)
        self._authorization_token = authorization_token
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )

    @property
    def sender(self) -> str:
        return self._sender

    async def send_email(
        self,
        recipient: str,
        subject: str,
        html_content: str,
        text_content: str,
    ) -> None:
        payload = {
            "From": self._sender,
            "To": recipient,
            "Subject": subject,
            "HtmlBody": html_content,
            "TextBody": text_content,
        }
        logger.debug("email.send.request", recipient=recipient, subject=subject)
        try:
            response = await self._client.post(
                "/email",
                json=payload,
                headers={"X-Postmark-Server-Token": self._authorization_token},
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise NewsletterError.delivery(
                f"Failed to send an email to {recipient}", cause=exc
            ) from exc
        logger.debug("email.send.response", recipient=recipient, status=response.status_code)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "EmailClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


def build_email_client_from_settings(
    transport: httpx.AsyncBaseTransport | None = None,
) -> EmailClient:
    settings = get_settings()
    if (
        not settings.email_base_url
        or not settings.email_sender
        or not settings.email_authorization_token
    ):
        raise EmailClientConfigError(
            "Email delivery must be configured via EMAIL_BASE_URL, EMAIL_SENDER and "
            "EMAIL_AUTHORIZATION_TOKEN"
        )
    return EmailClient(
        base_url=str(settings.email_base_url),
        sender=settings.email_sender,
        authorization_token=settings.email_authorization_token,
        timeout_seconds=settings.email_client_timeout_milliseconds / 1000,
        transport=transport,
    )
