"""
Transactional email delivery.

``EmailService`` renders a named template into an ``OutgoingEmail`` and
hands it to the transport chosen by ``TIPSTER_EMAIL_PROVIDER`` (``smtp``,
``resend`` or ``ses``). Each recipient is capped per hour in Redis.
"""

from __future__ import annotations

import hashlib
import ssl
from collections.abc import Callable
from dataclasses import dataclass
from email.message import EmailMessage
from typing import TYPE_CHECKING, Any, Protocol

import aiosmtplib
import httpx
import structlog

from tipster.config import Settings, get_settings
from tipster.email import templates

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = structlog.get_logger()

RATE_WINDOW_SECONDS = 3600


class DeliveryError(Exception):
    """A transport could not hand the message over."""


@dataclass(frozen=True)
class OutgoingEmail:
    recipient: str
    subject: str
    html: str
    text: str

    def to_mime(self, sender: str) -> EmailMessage:
        mime = EmailMessage()
        mime["From"] = sender
        mime["To"] = self.recipient
        mime["Subject"] = self.subject
        mime.set_content(self.text)
        mime.add_alternative(self.html, subtype="html")
        return mime


class Transport(Protocol):
    name: str

    async def deliver(self, sender: str, message: OutgoingEmail) -> None: ...


class SmtpTransport:
    name = "smtp"

    def __init__(self, settings: Settings) -> None:
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.username = settings.smtp_username or None
        self.password = settings.smtp_password or None
        self.use_tls = settings.smtp_use_tls

    async def deliver(self, sender: str, message: OutgoingEmail) -> None:
        try:
            await aiosmtplib.send(
                message.to_mime(sender),
                hostname=self.host,
                port=self.port,
                username=self.username,
                password=self.password,
                start_tls=self.use_tls,
                tls_context=ssl.create_default_context() if self.use_tls else None,
            )
        except aiosmtplib.SMTPException as e:
            raise DeliveryError(str(e)) from e


class ResendTransport:
    name = "resend"
    endpoint = "https://api.resend.com/emails"

    def __init__(self, settings: Settings) -> None:
        self.api_key = settings.resend_api_key

    async def deliver(self, sender: str, message: OutgoingEmail) -> None:
        body = {
            "from": sender,
            "to": [message.recipient],
            "subject": message.subject,
            "html": message.html,
            "text": message.text,
        }
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.post(
                    self.endpoint, headers={"Authorization": f"Bearer {self.api_key}"}, json=body
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise DeliveryError(str(e)) from e


class SesTransport:
    """AWS SES. Needs the ``ses`` extra installed."""

    name = "ses"

    def __init__(self, settings: Settings) -> None:
        self.region = settings.ses_region
        self.credentials = {
            "aws_access_key_id": settings.ses_access_key or None,
            "aws_secret_access_key": settings.ses_secret_key or None,
        }

    async def deliver(self, sender: str, message: OutgoingEmail) -> None:
        import aioboto3
        from botocore.exceptions import BotoCoreError, ClientError

        charset = "UTF-8"
        try:
            async with aioboto3.Session(**self.credentials).client("ses", region_name=self.region) as ses:
                await ses.send_email(
                    Source=sender,
                    Destination={"ToAddresses": [message.recipient]},
                    Message={
                        "Subject": {"Data": message.subject, "Charset": charset},
                        "Body": {
                            "Text": {"Data": message.text, "Charset": charset},
                            "Html": {"Data": message.html, "Charset": charset},
                        },
                    },
                )
        except (BotoCoreError, ClientError) as e:
            raise DeliveryError(str(e)) from e


TRANSPORTS: dict[str, Callable[[Settings], Transport]] = {
    "smtp": SmtpTransport,
    "resend": ResendTransport,
    "ses": SesTransport,
}


def build_transport(settings: Settings | None = None) -> Transport:
    settings = settings or get_settings()
    factory = TRANSPORTS.get(settings.email_provider.lower())
    if factory is None:
        msg = f"Unsupported email provider: {settings.email_provider}"
        raise ValueError(msg)
    return factory(settings)


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

Rendered = tuple[str, str, str]


def _ticket_url(ticket_id: int) -> str:
    return f"{get_settings().frontend_base_url}/dashboard/support/{ticket_id}"


def _render_welcome(ctx: dict[str, Any]) -> Rendered:
    return templates.welcome_email(ctx.get("full_name"), f"{get_settings().frontend_base_url}/dashboard")


def _render_ticket_created(ctx: dict[str, Any]) -> Rendered:
    ticket_id = ctx["ticket_id"]
    return templates.support_ticket_created(
        ctx.get("full_name"), ticket_id, ctx["subject"], ctx["priority"], _ticket_url(ticket_id)
    )


def _render_ticket_alert(ctx: dict[str, Any]) -> Rendered:
    return templates.support_ticket_alert(
        ctx["ticket_id"],
        ctx["customer_email"],
        ctx["subject"],
        ctx["category"],
        ctx["priority"],
        ctx["description"],
    )


def _render_ticket_reply(ctx: dict[str, Any]) -> Rendered:
    ticket_id = ctx["ticket_id"]
    return templates.support_ticket_reply(ticket_id, ctx["subject"], ctx["reply"], _ticket_url(ticket_id))


RENDERERS: dict[str, Callable[[dict[str, Any]], Rendered]] = {
    "welcome": _render_welcome,
    "support_ticket_created": _render_ticket_created,
    "support_ticket_alert": _render_ticket_alert,
    "support_ticket_reply": _render_ticket_reply,
}


def render(template_name: str, recipient: str, context: dict[str, Any]) -> OutgoingEmail:
    """Raises ValueError for an unregistered template."""
    renderer = RENDERERS.get(template_name)
    if renderer is None:
        msg = f"Unknown template: {template_name}"
        raise ValueError(msg)
    subject, html, text = renderer(context)
    return OutgoingEmail(recipient=recipient, subject=subject, html=html, text=text)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class EmailService:
    def __init__(self, transport: Transport | None = None, redis: Redis | None = None) -> None:
        settings = get_settings()
        self.transport = transport or build_transport(settings)
        self.sender = f"{settings.email_from_name} <{settings.email_from_address}>"
        self.hourly_cap = settings.email_rate_limit_per_hour
        self._redis = redis

    async def _within_cap(self, recipient: str) -> bool:
        if self._redis is None:
            return True
        digest = hashlib.sha256(recipient.strip().lower().encode()).hexdigest()
        key = f"email_rate:{digest}"
        sent = await self._redis.incr(key)
        if sent == 1:
            await self._redis.expire(key, RATE_WINDOW_SECONDS)
        return sent <= self.hourly_cap

    async def deliver(self, message: OutgoingEmail) -> bool:
        """False when the recipient is over the hourly cap or the transport failed."""
        if not await self._within_cap(message.recipient):
            logger.warning("email_rate_limited", to=message.recipient, subject=message.subject)
            return False
        try:
            await self.transport.deliver(self.sender, message)
        except DeliveryError:
            logger.exception("email_send_failed", to=message.recipient, provider=self.transport.name)
            return False
        logger.info("email_sent", to=message.recipient, subject=message.subject, provider=self.transport.name)
        return True

    async def send_email(self, to: str, subject: str, html_body: str, text_body: str) -> bool:
        return await self.deliver(OutgoingEmail(recipient=to, subject=subject, html=html_body, text=text_body))

    async def send_template(self, to: str, template_name: str, context: dict[str, Any]) -> bool:
        return await self.deliver(render(template_name, to, context))


_email_service: EmailService | None = None


def get_email_service(redis: Redis | None = None) -> EmailService:
    global _email_service  # noqa: PLW0603
    if _email_service is None:
        _email_service = EmailService(redis=redis)
    return _email_service


def reset_email_service() -> None:
    """Drop the cached service; the next call rebuilds it from settings."""
    global _email_service  # noqa: PLW0603
    _email_service = None
