"""Tests for email rendering, the per-recipient cap and transport failures."""

import pytest

from tipster.config import Settings
from tipster.email.service import (
    DeliveryError,
    EmailService,
    OutgoingEmail,
    ResendTransport,
    SmtpTransport,
    build_transport,
    render,
)


class RecordingTransport:
    name = "recording"

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[tuple[str, OutgoingEmail]] = []

    async def deliver(self, sender: str, message: OutgoingEmail) -> None:
        if self.fail:
            raise DeliveryError("connection refused")
        self.sent.append((sender, message))


class CountingRedis:
    def __init__(self) -> None:
        self.counts: dict[str, int] = {}
        self.expiries: dict[str, int] = {}

    async def incr(self, key: str) -> int:
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key]

    async def expire(self, key: str, seconds: int) -> None:
        self.expiries[key] = seconds


class TestRender:
    def test_welcome(self):
        message = render("welcome", "ada@example.com", {"full_name": "Ada"})
        assert message.recipient == "ada@example.com"
        assert message.subject == "Welcome to SnapBet"
        assert "Ada" in message.html

    def test_unknown_template(self):
        with pytest.raises(ValueError, match="Unknown template"):
            render("birthday", "ada@example.com", {})

    def test_mime_has_both_parts(self):
        mime = OutgoingEmail("a@example.com", "Hi", "<p>Hi</p>", "Hi").to_mime("SnapBet <noreply@snapbet.bet>")
        assert mime["To"] == "a@example.com"
        assert [part.get_content_type() for part in mime.iter_parts()] == ["text/plain", "text/html"]


class TestBuildTransport:
    def test_by_name(self):
        assert isinstance(build_transport(Settings(email_provider="SMTP")), SmtpTransport)
        assert isinstance(build_transport(Settings(email_provider="resend")), ResendTransport)

    def test_unsupported(self):
        with pytest.raises(ValueError, match="Unsupported email provider"):
            build_transport(Settings(email_provider="pigeon"))


class TestEmailService:
    async def test_sends_template(self):
        transport = RecordingTransport()
        service = EmailService(transport=transport)

        assert await service.send_template("ada@example.com", "welcome", {}) is True
        sender, message = transport.sent[0]
        assert sender == "SnapBet <noreply@snapbet.bet>"
        assert message.recipient == "ada@example.com"

    async def test_transport_failure_returns_false(self):
        service = EmailService(transport=RecordingTransport(fail=True))
        assert await service.send_email("ada@example.com", "Hi", "<p>Hi</p>", "Hi") is False

    async def test_hourly_cap_per_recipient(self):
        redis = CountingRedis()
        transport = RecordingTransport()
        service = EmailService(transport=transport, redis=redis)
        service.hourly_cap = 2

        results = [await service.send_email("Ada@Example.com ", "Hi", "<p>Hi</p>", "Hi") for _ in range(3)]

        assert results == [True, True, False]
        assert len(transport.sent) == 2
        assert list(redis.expiries.values()) == [3600]
        assert await service.send_email("bob@example.com", "Hi", "<p>Hi</p>", "Hi") is True
