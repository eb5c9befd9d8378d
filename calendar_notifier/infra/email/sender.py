"""Email senders.

Two transports are provided:
- ``ConsoleEmailSender`` logs the message (development default)
- ``SmtpEmailSender`` delivers through an SMTP relay with aiosmtplib

Usage:
    sender = build_email_sender(get_channel_settings())
    result = await sender.send_email("ada@example.com", "Subject", "Body")
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from email.message import EmailMessage
from email.utils import make_msgid
from typing import TYPE_CHECKING, Protocol

import aiosmtplib

from calendar_notifier.infra.logging import get_logger

if TYPE_CHECKING:
    from calendar_notifier.core.settings import ChannelSettings

logger = get_logger(__name__, channel="email")


@dataclass
class EmailDeliveryResult:
    """Result of an email send."""

    success: bool
    message_id: str | None = None
    response_time_ms: int | None = None
    error_message: str | None = None
    rejected: list[str] = field(default_factory=list)


class EmailSender(Protocol):
    async def send_email(
        self,
        to: str,
        subject: str,
        body: str,
        headers: dict[str, str] | None = None,
    ) -> EmailDeliveryResult: ...


class ConsoleEmailSender:
    """Logs emails to the console instead of sending them. Always succeeds."""

    def __init__(self, from_address: str = "notifications@calendar.local") -> None:
        self.from_address = from_address

    async def send_email(
        self,
        to: str,
        subject: str,
        body: str,
        headers: dict[str, str] | None = None,
    ) -> EmailDeliveryResult:
        message_id = f"console-{uuid.uuid4()}"
        logger.info(
            "Email (console)",
            extra={
                "message_id": message_id,
                "from": self.from_address,
                "to": to,
                "subject": subject,
                "body_length": len(body),
            },
        )
        return EmailDeliveryResult(success=True, message_id=message_id, response_time_ms=0)


class SmtpEmailSender:
    """SMTP sender using native async aiosmtplib.

    Supports STARTTLS (port 587), implicit TLS (port 465) and optional
    LOGIN/PLAIN authentication.
    """

    def __init__(
        self,
        host: str,
        port: int = 587,
        *,
        from_address: str,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = False,
        start_tls: bool = True,
        timeout_seconds: float = 30.0,
    ) -> None:
        if not host:
            msg = "SMTP host is required for the SMTP sender"
            raise ValueError(msg)
        self._host = host
        self._port = port
        self._from = from_address
        self._username = username
        self._password = password
        self._use_tls = use_tls
        self._start_tls = start_tls and not use_tls
        self._timeout = timeout_seconds

        logger.info(
            "SMTP sender initialized",
            extra={
                "host": host,
                "port": port,
                "use_tls": use_tls,
                "start_tls": self._start_tls,
            },
        )

    def _build_message(
        self,
        to: str,
        subject: str,
        body: str,
        headers: dict[str, str] | None,
    ) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self._from
        message["To"] = to
        message["Subject"] = subject
        message["Message-ID"] = make_msgid(domain=self._from.rpartition("@")[2] or None)
        for name, value in (headers or {}).items():
            message[name] = value
        message.set_content(body)
        return message

    async def send_email(
        self,
        to: str,
        subject: str,
        body: str,
        headers: dict[str, str] | None = None,
    ) -> EmailDeliveryResult:
        start_time = time.time()
        message = self._build_message(to, subject, body, headers)
        message_id = message["Message-ID"]

        try:
            errors, _response = await aiosmtplib.send(
                message,
                hostname=self._host,
                port=self._port,
                username=self._username,
                password=self._password,
                use_tls=self._use_tls,
                start_tls=self._start_tls,
                timeout=self._timeout,
            )
        except aiosmtplib.SMTPAuthenticationError as e:
            logger.error("SMTP authentication failed", extra={"host": self._host, "code": e.code})
            return EmailDeliveryResult(
                success=False,
                message_id=message_id,
                response_time_ms=int((time.time() - start_time) * 1000),
                error_message=f"SMTP authentication failed: {e.message}",
            )
        except aiosmtplib.SMTPException as e:
            logger.warning(
                "SMTP send failed",
                extra={"host": self._host, "to": to, "error": str(e)},
            )
            return EmailDeliveryResult(
                success=False,
                message_id=message_id,
                response_time_ms=int((time.time() - start_time) * 1000),
                error_message=f"SMTP error: {e}",
            )

        rejected = list(errors.keys()) if errors else []
        if rejected:
            logger.warning(
                "SMTP recipient rejected",
                extra={
                    "message_id": message_id,
                    "rejected": rejected,
                    "errors": {k: str(v) for k, v in errors.items()},
                },
            )
        return EmailDeliveryResult(
            success=not rejected,
            message_id=message_id,
            response_time_ms=int((time.time() - start_time) * 1000),
            error_message="Recipient rejected" if rejected else None,
            rejected=rejected,
        )


def build_email_sender(settings: ChannelSettings) -> EmailSender:
    """Instantiate the configured email transport."""
    if settings.email_provider == "smtp":
        return SmtpEmailSender(
            settings.smtp_host,
            settings.smtp_port,
            from_address=settings.email_from,
            username=settings.smtp_username,
            password=settings.smtp_password.get_secret_value() if settings.smtp_password else None,
            use_tls=settings.smtp_use_tls,
            start_tls=settings.smtp_start_tls,
        )
    return ConsoleEmailSender(settings.email_from)
