"""Email transports."""

from .sender import (
    ConsoleEmailSender,
    EmailDeliveryResult,
    EmailSender,
    SmtpEmailSender,
    build_email_sender,
)

__all__ = [
    "ConsoleEmailSender",
    "EmailDeliveryResult",
    "EmailSender",
    "SmtpEmailSender",
    "build_email_sender",
]
