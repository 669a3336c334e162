from __future__ import annotations

import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from threading import Lock
from typing import Protocol

from ticketdesk.core.config import Settings
from ticketdesk.core.errors import DeliveryError
from ticketdesk.infrastructure.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class OutboundEmail:
    to: str
    sender: str
    subject: str
    body: str
    reply_to: str | None = None

    def to_message(self) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = self.subject
        message["From"] = self.sender
        message["To"] = self.to
        if self.reply_to:
            message["Reply-To"] = self.reply_to
        message.set_content(self.body)
        return message


class Mailer(Protocol):
    def send(self, email: OutboundEmail) -> None: ...


class InMemoryMailer:
    """Collects messages in an outbox instead of talking to a relay."""

    def __init__(self) -> None:
        self._lock = Lock()
        self.outbox: list[OutboundEmail] = []

    def send(self, email: OutboundEmail) -> None:
        with self._lock:
            self.outbox.append(email)
        logger.info("email_captured", to=email.to, subject=email.subject)

    def clear(self) -> None:
        with self._lock:
            self.outbox = []


class SmtpMailer:
    def __init__(self, *, settings: Settings) -> None:
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.username = settings.smtp_username
        self.password = settings.smtp_password
        self.use_tls = settings.smtp_use_tls
        self.timeout = settings.smtp_timeout_seconds

    @property
    def enabled(self) -> bool:
        return bool(self.host)

    def send(self, email: OutboundEmail) -> None:
        if not self.enabled:
            raise DeliveryError("Mail transport is not configured")
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.username:
                    smtp.login(self.username, self.password)
                smtp.send_message(email.to_message())
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("email_delivery_failed", to=email.to, subject=email.subject, error=str(exc))
            raise DeliveryError("Failed to send email") from exc
        logger.info("email_sent", to=email.to, subject=email.subject)


def build_mailer(settings: Settings) -> Mailer:
    if settings.mail_backend == "smtp":
        return SmtpMailer(settings=settings)
    if settings.mail_backend == "memory":
        return InMemoryMailer()
    raise ValueError(f"Unsupported mail backend: {settings.mail_backend}")
