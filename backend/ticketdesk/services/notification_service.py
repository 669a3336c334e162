from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, wait
from threading import Lock
from typing import Any

from ticketdesk.core.config import Settings
from ticketdesk.core.errors import DeliveryError
from ticketdesk.core.utils import generate_id, iso_now
from ticketdesk.infrastructure.logging import get_logger
from ticketdesk.infrastructure.mailer import Mailer, OutboundEmail
from ticketdesk.repositories.notification_repository import NotificationRepository

logger = get_logger(__name__)


class NotificationService:
    """Builds ticket notices, hands them to the mailer and logs every attempt.

    With ``notify_synchronously`` on, :meth:`notify` blocks and re-raises
    :class:`DeliveryError` so the caller can fail its own response. Otherwise
    the send runs on a small worker pool and failures only reach the log and
    the notification repository.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        mailer: Mailer,
        notification_repository: NotificationRepository,
    ) -> None:
        self.settings = settings
        self.mailer = mailer
        self.notification_repository = notification_repository
        self._executor: ThreadPoolExecutor | None = None
        self._pending: set[Future[Any]] = set()
        self._lock = Lock()

    def ticket_created(self, ticket: dict[str, Any]) -> OutboundEmail:
        return OutboundEmail(
            to=self.settings.admin_email,
            sender=self.settings.sender_address,
            subject="New Ticket Created",
            body=(
                f"A new ticket has been created by {ticket['name']} for issue: {ticket['issue']}. "
                f"Ticket ID: {ticket['id']}"
            ),
        )

    def status_changed(self, ticket: dict[str, Any], status: str) -> OutboundEmail:
        return OutboundEmail(
            to=str(ticket["email"]),
            sender=self.settings.sender_address,
            subject=f"Ticket Status Updated: {status}",
            body=f"Your ticket with ID: {ticket['id']} has been updated to the status: {status}.",
        )

    def reply(self, ticket: dict[str, Any], message: str) -> OutboundEmail:
        subject = str(ticket.get("subject") or "").strip()
        return OutboundEmail(
            to=str(ticket["email"]),
            sender=self.settings.sender_address,
            subject=f"Re: {subject}" if subject else f"Update on ticket {ticket['id']}",
            body=message,
        )

    def general_inquiry(self, *, from_email: str, subject: str, message: str) -> OutboundEmail:
        return OutboundEmail(
            to=self.settings.admin_email,
            sender=from_email,
            subject=subject,
            body=message,
            reply_to=from_email,
        )

    def notify(self, email: OutboundEmail, *, kind: str, ticket_id: str | None = None) -> None:
        if self.settings.notify_synchronously:
            self.deliver(email, kind=kind, ticket_id=ticket_id)
            return
        future = self._pool().submit(self._deliver_in_background, email, kind, ticket_id)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)

    def deliver(self, email: OutboundEmail, *, kind: str, ticket_id: str | None = None) -> dict[str, Any]:
        record = {
            "id": generate_id("notif"),
            "kind": kind,
            "ticketId": ticket_id,
            "to": email.to,
            "subject": email.subject,
            "status": "sent",
            "error": None,
            "createdAt": iso_now(),
        }
        try:
            self.mailer.send(email)
        except DeliveryError as exc:
            record["status"] = "failed"
            record["error"] = exc.message
            self.notification_repository.create(record)
            logger.warning("notification_failed", kind=kind, ticketId=ticket_id, to=email.to, error=exc.message)
            raise
        logger.info("notification_sent", kind=kind, ticketId=ticket_id, to=email.to)
        return self.notification_repository.create(record)

    def history(self, ticket_id: str, limit: int = 50) -> list[dict[str, Any]]:
        return self.notification_repository.list_for_ticket(ticket_id, limit=limit)

    def failed(self, limit: int = 50) -> list[dict[str, Any]]:
        return self.notification_repository.list_failed(limit=limit)

    def drain(self, timeout: float | None = None) -> None:
        with self._lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def shutdown(self) -> None:
        self.drain()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def _deliver_in_background(self, email: OutboundEmail, kind: str, ticket_id: str | None) -> None:
        try:
            self.deliver(email, kind=kind, ticket_id=ticket_id)
        except DeliveryError:
            # already recorded and logged by deliver()
            return

    def _pool(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="notify")
            return self._executor

    def _forget(self, future: Future[Any]) -> None:
        with self._lock:
            self._pending.discard(future)
