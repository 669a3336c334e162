from __future__ import annotations

from typing import Any, Sequence

from ticketdesk.core.config import Settings
from ticketdesk.core.errors import DeliveryError, DuplicateTicket, StorageError, ValidationError
from ticketdesk.core.utils import clean_text, utc_now
from ticketdesk.infrastructure.attachment_store import IncomingFile, LocalAttachmentStore
from ticketdesk.infrastructure.logging import get_logger
from ticketdesk.infrastructure.mailer import OutboundEmail
from ticketdesk.repositories.ticket_repository import TicketRepository, dedup_key
from ticketdesk.services.notification_service import NotificationService

logger = get_logger(__name__)

DEFAULT_STATUS = "Open"
MAX_STATUS_LENGTH = 64


class TicketService:
    """Ticket lifecycle: duplicate detection, creation, status changes and replies.

    The duplicate check is a lookup followed by an insert. Without the unique
    dedup index two concurrent creates with the same key can both pass the
    lookup; with it the losing insert surfaces as :class:`DuplicateTicket`.

    When notifications are synchronous a delivery failure is reported to the
    caller even though the ticket change is already persisted.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        ticket_repository: TicketRepository,
        attachment_store: LocalAttachmentStore,
        notification_service: NotificationService,
    ) -> None:
        self.settings = settings
        self.ticket_repository = ticket_repository
        self.attachment_store = attachment_store
        self.notification_service = notification_service

    def check_duplicate(self, *, name: str, issue: str, department: str, desk_id: str) -> dict[str, Any]:
        key = _required(
            {"name": name, "issue": issue, "department": department, "deskId": desk_id},
        )
        existing = self.ticket_repository.find_one(dedup_key(key))
        if existing is None:
            return {"exists": False}
        return {"exists": True, "status": existing["status"]}

    def create_ticket(
        self,
        *,
        name: str,
        issue: str,
        department: str,
        desk_id: str,
        subject: str,
        email: str,
        description: str,
        files: Sequence[IncomingFile] = (),
    ) -> dict[str, Any]:
        fields = _required(
            {
                "name": name,
                "issue": issue,
                "department": department,
                "deskId": desk_id,
                "subject": subject,
                "email": email,
                "description": description,
            }
        )
        self.attachment_store.validate(files)

        existing = self.ticket_repository.find_one(dedup_key(fields))
        if existing is not None:
            logger.info("ticket_duplicate_rejected", ticketId=existing["id"], status=existing["status"])
            raise DuplicateTicket(ticket_id=existing["id"], status=existing["status"])

        references = self.attachment_store.store(files)
        try:
            ticket = self.ticket_repository.insert(
                {
                    **fields,
                    "attachments": references,
                    "status": DEFAULT_STATUS,
                    "createdAt": utc_now(),
                }
            )
        except (DuplicateTicket, StorageError) as exc:
            self.attachment_store.discard(references)
            if isinstance(exc, DuplicateTicket):
                logger.info("ticket_duplicate_rejected", ticketId=exc.ticket_id, status=exc.status, race=True)
            raise
        logger.info("ticket_created", ticketId=ticket["id"], attachments=len(references))

        self._notify_after_commit(
            self.notification_service.ticket_created(ticket),
            kind="ticket_created",
            ticket_id=ticket["id"],
        )
        return ticket

    def get_ticket(self, ticket_id: str) -> dict[str, Any]:
        return self.ticket_repository.find_by_id(clean_text(ticket_id))

    def update_status(self, ticket_id: str, status: str) -> dict[str, Any]:
        new_status = self._valid_status(status)
        ticket = self.ticket_repository.find_by_id(clean_text(ticket_id))
        updated = self.ticket_repository.update(ticket["id"], {"status": new_status})
        logger.info("ticket_status_updated", ticketId=updated["id"], previous=ticket["status"], status=new_status)

        self._notify_after_commit(
            self.notification_service.status_changed(updated, new_status),
            kind="status_changed",
            ticket_id=updated["id"],
        )
        return updated

    def reply_to_ticket(self, ticket_id: str, message: str) -> dict[str, Any]:
        body = _required({"replyMessage": message})["replyMessage"]
        ticket = self.ticket_repository.find_by_id(clean_text(ticket_id))
        self.notification_service.deliver(
            self.notification_service.reply(ticket, body),
            kind="reply",
            ticket_id=ticket["id"],
        )
        logger.info("ticket_reply_sent", ticketId=ticket["id"])
        return ticket

    def notification_history(self, ticket_id: str, limit: int = 50) -> list[dict[str, Any]]:
        ticket = self.ticket_repository.find_by_id(clean_text(ticket_id))
        return self.notification_service.history(ticket["id"], limit=limit)

    def list_by_status(self, status: str) -> list[dict[str, Any]]:
        return self.ticket_repository.find_many({"status": clean_text(status)})

    def clear_all(self) -> int:
        removed = self.ticket_repository.delete_all()
        logger.warning("tickets_cleared", removed=removed)
        return removed

    def relay_general_inquiry(self, *, from_email: str, subject: str, message: str) -> None:
        fields = _required({"email": from_email, "subject": subject, "message": message})
        self.notification_service.deliver(
            self.notification_service.general_inquiry(
                from_email=fields["email"],
                subject=fields["subject"],
                message=fields["message"],
            ),
            kind="general_inquiry",
        )

    def _valid_status(self, status: str) -> str:
        value = _required({"status": status})["status"]
        if len(value) > MAX_STATUS_LENGTH:
            raise ValidationError(
                f"Status must be at most {MAX_STATUS_LENGTH} characters",
                details=[{"field": "status"}],
            )
        allowed = self.settings.status_allow_list
        if allowed and value not in allowed:
            raise ValidationError(
                f"Unsupported status: {value}",
                details=[{"field": "status", "allowed": allowed}],
            )
        return value

    def _notify_after_commit(self, email: OutboundEmail, *, kind: str, ticket_id: str) -> None:
        try:
            self.notification_service.notify(email, kind=kind, ticket_id=ticket_id)
        except DeliveryError as exc:
            raise DeliveryError(
                exc.message,
                details=[{"ticketId": ticket_id, "persisted": True}],
            ) from exc


def _required(fields: dict[str, Any]) -> dict[str, str]:
    cleaned = {key: clean_text(value) for key, value in fields.items()}
    missing = [key for key, value in cleaned.items() if not value]
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}",
            details=[{"field": key, "message": "Field is required"} for key in missing],
        )
    return cleaned
