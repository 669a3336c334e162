from __future__ import annotations

from typing import Any


class TicketDeskError(Exception):
    """Base for failures that map onto an HTTP error response."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, *, details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or []

    def extra(self) -> dict[str, Any]:
        return {}


class ValidationError(TicketDeskError):
    code = "VALIDATION_ERROR"
    status_code = 400


class DuplicateTicket(TicketDeskError):
    code = "DUPLICATE_TICKET"
    status_code = 400

    def __init__(self, *, ticket_id: str, status: str) -> None:
        super().__init__(f"A ticket with similar details exists. Status: {status}")
        self.ticket_id = ticket_id
        self.status = status

    def extra(self) -> dict[str, Any]:
        return {"ticketId": self.ticket_id, "status": self.status}


class NotFound(TicketDeskError):
    code = "NOT_FOUND"
    status_code = 404


class StorageError(TicketDeskError):
    code = "STORAGE_ERROR"
    status_code = 500


class DeliveryError(TicketDeskError):
    code = "DELIVERY_ERROR"
    status_code = 500


class InvalidFileType(TicketDeskError):
    """Attachment rejected by the type allow-list or the per-request count bound."""

    code = "INVALID_FILE_TYPE"
    status_code = 400


def error_body(exc: TicketDeskError) -> dict[str, Any]:
    return {
        "message": exc.message,
        **exc.extra(),
        "error": {
            "code": exc.code,
            "message": exc.message,
            "details": exc.details,
        },
    }
