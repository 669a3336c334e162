from __future__ import annotations

from typing import Any

from fastapi import APIRouter, File, Form, Query, UploadFile
from starlette.concurrency import run_in_threadpool

from ticketdesk.api.schemas import (
    EMAIL_PATTERN,
    CheckTicketRequest,
    NotificationRecord,
    ReplyRequest,
    Ticket,
    UpdateStatusRequest,
)
from ticketdesk.container import attachment_store, ticket_service
from ticketdesk.infrastructure.attachment_store import IncomingFile

router = APIRouter(tags=["tickets"])


@router.post("/check-ticket")
def check_ticket(payload: CheckTicketRequest) -> dict[str, Any]:
    return ticket_service.check_duplicate(
        name=payload.name,
        issue=payload.issue,
        department=payload.department,
        desk_id=payload.deskId,
    )


@router.post("/tickets", status_code=201)
async def create_ticket(
    name: str = Form(min_length=1),
    issue: str = Form(min_length=1),
    department: str = Form(min_length=1),
    deskId: str = Form(min_length=1),
    subject: str = Form(min_length=1),
    email: str = Form(pattern=EMAIL_PATTERN),
    description: str = Form(min_length=1),
    media: list[UploadFile | str] | None = File(default=None),
) -> dict[str, Any]:
    files: list[IncomingFile] = []
    for upload in media or []:
        # An empty file input arrives as a blank string or a nameless part.
        if isinstance(upload, str) or not upload.filename:
            continue
        files.append(await _read_upload(upload))
    ticket = await run_in_threadpool(
        ticket_service.create_ticket,
        name=name,
        issue=issue,
        department=department,
        desk_id=deskId,
        subject=subject,
        email=email,
        description=description,
        files=files,
    )
    return {"message": "Ticket created successfully", "ticketId": ticket["id"]}


@router.post("/tickets/reply")
def reply_to_ticket(payload: ReplyRequest) -> dict[str, Any]:
    ticket = ticket_service.reply_to_ticket(payload.ticketId, payload.replyMessage)
    return {"message": "Reply sent successfully", "ticketId": ticket["id"]}


@router.patch("/tickets/{ticket_id}")
def update_ticket_status(ticket_id: str, payload: UpdateStatusRequest) -> dict[str, Any]:
    ticket = ticket_service.update_status(ticket_id, payload.status)
    return {"message": f"Ticket status updated to {ticket['status']}", "ticketId": ticket["id"]}


@router.get("/tickets/{ticket_id}/notifications", response_model=list[NotificationRecord])
def list_ticket_notifications(ticket_id: str, limit: int = Query(default=50, ge=1, le=200)) -> list[dict[str, Any]]:
    return ticket_service.notification_history(ticket_id, limit=limit)


@router.get("/tickets/{status}", response_model=list[Ticket])
def list_tickets_by_status(status: str) -> list[dict[str, Any]]:
    return ticket_service.list_by_status(status)


@router.delete("/clear-tickets")
def clear_tickets() -> dict[str, Any]:
    removed = ticket_service.clear_all()
    return {"message": "All tickets have been cleared", "removed": removed}


async def _read_upload(upload: UploadFile) -> IncomingFile:
    filename = upload.filename or ""
    attachment_store.check_size(filename, upload.size)
    data = await upload.read(attachment_store.max_bytes + 1)
    attachment_store.check_size(filename, len(data))
    return IncomingFile(filename=filename, content_type=upload.content_type or "", data=data)
