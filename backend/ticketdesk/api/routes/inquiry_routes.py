from __future__ import annotations

from fastapi import APIRouter

from ticketdesk.api.schemas import SendEmailRequest
from ticketdesk.container import ticket_service

router = APIRouter(tags=["inquiries"])


@router.post("/send-email")
def send_email(payload: SendEmailRequest) -> dict[str, str]:
    ticket_service.relay_general_inquiry(
        from_email=payload.email,
        subject=payload.subject,
        message=payload.message,
    )
    return {"message": "Email sent successfully"}
