from __future__ import annotations

from pydantic import BaseModel, Field

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class CheckTicketRequest(BaseModel):
    name: str = Field(min_length=1)
    issue: str = Field(min_length=1)
    department: str = Field(min_length=1)
    deskId: str = Field(min_length=1)


class UpdateStatusRequest(BaseModel):
    status: str = Field(min_length=1, max_length=64)


class ReplyRequest(BaseModel):
    ticketId: str = Field(min_length=1)
    replyMessage: str = Field(min_length=1, max_length=10000)


class SendEmailRequest(BaseModel):
    email: str = Field(pattern=EMAIL_PATTERN)
    subject: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1, max_length=10000)


class Ticket(BaseModel):
    id: str
    name: str
    issue: str
    department: str
    deskId: str
    subject: str
    email: str
    description: str
    attachments: list[str] = Field(default_factory=list)
    status: str
    createdAt: str


class NotificationRecord(BaseModel):
    id: str
    kind: str
    ticketId: str | None = None
    to: str
    subject: str
    status: str
    error: str | None = None
    createdAt: str
