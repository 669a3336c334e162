import pytest
from fastapi.testclient import TestClient

from ticketdesk.container import attachment_store, mailer, ticket_repository
from ticketdesk.main import app

ALICE = {
    "name": "Alice",
    "issue": "printer",
    "department": "IT",
    "deskId": "D1",
    "email": "alice@x.com",
    "subject": "Printer down",
    "description": "The printer on floor 2 is jammed.",
}
DEDUP_KEY = {key: ALICE[key] for key in ("name", "issue", "department", "deskId")}


def _create(client: TestClient, files: list | None = None, **overrides: str):
    return client.post("/api/tickets", data={**ALICE, **overrides}, files=files)


def test_create_then_check_then_duplicate() -> None:
    client = TestClient(app)

    assert client.post("/api/check-ticket", json=DEDUP_KEY).json() == {"exists": False}

    created = _create(client)
    assert created.status_code == 201
    body = created.json()
    assert body["message"] == "Ticket created successfully"
    ticket_id = body["ticketId"]

    check = client.post("/api/check-ticket", json=DEDUP_KEY)
    assert check.status_code == 200
    assert check.json() == {"exists": True, "status": "Open"}

    duplicate = _create(client)
    assert duplicate.status_code == 400
    dup_body = duplicate.json()
    assert dup_body["ticketId"] == ticket_id
    assert dup_body["status"] == "Open"
    assert dup_body["message"] == "A ticket with similar details exists. Status: Open"
    assert dup_body["error"]["code"] == "DUPLICATE_TICKET"
    assert ticket_repository.count() == 1
    assert [email.subject for email in mailer.outbox] == ["New Ticket Created"]


def test_status_update_moves_ticket_between_status_lists() -> None:
    client = TestClient(app)
    ticket_id = _create(client).json()["ticketId"]

    update = client.patch(f"/api/tickets/{ticket_id}", json={"status": "Resolved"})
    assert update.status_code == 200
    assert update.json() == {"message": "Ticket status updated to Resolved", "ticketId": ticket_id}

    resolved = client.get("/api/tickets/Resolved")
    assert resolved.status_code == 200
    assert [ticket["id"] for ticket in resolved.json()] == [ticket_id]
    assert resolved.json()[0]["attachments"] == []
    assert client.get("/api/tickets/Open").json() == []

    in_progress = client.patch(f"/api/tickets/{ticket_id}", json={"status": "In Progress"})
    assert in_progress.status_code == 200
    assert [t["id"] for t in client.get("/api/tickets/In%20Progress").json()] == [ticket_id]

    assert mailer.outbox[-1].to == "alice@x.com"
    assert mailer.outbox[-1].subject == "Ticket Status Updated: In Progress"


def test_ticket_json_carries_every_attribute() -> None:
    client = TestClient(app)
    ticket_id = _create(client).json()["ticketId"]

    ticket = client.get("/api/tickets/Open").json()[0]

    assert ticket["id"] == ticket_id
    assert set(ticket) == {
        "id",
        "name",
        "issue",
        "department",
        "deskId",
        "subject",
        "email",
        "description",
        "attachments",
        "status",
        "createdAt",
    }
    assert ticket["deskId"] == "D1"


def test_attachments_round_trip_in_order_and_are_served() -> None:
    client = TestClient(app)
    files = [
        ("media", ("second.png", b"\x89PNG-two", "image/png")),
        ("media", ("first.pdf", b"%PDF-one", "application/pdf")),
        ("media", ("third.mp3", b"ID3-three", "audio/mpeg")),
    ]

    created = _create(client, files=files)
    assert created.status_code == 201

    ticket = client.get("/api/tickets/Open").json()[0]
    references = ticket["attachments"]
    assert len(references) == 3
    assert [reference.rsplit(".", 1)[1] for reference in references] == ["png", "pdf", "mp3"]

    served = client.get(references[1])
    assert served.status_code == 200
    assert served.content == b"%PDF-one"


def test_single_attachment_is_still_an_array() -> None:
    client = TestClient(app)
    _create(client, files=[("media", ("shot.jpg", b"jpeg", "image/jpeg"))])

    references = client.get("/api/tickets/Open").json()[0]["attachments"]

    assert isinstance(references, list) and len(references) == 1


def test_six_files_are_rejected_and_no_ticket_is_created() -> None:
    client = TestClient(app)
    files = [("media", (f"shot{index}.png", b"png", "image/png")) for index in range(6)]

    response = _create(client, files=files)

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_FILE_TYPE"
    assert ticket_repository.count() == 0
    assert client.post("/api/check-ticket", json=DEDUP_KEY).json() == {"exists": False}
    assert mailer.outbox == []


def test_empty_file_input_creates_ticket_without_attachments() -> None:
    client = TestClient(app)

    created = _create(client, files=[("media", ("", b"", "application/octet-stream"))])

    assert created.status_code == 201
    ticket = client.get("/api/tickets/Open").json()[0]
    assert ticket["id"] == created.json()["ticketId"]
    assert ticket["attachments"] == []


def test_oversized_upload_is_rejected_before_ticket_is_created(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(attachment_store, "max_bytes", 4)
    client = TestClient(app)

    response = _create(client, files=[("media", ("big.png", b"\x89PNG-0123456789", "image/png"))])

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"
    assert response.json()["error"]["details"] == [{"field": "media", "filename": "big.png"}]
    assert ticket_repository.count() == 0
    assert mailer.outbox == []


def test_disallowed_file_type_is_rejected() -> None:
    client = TestClient(app)

    response = _create(client, files=[("media", ("tool.exe", b"MZ", "application/octet-stream"))])

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_FILE_TYPE"
    assert ticket_repository.count() == 0


def test_reply_and_general_inquiry() -> None:
    client = TestClient(app)
    ticket_id = _create(client).json()["ticketId"]

    reply = client.post("/api/tickets/reply", json={"ticketId": ticket_id, "replyMessage": "Technician en route."})
    assert reply.status_code == 200
    assert reply.json()["ticketId"] == ticket_id
    assert mailer.outbox[-1].to == "alice@x.com"
    assert mailer.outbox[-1].body == "Technician en route."

    inquiry = client.post(
        "/api/send-email",
        json={"email": "bob@x.com", "subject": "Parking", "message": "Where can visitors park?"},
    )
    assert inquiry.status_code == 200
    assert inquiry.json() == {"message": "Email sent successfully"}
    assert mailer.outbox[-1].to == "admin@helpdesk.test"
    assert mailer.outbox[-1].sender == "bob@x.com"


def test_clear_tickets_empties_every_status() -> None:
    client = TestClient(app)
    first = _create(client).json()["ticketId"]
    _create(client, deskId="D2")
    client.patch(f"/api/tickets/{first}", json={"status": "Closed"})

    cleared = client.delete("/api/clear-tickets")

    assert cleared.status_code == 200
    assert cleared.json() == {"message": "All tickets have been cleared", "removed": 2}
    for status in ("Open", "Closed", "Resolved"):
        assert client.get(f"/api/tickets/{status}").json() == []


def test_health_reports_storage_mode() -> None:
    client = TestClient(app)

    health = client.get("/health")

    assert health.status_code == 200
    assert health.json()["storage"] == "memory"
    assert health.json()["services"]["mongo"]["status"] == "disabled"
    assert health.json()["services"]["indexes"] == {"status": "skipped", "error": None}
