import pytest
from fastapi.testclient import TestClient

from ticketdesk.container import notification_service, ticket_repository
from ticketdesk.core.errors import DeliveryError, StorageError
from ticketdesk.infrastructure.mailer import OutboundEmail
from ticketdesk.main import app

TICKET_FORM = {
    "name": "Carol",
    "issue": "vpn",
    "department": "Finance",
    "deskId": "F7",
    "email": "carol@x.com",
    "subject": "VPN drops",
    "description": "Disconnects every ten minutes.",
}


class _FailingMailer:
    def send(self, email: OutboundEmail) -> None:
        raise DeliveryError("Failed to send email")


def test_unknown_ticket_returns_404_envelope() -> None:
    client = TestClient(app)

    patch = client.patch("/api/tickets/66f1c0ffee00000000000000", json={"status": "Closed"})
    reply = client.post("/api/tickets/reply", json={"ticketId": "nope", "replyMessage": "hi"})

    assert patch.status_code == 404
    assert patch.json()["message"] == "Ticket not found"
    assert patch.json()["error"]["code"] == "NOT_FOUND"
    assert reply.status_code == 404


def test_missing_fields_are_validation_errors() -> None:
    client = TestClient(app)

    create = client.post("/api/tickets", data={**TICKET_FORM, "description": ""})
    check = client.post("/api/check-ticket", json={"name": "Carol"})
    status = client.patch("/api/tickets/abc", json={})

    for response in (create, check, status):
        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert isinstance(error["details"], list) and error["details"]
    assert ticket_repository.count() == 0


def test_invalid_email_is_rejected() -> None:
    client = TestClient(app)

    create = client.post("/api/tickets", data={**TICKET_FORM, "email": "not-an-email"})
    inquiry = client.post("/api/send-email", json={"email": "nobody", "subject": "s", "message": "m"})

    assert create.status_code == 400
    assert inquiry.status_code == 400


def test_whitespace_only_fields_are_rejected_by_service() -> None:
    client = TestClient(app)

    response = client.post("/api/tickets", data={**TICKET_FORM, "name": "   "})

    assert response.status_code == 400
    assert response.json()["error"]["details"][0]["field"] == "name"


def test_create_with_failed_notification_returns_500_but_persists(monkeypatch: pytest.MonkeyPatch) -> None:
    client = TestClient(app)
    monkeypatch.setattr(notification_service, "mailer", _FailingMailer())

    response = client.post("/api/tickets", data=TICKET_FORM)

    assert response.status_code == 500
    body = response.json()
    assert body["message"] == "Failed to send email"
    assert body["error"]["code"] == "DELIVERY_ERROR"
    assert body["error"]["details"][0]["persisted"] is True
    assert ticket_repository.count() == 1
    check = client.post(
        "/api/check-ticket",
        json={"name": "Carol", "issue": "vpn", "department": "Finance", "deskId": "F7"},
    )
    assert check.json() == {"exists": True, "status": "Open"}


def test_send_email_failure_returns_500(monkeypatch: pytest.MonkeyPatch) -> None:
    client = TestClient(app)
    monkeypatch.setattr(notification_service, "mailer", _FailingMailer())

    response = client.post("/api/send-email", json={"email": "bob@x.com", "subject": "Hi", "message": "Hello"})

    assert response.status_code == 500
    assert response.json()["message"] == "Failed to send email"


def test_notification_log_shows_failed_status_notice(monkeypatch: pytest.MonkeyPatch) -> None:
    client = TestClient(app)
    ticket_id = client.post("/api/tickets", data=TICKET_FORM).json()["ticketId"]
    monkeypatch.setattr(notification_service, "mailer", _FailingMailer())

    assert client.patch(f"/api/tickets/{ticket_id}", json={"status": "Closed"}).status_code == 500

    history = client.get(f"/api/tickets/{ticket_id}/notifications")
    assert history.status_code == 200
    assert [(row["kind"], row["status"]) for row in history.json()] == [
        ("ticket_created", "sent"),
        ("status_changed", "failed"),
    ]
    failed = client.get("/api/notifications/failed").json()
    assert [(row["ticketId"], row["to"], row["error"]) for row in failed] == [
        (ticket_id, "carol@x.com", "Failed to send email"),
    ]
    assert client.get("/api/tickets/66f1c0ffee00000000000000/notifications").status_code == 404


def test_storage_failure_returns_500(monkeypatch: pytest.MonkeyPatch) -> None:
    client = TestClient(app)

    def broken_delete_all() -> int:
        raise StorageError("Error clearing tickets")

    monkeypatch.setattr(ticket_repository, "delete_all", broken_delete_all)

    response = client.delete("/api/clear-tickets")

    assert response.status_code == 500
    assert response.json()["error"]["code"] == "STORAGE_ERROR"


def test_json_routes_reject_other_content_types() -> None:
    client = TestClient(app)

    response = client.post(
        "/api/check-ticket",
        content=b"name=Carol",
        headers={"Content-Type": "text/plain"},
    )

    assert response.status_code == 415


def test_ticket_creation_requires_form_encoding() -> None:
    client = TestClient(app)

    response = client.post("/api/tickets", json=TICKET_FORM)

    assert response.status_code == 415
    assert ticket_repository.count() == 0


def test_request_id_is_echoed() -> None:
    client = TestClient(app)

    response = client.post(
        "/api/check-ticket",
        json={"name": "Carol", "issue": "vpn", "department": "Finance", "deskId": "F7"},
        headers={"X-Request-ID": "req-123"},
    )

    assert response.headers["X-Request-ID"] == "req-123"
