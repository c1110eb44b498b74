"""Tests for the inbox HTTP API."""
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from app.api.deps import (
    get_mailbox_reader,
    get_reply_composer,
    get_reply_dispatcher,
    get_reply_store,
    get_signature_service,
)
from app.api.routes.inbox import SEND_FAILED
from app.main import app
from app.services.agents.reply_agent import ReplyComposer
from app.services.mail.dispatcher import ReplyDispatcher

PREFIX = "/api/v1/inbox"


@pytest.fixture
def client(mock_reader, store, composer, dispatcher, signatures):
    app.dependency_overrides[get_mailbox_reader] = lambda: mock_reader
    app.dependency_overrides[get_reply_store] = lambda: store
    app.dependency_overrides[get_reply_composer] = lambda: composer
    app.dependency_overrides[get_reply_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_signature_service] = lambda: signatures
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health_check(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "version": "1.0.0"}


def test_list_inbox(client):
    response = client.get(PREFIX)

    assert response.status_code == 200
    data = response.json()
    assert data["account"] == "default"
    assert len(data["emails"]) == 5
    assert data["emails"][0]["id"] == "email-005"
    assert set(data["emails"][0]) == {"id", "subject", "sender", "date", "message_id"}


def test_list_inbox_unknown_account_is_empty(client):
    response = client.get(PREFIX, params={"account": "nobody"})

    assert response.status_code == 200
    assert response.json() == {"account": "nobody", "emails": []}


def test_show_email(client):
    response = client.get(f"{PREFIX}/email-002")

    assert response.status_code == 200
    data = response.json()
    assert data["email"]["sender"] == "robert.client@acme.com"
    assert data["email"]["body"].startswith("Hello,")
    assert data["latest_reply"] is None
    assert data["transcript"] == []
    assert data["signature"] == "Best regards,\nInbox User"
    assert data["sent_at"] is None


def test_show_email_by_window_position(client):
    # Oldest message in the window comes first
    response = client.get(f"{PREFIX}/1")
    assert response.json()["email"]["id"] == "email-003"


def test_show_unknown_email_is_404(client):
    response = client.get(f"{PREFIX}/does-not-exist")

    assert response.status_code == 404
    assert response.json()["detail"] == "Email not found"


def test_generate_reply_then_refine(client):
    first = client.post(f"{PREFIX}/email-001/generate-reply", json={"instruction": "Share my availability"})

    assert first.status_code == 200
    assert first.json()["reply"] == "Draft one"
    assert len(first.json()["transcript"]) == 4

    second = client.post(f"{PREFIX}/email-001/generate-reply", json={"instruction": "Shorter please"})
    assert second.json()["reply"] == "Draft two"
    assert [t["role"] for t in second.json()["transcript"]] == [
        "system", "user", "user", "assistant", "user", "assistant",
    ]

    shown = client.get(f"{PREFIX}/email-001").json()
    assert shown["latest_reply"] == "Draft two"
    assert len(shown["transcript"]) == 6
    assert shown["sent_at"] is None


def test_generate_reply_requires_instruction(client):
    response = client.post(f"{PREFIX}/email-001/generate-reply", json={"instruction": "   "})
    assert response.status_code == 422


def test_generate_reply_for_unknown_email_is_404(client):
    response = client.post(f"{PREFIX}/nope/generate-reply", json={"instruction": "Reply"})
    assert response.status_code == 404


def test_generate_reply_model_failure_is_502(client, store):
    model = MagicMock()
    model.invoke.side_effect = RuntimeError("API key not valid")
    app.dependency_overrides[get_reply_composer] = lambda: ReplyComposer(model)

    response = client.post(f"{PREFIX}/email-001/generate-reply", json={"instruction": "Reply"})

    assert response.status_code == 502
    assert "API key not valid" in response.json()["detail"]
    assert store.find_by_email_id("email-001", "default") is None


def test_send_reply_uses_configured_signature(client, transport_factory, store):
    response = client.post(f"{PREFIX}/email-004/send-reply", json={"reply": "Please cancel the renewal."})

    assert response.status_code == 200
    assert response.json()["status"] == "sent"

    [message] = transport_factory.messages
    assert message["To"] == "billing@saasproduct.com"
    assert message["Subject"] == "Re: Your Subscription Renewal"
    assert "Best regards,\nInbox User" in message.get_body(preferencelist=("plain",)).get_content()
    assert store.find_by_email_id("email-004", "default").sent_at is not None


def test_send_reply_with_empty_signature(client, transport_factory):
    client.post(f"{PREFIX}/email-004/send-reply", json={"reply": "No thanks.", "signature": ""})

    body = transport_factory.messages[0].get_body(preferencelist=("plain",)).get_content()
    assert body.rstrip() == "No thanks."


def test_send_reply_from_mapped_account(client, transport_factory):
    response = client.post(f"{PREFIX}/email-003/send-reply", params={"account": "info"}, json={"reply": "Count me in."})

    assert response.json()["account"] == "info"
    assert transport_factory.transports[0].settings.from_address == "info@example.com"
    assert "Info Desk" in transport_factory.messages[0].get_body(preferencelist=("plain",)).get_content()


def test_send_reply_failure_is_502(client, store, transport_settings, failing_transport_factory):
    app.dependency_overrides[get_reply_dispatcher] = lambda: ReplyDispatcher(
        store, transport_settings, transport_factory=failing_transport_factory
    )

    response = client.post(f"{PREFIX}/email-004/send-reply", json={"reply": "Hello"})

    assert response.status_code == 502
    assert response.json()["detail"] == SEND_FAILED
    assert store.find_by_email_id("email-004", "default") is None
