"""Tests for the FastAPI endpoints."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from docdesk.server import app
from docdesk.services.container import build_services
from docdesk.services.repository import InMemoryRepository


@pytest.fixture
def services(fake_embedder, inline_executor):
    """Build the service graph with test doubles and attach it to app state
    (mirrors the lifespan)."""
    composer = MagicMock()
    composer.compose.return_value = "Refunds are issued within 30 days."
    services = build_services(
        repository=InMemoryRepository(),
        embedder=fake_embedder,
        composer=composer,
        executor=inline_executor,
    )
    app.state.services = services
    yield services
    app.state.services = None


@pytest.fixture
def client(services):
    return TestClient(app)


def _upload(client, filename: str, content: bytes):
    return client.post("/api/documents", files={"file": (filename, content, "application/octet-stream")})


class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["service"] == "docdesk-assistant"
        assert data["documents"] == 0


class TestChatEndpoint:
    def test_chat_without_documents_returns_no_results_reply(self, client):
        response = client.post("/api/chat", json={"message": "What is the refund window?", "session_id": "s1"})
        assert response.status_code == 200
        data = response.json()
        assert data["session_id"] == "s1"
        assert data["state"] == "chat"
        assert "I couldn't find specific information about" in data["reply"]

    def test_chat_answers_from_uploaded_documents(self, client):
        _upload(client, "policy.txt", b"Refunds are issued within 30 days.")
        response = client.post("/api/chat", json={"message": "refunds?", "session_id": "s1"})
        assert response.json()["reply"] == "Refunds are issued within 30 days."

    def test_chat_generates_session_id(self, client):
        response = client.post("/api/chat", json={"message": "Hello!"})
        assert response.status_code == 200
        assert response.json()["session_id"]

    def test_chat_starts_booking(self, client):
        response = client.post("/api/chat", json={"message": "book appointment", "session_id": "s1"})
        assert response.json()["state"] == "appointment_name"

    def test_chat_validates_empty_message(self, client):
        response = client.post("/api/chat", json={"message": "", "session_id": "s1"})
        assert response.status_code == 422

    def test_chat_handles_unexpected_error(self, client, services):
        services.conversations = MagicMock()
        services.conversations.handle_message.side_effect = RuntimeError("graph exploded")
        response = client.post("/api/chat", json={"message": "Hello!", "session_id": "s1"})
        assert response.status_code == 500
        detail = response.json()["detail"]
        assert "graph exploded" not in detail
        assert "internal error" in detail.lower()

    def test_history_and_clear(self, client):
        client.post("/api/chat", json={"message": "Hello!", "session_id": "s1"})
        history = client.get("/api/chat/s1").json()
        assert [m["role"] for m in history["messages"]] == ["user", "assistant"]
        assert history["state"] == "chat"

        assert client.delete("/api/chat/s1").json() == {"ok": True}
        assert client.get("/api/chat/s1").json()["messages"] == []

    def test_response_includes_request_id_header(self, client):
        response = client.get("/api/health")
        assert "X-Request-ID" in response.headers

    def test_client_supplied_request_id_is_echoed(self, client):
        response = client.get("/api/health", headers={"X-Request-ID": "my-trace-id-123"})
        assert response.headers["X-Request-ID"] == "my-trace-id-123"


class TestDocumentEndpoints:
    def test_upload_txt(self, client):
        response = _upload(client, "notes.txt", b"Some notes about refunds.")
        assert response.status_code == 200
        data = response.json()
        assert data["filename"] == "notes.txt"
        assert data["kind"] == "txt"
        assert data["chunk_count"] == 1
        assert data["embedding_status"] == "completed"

    def test_upload_unsupported_type(self, client):
        response = _upload(client, "virus.exe", b"MZ")
        assert response.status_code == 400
        assert "PDF, DOCX, or TXT" in response.json()["detail"]

    def test_upload_too_large(self, client, services):
        services.documents._max_upload_bytes = 4
        response = _upload(client, "big.txt", b"x" * 100)
        assert response.status_code == 413

    def test_upload_unreadable_docx_is_stored_with_placeholder(self, client):
        response = _upload(client, "broken.docx", b"not a zip")
        assert response.status_code == 200
        assert response.json()["chunk_count"] >= 1

    def test_list_and_delete(self, client):
        doc_id = _upload(client, "notes.txt", b"Some notes.").json()["id"]

        listed = client.get("/api/documents").json()
        assert [d["id"] for d in listed] == [doc_id]
        assert listed[0]["embedded_chunk_count"] == 1

        assert client.delete(f"/api/documents/{doc_id}").status_code == 200
        assert client.get("/api/documents").json() == []
        assert client.get("/api/health").json()["documents"] == 0

    def test_delete_missing_document(self, client):
        assert client.delete("/api/documents/nope").status_code == 404

    def test_embedding_status(self, client):
        doc_id = _upload(client, "notes.txt", b"Some notes.").json()["id"]
        response = client.get(f"/api/documents/{doc_id}/embedding")
        assert response.json() == {"document_id": doc_id, "status": "completed"}

    def test_reprocess(self, client):
        _upload(client, "notes.txt", b"Some notes.")
        assert client.post("/api/documents/reprocess").json() == {"documents": 1}

    def test_search(self, client):
        _upload(client, "notes.txt", b"Refund desk hours.")
        results = client.get("/api/search", params={"q": "refund", "k": 2}).json()
        assert results[0]["filename"] == "notes.txt"
        assert results[0]["chunks"][0]["text"] == "Refund desk hours."


class TestAppointmentEndpoints:
    payload = {
        "name": "Jane Doe",
        "email": "jane@example.com",
        "phone": "+15551234567",
        "date": "2030-06-01",
        "time": "5 PM",
    }

    def test_create_and_list(self, client):
        response = client.post("/api/appointments", json=self.payload)
        assert response.status_code == 201
        created = response.json()
        assert created["time"] == "17:00"
        assert created["purpose"] == "General consultation"

        listed = client.get("/api/appointments", params={"date": "2030-06-01"}).json()
        assert [a["id"] for a in listed] == [created["id"]]

    def test_create_invalid(self, client):
        response = client.post("/api/appointments", json={**self.payload, "email": "nope"})
        assert response.status_code == 400
        assert "email" in response.json()["detail"]

    def test_update_status(self, client):
        appt_id = client.post("/api/appointments", json=self.payload).json()["id"]
        response = client.patch(f"/api/appointments/{appt_id}/status", json={"status": "confirmed"})
        assert response.status_code == 200
        assert response.json()["status"] == "confirmed"
        confirmed = client.get("/api/appointments", params={"status": "confirmed"}).json()
        assert len(confirmed) == 1

    def test_update_status_missing(self, client):
        response = client.patch("/api/appointments/nope/status", json={"status": "confirmed"})
        assert response.status_code == 404

    def test_update_status_rejects_unknown_status(self, client):
        appt_id = client.post("/api/appointments", json=self.payload).json()["id"]
        response = client.patch(f"/api/appointments/{appt_id}/status", json={"status": "lost"})
        assert response.status_code == 422

    def test_delete(self, client):
        appt_id = client.post("/api/appointments", json=self.payload).json()["id"]
        assert client.delete(f"/api/appointments/{appt_id}").status_code == 200
        assert client.delete(f"/api/appointments/{appt_id}").status_code == 404


class TestServicesNotReady:
    def test_returns_503_when_services_not_initialised(self):
        """If the lifespan hasn't finished building services, return 503."""
        with TestClient(app) as tc:
            app.state.services = None
            response = tc.post("/api/chat", json={"message": "Hello!", "session_id": "s1"})
            assert response.status_code == 503
            assert "starting up" in response.json()["detail"].lower()


class TestRootEndpoint:
    def test_root_returns_service_info(self, client):
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "DocDesk Assistant"
        assert "docs" in data
