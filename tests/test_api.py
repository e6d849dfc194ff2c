"""
Test cases for the HTTP API
"""
import asyncio
import time

import pytest
from unittest.mock import AsyncMock, MagicMock
from fastapi.testclient import TestClient

from app.api.routes.status import event_stream
from app.core.config import settings
from app.main import app
from app.services.container import ServiceContainer
from app.services.status_tracker import StatusTracker

API = settings.api_v1_str


@pytest.fixture
def services(session_factory, vector_store, mock_llm_service):
    return ServiceContainer.build(settings, session_factory, vector_store=vector_store, llm_service=mock_llm_service)


@pytest.fixture
def client(services):
    app.state.services = services
    with TestClient(app) as test_client:
        yield test_client
    app.state.services = None


def wait_for_status(client, document_id, expected, timeout=10.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        body = client.get(f"{API}/documents/{document_id}/status").json()
        if body["status"] == expected:
            return body
        time.sleep(0.05)
    pytest.fail(f"document {document_id} never reached {expected}: {body}")


def upload_notes(client, text, filename="notes.txt"):
    response = client.post(
        f"{API}/documents/upload",
        files={"file": (filename, text.encode("utf-8"), "text/plain")},
    )
    assert response.status_code == 202
    return response.json()["document_id"]


class TestDocumentsAPI:
    def test_upload_then_processed(self, client, notes_text):
        document_id = upload_notes(client, notes_text)

        body = wait_for_status(client, document_id, "processed")

        assert body["progress"] == 1.0
        assert body["chunk_count"] >= 3

        detail = client.get(f"{API}/documents/{document_id}").json()
        assert detail["filename"] == "notes.txt"
        assert detail["chunks"] == body["chunk_count"]

    def test_upload_response_shape(self, client):
        response = client.post(
            f"{API}/documents/upload",
            files={"file": ("guide.md", b"# Title\n\nBody.", "text/markdown")},
        )

        assert response.status_code == 202
        body = response.json()
        assert body["status"] == "pending"
        assert body["document_id"]

    def test_upload_rejects_unsupported_type(self, client):
        response = client.post(
            f"{API}/documents/upload",
            files={"file": ("report.docx", b"PK\x03\x04", "application/octet-stream")},
        )

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["status_code"] == 400
        assert "File type not supported" in error["message"]

    def test_upload_rejects_empty_file(self, client):
        response = client.post(f"{API}/documents/upload", files={"file": ("empty.txt", b"", "text/plain")})
        assert response.status_code == 400

    def test_unknown_document_is_404(self, client):
        response = client.get(f"{API}/documents/missing")

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Document not found"

    def test_list_documents(self, client, notes_text):
        document_id = upload_notes(client, notes_text)
        wait_for_status(client, document_id, "processed")

        body = client.get(f"{API}/documents", params={"status": "processed"}).json()

        assert body["total"] == 1
        assert body["documents"][0]["id"] == document_id
        assert client.get(f"{API}/documents", params={"status": "failed"}).json()["total"] == 0

    def test_failed_ingestion_reports_error(self, client):
        document_id = upload_notes(client, "   \n  ", filename="blank.txt")

        body = wait_for_status(client, document_id, "failed")

        assert "No chunks created" in body["message"]

    def test_delete_document(self, client, notes_text):
        document_id = upload_notes(client, notes_text)
        processed = wait_for_status(client, document_id, "processed")

        response = client.delete(f"{API}/documents/{document_id}")

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Document deleted successfully",
            "chunks_deleted": processed["chunk_count"],
        }
        assert client.get(f"{API}/documents/{document_id}").status_code == 404
        assert client.delete(f"{API}/documents/{document_id}").status_code == 404

    def test_reindex_document(self, client, notes_text):
        document_id = upload_notes(client, notes_text)
        first = wait_for_status(client, document_id, "processed")

        response = client.post(f"{API}/documents/{document_id}/reindex")
        assert response.status_code == 202

        second = wait_for_status(client, document_id, "processed")
        assert second["chunk_count"] == first["chunk_count"]

    def test_upload_refused_while_workers_are_down(self, client, services):
        stored_files = set(services.ingestion.file_storage.upload_dir.iterdir())
        running_queue = services.ingestion_queue
        services.ingestion_queue = MagicMock(running=False)
        try:
            response = client.post(
                f"{API}/documents/upload",
                files={"file": ("notes.txt", b"some text", "text/plain")},
            )
        finally:
            services.ingestion_queue = running_queue

        assert response.status_code == 503
        assert response.json()["error"]["message"] == "Ingestion queue is not running"
        assert client.get(f"{API}/documents").json()["total"] == 0
        assert set(services.ingestion.file_storage.upload_dir.iterdir()) == stored_files

    def test_reindex_refused_while_workers_are_down(self, client, services, notes_text):
        document_id = upload_notes(client, notes_text)
        wait_for_status(client, document_id, "processed")
        running_queue = services.ingestion_queue
        services.ingestion_queue = MagicMock(running=False)
        services.ingestion_queue.is_queued.return_value = False
        try:
            response = client.post(f"{API}/documents/{document_id}/reindex")
        finally:
            services.ingestion_queue = running_queue

        assert response.status_code == 503
        assert client.get(f"{API}/documents/{document_id}/status").json()["status"] == "processed"

    def test_semantic_search(self, client, notes_text):
        document_id = upload_notes(client, notes_text)
        wait_for_status(client, document_id, "processed")

        body = client.get(
            f"{API}/documents/search/semantic",
            params={"query": "Retrieval augmented generation", "max_results": 2},
        ).json()

        assert body["total_results"] == 2
        assert all(r["metadata"]["document_id"] == document_id for r in body["results"])


class TestQueryAPI:
    def test_query_returns_answer_with_citations(self, client, notes_text, mock_llm_service):
        document_id = upload_notes(client, notes_text)
        wait_for_status(client, document_id, "processed")

        response = client.post(f"{API}/query", json={"query": "What is RAG?", "top_k": 2})

        assert response.status_code == 200
        body = response.json()
        assert body["answer"] == "Retrieval augments generation [Source: notes.txt]"
        assert len(body["citations"]) == 2
        assert body["sources"] == ["notes.txt"]
        assert body["metadata"]["model"] == "test-model"
        assert mock_llm_service.generate.await_args.kwargs["temperature"] == 0.7

    def test_repeated_query_is_cached(self, client, notes_text, mock_llm_service):
        document_id = upload_notes(client, notes_text)
        wait_for_status(client, document_id, "processed")

        first = client.post(f"{API}/query", json={"query": "What is RAG?"}).json()
        second = client.post(f"{API}/query", json={"query": "what is rag?"}).json()

        assert second["answer"] == first["answer"]
        assert second["citations"] == first["citations"]
        assert second["metadata"]["cached"] is True
        event = client.get(f"{API}/status/{second['metadata']['query_id']}").json()
        assert event["status"] == "cached"
        assert mock_llm_service.generate.await_count == 1
        assert client.get(f"{API}/query/cache/stats").json()["size"] == 1

        assert client.delete(f"{API}/query/cache").json()["success"] is True
        assert client.get(f"{API}/query/cache/stats").json()["size"] == 0

    def test_query_history(self, client, notes_text):
        document_id = upload_notes(client, notes_text)
        wait_for_status(client, document_id, "processed")
        client.post(f"{API}/query", json={"query": "What is RAG?"})

        body = client.get(f"{API}/query/history").json()

        assert [q["query_text"] for q in body["queries"]] == ["What is RAG?"]

    def test_blank_query_is_rejected(self, client):
        response = client.post(f"{API}/query", json={"query": "   "})

        assert response.status_code == 422
        assert response.json()["error"]["message"] == "Validation error"

    def test_out_of_range_top_k_is_rejected(self, client):
        assert client.post(f"{API}/query", json={"query": "q", "top_k": 50}).status_code == 422

    def test_model_failure_is_500(self, client, notes_text, mock_llm_service):
        from app.core.exceptions import LLMError

        document_id = upload_notes(client, notes_text)
        wait_for_status(client, document_id, "processed")
        mock_llm_service.generate.side_effect = LLMError("upstream timeout")

        response = client.post(f"{API}/query", json={"query": "What is RAG?"})

        assert response.status_code == 500
        assert response.json()["error"]["message"] == "LLM error: upstream timeout"


class TestStatusAPI:
    def test_document_events_are_recorded(self, client, notes_text):
        document_id = upload_notes(client, notes_text)
        wait_for_status(client, document_id, "processed")

        event = client.get(f"{API}/status/{document_id}").json()

        assert event["type"] == "document"
        assert event["status"] == "processed"
        assert event["progress"] == 100

    def test_recent_events(self, client):
        events = client.get(f"{API}/status").json()["events"]
        assert any(e["type"] == "system" and e["status"] == "started" for e in events)

    def test_unknown_status_is_404(self, client):
        assert client.get(f"{API}/status/nope").status_code == 404

    def test_event_stream_replays_then_heartbeats(self):
        tracker = StatusTracker()
        tracker.emit("document", "doc-1", "processed", progress=100)
        request = MagicMock()
        request.is_disconnected = AsyncMock(side_effect=[False, True])

        async def collect():
            return [chunk async for chunk in event_stream(request, tracker, heartbeat=0.01)]

        chunks = asyncio.run(collect())

        assert chunks[0].startswith('data: {"type": "connected"')
        assert '"id": "doc-1"' in chunks[1]
        assert chunks[2] == ": heartbeat\n\n"
        assert len(chunks) == 3
        assert tracker.subscriber_count == 0


class TestHealthAPI:
    def test_basic_health(self, client):
        body = client.get(f"{API}/health").json()
        assert body["status"] == "ok"

    def test_detailed_health(self, client, services):
        services.vector_store.health_check = MagicMock(return_value=True)

        response = client.get(f"{API}/health/detailed")

        assert response.status_code == 200
        body = response.json()
        assert body["services"] == {"database": "connected", "vector_store": "connected", "llm": "connected"}
        assert body["cache"]["max_size"] == settings.cache_max_size

    def test_degraded_health_is_503(self, client, services, mock_llm_service):
        services.vector_store.health_check = MagicMock(return_value=True)
        mock_llm_service.health_check.return_value = False

        response = client.get(f"{API}/health/detailed")

        assert response.status_code == 503
        assert response.json()["services"]["llm"] == "disconnected"
