"""Unit tests for the serving layer."""

from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from smartdoc.config import Settings
from smartdoc.serving.app import create_app
from smartdoc.serving.services import Services


@pytest.fixture()
def client(ingestion, generation, registry, conversations) -> TestClient:
    services = Services(ingestion=ingestion, generation=generation, registry=registry, conversations=conversations)
    return TestClient(create_app(Settings(), services))


def _lines(response) -> list[dict]:
    return [json.loads(line) for line in response.text.splitlines() if line]


def test_health_endpoint(client: TestClient) -> None:
    """GET /health should return 200 with status ok."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_chat_stream_is_ndjson(client: TestClient) -> None:
    response = client.post("/api/chat/stream", json={"prompt": "What is a pod?"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/x-ndjson")
    lines = _lines(response)
    assert list(lines[0]) == ["conversationId"]
    assert [line["content"] for line in lines[1:3]] == ["Hello ", "world"]
    assert len(lines[3]["sources"]) == 2


def test_chat_then_conversation_lookup(client: TestClient) -> None:
    answer = client.post("/api/chat", json={"prompt": "What is a pod?"}).json()
    assert answer["message"] == "Hello world"

    conversation = client.get(f"/api/conversations/{answer['conversationId']}").json()
    assert [m["role"] for m in conversation["messages"]] == ["user", "assistant"]
    assert client.get("/api/conversations").json()[0]["title"] == "What is a pod?"


def test_blank_prompt_is_400(client: TestClient) -> None:
    assert client.post("/api/chat/stream", json={"prompt": "   "}).status_code == 400
    assert client.post("/api/chat", json={"prompt": ""}).status_code == 422


def test_upload_list_delete(client: TestClient) -> None:
    response = client.post("/api/documents/upload", files={"file": ("notes.txt", b"Some notes.", "text/plain")})
    assert response.status_code == 201
    document_id = response.json()["documentId"]

    listed = client.get("/api/documents").json()["documents"]
    assert [(d["id"], d["chunks"]) for d in listed] == [(document_id, 1)]

    assert client.delete(f"/api/documents/{document_id}").json() == {"deleted": True}
    assert client.delete(f"/api/documents/{document_id}").status_code == 404


def test_upload_rejects_unsupported_type(client: TestClient) -> None:
    response = client.post("/api/documents/upload", files={"file": ("img.png", b"\x89PNG", "image/png")})
    assert response.status_code == 400


def test_upload_stream_progress(client: TestClient) -> None:
    response = client.post(
        "/api/documents/upload-stream", files={"file": ("guide.md", b"# Guide\n\nHello.", "text/markdown")}
    )
    stages = [line.get("stage") for line in _lines(response)]
    assert stages == ["parsing", "chunking", "indexing", "done"]


def test_failed_vector_delete_is_409(client: TestClient, index) -> None:
    document_id = client.post(
        "/api/documents/upload", files={"file": ("a.txt", b"text", "text/plain")}
    ).json()["documentId"]
    index.fail_delete = True

    assert client.delete(f"/api/documents/{document_id}").status_code == 409
    assert len(client.get("/api/documents").json()["documents"]) == 1


def test_unknown_conversation_is_404(client: TestClient) -> None:
    assert client.get("/api/conversations/missing").status_code == 404
    assert client.delete("/api/conversations/missing").json() == {"deleted": False}
