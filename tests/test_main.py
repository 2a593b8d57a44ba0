"""Tests for the HTTP routes."""
import io

import pytest
from werkzeug.datastructures import FileStorage

from pdfqa import config
from pdfqa.errors import CompletionError
from pdfqa.main import Services, create_app
from pdfqa.rag.ingest import IngestPipeline
from pdfqa.rag.retriever import Retriever

AUTH = {"Authorization": "Bearer secret"}


@pytest.fixture
def services(word_chunker, make_embedder, make_provider, json_store, citing_completion):
    embedder = make_embedder(make_provider())
    return Services(
        ingest=IngestPipeline(word_chunker, embedder, json_store),
        retriever=Retriever(embedder, json_store, citing_completion),
        vector_store=json_store,
    )


@pytest.fixture
def client(services, monkeypatch):
    monkeypatch.setattr(config, "API_AUTH_TOKEN", "secret")
    return create_app(services).test_client()


def pdf_upload(data: bytes, filename: str = "report.pdf", content_type: str = "application/pdf"):
    return {"file": FileStorage(io.BytesIO(data), filename=filename, content_type=content_type)}


@pytest.mark.asyncio
async def test_upload_then_ask(client, make_pdf):
    data = make_pdf("The warranty lasts two years. Returns are accepted within thirty days.")

    response = await client.post("/api/upload", files=pdf_upload(data), headers=AUTH)
    assert response.status_code == 200
    uploaded = await response.get_json()
    assert uploaded["ok"] is True
    assert uploaded["namespace"].startswith("report-")
    assert uploaded["chunks"] == uploaded["vectorCount"] >= 1
    assert uploaded["metadata"]["filename"] == "report.pdf"

    response = await client.post(
        "/api/ask",
        json={"namespace": uploaded["namespace"], "question": "How long is the warranty?", "topK": 3},
        headers=AUTH,
    )
    assert response.status_code == 200
    body = await response.get_json()
    assert body["citations"][0]["id"].startswith(uploaded["namespace"] + "-chunk-")
    assert "warranty" in body["citations"][0]["text"]
    assert body["metadata"]["citationsUsed"] == 1


@pytest.mark.asyncio
async def test_ask_unknown_namespace(client):
    response = await client.post(
        "/api/ask", json={"namespace": "nothing-1", "question": "Anything?"}, headers=AUTH
    )

    assert response.status_code == 200
    body = await response.get_json()
    assert body["citations"] == []
    assert body["metadata"] == {"chunksFound": 0, "citationsUsed": 0}


@pytest.mark.asyncio
async def test_missing_authorization(client):
    response = await client.post("/api/ask", json={"namespace": "a", "question": "b"})

    assert response.status_code == 401
    assert (await response.get_json())["error"] == "Missing authorization header"


@pytest.mark.asyncio
@pytest.mark.parametrize("header", ["Token secret", "Bearer wrong", "secret"])
async def test_bad_authorization(client, header):
    response = await client.post(
        "/api/ask", json={"namespace": "a", "question": "b"}, headers={"Authorization": header}
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_auth_not_configured(client, monkeypatch):
    monkeypatch.setattr(config, "API_AUTH_TOKEN", None)

    response = await client.post("/api/ask", json={"namespace": "a", "question": "b"}, headers=AUTH)

    assert response.status_code == 500
    assert (await response.get_json())["error"] == "Authentication not configured"


@pytest.mark.asyncio
async def test_ask_invalid_json(client):
    response = await client.post(
        "/api/ask",
        data="{not json",
        headers={**AUTH, "Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert (await response.get_json())["error"] == "Invalid JSON in request body"


@pytest.mark.asyncio
async def test_ask_missing_fields(client):
    response = await client.post("/api/ask", json={"namespace": "doc"}, headers=AUTH)

    assert response.status_code == 400
    assert "namespace and question" in (await response.get_json())["error"]


@pytest.mark.asyncio
@pytest.mark.parametrize("top_k", [0, 25])
async def test_ask_top_k_out_of_range(client, top_k):
    response = await client.post(
        "/api/ask", json={"namespace": "doc", "question": "Why?", "topK": top_k}, headers=AUTH
    )

    assert response.status_code == 400
    assert (await response.get_json())["error"] == "topK must be between 1 and 20"


@pytest.mark.asyncio
async def test_upload_requires_file(client):
    response = await client.post("/api/upload", form={"other": "value"}, headers=AUTH)

    assert response.status_code == 400
    assert (await response.get_json())["error"] == "PDF file required"


@pytest.mark.asyncio
async def test_upload_rejects_non_pdf(client):
    response = await client.post(
        "/api/upload",
        files=pdf_upload(b"hello", filename="notes.txt", content_type="text/plain"),
        headers=AUTH,
    )

    assert response.status_code == 400
    assert "Only PDF files" in (await response.get_json())["error"]


@pytest.mark.asyncio
async def test_upload_pdf_without_text(client, make_pdf):
    response = await client.post("/api/upload", files=pdf_upload(make_pdf("")), headers=AUTH)

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_health_endpoints(client, services):
    live = await client.get("/health/live")
    assert live.status_code == 200

    ready = await client.get("/health/ready")
    assert ready.status_code == 200
    assert (await ready.get_json())["store"] == "JsonVectorStore"

    services.provider_configured = False
    ready = await client.get("/health/ready")
    assert ready.status_code == 503


@pytest.mark.asyncio
@pytest.mark.parametrize("top_k", [True, "5", 3.0, None])
async def test_ask_top_k_must_be_integer(client, services, top_k):
    completion = services.retriever.completion

    response = await client.post(
        "/api/ask", json={"namespace": "doc", "question": "Why?", "topK": top_k}, headers=AUTH
    )

    assert response.status_code == 400
    assert (await response.get_json())["error"] == "topK must be between 1 and 20"
    assert completion.calls == []


@pytest.mark.asyncio
async def test_ask_question_must_be_string(client):
    response = await client.post(
        "/api/ask", json={"namespace": "doc", "question": 42}, headers=AUTH
    )

    assert response.status_code == 400
    assert (await response.get_json())["error"] == "question must be a string"


@pytest.mark.asyncio
async def test_ask_malformed_provider_response(client, services, monkeypatch, make_pdf):
    async def broken_complete(system_instruction, user_prompt):
        raise CompletionError("Malformed completion response: KeyError('choices')")

    upload = await client.post("/api/upload", files=pdf_upload(make_pdf("The fee is ten euros.")), headers=AUTH)
    namespace = (await upload.get_json())["namespace"]
    monkeypatch.setattr(services.retriever.completion, "complete", broken_complete)

    response = await client.post(
        "/api/ask", json={"namespace": namespace, "question": "What is the fee?"}, headers=AUTH
    )

    assert response.status_code == 500
    assert "Malformed completion response" in (await response.get_json())["error"]
