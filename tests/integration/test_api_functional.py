import httpx
from fastapi.testclient import TestClient

from private_assistant.agent.generator import DeterministicGenerator
from private_assistant.api.main import build_services, create_app
from private_assistant.config import SearchConfig
from private_assistant.retrieval.vector_store import InMemoryDocumentStore, JsonFileDocumentStore
from private_assistant.search.credentials import InMemoryCredentialStore
from private_assistant.search.web_search import TavilySearchClient
from private_assistant.types import Document

POLICY = "Company policy states employees must encrypt customer data at rest."


def _app(search_status: int = 401):
    credentials = InMemoryCredentialStore()
    transport = httpx.MockTransport(lambda request: httpx.Response(search_status, json={"results": []}))
    search_client = TavilySearchClient(
        credentials,
        SearchConfig(max_attempts=1),
        http_client=httpx.AsyncClient(transport=transport),
    )
    services = build_services(
        document_store=InMemoryDocumentStore(),
        credentials=credentials,
        generator=DeterministicGenerator(),
        search_client=search_client,
    )
    return create_app(services)


def test_api_documents_route_chat_traces_metrics(tmp_path) -> None:
    with TestClient(_app()) as client:
        assert client.get("/health").json()["status"] == "ok"

        route = client.post("/route", json={"query": "What is the weather today?", "web_search_enabled": True})
        assert route.json()["route"] == "llm"
        assert route.json()["real_time"] is True

        assert client.put("/settings/search-key", json={"api_key": "tvly-x"}).json()["configured"]
        route = client.post("/route", json={"query": "What is the weather today?", "web_search_enabled": True})
        assert route.json()["route"] == "web"
        assert client.delete("/settings/search-key").json()["configured"] is False

        upload = client.post("/documents", json={"name": "policy.txt", "content": POLICY})
        assert upload.status_code == 200
        doc = upload.json()
        assert doc["embedding_status"] == "completed"
        assert "embedding" not in doc

        notes = tmp_path / "notes.md"
        notes.write_text("# Notes\nShip the release on Friday.", encoding="utf-8")
        ingested = client.post("/documents/ingest", json={"path": str(notes)})
        assert ingested.status_code == 200
        assert ingested.json()["name"] == "notes.md"

        assert len(client.get("/documents").json()["items"]) == 2
        assert client.get("/documents/stats").json()["document_count"] == 2

        route = client.post("/route", json={"query": "anything at all"})
        assert route.json()["route"] == "rag"
        assert route.json()["keywords"] == ["anything"]

        chat = client.post("/chat", json={"message": POLICY})
        assert chat.status_code == 200
        payload = chat.json()
        assert payload["route"] == "rag"
        assert payload["message"]["sources"] == ["policy.txt"]
        assert payload["message"]["content"].startswith("Here is what I found:")

        trace = client.get(f"/traces/{payload['trace_id']}")
        assert trace.status_code == 200
        assert trace.json()["sources"] == ["policy.txt"]
        assert client.get("/traces/missing").status_code == 404
        assert client.get("/metrics").json()["total_requests"] == 1

        state = client.get("/chat").json()
        assert [m["role"] for m in state["messages"]] == ["user", "assistant"]

        assert client.delete(f"/documents/{doc['id']}").status_code == 200
        assert client.delete(f"/documents/{doc['id']}").status_code == 404
        assert client.delete("/documents").json()["cleared"] is True
        assert client.get("/documents/stats").json()["document_count"] == 0


def test_api_web_search_failure_is_user_visible() -> None:
    with TestClient(_app(search_status=401)) as client:
        client.put("/settings/search-key", json={"api_key": "tvly-bad"})
        assert client.post("/chat/web-search").json()["web_search_enabled"] is True

        response = client.post("/chat", json={"message": "Latest news"})

        assert response.status_code == 502
        assert response.json()["detail"] == "Web search failed. Please check your API key."
        state = client.get("/chat").json()
        assert [m["role"] for m in state["messages"]] == ["user"]
        assert state["error"] == "Web search failed. Please check your API key."
        assert state["is_loading"] is False


def test_api_rejects_empty_search_key() -> None:
    with TestClient(_app()) as client:
        assert client.put("/settings/search-key", json={"api_key": "   "}).status_code == 400


def test_health_reports_persisted_documents_on_fresh_start(tmp_path) -> None:
    path = tmp_path / "documents.json"
    JsonFileDocumentStore(path).save(
        [Document(id="a", name="a.txt", content="alpha", size=5, uploaded_at=1)]
    )
    services = build_services(
        document_store=JsonFileDocumentStore(path),
        credentials=InMemoryCredentialStore(),
        generator=DeterministicGenerator(),
    )

    with TestClient(create_app(services)) as client:
        health = client.get("/health").json()

    assert health["documents"] == 1
    assert ".md" in health["upload_extensions"]


def test_ingest_unsupported_file_lists_supported_extensions(tmp_path) -> None:
    image = tmp_path / "scan.bmp"
    image.write_bytes(b"\x00")

    with TestClient(_app()) as client:
        response = client.post("/documents/ingest", json={"path": str(image)})

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["supported_extensions"] == [".json", ".log", ".markdown", ".md", ".txt"]
    assert ".bmp" in detail["message"]
