"""FastAPI entrypoint for documents, chat, settings and trace endpoints."""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from private_assistant.agent.conversation import ChatSession
from private_assistant.agent.generator import DeterministicGenerator, Generator, LangChainGenerator
from private_assistant.agent.orchestrator import RetrievalOrchestrator
from private_assistant.config import EmbeddingConfig, GenerationConfig, RetrievalConfig
from private_assistant.errors import (
    AssistantError,
    ConfigurationError,
    ConversationBusyError,
    GenerationError,
    WebSearchError,
)
from private_assistant.ingest.embedder import Embedder, HashingEmbedder
from private_assistant.ingest.parser import UnsupportedFileTypeError
from private_assistant.ingest.pipeline import DocumentIngestor
from private_assistant.obs.log import setup_logging
from private_assistant.obs.tracing import TraceStore
from private_assistant.retrieval.retriever import KnowledgeBaseRetriever
from private_assistant.retrieval.vector_store import (
    DocumentStore,
    InMemoryDocumentStore,
    JsonFileDocumentStore,
    VectorIndex,
)
from private_assistant.routing.classifier import is_real_time_query
from private_assistant.routing.relevance import extract_keywords
from private_assistant.search.credentials import (
    SEARCH_API_KEY,
    CredentialStore,
    FileCredentialStore,
    InMemoryCredentialStore,
)
from private_assistant.search.web_search import TavilySearchClient
from private_assistant.types import Document


def _create_llm() -> Any:
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        return None

    from langchain_openai import ChatOpenAI

    config = GenerationConfig()
    return ChatOpenAI(
        model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
        temperature=config.temperature,
        max_tokens=config.max_tokens,
    )


@dataclass(slots=True)
class AssistantServices:
    """Collaborators constructed once and shared by every request."""

    index: VectorIndex
    embedder: Embedder
    ingestor: DocumentIngestor
    search_client: TavilySearchClient
    generator: Generator
    orchestrator: RetrievalOrchestrator
    session: ChatSession
    trace_store: TraceStore


def build_services(
    *,
    document_store: DocumentStore | None = None,
    credentials: CredentialStore | None = None,
    embedder: Embedder | None = None,
    generator: Generator | None = None,
    search_client: TavilySearchClient | None = None,
) -> AssistantServices:
    """Wire collaborators. Defaults honor ASSISTANT_DATA_DIR and OPENAI_API_KEY."""

    data_dir = os.getenv("ASSISTANT_DATA_DIR")
    if document_store is None:
        document_store = (
            JsonFileDocumentStore(Path(data_dir) / "documents.json")
            if data_dir
            else InMemoryDocumentStore()
        )
    if credentials is None:
        credentials = (
            FileCredentialStore(Path(data_dir) / "credentials.json")
            if data_dir
            else InMemoryCredentialStore()
        )
        env_key = os.getenv("TAVILY_API_KEY")
        if env_key and credentials.get(SEARCH_API_KEY) is None:
            credentials.set(SEARCH_API_KEY, env_key)

    embedding_config = EmbeddingConfig()
    embedder = embedder or HashingEmbedder(dimension=embedding_config.dimension)
    index = VectorIndex(document_store, dimension=embedder.dimension)
    if generator is None:
        llm = _create_llm()
        generator = LangChainGenerator(llm) if llm is not None else DeterministicGenerator()
    search_client = search_client or TavilySearchClient(credentials)
    trace_store = TraceStore()
    orchestrator = RetrievalOrchestrator(
        retriever=KnowledgeBaseRetriever(index, embedder, RetrievalConfig()),
        generator=generator,
        search_client=search_client,
        trace_store=trace_store,
    )
    return AssistantServices(
        index=index,
        embedder=embedder,
        ingestor=DocumentIngestor(index, embedder),
        search_client=search_client,
        generator=generator,
        orchestrator=orchestrator,
        session=ChatSession(orchestrator),
        trace_store=trace_store,
    )


class DocumentRequest(BaseModel):
    name: str = Field(min_length=1)
    content: str = Field(min_length=1)


class IngestPathRequest(BaseModel):
    path: str = Field(min_length=1)


class ChatRequest(BaseModel):
    message: str = Field(min_length=1)


class RouteRequest(BaseModel):
    query: str = Field(min_length=1)
    web_search_enabled: bool = False


class SearchKeyRequest(BaseModel):
    api_key: str = Field(min_length=1)


def _document_payload(document: Document) -> dict[str, Any]:
    payload = asdict(document)
    payload.pop("embedding", None)
    payload["embedding_status"] = document.embedding_status.value
    return payload


def _http_error(exc: AssistantError) -> HTTPException:
    if isinstance(exc, ConversationBusyError):
        status = 409
    elif isinstance(exc, ConfigurationError):
        status = 400
    elif isinstance(exc, (WebSearchError, GenerationError)):
        status = 502
    else:
        status = 500
    return HTTPException(status_code=status, detail=exc.user_message)


def create_app(services: AssistantServices | None = None) -> FastAPI:
    services = services or build_services()
    app = FastAPI(title="Private Assistant", version="0.1.0")
    app.state.services = services

    @app.get("/health")
    async def health() -> dict[str, Any]:
        await services.index.initialize()
        return {
            "status": "ok",
            "llm_configured": isinstance(services.generator, LangChainGenerator),
            "search": services.search_client.status(),
            "documents": services.index.stats().document_count,
            "upload_extensions": services.ingestor.supported_extensions,
        }

    @app.post("/documents")
    async def upload_document(request: DocumentRequest) -> dict[str, Any]:
        document = await services.ingestor.ingest_text(request.name, request.content)
        return _document_payload(document)

    @app.post("/documents/ingest")
    async def ingest_document(request: IngestPathRequest) -> dict[str, Any]:
        try:
            document = await services.ingestor.ingest_path(request.path)
        except UnsupportedFileTypeError as exc:
            raise HTTPException(
                status_code=400,
                detail={"message": str(exc), "supported_extensions": exc.supported},
            ) from exc
        except (OSError, ValueError) as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return _document_payload(document)

    @app.get("/documents")
    async def list_documents() -> dict[str, Any]:
        documents = await services.index.get_all()
        return {"items": [_document_payload(doc) for doc in documents]}

    @app.get("/documents/stats")
    async def document_stats() -> dict[str, Any]:
        await services.index.initialize()
        return asdict(services.index.stats())

    @app.delete("/documents/{document_id}")
    async def delete_document(document_id: str) -> dict[str, Any]:
        if await services.index.get(document_id) is None:
            raise HTTPException(status_code=404, detail=f"Document not found: {document_id}")
        await services.index.delete(document_id)
        return {"deleted": document_id}

    @app.delete("/documents")
    async def clear_documents() -> dict[str, Any]:
        await services.index.clear_all()
        return {"cleared": True}

    @app.post("/route")
    async def preview_route(request: RouteRequest) -> dict[str, Any]:
        decision = await services.orchestrator.decide(
            request.query, web_search_enabled=request.web_search_enabled
        )
        return {
            "route": decision.route.value,
            "reason": decision.reason,
            "context": decision.context,
            "real_time": is_real_time_query(request.query),
            "keywords": extract_keywords(request.query),
        }

    @app.post("/chat")
    async def chat(request: ChatRequest) -> dict[str, Any]:
        try:
            message = await services.session.submit(request.message)
        except AssistantError as exc:
            raise _http_error(exc) from exc
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        trace = services.trace_store.list_recent(limit=1)
        return {
            "message": asdict(message),
            "route": trace[0].route if trace else None,
            "trace_id": trace[0].trace_id if trace else None,
        }

    @app.get("/chat")
    async def chat_state() -> dict[str, Any]:
        return asdict(services.session.state)

    @app.post("/chat/web-search")
    async def toggle_web_search() -> dict[str, Any]:
        return {"web_search_enabled": services.session.toggle_web_search()}

    @app.delete("/chat")
    async def clear_chat() -> dict[str, Any]:
        await services.session.clear()
        return {"cleared": True}

    @app.put("/settings/search-key")
    async def set_search_key(request: SearchKeyRequest) -> dict[str, Any]:
        try:
            services.search_client.set_api_key(request.api_key)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {"configured": services.search_client.is_configured()}

    @app.delete("/settings/search-key")
    async def clear_search_key() -> dict[str, Any]:
        services.search_client.clear_api_key()
        return {"configured": services.search_client.is_configured()}

    @app.get("/traces")
    async def traces(limit: int = 20) -> dict[str, Any]:
        return {"items": [asdict(record) for record in services.trace_store.list_recent(limit)]}

    @app.get("/traces/{trace_id}")
    async def trace_detail(trace_id: str) -> dict[str, Any]:
        try:
            record = services.trace_store.get(trace_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return asdict(record)

    @app.get("/metrics")
    async def metrics() -> dict[str, Any]:
        return services.trace_store.summary()

    return app


setup_logging()
app = create_app()
