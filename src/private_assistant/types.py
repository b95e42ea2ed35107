"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class RouteType(str, Enum):
    """Answer source selected for a query.

    `LOCAL` is reserved and never produced by the router.
    """

    LOCAL = "local"
    RAG = "rag"
    WEB = "web"
    LLM = "llm"


class EmbeddingStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class RoutingDecision:
    """Routing outcome for one query. `context` is informational only."""

    route: RouteType
    reason: str
    context: str | None = None


@dataclass(slots=True)
class Document:
    """A knowledge-base document and its embedding lifecycle state."""

    id: str
    name: str
    content: str
    size: int
    uploaded_at: int
    embedding_status: EmbeddingStatus = EmbeddingStatus.PENDING
    embedding: list[float] | None = None


@dataclass(slots=True)
class ParsedDocument:
    """A parsed source file before it becomes a knowledge-base document."""

    name: str
    text: str
    metadata: dict[str, Any]


@dataclass(slots=True)
class SearchResult:
    title: str
    url: str
    snippet: str
    domain: str


@dataclass(slots=True)
class VectorSearchResult:
    document: Document
    similarity: float


@dataclass(slots=True)
class IndexStats:
    document_count: int
    total_size_bytes: int
    embedding_dimension: int


@dataclass(slots=True)
class ChatMessage:
    """One turn of a conversation."""

    id: str
    role: str
    content: str
    timestamp: int
    sources: list[str] = field(default_factory=list)


@dataclass(slots=True)
class AssistantResponse:
    """Generated answer tagged with the sources that informed it."""

    content: str
    sources: list[str]
    decision: RoutingDecision
    trace_id: str | None = None
