"""Vector index over knowledge-base documents and its persistence adapters."""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from dataclasses import replace
from math import sqrt
from pathlib import Path
from typing import Protocol

from pydantic import TypeAdapter

from private_assistant.errors import DimensionMismatchError
from private_assistant.lifecycle import LazyInitMixin
from private_assistant.types import (
    Document,
    EmbeddingStatus,
    IndexStats,
    VectorSearchResult,
)

logger = logging.getLogger(__name__)

_DOCUMENTS_ADAPTER = TypeAdapter(list[Document])


class DocumentStore(Protocol):
    """Durable key-value store for the full document set."""

    def load(self) -> list[Document]:
        """Return every persisted document in insertion order."""

    def save(self, documents: list[Document]) -> None:
        """Replace the persisted document set atomically."""


class InMemoryDocumentStore:
    """Store used for tests and ephemeral sessions."""

    def __init__(self, documents: list[Document] | None = None) -> None:
        self._payload = _DOCUMENTS_ADAPTER.dump_json(documents or [])

    def load(self) -> list[Document]:
        return _DOCUMENTS_ADAPTER.validate_json(self._payload)

    def save(self, documents: list[Document]) -> None:
        self._payload = _DOCUMENTS_ADAPTER.dump_json(documents)


class JsonFileDocumentStore:
    """JSON file store. Writes go to a temp file that replaces the target.

    A crash mid-write leaves the previous file intact.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> list[Document]:
        if not self.path.exists():
            return []
        return _DOCUMENTS_ADAPTER.validate_json(self.path.read_bytes())

    def save(self, documents: list[Document]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = _DOCUMENTS_ADAPTER.dump_json(documents)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        _fsync_directory(self.path.parent)


class VectorIndex(LazyInitMixin):
    """Owns documents and their embeddings; sole writer of persisted state.

    Every mutation persists the complete new document set before it becomes
    visible in memory. Mutations are not locked: callers serialize them (one
    outstanding mutation per conversation).
    """

    def __init__(self, store: DocumentStore, *, dimension: int = 384) -> None:
        self._store = store
        self.dimension = dimension
        self._documents: dict[str, Document] = {}

    async def _initialize(self) -> None:
        documents = await asyncio.to_thread(self._store.load)
        self._documents = {doc.id: doc for doc in documents}
        logger.info("Vector index initialized with %d documents", len(self._documents))

    async def add_pending(self, document: Document) -> Document:
        """Register an uploaded document whose embedding is not computed yet."""
        await self.initialize()
        pending = replace(document, embedding_status=EmbeddingStatus.PENDING, embedding=None)
        await self._commit({**self._documents, pending.id: pending})
        return pending

    async def store(self, document: Document, embedding: list[float]) -> Document:
        """Attach `embedding` to `document`, overwriting any entry with its id."""
        await self.initialize()
        stored = replace(
            document,
            embedding=list(embedding),
            embedding_status=EmbeddingStatus.COMPLETED,
        )
        await self._commit({**self._documents, stored.id: stored})
        logger.info("Stored document %s (%s)", stored.name, stored.id)
        return stored

    async def mark_failed(self, document_id: str) -> Document | None:
        await self.initialize()
        current = self._documents.get(document_id)
        if current is None:
            return None
        failed = replace(current, embedding_status=EmbeddingStatus.FAILED, embedding=None)
        await self._commit({**self._documents, document_id: failed})
        logger.warning("Embedding failed for document %s", document_id)
        return failed

    async def search_similar(
        self,
        query_embedding: list[float],
        top_k: int = 5,
        threshold: float = 0.5,
    ) -> list[VectorSearchResult]:
        """Rank embedded documents by cosine similarity to the query.

        Documents without an embedding are skipped. Results below `threshold`
        are dropped; ties keep insertion order.
        """

        await self.initialize()
        results: list[VectorSearchResult] = []
        for document in self._documents.values():
            if document.embedding is None:
                continue
            similarity = cosine_similarity(query_embedding, document.embedding)
            if similarity >= threshold:
                results.append(VectorSearchResult(document=document, similarity=similarity))

        results.sort(key=lambda item: item.similarity, reverse=True)
        return results[: max(top_k, 0)]

    async def delete(self, document_id: str) -> None:
        await self.initialize()
        remaining = {key: doc for key, doc in self._documents.items() if key != document_id}
        await self._commit(remaining)
        logger.info("Deleted document %s", document_id)

    async def clear_all(self) -> None:
        await self.initialize()
        await self._commit({})
        logger.info("Cleared all documents")

    async def get_all(self) -> list[Document]:
        await self.initialize()
        return list(self._documents.values())

    async def get(self, document_id: str) -> Document | None:
        await self.initialize()
        return self._documents.get(document_id)

    async def has_documents(self) -> bool:
        await self.initialize()
        return bool(self._documents)

    def stats(self) -> IndexStats:
        """Counts over the loaded set; callers initialize the index first."""
        return IndexStats(
            document_count=len(self._documents),
            total_size_bytes=sum(doc.size for doc in self._documents.values()),
            embedding_dimension=self.dimension,
        )

    async def _commit(self, documents: dict[str, Document]) -> None:
        await asyncio.to_thread(self._store.save, list(documents.values()))
        self._documents = documents


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine of the angle between `a` and `b`; 0.0 if either norm is zero."""
    if len(a) != len(b):
        raise DimensionMismatchError(len(a), len(b))
    numerator = sum(x * y for x, y in zip(a, b, strict=True))
    norm_a = sqrt(sum(x * x for x in a))
    norm_b = sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return numerator / (norm_a * norm_b)


def _fsync_directory(directory: Path) -> None:
    """Flush the directory entry so the rename survives a crash."""
    fd = os.open(directory, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)
