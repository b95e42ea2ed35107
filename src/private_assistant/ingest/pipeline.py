"""Document upload pipeline: parse -> register pending -> embed -> store."""

from __future__ import annotations

import logging
import time
import uuid
from pathlib import Path

from private_assistant.ingest.embedder import Embedder
from private_assistant.ingest.parser import ParserRegistry
from private_assistant.retrieval.vector_store import VectorIndex
from private_assistant.types import Document

logger = logging.getLogger(__name__)


class DocumentIngestor:
    """Adds documents to the knowledge base and drives their embedding status.

    A document is visible as `pending` as soon as it is registered. It moves
    to `completed` once its embedding is stored, or to `failed` if the
    embedding collaborator raises. Embedding failures do not propagate.
    """

    def __init__(
        self,
        index: VectorIndex,
        embedder: Embedder,
        parser_registry: ParserRegistry | None = None,
    ) -> None:
        self._index = index
        self._embedder = embedder
        self._parser_registry = parser_registry or ParserRegistry()

    async def ingest_text(
        self,
        name: str,
        content: str,
        *,
        document_id: str | None = None,
    ) -> Document:
        document = Document(
            id=document_id or uuid.uuid4().hex,
            name=name,
            content=content,
            size=len(content.encode("utf-8")),
            uploaded_at=int(time.time() * 1000),
        )
        pending = await self._index.add_pending(document)

        try:
            embedding = await self._embedder.embed_document(name, content)
        except Exception:
            logger.exception("Document embedding failed for %s", name)
            failed = await self._index.mark_failed(pending.id)
            return failed or pending

        return await self._index.store(pending, embedding)

    async def ingest_path(
        self,
        path: str | Path,
        *,
        document_id: str | None = None,
    ) -> Document:
        """Parse a source file and ingest its text."""

        parsed = self._parser_registry.parse_path(path)
        return await self.ingest_text(parsed.name, parsed.text, document_id=document_id)

    @property
    def supported_extensions(self) -> list[str]:
        return self._parser_registry.supported_extensions
