"""Knowledge-base retriever: embed the query, search the index, build context."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from private_assistant.config import RetrievalConfig
from private_assistant.errors import RetrievalError
from private_assistant.ingest.embedder import Embedder
from private_assistant.retrieval.vector_store import VectorIndex
from private_assistant.routing.relevance import calculate_query_relevance
from private_assistant.types import SearchResult, VectorSearchResult

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RetrievedContext:
    """Context text for the prompt plus the sources cited with the answer."""

    text: str = ""
    sources: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.text)


class KnowledgeBaseRetriever:
    """Semantic retrieval over the vector index for `rag` decisions."""

    def __init__(
        self,
        index: VectorIndex,
        embedder: Embedder,
        config: RetrievalConfig | None = None,
    ) -> None:
        self.index = index
        self.embedder = embedder
        self.config = config or RetrievalConfig()

    async def search(self, query: str) -> list[VectorSearchResult]:
        try:
            query_embedding = await self.embedder.embed(query)
            hits = await self.index.search_similar(
                query_embedding,
                top_k=self.config.top_k,
                threshold=self.config.similarity_threshold,
            )
        except Exception as exc:
            raise RetrievalError(f"Knowledge base search failed: {exc}") from exc

        for hit in hits:
            logger.debug(
                "Matched %s similarity=%.4f keyword_overlap=%.2f",
                hit.document.name,
                hit.similarity,
                calculate_query_relevance(query, hit.document.content),
            )
        return hits

    async def retrieve(self, query: str) -> RetrievedContext:
        return self.format_hits(await self.search(query))

    def format_hits(self, hits: list[VectorSearchResult]) -> RetrievedContext:
        if not hits:
            return RetrievedContext()
        limit = self.config.snippet_chars
        blocks = [
            f"Document: {hit.document.name}\nContent: {hit.document.content[:limit]}..."
            for hit in hits
        ]
        return RetrievedContext(
            text="\n\n".join(blocks),
            sources=[hit.document.name for hit in hits],
        )


def format_web_results(results: list[SearchResult]) -> RetrievedContext:
    if not results:
        return RetrievedContext()
    return RetrievedContext(
        text="\n\n".join(f"{result.title}\n{result.snippet}" for result in results),
        sources=[result.url for result in results],
    )
