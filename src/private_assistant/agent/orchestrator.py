"""Retrieval orchestrator: route, gather context, build the prompt, generate."""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import AsyncIterator

from private_assistant.agent.generator import CONTEXT_HEADER, Generator
from private_assistant.errors import AssistantError, RetrievalError, WebSearchError
from private_assistant.obs.tracing import Timer, TraceRecord, TraceStore
from private_assistant.retrieval.retriever import (
    KnowledgeBaseRetriever,
    RetrievedContext,
    format_web_results,
)
from private_assistant.routing.relevance import extract_keywords
from private_assistant.routing.router import route_query
from private_assistant.search.web_search import SearchClient
from private_assistant.types import AssistantResponse, ChatMessage, RouteType, RoutingDecision

logger = logging.getLogger(__name__)

SYSTEM_PREAMBLE = """
You are a private AI assistant running entirely on the user's device.

Your core principles:
1. Privacy First: All conversations and data stay on the user's device.
2. Honesty: Be transparent about your limitations.
3. Helpfulness: Provide clear, concise, and actionable responses.
4. Respect: Treat the user with respect and acknowledge their concerns.
""".strip()

EMPTY_RESPONSE_FALLBACK = "I am your private AI assistant. How can I help you today?"


def build_system_prompt(context: str = "") -> str:
    if not context:
        return SYSTEM_PREAMBLE
    return f"{SYSTEM_PREAMBLE}\n\n{CONTEXT_HEADER}{context}"


class RetrievalOrchestrator:
    """Runs one query through routing, retrieval and generation.

    Failure policy differs by source. Knowledge-base retrieval degrades to
    context-free generation and only logs; web search was explicitly enabled
    by the user, so its failures raise `WebSearchError`. Generation failures
    always propagate.
    """

    def __init__(
        self,
        *,
        retriever: KnowledgeBaseRetriever,
        generator: Generator,
        search_client: SearchClient | None = None,
        trace_store: TraceStore | None = None,
    ) -> None:
        self.retriever = retriever
        self.generator = generator
        self.search_client = search_client
        self.trace_store = trace_store or TraceStore()

    def web_search_available(self, web_search_enabled: bool) -> bool:
        return (
            web_search_enabled
            and self.search_client is not None
            and self.search_client.is_configured()
        )

    async def decide(self, query: str, *, web_search_enabled: bool) -> RoutingDecision:
        has_documents = await self.retriever.index.has_documents()
        return route_query(
            query,
            has_local_documents=has_documents,
            web_search_enabled=self.web_search_available(web_search_enabled),
        )

    async def gather_context(self, query: str, decision: RoutingDecision) -> RetrievedContext:
        if decision.route is RouteType.RAG:
            try:
                context = await self.retriever.retrieve(query)
            except RetrievalError:
                logger.exception("RAG search failed; answering without context")
                return RetrievedContext()
            if not context:
                logger.info("No documents above the similarity threshold")
            return context

        if decision.route is RouteType.WEB:
            if self.search_client is None:
                raise WebSearchError("No search client configured")
            try:
                results = await self.search_client.search(query)
            except AssistantError:
                logger.exception("Web search failed")
                raise
            except Exception as exc:
                logger.exception("Web search failed")
                raise WebSearchError(f"Web search failed: {exc}") from exc
            return format_web_results(results)

        return RetrievedContext()

    async def answer(
        self,
        query: str,
        history: list[ChatMessage] | None = None,
        *,
        web_search_enabled: bool = False,
    ) -> AssistantResponse:
        """Answer `query`. `history` is the conversation ending with the query turn."""

        history = history if history is not None else [_user_message(query)]
        decision = await self.decide(query, web_search_enabled=web_search_enabled)
        logger.info("Routed query to %s: %s", decision.route.value, decision.reason)

        context = RetrievedContext()
        try:
            with Timer() as timer:
                context = await self.gather_context(query, decision)
                response = await self.generator.generate(
                    history, build_system_prompt(context.text)
                )
        except Exception as exc:
            self._record(query, decision, context, "", timer.elapsed_ms, error=str(exc))
            raise

        record = self._record(query, decision, context, response, timer.elapsed_ms)
        return AssistantResponse(
            content=response or EMPTY_RESPONSE_FALLBACK,
            sources=list(context.sources),
            decision=decision,
            trace_id=record.trace_id,
        )

    async def stream(
        self,
        query: str,
        history: list[ChatMessage] | None = None,
        *,
        web_search_enabled: bool = False,
    ) -> AsyncIterator[str]:
        """Stream the answer text; context gathering happens before the first chunk."""

        history = history if history is not None else [_user_message(query)]
        decision = await self.decide(query, web_search_enabled=web_search_enabled)
        context = await self.gather_context(query, decision)
        async for chunk in self.generator.stream(history, build_system_prompt(context.text)):
            yield chunk

    def _record(
        self,
        query: str,
        decision: RoutingDecision,
        context: RetrievedContext,
        output: str,
        latency_ms: float,
        *,
        error: str | None = None,
    ) -> TraceRecord:
        return self.trace_store.create_record(
            query=query,
            route=decision.route.value,
            reason=decision.reason,
            keywords=extract_keywords(query),
            sources=list(context.sources),
            context_chars=len(context.text),
            output=output,
            latency_ms=latency_ms,
            error=error,
        )


def _user_message(query: str) -> ChatMessage:
    return ChatMessage(
        id=uuid.uuid4().hex,
        role="user",
        content=query,
        timestamp=int(time.time() * 1000),
    )
