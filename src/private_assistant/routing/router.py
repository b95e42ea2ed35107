"""Query router choosing between knowledge base, web search and local model."""

from __future__ import annotations

from private_assistant.routing.classifier import is_real_time_query
from private_assistant.types import RouteType, RoutingDecision

_RAG_DECISION = RoutingDecision(
    route=RouteType.RAG,
    reason="User has uploaded documents. Performing semantic search first.",
    context="Will search local documents and use RAG if relevant content found.",
)

_WEB_DECISION = RoutingDecision(
    route=RouteType.WEB,
    reason="Query appears to be about real-time information. Using web search.",
    context="Will fetch latest web results and synthesize with the local model.",
)

_LLM_DECISION = RoutingDecision(
    route=RouteType.LLM,
    reason="Using local LLM for general knowledge question.",
    context="Query will be processed by the on-device model.",
)


def route_query(
    query: str,
    has_local_documents: bool,
    web_search_enabled: bool,
) -> RoutingDecision:
    """Pick the answer source for a query. First matching rule wins.

    1. Any local documents -> `rag`, whatever the query says. Relevance is
       decided later by the retrieval threshold, not here.
    2. Real-time query with web search enabled -> `web`.
    3. Otherwise -> `llm`.
    """

    if has_local_documents:
        return _RAG_DECISION
    if web_search_enabled and is_real_time_query(query):
        return _WEB_DECISION
    return _LLM_DECISION
