"""Web search collaborator backed by the Tavily search API."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any
from urllib.parse import urlparse

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from private_assistant.config import SearchConfig
from private_assistant.errors import SearchNotConfiguredError, WebSearchError
from private_assistant.lifecycle import LazyInitMixin
from private_assistant.search.credentials import SEARCH_API_KEY, CredentialStore
from private_assistant.types import SearchResult

logger = logging.getLogger(__name__)

TRANSIENT_HTTP_CODES: frozenset[int] = frozenset({408, 429, 500, 502, 503, 504})


class SearchClient(LazyInitMixin, ABC):
    """Search collaborator contract."""

    @abstractmethod
    def is_configured(self) -> bool:
        """Whether a credential is available, i.e. web search can be used."""

    @abstractmethod
    async def search(self, query: str) -> list[SearchResult]:
        """Return ranked results; raises when unconfigured or the call fails."""


class TavilySearchClient(SearchClient):
    """Async Tavily client. The API key is read from a credential store."""

    def __init__(
        self,
        credentials: CredentialStore,
        config: SearchConfig | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._credentials = credentials
        self.config = config or SearchConfig()
        self._http_client = http_client
        self._api_key: str | None = None

    async def _initialize(self) -> None:
        self._api_key = self._credentials.get(SEARCH_API_KEY)
        logger.info("Search client initialized (configured=%s)", self._api_key is not None)

    def is_configured(self) -> bool:
        if self._api_key is None:
            self._api_key = self._credentials.get(SEARCH_API_KEY)
        return bool(self._api_key)

    def set_api_key(self, key: str) -> None:
        self._credentials.set(SEARCH_API_KEY, key)
        self._api_key = key.strip()

    def clear_api_key(self) -> None:
        self._credentials.delete(SEARCH_API_KEY)
        self._api_key = None

    async def search(self, query: str) -> list[SearchResult]:
        payload = await self._post(query)
        return [_to_search_result(item) for item in payload.get("results", [])]

    async def search_with_answer(self, query: str) -> tuple[str, list[SearchResult]]:
        """Search and also return the API's synthesized answer."""
        payload = await self._post(query)
        results = [_to_search_result(item) for item in payload.get("results", [])]
        return str(payload.get("answer") or ""), results

    def status(self) -> dict[str, Any]:
        return {
            "configured": self.is_configured(),
            "endpoint": self.config.endpoint,
            "initialized": self.is_ready,
        }

    async def _post(self, query: str) -> dict[str, Any]:
        await self.initialize()
        if not self.is_configured():
            raise SearchNotConfiguredError("Search API key is not configured")

        body = {
            "api_key": self._api_key,
            "query": query,
            "include_answer": self.config.include_answer,
            "max_results": self.config.max_results,
            "search_depth": self.config.search_depth,
        }
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.config.max_attempts),
            wait=wait_exponential_jitter(
                initial=self.config.retry_initial_delay,
                max=4.0,
                jitter=self.config.retry_initial_delay,
            ),
            retry=retry_if_exception(is_transient_error),
            before_sleep=_log_retry,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    response = await self._send(body)
                    response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise WebSearchError(
                f"Search API error: {exc.response.status_code} {exc.response.reason_phrase}"
            ) from exc
        except httpx.HTTPError as exc:
            raise WebSearchError(f"Search request failed: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise WebSearchError("Search API returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise WebSearchError(
                f"Search API returned {type(payload).__name__}, expected an object"
            )
        return payload

    async def _send(self, body: dict[str, Any]) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.post(self.config.endpoint, json=body)
        async with httpx.AsyncClient(timeout=self.config.timeout_seconds) as client:
            return await client.post(self.config.endpoint, json=body)


def is_transient_error(exc: BaseException) -> bool:
    """Timeouts, connection failures, 429 and 5xx are retried; the rest fail fast."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in TRANSIENT_HTTP_CODES
    return isinstance(exc, (httpx.TimeoutException, httpx.TransportError))


def extract_domain(url: str) -> str:
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return "unknown"
    return hostname or "unknown"


def _to_search_result(item: dict[str, Any]) -> SearchResult:
    url = str(item.get("url", ""))
    return SearchResult(
        title=str(item.get("title", "")),
        url=url,
        snippet=str(item.get("snippet") or item.get("content") or ""),
        domain=extract_domain(url),
    )


def _log_retry(state: RetryCallState) -> None:
    exc = state.outcome.exception() if state.outcome else None
    logger.warning(
        "Retrying search request (attempt %d): %s",
        state.attempt_number,
        exc,
    )
