"""Generation collaborators: LangChain chat models and an offline fallback."""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage
from langchain_core.prompts import ChatPromptTemplate, MessagesPlaceholder

from private_assistant.config import GenerationConfig
from private_assistant.errors import GenerationError
from private_assistant.lifecycle import LazyInitMixin
from private_assistant.types import ChatMessage

logger = logging.getLogger(__name__)

CONTEXT_HEADER = "Context from knowledge base:\n"

_PROMPT = ChatPromptTemplate.from_messages(
    [
        ("system", "{system_prompt}"),
        MessagesPlaceholder(variable_name="history", optional=True),
    ]
)


class Generator(LazyInitMixin, ABC):
    """Generation collaborator contract."""

    @abstractmethod
    async def generate(self, history: list[ChatMessage], system_prompt: str) -> str:
        """Return the full response for the conversation."""

    @abstractmethod
    def stream(self, history: list[ChatMessage], system_prompt: str) -> AsyncIterator[str]:
        """Yield response chunks whose concatenation equals `generate`."""

    async def release(self) -> None:
        """Best-effort unload, e.g. when the app goes to the background."""
        logger.info("Releasing %s", type(self).__name__)
        self.reset()


class LangChainGenerator(Generator):
    """Runs any LangChain chat model behind the generation contract."""

    def __init__(self, llm: Any, config: GenerationConfig | None = None) -> None:
        self.llm = llm
        self.config = config or GenerationConfig()
        self._chain = _PROMPT | llm

    async def _initialize(self) -> None:
        logger.info("Generator initialized with %s", self.config.model)

    async def generate(self, history: list[ChatMessage], system_prompt: str) -> str:
        await self.initialize()
        try:
            result = await self._chain.ainvoke(_prompt_input(history, system_prompt))
        except Exception as exc:
            raise GenerationError(f"LLM generation failed: {exc}") from exc
        return _message_text(result)

    async def stream(
        self, history: list[ChatMessage], system_prompt: str
    ) -> AsyncIterator[str]:
        await self.initialize()
        try:
            async for chunk in self._chain.astream(_prompt_input(history, system_prompt)):
                text = _message_text(chunk)
                if text:
                    yield text
        except Exception as exc:
            raise GenerationError(f"LLM streaming failed: {exc}") from exc


class DeterministicGenerator(Generator):
    """Answers without a language model, from the prompt context alone.

    Used when no model is configured so the rest of the pipeline stays
    usable offline.
    """

    placeholder = (
        "I am your private AI assistant. No language model is configured, "
        "so I can only report what I found in your documents or on the web."
    )

    async def generate(self, history: list[ChatMessage], system_prompt: str) -> str:
        del history
        await self.initialize()
        _, marker, context = system_prompt.partition(CONTEXT_HEADER)
        if not marker or not context.strip():
            return self.placeholder
        return "Here is what I found:\n" + context.strip()

    async def stream(
        self, history: list[ChatMessage], system_prompt: str
    ) -> AsyncIterator[str]:
        response = await self.generate(history, system_prompt)
        for piece in re.findall(r"\s*\S+\s*", response):
            yield piece


def _prompt_input(history: list[ChatMessage], system_prompt: str) -> dict[str, Any]:
    messages: list[BaseMessage] = []
    for message in history:
        if message.role == "assistant":
            messages.append(AIMessage(content=message.content))
        else:
            messages.append(HumanMessage(content=message.content))
    return {"system_prompt": system_prompt, "history": messages}


def _message_text(message: Any) -> str:
    content = getattr(message, "content", message)
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict) and "text" in item:
                parts.append(str(item["text"]))
            elif isinstance(item, str):
                parts.append(item)
        return "".join(parts)
    return str(content)
