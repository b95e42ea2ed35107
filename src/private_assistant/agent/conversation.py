"""Conversation state for a single active chat."""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field

from private_assistant.agent.orchestrator import RetrievalOrchestrator
from private_assistant.errors import AssistantError, ConversationBusyError
from private_assistant.types import ChatMessage

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ChatState:
    messages: list[ChatMessage] = field(default_factory=list)
    is_loading: bool = False
    error: str | None = None
    web_search_enabled: bool = False


class ChatSession:
    """One conversation; processes at most one query at a time.

    The user's message is recorded before the pipeline runs. The assistant
    message is committed only when generation succeeds, so a failure leaves
    the conversation ending with the unanswered user turn.
    """

    def __init__(self, orchestrator: RetrievalOrchestrator) -> None:
        self.orchestrator = orchestrator
        self.state = ChatState()

    @property
    def messages(self) -> list[ChatMessage]:
        return list(self.state.messages)

    def toggle_web_search(self) -> bool:
        self.state.web_search_enabled = not self.state.web_search_enabled
        return self.state.web_search_enabled

    async def submit(self, text: str) -> ChatMessage:
        if not text.strip():
            raise ValueError("Message cannot be empty")
        if self.state.is_loading:
            raise ConversationBusyError("A request is already in flight")

        user_message = _new_message("user", text)
        self.state.messages.append(user_message)
        self.state.is_loading = True
        self.state.error = None
        try:
            response = await self.orchestrator.answer(
                text,
                list(self.state.messages),
                web_search_enabled=self.state.web_search_enabled,
            )
        except AssistantError as exc:
            self.state.error = exc.user_message
            raise
        except Exception as exc:
            logger.exception("Chat request failed")
            self.state.error = str(exc) or "An error occurred"
            raise
        finally:
            self.state.is_loading = False

        assistant_message = _new_message("assistant", response.content, response.sources)
        self.state.messages.append(assistant_message)
        return assistant_message

    async def clear(self) -> None:
        """Drop the conversation and release the model's memory."""
        self.state.messages.clear()
        self.state.error = None
        await self.orchestrator.generator.release()


def _new_message(role: str, content: str, sources: list[str] | None = None) -> ChatMessage:
    return ChatMessage(
        id=uuid.uuid4().hex,
        role=role,
        content=content,
        timestamp=int(time.time() * 1000),
        sources=list(sources or []),
    )
