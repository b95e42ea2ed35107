"""Error taxonomy for routing, retrieval and generation."""

from __future__ import annotations


class AssistantError(Exception):
    """Base error carrying a message that is safe to show to the user."""

    default_user_message = "An error occurred"

    def __init__(self, message: str, *, user_message: str | None = None) -> None:
        super().__init__(message)
        self.user_message = user_message or self.default_user_message


class ConfigurationError(AssistantError):
    default_user_message = "The assistant is not configured correctly."


class SearchNotConfiguredError(ConfigurationError):
    default_user_message = (
        "Web search API key not configured. Please add your API key in Settings."
    )


class WebSearchError(AssistantError):
    default_user_message = "Web search failed. Please check your API key."


class RetrievalError(AssistantError):
    """Embedding or index lookup failed; recovered by degrading to no context."""

    default_user_message = "Knowledge base search failed."


class DimensionMismatchError(AssistantError, ValueError):
    default_user_message = "Embedding dimensions do not match."

    def __init__(self, left: int, right: int) -> None:
        super().__init__(f"Vector dimensions must match: {left} != {right}")
        self.left = left
        self.right = right


class GenerationError(AssistantError):
    default_user_message = "The language model failed to generate a response."


class ConversationBusyError(AssistantError):
    default_user_message = "Please wait for the current response to finish."
