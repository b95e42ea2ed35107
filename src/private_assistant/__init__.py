"""Private assistant: query routing and retrieval-augmented answering."""

from .config import EmbeddingConfig, GenerationConfig, RetrievalConfig, SearchConfig

__all__ = ["EmbeddingConfig", "GenerationConfig", "RetrievalConfig", "SearchConfig"]
