"""Configuration models for the assistant."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class RetrievalConfig(BaseModel):
    """Configures knowledge-base retrieval for `rag` decisions."""

    top_k: int = Field(default=3, ge=1)
    similarity_threshold: float = Field(default=0.4, ge=-1.0, le=1.0)
    snippet_chars: int = Field(default=200, ge=1)


class EmbeddingConfig(BaseModel):
    """Configures the embedding collaborator."""

    dimension: int = Field(default=384, ge=1)


class SearchConfig(BaseModel):
    """Configures the web search collaborator."""

    endpoint: str = "https://api.tavily.com/search"
    max_results: int = Field(default=5, ge=1, le=20)
    search_depth: Literal["basic", "advanced"] = "basic"
    include_answer: bool = True
    timeout_seconds: float = Field(default=15.0, gt=0.0)
    max_attempts: int = Field(default=3, ge=1)
    retry_initial_delay: float = Field(default=0.5, ge=0.0)


class GenerationConfig(BaseModel):
    """Configures the local language model."""

    model: str = "Llama-3.2-1B-Instruct-q4f32_1"
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=512, ge=1)
