"""Embedding abstractions and deterministic baseline implementation."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from hashlib import blake2b
from math import sqrt

from private_assistant.lifecycle import LazyInitMixin

logger = logging.getLogger(__name__)


class Embedder(LazyInitMixin, ABC):
    """Embedding collaborator: unit-normalized vectors of a fixed dimension."""

    dimension: int

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Embed one text."""

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [await self.embed(text) for text in texts]

    async def embed_document(self, name: str, content: str) -> list[float]:
        """Embed an uploaded document. The whole content is embedded as one vector."""
        del name
        return await self.embed(content)


class HashingEmbedder(Embedder):
    """Deterministic embedding without external model calls.

    Tokens are hashed into buckets with blake2b and the resulting vector is
    L2-normalized. Suitable for tests and offline use; swap in a real model
    (e.g. a 384-dimensional MiniLM encoder) behind the same interface.
    """

    def __init__(self, dimension: int = 384) -> None:
        self.dimension = dimension

    async def _initialize(self) -> None:
        logger.info("Hashing embedder initialized (dimension=%d)", self.dimension)

    async def embed(self, text: str) -> list[float]:
        await self.initialize()
        return self._embed(text)

    def _embed(self, text: str) -> list[float]:
        vector = [0.0 for _ in range(self.dimension)]
        tokens = text.lower().split()
        if not tokens:
            return vector

        for token in tokens:
            digest = blake2b(token.encode("utf-8"), digest_size=8).digest()
            idx = int.from_bytes(digest[:4], "little") % self.dimension
            sign = -1.0 if digest[4] % 2 else 1.0
            vector[idx] += sign

        norm = sqrt(sum(value * value for value in vector))
        if norm == 0:
            return vector
        return [value / norm for value in vector]
