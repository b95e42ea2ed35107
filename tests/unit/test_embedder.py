from math import sqrt

import pytest

from private_assistant.ingest.embedder import HashingEmbedder


@pytest.mark.asyncio
async def test_hashing_embedder_is_deterministic_and_unit_normalized() -> None:
    embedder = HashingEmbedder()

    first = await embedder.embed("private knowledge base")
    second = await embedder.embed("private knowledge base")

    assert first == second
    assert len(first) == 384
    assert sqrt(sum(v * v for v in first)) == pytest.approx(1.0)
    assert embedder.is_ready


@pytest.mark.asyncio
async def test_embed_document_matches_content_embedding() -> None:
    embedder = HashingEmbedder(dimension=64)

    doc_vector = await embedder.embed_document("notes.txt", "meeting notes for friday")
    batch = await embedder.embed_batch(["meeting notes for friday", "other text"])

    assert doc_vector == batch[0]
    assert batch[0] != batch[1]
