import asyncio
import os
import stat
from math import sqrt

import pytest

from private_assistant.errors import DimensionMismatchError
from private_assistant.lifecycle import LazyInitMixin
from private_assistant.retrieval.vector_store import (
    InMemoryDocumentStore,
    JsonFileDocumentStore,
    VectorIndex,
    cosine_similarity,
)
from private_assistant.types import Document, EmbeddingStatus


def _doc(doc_id: str, content: str = "content", size: int = 10) -> Document:
    return Document(id=doc_id, name=f"{doc_id}.txt", content=content, size=size, uploaded_at=1)


def _unit(*values: float) -> list[float]:
    norm = sqrt(sum(v * v for v in values))
    return [v / norm for v in values]


def test_cosine_similarity_basic_properties() -> None:
    a = _unit(1.0, 2.0, 3.0)
    b = _unit(3.0, 1.0, 0.5)

    assert cosine_similarity(a, a) == pytest.approx(1.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == 0.0
    assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))


def test_cosine_similarity_zero_norm_is_zero() -> None:
    assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0


def test_cosine_similarity_rejects_dimension_mismatch() -> None:
    with pytest.raises(DimensionMismatchError):
        cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])


@pytest.mark.asyncio
async def test_search_similar_threshold_top_k_and_ordering() -> None:
    index = VectorIndex(InMemoryDocumentStore(), dimension=2)
    await index.store(_doc("exact"), [1.0, 0.0])
    await index.store(_doc("close"), _unit(0.9, 0.1))
    await index.store(_doc("far"), _unit(0.1, 0.9))
    await index.store(_doc("orthogonal"), [0.0, 1.0])
    await index.add_pending(_doc("pending"))

    results = await index.search_similar([1.0, 0.0], top_k=2, threshold=0.5)

    assert [r.document.id for r in results] == ["exact", "close"]
    assert all(r.similarity >= 0.5 for r in results)
    assert results[0].similarity >= results[1].similarity

    everything = await index.search_similar([1.0, 0.0], top_k=10, threshold=0.0)
    assert "pending" not in {r.document.id for r in everything}
    similarities = [r.similarity for r in everything]
    assert similarities == sorted(similarities, reverse=True)


@pytest.mark.asyncio
async def test_search_ties_keep_insertion_order() -> None:
    index = VectorIndex(InMemoryDocumentStore(), dimension=2)
    for doc_id in ("first", "second", "third"):
        await index.store(_doc(doc_id), [1.0, 0.0])

    results = await index.search_similar([1.0, 0.0], top_k=3, threshold=0.0)
    assert [r.document.id for r in results] == ["first", "second", "third"]


@pytest.mark.asyncio
async def test_search_raises_on_dimension_mismatch() -> None:
    index = VectorIndex(InMemoryDocumentStore(), dimension=2)
    await index.store(_doc("a"), [1.0, 0.0])

    with pytest.raises(DimensionMismatchError):
        await index.search_similar([1.0, 0.0, 0.0])


@pytest.mark.asyncio
async def test_store_overwrites_and_marks_completed() -> None:
    index = VectorIndex(InMemoryDocumentStore(), dimension=2)
    pending = await index.add_pending(_doc("a"))
    assert pending.embedding_status is EmbeddingStatus.PENDING

    await index.store(_doc("a", content="v1"), [1.0, 0.0])
    stored = await index.store(_doc("a", content="v2"), [0.0, 1.0])

    assert stored.embedding_status is EmbeddingStatus.COMPLETED
    documents = await index.get_all()
    assert len(documents) == 1
    assert documents[0].content == "v2"
    assert documents[0].embedding == [0.0, 1.0]


@pytest.mark.asyncio
async def test_delete_clear_and_stats() -> None:
    index = VectorIndex(InMemoryDocumentStore(), dimension=2)
    await index.store(_doc("a", size=100), [1.0, 0.0])
    await index.store(_doc("b", size=50), [0.0, 1.0])

    stats = index.stats()
    assert stats.document_count == 2
    assert stats.total_size_bytes == 150

    await index.delete("a")
    assert [doc.id for doc in await index.get_all()] == ["b"]
    assert await index.get("a") is None

    await index.clear_all()
    assert await index.has_documents() is False
    assert index.stats().document_count == 0


@pytest.mark.asyncio
async def test_mark_failed_drops_embedding() -> None:
    index = VectorIndex(InMemoryDocumentStore(), dimension=2)
    await index.add_pending(_doc("a"))

    failed = await index.mark_failed("a")

    assert failed is not None
    assert failed.embedding_status is EmbeddingStatus.FAILED
    assert await index.mark_failed("missing") is None


@pytest.mark.asyncio
async def test_reload_from_disk_yields_identical_documents(tmp_path) -> None:
    path = tmp_path / "documents.json"
    index = VectorIndex(JsonFileDocumentStore(path), dimension=3)
    await index.store(_doc("a", content="alpha"), _unit(1.0, 2.0, 3.0))
    await index.store(_doc("b", content="beta"), _unit(3.0, 2.0, 1.0))
    await index.add_pending(_doc("c", content="gamma"))
    before = await index.get_all()

    reloaded = VectorIndex(JsonFileDocumentStore(path), dimension=3)
    after = await reloaded.get_all()

    assert after == before
    assert after[2].embedding_status is EmbeddingStatus.PENDING


class _FailingStore(InMemoryDocumentStore):
    def __init__(self) -> None:
        super().__init__()
        self.fail = False

    def save(self, documents: list[Document]) -> None:
        if self.fail:
            raise OSError("disk full")
        super().save(documents)


@pytest.mark.asyncio
async def test_failed_persist_keeps_previous_state() -> None:
    store = _FailingStore()
    index = VectorIndex(store, dimension=2)
    await index.store(_doc("a"), [1.0, 0.0])

    store.fail = True
    with pytest.raises(OSError):
        await index.store(_doc("b"), [0.0, 1.0])
    with pytest.raises(OSError):
        await index.clear_all()

    assert [doc.id for doc in await index.get_all()] == ["a"]
    assert [doc.id for doc in store.load()] == ["a"]


class _CountingStore(InMemoryDocumentStore):
    def __init__(self) -> None:
        super().__init__()
        self.loads = 0

    def load(self) -> list[Document]:
        self.loads += 1
        return super().load()


@pytest.mark.asyncio
async def test_concurrent_initialize_loads_once() -> None:
    store = _CountingStore()
    index = VectorIndex(store, dimension=2)

    await asyncio.gather(*(index.initialize() for _ in range(5)))

    assert store.loads == 1
    assert index.is_ready


class _GatedLoader(LazyInitMixin):
    def __init__(self) -> None:
        self.loads = 0
        self.release = asyncio.Event()

    async def _initialize(self) -> None:
        self.loads += 1
        await self.release.wait()


@pytest.mark.asyncio
async def test_cancelled_waiter_does_not_cancel_shared_initialize() -> None:
    loader = _GatedLoader()
    first = asyncio.ensure_future(loader.initialize())
    second = asyncio.ensure_future(loader.initialize())
    await asyncio.sleep(0.01)

    first.cancel()
    loader.release.set()
    results = await asyncio.gather(first, second, return_exceptions=True)

    assert isinstance(results[0], asyncio.CancelledError)
    assert results[1] is None
    assert loader.loads == 1
    assert loader.is_ready
    await loader.initialize()
    assert loader.loads == 1


@pytest.mark.asyncio
async def test_failed_initialize_is_retried() -> None:
    class _FlakyLoader(LazyInitMixin):
        def __init__(self) -> None:
            self.loads = 0

        async def _initialize(self) -> None:
            self.loads += 1
            if self.loads == 1:
                raise OSError("disk unavailable")

    loader = _FlakyLoader()
    with pytest.raises(OSError):
        await loader.initialize()

    await loader.initialize()

    assert loader.loads == 2
    assert loader.is_ready


def test_json_store_flushes_parent_directory_after_replace(tmp_path, monkeypatch) -> None:
    synced: list[bool] = []
    real_fsync = os.fsync

    def recording_fsync(fd: int) -> None:
        synced.append(stat.S_ISDIR(os.fstat(fd).st_mode))
        real_fsync(fd)

    monkeypatch.setattr(os, "fsync", recording_fsync)
    store = JsonFileDocumentStore(tmp_path / "kb" / "documents.json")

    store.save([_doc("a")])

    assert synced == [False, True]
    assert [doc.id for doc in store.load()] == ["a"]
