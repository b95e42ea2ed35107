import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel

from private_assistant.agent.generator import (
    CONTEXT_HEADER,
    DeterministicGenerator,
    LangChainGenerator,
)
from private_assistant.errors import GenerationError
from private_assistant.types import ChatMessage


def _history(*contents: str) -> list[ChatMessage]:
    roles = ["user", "assistant"]
    return [
        ChatMessage(id=str(i), role=roles[i % 2], content=text, timestamp=i)
        for i, text in enumerate(contents)
    ]


@pytest.mark.asyncio
async def test_langchain_generator_stream_concatenates_to_generate() -> None:
    llm = FakeListChatModel(responses=["Paris is the capital.", "Paris is the capital."])
    generator = LangChainGenerator(llm)
    history = _history("What is the capital of France?")

    full = await generator.generate(history, "You are helpful.")
    chunks = [chunk async for chunk in generator.stream(history, "You are helpful.")]

    assert full == "Paris is the capital."
    assert len(chunks) > 1
    assert "".join(chunks) == full


class _ExplodingChain:
    async def ainvoke(self, payload: object) -> object:
        raise RuntimeError("model crashed")


@pytest.mark.asyncio
async def test_langchain_generator_wraps_failures() -> None:
    generator = LangChainGenerator(FakeListChatModel(responses=["unused"]))
    generator._chain = _ExplodingChain()

    with pytest.raises(GenerationError):
        await generator.generate(_history("hi"), "system")


@pytest.mark.asyncio
async def test_deterministic_generator_echoes_context() -> None:
    generator = DeterministicGenerator()
    prompt = f"Preamble\n\n{CONTEXT_HEADER}Document: a.txt\nContent: alpha..."

    answer = await generator.generate(_history("q"), prompt)
    chunks = [chunk async for chunk in generator.stream(_history("q"), prompt)]

    assert answer.startswith("Here is what I found:")
    assert "Document: a.txt" in answer
    assert "".join(chunks) == answer


@pytest.mark.asyncio
async def test_deterministic_generator_without_context_uses_placeholder() -> None:
    generator = DeterministicGenerator()

    assert await generator.generate([], "Preamble only") == DeterministicGenerator.placeholder


@pytest.mark.asyncio
async def test_release_resets_ready_state() -> None:
    generator = DeterministicGenerator()
    await generator.initialize()
    assert generator.is_ready

    await generator.release()

    assert not generator.is_ready
