import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from openai import OpenAIError

from faq_assistant.errors import CompletionUnavailable
from faq_assistant.services.llm_service import LLMService

MESSAGES = [{"role": "user", "content": "hi"}]


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _chunk(content):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


class FakeStream:
    """Async-iterable chat stream that records whether it was closed."""

    def __init__(self, pieces):
        self.pieces = pieces
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.closed = True

    async def __aiter__(self):
        for piece in self.pieces:
            yield SimpleNamespace(choices=[]) if piece is None else _chunk(piece)


def _client(**create_kwargs):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(**create_kwargs)
    return client


def test_complete_strips_text():
    client = _client(return_value=_completion("  MATCH:2\n"))
    llm = LLMService(client=client, model="gpt-4.1-mini")

    assert asyncio.run(llm.complete(MESSAGES, temperature=0.1, max_tokens=10)) == "MATCH:2"
    client.chat.completions.create.assert_awaited_once_with(
        model="gpt-4.1-mini", messages=MESSAGES, temperature=0.1, max_tokens=10,
    )


def test_complete_empty_content():
    llm = LLMService(client=_client(return_value=_completion(None)))

    assert asyncio.run(llm.complete(MESSAGES)) == ""


def test_complete_error():
    llm = LLMService(client=_client(side_effect=OpenAIError("timeout")))

    with pytest.raises(CompletionUnavailable):
        asyncio.run(llm.complete(MESSAGES))


def test_stream_yields_chunks():
    stream = FakeStream(["Premium ", "", None, "is $10."])
    llm = LLMService(client=_client(return_value=stream))

    async def collect():
        return [c async for c in llm.stream(MESSAGES)]

    assert asyncio.run(collect()) == ["Premium ", "is $10."]
    assert stream.closed


def test_abandoned_stream_is_closed():
    stream = FakeStream(["Premium ", "is $10."])
    llm = LLMService(client=_client(return_value=stream))

    async def take_first():
        chunks = llm.stream(MESSAGES)
        first = await chunks.__anext__()
        await chunks.aclose()
        return first

    assert asyncio.run(take_first()) == "Premium "
    assert stream.closed


def test_stream_error():
    llm = LLMService(client=_client(side_effect=OpenAIError("down")))

    async def collect():
        return [c async for c in llm.stream(MESSAGES)]

    with pytest.raises(CompletionUnavailable):
        asyncio.run(collect())
