from dataclasses import dataclass, field
from unittest.mock import AsyncMock

import httpx
import pytest
from openai import APIConnectionError

from responder.config import ResponderConfig
from responder.errors import ConfigurationError, ProviderError
from responder.provider import (
    DEFAULT_BASE_URL,
    ModelProvider,
    OpenAIProvider,
    chunk_from_openai,
)
from responder.streaming import FinishReason, ToolCallFragment


# ---------------------------------------------------------------------------
# Fake OpenAI streaming objects
# ---------------------------------------------------------------------------

@dataclass
class FakeFunction:
    name: str | None = None
    arguments: str | None = None


@dataclass
class FakeToolCallDelta:
    index: int
    id: str | None = None
    function: FakeFunction | None = None


@dataclass
class FakeDelta:
    role: str | None = None
    content: str | None = None
    tool_calls: list | None = None


@dataclass
class FakeChoice:
    delta: FakeDelta
    finish_reason: str | None = None


@dataclass
class FakeChunk:
    choices: list[FakeChoice] = field(default_factory=list)


class FakeStream:
    def __init__(self, chunks, error=None):
        self.chunks = chunks
        self.error = error
        self.closed = False

    def __aiter__(self):
        return self._iter()

    async def _iter(self):
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error

    async def close(self):
        self.closed = True


def _connection_error():
    return APIConnectionError(
        request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    )


def _text_chunks():
    return [
        FakeChunk(choices=[FakeChoice(delta=FakeDelta(role="assistant", content=""))]),
        FakeChunk(choices=[FakeChoice(delta=FakeDelta(content="hello"))]),
        FakeChunk(choices=[FakeChoice(delta=FakeDelta(), finish_reason="stop")]),
    ]


@pytest.fixture
def provider():
    return OpenAIProvider(api_key="test-key")


async def _collect(provider, **kwargs):
    return [c async for c in provider.stream_complete(**kwargs)]


class TestChunkConversion:
    def test_text_delta(self):
        chunk = chunk_from_openai(
            FakeChoice(delta=FakeDelta(role="assistant", content="Hi"))
        )
        assert chunk.role == "assistant"
        assert chunk.content_delta == "Hi"
        assert chunk.tool_call_fragments is None
        assert chunk.finish_reason is None

    def test_tool_call_delta(self):
        chunk = chunk_from_openai(FakeChoice(delta=FakeDelta(tool_calls=[
            FakeToolCallDelta(
                index=0, id="call_1",
                function=FakeFunction(name="get_current_weather", arguments=""),
            ),
            FakeToolCallDelta(index=1, function=FakeFunction(arguments='{"lo')),
        ])))
        assert chunk.tool_call_fragments == [
            ToolCallFragment(index=0, call_id="call_1", name="get_current_weather", arguments_delta=""),
            ToolCallFragment(index=1, arguments_delta='{"lo'),
        ]

    def test_finish_reason_is_parsed(self):
        chunk = chunk_from_openai(
            FakeChoice(delta=FakeDelta(), finish_reason="tool_calls")
        )
        assert chunk.finish_reason is FinishReason.TOOL_CALLS


class TestOpenAIProviderStream:
    @pytest.mark.asyncio
    async def test_requests_streaming_with_tools(self, provider, monkeypatch):
        stream = FakeStream(_text_chunks())
        mock_create = AsyncMock(return_value=stream)
        monkeypatch.setattr(provider.client.chat.completions, "create", mock_create)

        messages = [{"role": "user", "content": "hi"}]
        tools = [{"type": "function", "function": {"name": "f"}}]
        chunks = await _collect(provider, model="gpt-4o", messages=messages, tools=tools)

        mock_create.assert_called_once_with(
            model="gpt-4o", messages=messages, stream=True,
            tools=tools, tool_choice="auto",
        )
        assert [c.content_delta for c in chunks] == ["", "hello", None]
        assert chunks[-1].finish_reason is FinishReason.STOP
        assert stream.closed

    @pytest.mark.asyncio
    async def test_omits_tools_when_none(self, provider, monkeypatch):
        mock_create = AsyncMock(return_value=FakeStream(_text_chunks()))
        monkeypatch.setattr(provider.client.chat.completions, "create", mock_create)

        await _collect(provider, model="gpt-4o", messages=[], tools=None)

        _, kwargs = mock_create.call_args
        assert "tools" not in kwargs
        assert "tool_choice" not in kwargs
        assert kwargs["stream"] is True

    @pytest.mark.asyncio
    async def test_skips_chunks_without_choices(self, provider, monkeypatch):
        stream = FakeStream([FakeChunk(), *_text_chunks()])
        monkeypatch.setattr(
            provider.client.chat.completions, "create", AsyncMock(return_value=stream)
        )
        chunks = await _collect(provider, model="m", messages=[])
        assert len(chunks) == 3

    @pytest.mark.asyncio
    async def test_open_failure_raises_provider_error(self, provider, monkeypatch):
        monkeypatch.setattr(
            provider.client.chat.completions, "create",
            AsyncMock(side_effect=_connection_error()),
        )
        with pytest.raises(ProviderError, match="Failed to open stream"):
            await _collect(provider, model="m", messages=[])

    @pytest.mark.asyncio
    async def test_read_failure_raises_provider_error(self, provider, monkeypatch):
        stream = FakeStream(_text_chunks()[:1], error=_connection_error())
        monkeypatch.setattr(
            provider.client.chat.completions, "create", AsyncMock(return_value=stream)
        )
        with pytest.raises(ProviderError, match="Stream interrupted"):
            await _collect(provider, model="m", messages=[])
        assert stream.closed

    @pytest.mark.asyncio
    async def test_early_close_closes_transport(self, provider, monkeypatch):
        stream = FakeStream(_text_chunks())
        monkeypatch.setattr(
            provider.client.chat.completions, "create", AsyncMock(return_value=stream)
        )
        gen = provider.stream_complete(model="m", messages=[])
        await gen.__anext__()
        await gen.aclose()
        assert stream.closed


def test_from_config_uses_settings():
    config = ResponderConfig(
        api_key="sk-config", base_url="http://localhost:8000/v1",
        timeout=30.0, max_retries=1,
    )
    provider = OpenAIProvider.from_config(config)
    assert provider.client.api_key == "sk-config"
    assert str(provider.client.base_url).startswith("http://localhost:8000/v1")
    assert provider.client.max_retries == 1


class TestProviderConstruction:
    def test_missing_key_is_a_configuration_error(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-ambient")
        with pytest.raises(ConfigurationError, match="API key"):
            OpenAIProvider(api_key=None)

    def test_environment_base_url_is_not_read(self, monkeypatch):
        monkeypatch.setenv("OPENAI_BASE_URL", "http://elsewhere:9999/v1")
        provider = OpenAIProvider(api_key="sk-test")
        assert str(provider.client.base_url).startswith(DEFAULT_BASE_URL)

    def test_base_provider_cannot_be_instantiated(self):
        with pytest.raises(TypeError):
            ModelProvider()

    def test_subclass_must_implement_stream_complete(self):
        class Incomplete(ModelProvider):
            pass

        with pytest.raises(TypeError):
            Incomplete()
