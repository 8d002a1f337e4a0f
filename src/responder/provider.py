import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from openai import APIError, AsyncOpenAI

from responder.config import ResponderConfig
from responder.errors import ConfigurationError, ProviderError
from responder.streaming import FinishReason, StreamChunk, ToolCallFragment

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"


def chunk_from_openai(choice) -> StreamChunk:
    """Convert one streamed ``choices[0]`` entry into a StreamChunk."""
    delta = choice.delta
    fragments = None
    if getattr(delta, "tool_calls", None):
        fragments = [
            ToolCallFragment(
                index=tc.index,
                call_id=tc.id,
                name=tc.function.name if tc.function else None,
                arguments_delta=(
                    tc.function.arguments if tc.function else None
                ),
            )
            for tc in delta.tool_calls
        ]
    return StreamChunk(
        role=getattr(delta, "role", None),
        content_delta=getattr(delta, "content", None),
        tool_call_fragments=fragments,
        finish_reason=FinishReason.parse(choice.finish_reason),
    )


class ModelProvider(ABC):
    """Completion provider that streams partial assistant messages."""

    system: str = "unknown"

    @abstractmethod
    def stream_complete(
            self,
            model: str,
            messages: list[dict],
            tools: list[dict] | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """Yield one StreamChunk per provider chunk.

        The iterator is single-use; request a new stream to retry.
        """
        ...


class OpenAIProvider(ModelProvider):
    """Streams chat completions from OpenAI or a compatible server.

    The API key must be passed in; the client is never left to pick
    one up from the environment.
    """

    system = "openai"

    def __init__(
            self,
            api_key: str | None,
            base_url: str | None = None,
            timeout: float = 600.0,
            max_retries: int = 5,
    ):
        if not api_key:
            raise ConfigurationError(
                "An API key is required; set OPENAI_API_KEY or pass "
                "ResponderConfig(api_key=...)"
            )
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url or DEFAULT_BASE_URL,
            max_retries=max_retries,
            timeout=timeout,
        )

    @classmethod
    def from_config(cls, config: ResponderConfig) -> "OpenAIProvider":
        return cls(
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=config.timeout,
            max_retries=config.max_retries,
        )

    async def stream_complete(
            self,
            model: str,
            messages: list[dict],
            tools: list[dict] | None = None,
    ) -> AsyncIterator[StreamChunk]:
        kwargs: dict = {"model": model, "messages": messages, "stream": True}
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"

        try:
            stream = await self.client.chat.completions.create(**kwargs)
        except APIError as e:
            raise ProviderError(f"Failed to open stream: {e}") from e

        try:
            async for chunk in stream:
                if not chunk.choices:
                    continue
                yield chunk_from_openai(chunk.choices[0])
        except APIError as e:
            raise ProviderError(f"Stream interrupted: {e}") from e
        finally:
            await stream.close()
