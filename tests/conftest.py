import json

import pytest

from responder.message import Message, MessageRole
from responder.provider import ModelProvider
from responder.store import InMemoryMessageStore
from responder.streaming import FinishReason, StreamChunk, ToolCallFragment


# ---------------------------------------------------------------------------
# Mock provider
# ---------------------------------------------------------------------------

class MockProvider(ModelProvider):
    """Provider that replays pre-queued chunk lists. No network calls.

    Each entry of ``streams`` is one round: a list of StreamChunk, or an
    exception instance raised after the chunks preceding it.
    """

    system = "mock"

    def __init__(self, streams=None):
        self.streams: list[list] = list(streams or [])
        self.call_log: list[dict] = []
        self.closed: list[int] = []

    async def stream_complete(self, model, messages, tools=None):
        round_no = len(self.call_log)
        self.call_log.append(
            {"model": model, "messages": messages, "tools": tools}
        )
        items = self.streams.pop(0)
        try:
            for item in items:
                if isinstance(item, BaseException):
                    raise item
                yield item
        finally:
            self.closed.append(round_no)


class AlwaysToolCallProvider(ModelProvider):
    """Provider that requests a tool call on every round."""

    def __init__(self):
        self.call_log: list[dict] = []

    async def stream_complete(self, model, messages, tools=None):
        n = len(self.call_log)
        self.call_log.append(
            {"model": model, "messages": messages, "tools": tools}
        )
        for chunk in make_tool_call_stream(
            "get_current_weather", {"location": "Tokyo"}, call_id=f"call_{n}"
        ):
            yield chunk


# ---------------------------------------------------------------------------
# Stream builder helpers
# ---------------------------------------------------------------------------

def make_text_stream(*pieces: str, finish: str = "stop") -> list[StreamChunk]:
    """Chunks for an assistant text reply split into ``pieces``."""
    chunks = [StreamChunk(role="assistant", content_delta="")]
    chunks += [StreamChunk(content_delta=p) for p in pieces]
    chunks.append(StreamChunk(finish_reason=FinishReason.parse(finish)))
    return chunks


def make_tool_call_stream(
    name: str,
    args: dict,
    call_id: str = "call_1",
    split: int = 2,
) -> list[StreamChunk]:
    """Chunks for a single tool call whose arguments arrive in pieces."""
    return make_multi_tool_call_stream([(name, args, call_id)], split=split)


def make_multi_tool_call_stream(
    calls: list[tuple[str, dict, str]],
    split: int = 2,
) -> list[StreamChunk]:
    """Chunks for several tool calls, each item ``(name, args, call_id)``."""
    chunks = [StreamChunk(role="assistant")]
    for index, (name, args, call_id) in enumerate(calls):
        chunks.append(StreamChunk(tool_call_fragments=[
            ToolCallFragment(
                index=index, call_id=call_id, name=name, arguments_delta="",
            ),
        ]))
        payload = json.dumps(args)
        step = max(1, len(payload) // split + 1)
        for start in range(0, len(payload), step):
            chunks.append(StreamChunk(tool_call_fragments=[
                ToolCallFragment(
                    index=index,
                    arguments_delta=payload[start:start + step],
                ),
            ]))
    chunks.append(StreamChunk(finish_reason=FinishReason.TOOL_CALLS))
    return chunks


def user_message(content: str, thread_id: str = "t1") -> Message:
    return Message(role=MessageRole.USER, content=content, thread_id=thread_id)


class FlakyStore(InMemoryMessageStore):
    """Store that fails on the given 1-based append attempts."""

    def __init__(self, fail_on: set[int]):
        super().__init__()
        self.fail_on = fail_on
        self.attempts = 0

    async def append(self, message):
        self.attempts += 1
        if self.attempts in self.fail_on:
            raise RuntimeError("database unavailable")
        await super().append(message)


@pytest.fixture
def mock_provider():
    return MockProvider()


@pytest.fixture
def store():
    return InMemoryMessageStore()
