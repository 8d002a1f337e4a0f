"""Streaming primitives for provider responses.

Providers yield :class:`StreamChunk` objects.  :func:`merge_chunk`
folds successive chunks of one assistant message into a
:class:`MessageAccumulation`, reassembling tool calls whose arguments
arrive in fragments across multiple chunks.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum


class FinishReason(Enum):
    """Why the model ended its turn."""

    STOP = "stop"
    TOOL_CALLS = "tool_calls"
    LENGTH = "length"
    CONTENT_FILTER = "content_filter"
    FUNCTION_CALL = "function_call"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str | None) -> FinishReason | None:
        if not value:
            return None
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class ToolCallFragment:
    """A fragment of a tool call from a streaming chunk."""

    index: int | None
    call_id: str | None = None
    name: str | None = None
    arguments_delta: str | None = None

    def to_delta_dict(self) -> dict:
        function = {}
        if self.name is not None:
            function["name"] = self.name
        if self.arguments_delta is not None:
            function["arguments"] = self.arguments_delta
        data: dict = {"index": self.index}
        if self.call_id is not None:
            data["id"] = self.call_id
            data["type"] = "function"
        if function:
            data["function"] = function
        return data


@dataclass(frozen=True)
class StreamChunk:
    """Normalised streaming chunk from any provider."""

    role: str | None = None
    content_delta: str | None = None
    tool_call_fragments: list[ToolCallFragment] | None = None
    finish_reason: FinishReason | None = None

    def to_delta_dict(self) -> dict:
        """Render the chunk in the provider's ``delta`` shape."""
        data: dict = {}
        if self.role is not None:
            data["role"] = self.role
        if self.content_delta is not None:
            data["content"] = self.content_delta
        if self.tool_call_fragments:
            data["tool_calls"] = [
                f.to_delta_dict() for f in self.tool_call_fragments
            ]
        return data


@dataclass(frozen=True)
class ToolCall:
    """A resolved tool call ready for the transcript."""

    id: str = ""
    name: str = ""
    arguments: str = ""


@dataclass(frozen=True)
class MessageAccumulation:
    """Everything merged so far for one in-progress assistant message.

    ``tool_calls`` is kept in the order each index was first observed;
    ``tool_call_indexes`` holds the matching stream indexes.
    """

    role: str | None = None
    content: str | None = None
    tool_calls: tuple[ToolCall, ...] = ()
    tool_call_indexes: tuple[int, ...] = ()
    finish_reason: FinishReason | None = None
    chunk_count: int = field(default=0, compare=False)


def _merge_fragment(
    calls: tuple[ToolCall, ...],
    indexes: tuple[int, ...],
    fragment: ToolCallFragment,
) -> tuple[tuple[ToolCall, ...], tuple[int, ...]]:
    index = fragment.index
    if index is None and not calls:
        index = 0
    if index is None:
        # Streams always carry an index; fall back to the latest entry.
        position = len(calls) - 1
    elif index in indexes:
        position = indexes.index(index)
    else:
        calls = calls + (ToolCall(),)
        indexes = indexes + (index,)
        position = len(calls) - 1

    current = calls[position]
    updated = replace(
        current,
        id=current.id or fragment.call_id or "",
        name=current.name or fragment.name or "",
        arguments=current.arguments + (fragment.arguments_delta or ""),
    )
    return calls[:position] + (updated,) + calls[position + 1:], indexes


def merge_chunk(
    acc: MessageAccumulation, chunk: StreamChunk
) -> MessageAccumulation:
    """Fold ``chunk`` into ``acc`` and return the new accumulation."""
    content = acc.content
    if chunk.content_delta is not None:
        content = (content or "") + chunk.content_delta

    calls, indexes = acc.tool_calls, acc.tool_call_indexes
    for fragment in chunk.tool_call_fragments or []:
        calls, indexes = _merge_fragment(calls, indexes, fragment)

    return MessageAccumulation(
        role=acc.role or chunk.role,
        content=content,
        tool_calls=calls,
        tool_call_indexes=indexes,
        finish_reason=chunk.finish_reason or acc.finish_reason,
        chunk_count=acc.chunk_count + 1,
    )
