"""Caller-visible events emitted while a run streams."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from responder.message import ToolMessage
from responder.streaming import StreamChunk


@dataclass
class StreamEvent(ABC):
    """Base for all streaming events."""

    @abstractmethod
    def to_record(self) -> dict:
        """Render the event as one caller-facing JSON record."""


@dataclass
class DeltaEvent(StreamEvent):
    """One provider fragment, tagged with the id of its message."""

    message_id: str
    chunk: StreamChunk

    def to_record(self) -> dict:
        return {**self.chunk.to_delta_dict(), "id": self.message_id}


@dataclass
class ToolResultEvent(StreamEvent):
    """A finished tool result, forwarded once its round has streamed."""

    message: ToolMessage

    def to_record(self) -> dict:
        return self.message.model_dump(exclude_none=True)


@dataclass
class ErrorEvent(StreamEvent):
    """Terminal event: the provider failed and the run stopped."""

    error: str

    def to_record(self) -> dict:
        return {"error": self.error}
