from responder.config import ResponderConfig
from responder.errors import (
    ConfigurationError,
    EmptyHistoryError,
    ProviderError,
    ResponderError,
    ToolExecutionError,
)
from responder.events import DeltaEvent, ErrorEvent, StreamEvent, ToolResultEvent
from responder.instrumentation import instrument, uninstrument
from responder.message import Message, MessageRole, ToolMessage
from responder.runner import LoopState, Responder, ResponderRun

__all__ = [
    "ConfigurationError",
    "DeltaEvent",
    "EmptyHistoryError",
    "ErrorEvent",
    "LoopState",
    "Message",
    "MessageRole",
    "ProviderError",
    "Responder",
    "ResponderConfig",
    "ResponderError",
    "ResponderRun",
    "StreamEvent",
    "ToolExecutionError",
    "ToolMessage",
    "ToolResultEvent",
    "instrument",
    "uninstrument",
]
