import uuid
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from responder.streaming import ToolCall


class MessageRole(Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    FUNCTION = "function"
    DATA = "data"
    TOOL = "tool"


def new_message_id() -> str:
    return str(uuid.uuid4())


class Message(BaseModel):
    """A single entry of a conversation thread.

    Messages are immutable once built; the agent loop only appends them
    to its working history.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_message_id)
    thread_id: str | None = None
    role: MessageRole
    content: str | None = None
    tool_calls: list[ToolCall] | None = None

    @field_serializer("role")
    def serialize_role(self, role: MessageRole, _info) -> str:
        return role.value

    @field_serializer("tool_calls")
    def serialize_tool_calls(
        self, tool_calls: list[ToolCall] | None
    ) -> list[dict] | None:
        if tool_calls is None:
            return None
        return [
            {
                "id": t.id,
                "type": "function",
                "function": {
                    "arguments": t.arguments,
                    "name": t.name,
                },
            }
            for t in tool_calls
        ]

    def requested_tool_calls(self) -> list[ToolCall]:
        """Tool calls carried by an assistant message, else empty."""
        if self.role != MessageRole.ASSISTANT or not self.tool_calls:
            return []
        return list(self.tool_calls)

    def to_provider_dict(self) -> dict:
        """Dump the fields the completion provider understands."""
        return self.model_dump(exclude={"id", "thread_id"}, exclude_none=True)


class ToolMessage(Message):
    role: MessageRole = MessageRole.TOOL
    tool_call_id: str = ""
