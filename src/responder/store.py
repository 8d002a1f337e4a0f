from abc import ABC, abstractmethod
from collections import defaultdict

from responder.message import Message


class MessageStore(ABC):
    """Durable, append-only persistence of thread messages."""

    @abstractmethod
    async def append(self, message: Message) -> None:
        ...


class InMemoryMessageStore(MessageStore):
    def __init__(self):
        self.threads: dict[str, list[Message]] = defaultdict(list)

    async def append(self, message: Message) -> None:
        self.threads[message.thread_id or ""].append(message)

    def list_messages(self, thread_id: str) -> list[Message]:
        return list(self.threads.get(thread_id, []))
