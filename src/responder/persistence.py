import asyncio
import logging

from responder.message import Message, MessageRole
from responder.store import MessageStore

logger = logging.getLogger(__name__)


class PersistenceRelay:
    """Best-effort, detached persistence of finished transcripts.

    ``launch()`` starts storage in a background task and returns
    immediately; the caller's stream is never held open waiting for
    the store. There is no ordering guarantee between a caller seeing
    its stream end and the store receiving the messages.

    Args:
        store: Message store receiving each message in order.
    """

    def __init__(self, store: MessageStore):
        self.store = store
        self._tasks: set[asyncio.Task] = set()

    async def persist(self, messages: list[Message]) -> None:
        """Store ``messages`` one by one; a failed append skips only itself."""
        for message in messages:
            try:
                await self.store.append(message)
            except Exception as e:
                logger.error(f"Failed to save message {message.id}: {e}")
                continue
            suffix = ""
            if message.role == MessageRole.ASSISTANT and message.tool_calls:
                suffix = f" ({len(message.tool_calls)} tool calls)"
            logger.info(
                f"[Message Saved] {message.role.value} "
                f"{message.content or ''}{suffix}"
            )

    def launch(self, messages: list[Message]) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(
            self.persist(list(messages))
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Persistence task cancelled")
        elif task.exception() is not None:
            logger.error(f"Persistence task failed: {task.exception()}")

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every launched task, e.g. before shutting down."""
        while self._tasks:
            tasks = list(self._tasks)
            await asyncio.gather(*tasks, return_exceptions=True)
            self._tasks.difference_update(tasks)
