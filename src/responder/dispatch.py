import logging

from responder.executor import ToolExecutor
from responder.instrumentation import record_error, tool_span
from responder.message import ToolMessage
from responder.streaming import ToolCall

logger = logging.getLogger(__name__)


class ToolDispatcher:
    """Runs requested tool calls and wraps each result in a ToolMessage.

    Calls run one after another in request order. A failing call is
    reported to the model as an error result; it never stops the
    remaining calls.

    Args:
        executor: Executor that performs each call.
        thread_id: Thread the resulting messages belong to.
    """

    def __init__(self, executor: ToolExecutor, thread_id: str):
        self.executor = executor
        self.thread_id = thread_id

    async def dispatch(self, calls: list[ToolCall]) -> list[ToolMessage]:
        logger.info(f"Dispatching {len(calls)} tool call(s)")
        return [await self._dispatch_one(tc) for tc in calls]

    async def _dispatch_one(self, tc: ToolCall) -> ToolMessage:
        async with tool_span(tc.name, tc.id) as span:
            try:
                content = await self.executor.execute(tc.name, tc.arguments)
            except Exception as e:
                logger.error(f"Tool {tc.name} raised: {e}")
                record_error(span, e)
                content = f"Error calling {tc.name}: {e}"
        return ToolMessage(
            tool_call_id=tc.id or "",
            content=content,
            thread_id=self.thread_id,
        )
