import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
from enum import Enum

from responder.config import ResponderConfig
from responder.dispatch import ToolDispatcher
from responder.errors import EmptyHistoryError, ProviderError
from responder.events import DeltaEvent, ErrorEvent, StreamEvent, ToolResultEvent
from responder.executor import CannedToolExecutor, ToolExecutor
from responder.instrumentation import (
    completion_span,
    record_error,
    record_finish,
    record_run,
    run_span,
)
from responder.message import Message, MessageRole, new_message_id
from responder.persistence import PersistenceRelay
from responder.provider import ModelProvider, OpenAIProvider
from responder.store import MessageStore
from responder.streaming import FinishReason, MessageAccumulation, merge_chunk
from responder.tools import (
    DEFAULT_TOOLS,
    InMemoryToolCatalog,
    Tool,
    ToolCatalog,
    build_query,
)

logger = logging.getLogger(__name__)

SUGGESTION_WINDOW = 5


class LoopState(Enum):
    INIT = "init"
    FETCH_STREAM = "fetch_stream"
    CONSUME_STREAM = "consume_stream"
    TOOL_DISPATCH = "tool_dispatch"
    DONE = "done"


def finalize_message(
    acc: MessageAccumulation, message_id: str, thread_id: str
) -> Message:
    """Build the produced message from a fully merged stream."""
    try:
        role = MessageRole(acc.role) if acc.role else MessageRole.ASSISTANT
    except ValueError:
        logger.warning(f"Unknown role {acc.role!r} in stream, using assistant")
        role = MessageRole.ASSISTANT
    return Message(
        id=message_id,
        thread_id=thread_id,
        role=role,
        content=acc.content,
        tool_calls=list(acc.tool_calls) or None,
    )


class ResponderRun:
    """One request's pass through the agent loop.

    Iterate it to receive :class:`StreamEvent` objects as they are
    produced. The run owns a working copy of the history and only
    appends to it. When iteration ends, for any reason, the first
    history message and every assistant message produced by the run
    are handed to the persistence relay without waiting for the store.
    Tool results go along only when the run was started with
    ``persist=True``.

    Closing the iterator early (``aclose()`` or leaving an ``async for``
    whose generator is then closed) cancels the in-flight provider
    stream and starts no further rounds.
    """

    def __init__(
        self,
        responder: "Responder",
        thread_id: str,
        history: list[Message],
        max_steps: int,
        persist: bool,
        model: str,
    ):
        self.responder = responder
        self.thread_id = thread_id
        self.history = list(history)
        self.max_steps = max_steps
        self.persist = persist
        self.model = model
        self.steps = 0
        self.rounds = 0
        self.state = LoopState.INIT
        self.produced: list[Message] = []
        self.persist_task: asyncio.Task | None = None
        self._anchor = self.history[0]
        self._events: AsyncIterator[StreamEvent] | None = None

    def __aiter__(self) -> AsyncIterator[StreamEvent]:
        if self._events is None:
            self._events = self._loop()
        return self._events

    async def aclose(self) -> None:
        if self._events is not None:
            await self._events.aclose()

    async def _loop(self) -> AsyncIterator[StreamEvent]:
        dispatcher = ToolDispatcher(self.responder.executor, self.thread_id)
        system = self.responder.provider.system
        try:
            async with run_span(
                self.thread_id, self.model, self.max_steps
            ) as run_trace:
                try:
                    while True:
                        offer_tools = self.steps < self.max_steps
                        logger.info(
                            f"Step: {self.steps}, Messages: {len(self.history)}"
                        )

                        message_id = new_message_id()
                        acc = MessageAccumulation()
                        self.state = LoopState.FETCH_STREAM
                        self.rounds += 1
                        async with completion_span(
                            system, self.model, self.rounds, offer_tools
                        ) as chat_trace:
                            stream = self.responder.provider.stream_complete(
                                model=self.model,
                                messages=[m.to_provider_dict() for m in self.history],
                                tools=(
                                    self.responder.tool_schemas
                                    if offer_tools else None
                                ),
                            )
                            try:
                                async with aclosing(stream):
                                    self.state = LoopState.CONSUME_STREAM
                                    async for chunk in stream:
                                        acc = merge_chunk(acc, chunk)
                                        yield DeltaEvent(
                                            message_id=message_id, chunk=chunk
                                        )
                            except ProviderError as e:
                                logger.error(
                                    f"Provider failed on step {self.steps}: {e}"
                                )
                                record_error(chat_trace, e)
                                yield ErrorEvent(error=str(e))
                                return
                            record_finish(
                                chat_trace, acc.finish_reason, acc.chunk_count
                            )

                        message = finalize_message(acc, message_id, self.thread_id)
                        self.produced.append(message)

                        if (acc.finish_reason != FinishReason.TOOL_CALLS
                                or not offer_tools):
                            self.history.append(message)
                            return

                        self.state = LoopState.TOOL_DISPATCH
                        calls = message.requested_tool_calls()
                        logger.info(f"Tool calls: {[tc.name for tc in calls]}")
                        results = await dispatcher.dispatch(calls)
                        self.history.append(message)
                        self.history.extend(results)
                        self.produced.extend(results)
                        self.steps += 1
                        for result in results:
                            yield ToolResultEvent(message=result)
                finally:
                    record_run(run_trace, self.steps, self.rounds)
        finally:
            self.state = LoopState.DONE
            self._hand_off()

    def messages_to_persist(self) -> list[Message]:
        """The first history message plus what this run produced.

        Assistant messages are always included; tool results only when
        the run was started with ``persist=True``.
        """
        produced = [
            m for m in self.produced
            if self.persist or m.role != MessageRole.TOOL
        ]
        return [self._anchor, *produced]

    def _hand_off(self) -> None:
        relay = self.responder.relay
        if relay is None or self.persist_task is not None:
            return
        self.persist_task = relay.launch(self.messages_to_persist())


class Responder:
    """Streams model responses for a thread, running tool calls in between.

    A Responder holds the shared, stateless collaborators; every call to
    :meth:`run` creates an independent :class:`ResponderRun`, so one
    Responder can serve concurrent requests.

    Args:
        config: Resolved settings. Defaults to ``ResponderConfig()``.
        provider: Completion provider, or an OpenAIProvider built from
            ``config``, which then must carry an API key.
        tools: Tools offered to the model on every round that may still
            call tools.
        executor: Executor for requested tool calls. Defaults to a
            canned executor that performs no side effect.
        catalog: Catalog queried for advisory tool suggestions.
        store: Message store receiving finished transcripts. Nothing is
            persisted when omitted. Only the first message of each
            run's history is saved alongside the produced messages, so
            a caller that replays a growing history over several turns
            should store its own new input, or leave ``store`` unset and
            append ``[new_input, *run.produced]`` itself.

    Raises:
        ConfigurationError: No provider was given and ``config`` has
            no API key.
    """

    def __init__(
        self,
        config: ResponderConfig | None = None,
        provider: ModelProvider | None = None,
        tools: list[Tool] | None = None,
        executor: ToolExecutor | None = None,
        catalog: ToolCatalog | None = None,
        store: MessageStore | None = None,
    ):
        self.config = config or ResponderConfig()
        self.provider = provider or OpenAIProvider.from_config(self.config)
        self.tools = list(DEFAULT_TOOLS if tools is None else tools)
        self.tool_schemas = [t.model_dump() for t in self.tools]
        self.executor = executor or CannedToolExecutor()
        self.catalog = catalog or InMemoryToolCatalog(self.tools)
        self.relay = PersistenceRelay(store) if store is not None else None

    async def run(
        self,
        thread_id: str,
        history: list[Message],
        max_steps: int | None = None,
        persist: bool = True,
        model: str | None = None,
    ) -> ResponderRun:
        """Validate the request and return the run's event stream.

        ``persist`` controls whether tool results are saved with the
        transcript; the first history message and assistant messages
        are saved whenever the Responder has a store.

        Raises:
            EmptyHistoryError: ``history`` is empty. No provider call
                is made.
        """
        logger.info("=== Running Responder ===")
        if not history:
            raise EmptyHistoryError("history is empty, nothing to respond to")

        await self._suggest_tools(history)

        return ResponderRun(
            responder=self,
            thread_id=thread_id,
            history=history,
            max_steps=(
                self.config.max_tool_call_steps
                if max_steps is None else max_steps
            ),
            persist=persist,
            model=model or self.config.default_model,
        )

    async def _suggest_tools(self, history: list[Message]) -> None:
        # Advisory only: suggestions are logged, the offered tools are fixed.
        try:
            query = build_query(history[-SUGGESTION_WINDOW:])
            suggestions = await self.catalog.suggest(query)
        except Exception as e:
            logger.warning(f"Tool suggestion failed: {e}")
            return
        logger.info(
            "Suggested tools: "
            f"{[(s.name, round(s.similarity, 3)) for s in suggestions]}"
        )
