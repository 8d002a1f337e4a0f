"""Optional OpenTelemetry tracing for responder runs.

A run is traced as one ``invoke_agent`` span holding a ``chat`` span per
round and an ``execute_tool`` span per dispatched tool call. Round,
finish reason and step counters are recorded so a trace shows how the
step bound played out. Tracing stays off until :func:`instrument` is
called; every helper is a no-op until then.
"""

import importlib.util
import logging
from contextlib import asynccontextmanager

from responder.streaming import FinishReason

logger = logging.getLogger(__name__)

_tracer = None

ROUND = "responder.round"
TOOLS_OFFERED = "responder.tools_offered"
CHUNK_COUNT = "responder.chunk_count"
MAX_STEPS = "responder.max_steps"
STEPS = "responder.steps"
ROUNDS = "responder.rounds"


def instrument(*, tracer_name: str = "responder", tracer_provider=None) -> None:
    """Start emitting spans for runs, rounds and tool calls.

    Args:
        tracer_name: Instrumentation scope name of the tracer.
        tracer_provider: Provider to take the tracer from; the global
            provider when omitted.

    Raises:
        ImportError: ``opentelemetry-api`` is not installed
            (``pip install responder[otel]``).
    """
    global _tracer
    if importlib.util.find_spec("opentelemetry.trace") is None:
        raise ImportError(
            "Tracing needs opentelemetry-api: pip install responder[otel]"
        )
    from opentelemetry import trace

    _tracer = trace.get_tracer(tracer_name, tracer_provider=tracer_provider)
    if isinstance(_tracer, trace.NoOpTracer):
        logger.info("Tracer is a no-op; configure a TracerProvider to export spans")
    else:
        logger.info(f"Tracing enabled with tracer '{tracer_name}'")


def uninstrument() -> None:
    global _tracer
    _tracer = None


@asynccontextmanager
async def _span(name: str, attributes: dict, **kwargs):
    if _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(name, attributes=attributes, **kwargs) as span:
        yield span


def run_span(thread_id: str, model: str, max_steps: int):
    """Span covering a whole run of the agent loop."""
    return _span(
        "invoke_agent responder",
        {
            "gen_ai.operation.name": "invoke_agent",
            "gen_ai.conversation.id": thread_id,
            "gen_ai.request.model": model,
            MAX_STEPS: max_steps,
        },
    )


def completion_span(system: str, model: str, round_no: int, tools_offered: bool):
    """Span covering one round's streaming completion."""
    kwargs = {}
    if _tracer is not None:
        from opentelemetry.trace import SpanKind

        kwargs["kind"] = SpanKind.CLIENT
    return _span(
        f"chat {model}",
        {
            "gen_ai.operation.name": "chat",
            "gen_ai.provider.name": system,
            "gen_ai.request.model": model,
            ROUND: round_no,
            TOOLS_OFFERED: tools_offered,
        },
        **kwargs,
    )


def tool_span(tool_name: str, call_id: str):
    """Span covering a single tool call."""
    return _span(
        f"execute_tool {tool_name}",
        {
            "gen_ai.operation.name": "execute_tool",
            "gen_ai.tool.name": tool_name,
            "gen_ai.tool.call.id": call_id,
        },
    )


def record_finish(
    span, finish_reason: FinishReason | None, chunk_count: int
) -> None:
    """Attach the merged finish reason and chunk count to a chat span."""
    if span is None:
        return
    reason = finish_reason.value if finish_reason is not None else "none"
    span.set_attribute("gen_ai.response.finish_reasons", (reason,))
    span.set_attribute(CHUNK_COUNT, chunk_count)


def record_run(span, steps: int, rounds: int) -> None:
    """Attach the final step and round counters to a run span."""
    if span is None:
        return
    span.set_attribute(STEPS, steps)
    span.set_attribute(ROUNDS, rounds)


def record_error(span, exception: BaseException) -> None:
    """Mark a span as failed with ``exception``; no-op without a span."""
    if span is None:
        return
    from opentelemetry.trace import StatusCode

    span.record_exception(exception)
    span.set_attribute("error.type", type(exception).__qualname__)
    span.set_status(StatusCode.ERROR, str(exception))
