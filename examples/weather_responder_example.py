"""Interactive example: stream a tool-calling conversation as NDJSON.

Demonstrates:
- Resolving ResponderConfig from the environment once, at startup
- Offering the built-in weather / air-conditioner tools
- Printing every caller-facing record as one JSON line
- Storing each turn from the caller: the new user message plus the
  run's produced messages. A Responder built with a store saves a
  run's first history message, which in a multi-turn loop is the
  opening message again, so this loop keeps the store to itself

Usage:
    uv run --env-file=.env examples/weather_responder_example.py --model gpt-4o-mini --trace
    uv run examples/weather_responder_example.py --base-url http://localhost:8000/v1 --model Qwen/Qwen3-8B
"""

import argparse
import asyncio
import logging
import uuid

from responder.config import ResponderConfig
from responder.message import Message, MessageRole
from responder.ndjson import ndjson_generator
from responder.runner import Responder
from responder.store import InMemoryMessageStore

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s:%(name)s:%(levelname)s:%(message)s',
    datefmt='%Y-%m-%d %H:%M:%S',
    handlers=[
        logging.FileHandler('responder.log'),
    ]
)


def setup_tracing(service_name: str):
    from opentelemetry import trace
    from opentelemetry.sdk.resources import SERVICE_NAME, Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import (
        SimpleSpanProcessor, ConsoleSpanExporter,
    )
    from responder.instrumentation import instrument

    provider = TracerProvider(
        resource=Resource({SERVICE_NAME: service_name})
    )
    provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)
    instrument()


async def main():
    parser = argparse.ArgumentParser(description="Weather responder")
    parser.add_argument("--model", default=None)
    parser.add_argument("--base-url", default=None)
    parser.add_argument("--max-steps", type=int, default=None)
    parser.add_argument("--trace", action="store_true")
    args = parser.parse_args()

    if args.trace:
        setup_tracing("weather-responder")

    config = ResponderConfig.from_env()
    if args.base_url:
        config = config.model_copy(update={"base_url": args.base_url})

    store = InMemoryMessageStore()
    responder = Responder(config=config)
    thread_id = str(uuid.uuid4())
    history: list[Message] = []

    print("Weather Responder (Ctrl-D to quit)\n")

    while True:
        try:
            user_input = input("You: ")
        except (KeyboardInterrupt, EOFError):
            print("\nGoodbye!")
            break

        user_message = Message(
            role=MessageRole.USER, content=user_input, thread_id=thread_id,
        )
        history.append(user_message)
        run = await responder.run(
            thread_id, history, max_steps=args.max_steps, model=args.model,
        )
        async for line in ndjson_generator(run):
            print(line, end="")
        history = run.history
        print()

        for message in [user_message, *run.produced]:
            await store.append(message)

    print(f"{len(store.list_messages(thread_id))} messages stored")


if __name__ == "__main__":
    asyncio.run(main())
