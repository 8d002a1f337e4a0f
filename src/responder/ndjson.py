"""Line-delimited JSON adapter for streaming events."""

from __future__ import annotations

import json
from collections.abc import AsyncIterable, AsyncIterator

from responder.events import StreamEvent


async def ndjson_generator(
    event_stream: AsyncIterable[StreamEvent],
) -> AsyncIterator[str]:
    """Convert a StreamEvent stream into one JSON document per line.

    The stream ends when ``event_stream`` ends; no sentinel is written.
    """
    async for event in event_stream:
        yield json.dumps(event.to_record(), ensure_ascii=False) + "\n"
