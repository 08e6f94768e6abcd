"""Decoding of the Server-Sent-Events stream returned by the feedback API."""

import json
import logging
from collections.abc import AsyncIterable, AsyncIterator

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


async def iter_stream_events(
    lines: AsyncIterable[str],
) -> AsyncIterator[dict[str, object]]:
    """Yield JSON objects from SSE data lines until the done sentinel."""
    async for line in lines:
        if not line.startswith(DATA_PREFIX):
            continue
        data = line[len(DATA_PREFIX) :].strip()
        if data == DONE_SENTINEL:
            return
        event = parse_event_data(data)
        if event is not None:
            yield event


def parse_event_data(data: str) -> dict[str, object] | None:
    """Parse one data payload, returning None for anything but a JSON object."""
    try:
        payload = json.loads(data)
    except ValueError:
        logger.debug("Skipping malformed stream line", extra={"data": data[:200]})
        return None
    if not isinstance(payload, dict):
        return None
    return payload


def text_fragments(event: dict[str, object]) -> list[str]:
    """Return the text carried by an event, in order.

    Supports a top-level ``delta`` string and the ``output[].content[].text``
    shape of complete response objects.
    """
    delta = event.get("delta")
    if isinstance(delta, str):
        return [delta]
    output = event.get("output")
    if not isinstance(output, list):
        return []
    fragments: list[str] = []
    for item in output:
        if not isinstance(item, dict):
            continue
        content = item.get("content")
        if not isinstance(content, list):
            continue
        for part in content:
            if isinstance(part, dict) and isinstance(part.get("text"), str):
                fragments.append(part["text"])
    return fragments


def event_turn_id(event: dict[str, object]) -> str | None:
    """Return the response id an event carries, if any."""
    turn_id = event.get("id")
    if isinstance(turn_id, str):
        return turn_id
    # lifecycle events (response.created etc.) nest the id
    response = event.get("response")
    if isinstance(response, dict) and isinstance(response.get("id"), str):
        return response["id"]
    return None
