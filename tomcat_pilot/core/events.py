"""Fan-out of LogEvents to subscribers (UI output, SSE streams)."""

import asyncio
import json
from uuid import UUID, uuid4

from tomcat_pilot.models.log import LogEvent


def to_sse(event: LogEvent, show_timestamp: bool = True) -> dict[str, str]:
    """Convert to the mapping sse-starlette expects.

    ``text`` is the ready-to-display line for consumers that only print.
    """
    data = {
        "text": event.format(show_timestamp),
        "level": event.level.value,
        "message": event.message,
        "source": event.source,
        "prominent": event.prominent,
        "timestamp": event.timestamp.isoformat(),
    }
    return {"event": event.level.value.lower(), "data": json.dumps(data)}


class LogEventBus:
    """Publishes every LogEvent to all current subscribers."""

    def __init__(self, max_queue: int = 1000):
        self._subscribers: dict[UUID, asyncio.Queue[LogEvent]] = {}
        self._max_queue = max_queue

    def subscribe(self) -> tuple[UUID, asyncio.Queue[LogEvent]]:
        """Register a new subscriber queue."""
        token = uuid4()
        self._subscribers[token] = asyncio.Queue(maxsize=self._max_queue)
        return token, self._subscribers[token]

    def unsubscribe(self, token: UUID) -> None:
        self._subscribers.pop(token, None)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def publish(self, event: LogEvent) -> None:
        """Deliver an event; slow subscribers lose their oldest event."""
        for queue in list(self._subscribers.values()):
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(event)
