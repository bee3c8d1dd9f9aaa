"""Server log streaming."""

import asyncio
from typing import Annotated

from fastapi import APIRouter, Query
from sse_starlette.sse import EventSourceResponse

from tomcat_pilot.api.deps import BusDep, ContextDep
from tomcat_pilot.core.events import to_sse
from tomcat_pilot.models.log import LogEvent, LogLevel

router = APIRouter()

KEEPALIVE_SECONDS = 30.0


@router.get("/stream", summary="Stream server log events (SSE)")
async def stream_logs(
    bus: BusDep,
    context: ContextDep,
    level: Annotated[LogLevel, Query(description="Minimum level to stream")] = LogLevel.DEBUG,
) -> EventSourceResponse:
    """Stream classified Tomcat output and access log entries."""
    show_timestamp = context.settings.show_timestamp

    async def event_generator():
        token, queue = bus.subscribe()
        try:
            yield {"event": "connected", "data": "{}"}
            while True:
                try:
                    event: LogEvent = await asyncio.wait_for(
                        queue.get(), timeout=KEEPALIVE_SECONDS
                    )
                except asyncio.TimeoutError:
                    yield {"event": "keepalive", "data": "{}"}
                    continue
                if event.level.rank >= level.rank:
                    yield to_sse(event, show_timestamp)
        finally:
            bus.unsubscribe(token)

    return EventSourceResponse(event_generator())
