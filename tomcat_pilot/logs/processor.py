"""Log Stream Processor.

Merges the two raw sources of server output, the live process stream and the
rotating access log, into one queue of LogEvents and republishes them to the
event bus and the structured logger. Trigger patterns additionally notify
registered listeners (readiness tracking, browser refresh).
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path

from tomcat_pilot.config import Settings
from tomcat_pilot.core.events import LogEventBus
from tomcat_pilot.logs.access_log import AccessLogTailer, sanitize_access_line
from tomcat_pilot.logs.classifier import Trigger, classify_process_line
from tomcat_pilot.models.log import LogEvent, LogLevel
from tomcat_pilot.utils.logging import get_logger

TriggerListener = Callable[[Trigger, str], Awaitable[None] | None]

_STDLIB_LEVELS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.SUCCESS: logging.INFO,
    LogLevel.HTTP: logging.INFO,
    LogLevel.APP: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


class LogStreamProcessor:
    """Classifies server output and fans it out."""

    def __init__(self, bus: LogEventBus, settings: Settings):
        self.bus = bus
        self.settings = settings
        self.min_level = LogLevel(settings.event_level)
        self.logger = get_logger("tomcat")

        self._queue: asyncio.Queue[LogEvent] = asyncio.Queue()
        self._listeners: list[TriggerListener] = []
        self._tasks: set[asyncio.Task] = set()
        self._dispatcher: asyncio.Task[None] | None = None
        self._tailer: AccessLogTailer | None = None

    # -- lifecycle -----------------------------------------------------

    async def start(self, logs_dir: Path | None = None) -> None:
        """Start dispatching, and tail access logs when a logs dir is known."""
        if self._dispatcher is None or self._dispatcher.done():
            self._dispatcher = asyncio.create_task(self._dispatch(), name="log-dispatch")
        if logs_dir is not None:
            await self.watch_access_logs(logs_dir)

    async def watch_access_logs(self, logs_dir: Path) -> None:
        """(Re)start access log tailing; the process stream is unaffected."""
        if self._tailer and self._tailer.logs_dir == logs_dir and self._tailer.running:
            return
        if self._tailer:
            await self._tailer.stop()
        self._tailer = AccessLogTailer(
            logs_dir,
            self._on_access_line,
            poll_interval=self.settings.access_log_poll_interval,
            encoding=self.settings.log_encoding,
        )
        self._tailer.start()
        self.logger.debug("log_stream.access_log_watch", logs_dir=str(logs_dir))

    async def stop(self) -> None:
        """Release the tailer, pending listener tasks and the dispatcher."""
        if self._tailer:
            await self._tailer.stop()
            self._tailer = None
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        if self._dispatcher:
            self._dispatcher.cancel()
            try:
                await self._dispatcher
            except asyncio.CancelledError:
                pass
            self._dispatcher = None

    async def drain(self) -> None:
        """Wait until every queued event has been published."""
        await self._queue.join()

    # -- producers -----------------------------------------------------

    def add_trigger_listener(self, listener: TriggerListener) -> None:
        self._listeners.append(listener)

    def feed_process_line(self, raw: str) -> LogEvent | None:
        """Classify one line of server stdout/stderr."""
        classified = classify_process_line(raw)
        if classified is None:
            return None
        if classified.trigger is not None:
            self._fire(classified.trigger, raw)
        event = LogEvent(level=classified.level, message=classified.message, source="process")
        self._enqueue(event)
        return event

    async def _on_access_line(self, raw: str) -> None:
        message = sanitize_access_line(raw)
        if message:
            self._enqueue(LogEvent(level=LogLevel.HTTP, message=message, source="access_log"))

    def emit(self, level: LogLevel, message: str) -> LogEvent:
        """Publish a message produced by tomcat-pilot itself."""
        event = LogEvent(level=level, message=message, source="internal")
        self._enqueue(event)
        return event

    def info(self, message: str) -> LogEvent:
        return self.emit(LogLevel.INFO, message)

    def success(self, message: str) -> LogEvent:
        return self.emit(LogLevel.SUCCESS, message)

    def warn(self, message: str) -> LogEvent:
        return self.emit(LogLevel.WARN, message)

    def error(self, message: str, detail: str | None = None) -> LogEvent:
        return self.emit(LogLevel.ERROR, f"{message}\n{detail}" if detail else message)

    # -- internals -----------------------------------------------------

    def _enqueue(self, event: LogEvent) -> None:
        if event.level.rank < self.min_level.rank:
            return
        self._queue.put_nowait(event)

    def _fire(self, trigger: Trigger, line: str) -> None:
        for listener in self._listeners:
            result = listener(trigger, line)
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._listener_done)

    def _listener_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self.logger.warning("log_stream.trigger_failed", error=str(task.exception()))

    async def _dispatch(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self.bus.publish(event)
                self.logger.log(
                    _STDLIB_LEVELS[event.level],
                    "server.log",
                    kind=event.level.value,
                    source=event.source,
                    message=event.message,
                )
            finally:
                self._queue.task_done()
