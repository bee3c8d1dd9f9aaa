"""Rotation-aware tailing of Tomcat's access log."""

import asyncio
import os
import re
from collections.abc import Awaitable, Callable
from datetime import date
from pathlib import Path
from typing import BinaryIO

from tomcat_pilot.utils.logging import get_logger

logger = get_logger(__name__)

ACCESS_LOG_PREFIX = "localhost_access_log."
DATE_RE = re.compile(r"(\d{4})-(\d{2})-(\d{2})")

LOOPBACK_RE = re.compile(r"(?:0:0:0:0:0:0:0:1|::1|127\.0\.0\.1)\s+-\s*-?\s?")
BRACKET_RE = re.compile(r"\[.*?\]")
HTTP_VERSION_RE = re.compile(r"HTTP/\d(?:\.\d)?")

LineHandler = Callable[[str], Awaitable[None]]


def sanitize_access_line(raw: str) -> str:
    """Reduce an access log entry to ``METHOD - PATH - STATUS - BYTES``."""
    line = LOOPBACK_RE.sub("", raw)
    line = BRACKET_RE.sub("", line)
    line = HTTP_VERSION_RE.sub("", line)
    line = line.replace('"', " ")
    return " - ".join(token for token in line.split() if token != "-")


def _log_date(name: str) -> date:
    match = DATE_RE.search(name)
    if not match:
        return date.min
    try:
        return date(*(int(part) for part in match.groups()))
    except ValueError:
        return date.min


def find_latest_access_log(logs_dir: Path) -> Path | None:
    """The access log with the latest date in its file name."""
    try:
        names = [
            entry.name
            for entry in os.scandir(logs_dir)
            if entry.is_file() and entry.name.startswith(ACCESS_LOG_PREFIX)
        ]
    except FileNotFoundError:
        return None
    if not names:
        return None
    latest = max(names, key=lambda name: (_log_date(name), name))
    return logs_dir / latest


class AccessLogTailer:
    """Follows the current access log across date rotation.

    Every poll the logs directory is rescanned. When a newer file appears the
    old reader is closed and the new file is followed from its beginning (the
    very first file is followed from its end, so history is not replayed).
    Appended bytes are read from a persistent handle; if the handle fails or
    the file was replaced or truncated, the size delta is read with a fresh
    open instead.
    """

    def __init__(
        self,
        logs_dir: Path,
        on_line: LineHandler,
        poll_interval: float = 0.5,
        encoding: str = "utf-8",
    ):
        self.logs_dir = logs_dir
        self.on_line = on_line
        self.poll_interval = poll_interval
        self.encoding = encoding

        self.current: Path | None = None
        self._handle: BinaryIO | None = None
        self._inode: int | None = None
        self._offset = 0
        self._pending = b""
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if not self.running:
            self._task = asyncio.create_task(self._run(), name="access-log-tailer")

    async def stop(self) -> None:
        """Cancel polling and release the file handle."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._close()
        self.current = None

    async def _run(self) -> None:
        while True:
            try:
                await self.poll_once()
            except OSError as e:
                logger.debug("access_log.poll_failed", error=str(e))
            await asyncio.sleep(self.poll_interval)

    async def poll_once(self) -> int:
        """Check for rotation and growth; returns the number of lines handled."""
        latest = await asyncio.to_thread(find_latest_access_log, self.logs_dir)
        if latest is None:
            return 0
        if latest != self.current:
            await asyncio.to_thread(self._switch, latest, self.current is None)

        chunk = await asyncio.to_thread(self._read_appended)
        lines = self._split(chunk)
        for line in lines:
            await self.on_line(line)
        return len(lines)

    def _switch(self, path: Path, start_at_end: bool) -> None:
        logger.debug("access_log.switch", path=str(path), previous=str(self.current))
        self._close()
        self.current = path
        self._pending = b""
        self._open(start_at_end)

    def _open(self, start_at_end: bool) -> None:
        assert self.current is not None
        try:
            self._handle = open(self.current, "rb")
            st = os.fstat(self._handle.fileno())
        except OSError as e:
            logger.debug("access_log.open_failed", path=str(self.current), error=str(e))
            self._close()
            try:
                st = os.stat(self.current)
            except OSError:
                self._offset = 0
                return
        self._inode = st.st_ino
        self._offset = st.st_size if start_at_end else 0

    def _close(self) -> None:
        if self._handle is not None:
            self._handle.close()
        self._handle = None
        self._inode = None

    def _read_appended(self) -> bytes:
        if self.current is None:
            return b""
        try:
            st = os.stat(self.current)
        except FileNotFoundError:
            self._close()
            return b""

        replaced = self._inode is not None and st.st_ino != self._inode
        if replaced or st.st_size < self._offset:
            self._close()
            self._pending = b""
            self._open(start_at_end=False)
        if st.st_size <= self._offset:
            return b""

        data = b""
        if self._handle is not None:
            try:
                self._handle.seek(self._offset)
                data = self._handle.read(st.st_size - self._offset)
            except OSError as e:
                logger.debug("access_log.stream_failed", error=str(e))
                self._close()
        if self._handle is None:
            data = self._read_range(self._offset, st.st_size)

        self._offset += len(data)
        return data

    def _read_range(self, start: int, end: int) -> bytes:
        assert self.current is not None
        with open(self.current, "rb") as f:
            f.seek(start)
            return f.read(end - start)

    def _split(self, chunk: bytes) -> list[str]:
        if not chunk:
            return []
        data = self._pending + chunk
        parts = data.split(b"\n")
        self._pending = parts.pop()
        lines = []
        for part in parts:
            text = part.decode(self.encoding, errors="replace").rstrip("\r")
            if text.strip():
                lines.append(text)
        return lines
