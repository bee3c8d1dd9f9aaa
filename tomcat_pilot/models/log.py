"""Log event models."""

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class LogLevel(str, Enum):
    """Semantic level of a log event."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    SUCCESS = "SUCCESS"
    HTTP = "HTTP"
    APP = "APP"
    WARN = "WARN"
    ERROR = "ERROR"

    @property
    def rank(self) -> int:
        """Position in the display ordering used for level filtering."""
        return _LEVEL_ORDER.index(self)

    @property
    def prominent(self) -> bool:
        """Whether events at this level should be surfaced to the user."""
        return self in (LogLevel.WARN, LogLevel.ERROR, LogLevel.APP)


_LEVEL_ORDER = [
    LogLevel.DEBUG,
    LogLevel.INFO,
    LogLevel.SUCCESS,
    LogLevel.HTTP,
    LogLevel.APP,
    LogLevel.WARN,
    LogLevel.ERROR,
]


class LogEvent(BaseModel):
    """A classified line of server output."""

    level: LogLevel
    message: str
    timestamp: datetime = Field(default_factory=datetime.now)
    source: Literal["process", "access_log", "internal"] = "internal"

    @property
    def prominent(self) -> bool:
        return self.level.prominent

    def format(self, show_timestamp: bool = True) -> str:
        """Render as a single display line."""
        prefix = f"[{self.timestamp:%Y-%m-%d %H:%M:%S}] " if show_timestamp else ""
        return f"{prefix}[{self.level.value}] {self.message}"
