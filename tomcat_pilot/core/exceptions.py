"""Exception hierarchy for tomcat-pilot."""

import errno
from typing import Any


class TomcatPilotError(Exception):
    """Base exception for tomcat-pilot."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class InstallationNotFoundError(TomcatPilotError):
    """A Tomcat or Java installation could not be resolved."""

    def __init__(self, kind: str, tried: list[str] | None = None):
        super().__init__(
            f"{kind} installation not found",
            {"kind": kind, "tried": tried or []},
        )
        self.kind = kind


class BuildError(TomcatPilotError):
    """A build strategy failed its precondition or its toolchain failed."""

    def __init__(self, strategy: str, message: str, output: str | None = None):
        details: dict[str, Any] = {"strategy": strategy}
        if output:
            details["output"] = output
        super().__init__(message, details)
        self.strategy = strategy


class ResourceBusyError(TomcatPilotError):
    """The deployment target is locked by another process."""

    pass


class ManagerProtocolError(TomcatPilotError):
    """The Tomcat manager rejected a request."""

    def __init__(self, status_code: int | None, body: str = ""):
        super().__init__(
            f"Manager request failed: {body.strip() or status_code}",
            {"status_code": status_code},
        )
        self.status_code = status_code


class PortValidationError(TomcatPilotError):
    """A requested listen port is out of range or already bound."""

    def __init__(self, port: int, reason: str):
        super().__init__(reason, {"port": port})
        self.port = port


class ConfigurationMutationError(TomcatPilotError):
    """Patching a server configuration file failed."""

    def __init__(self, path: str, message: str):
        super().__init__(message, {"path": path})
        self.path = path


_BUSY_MARKERS = (
    "EBUSY",
    "resource busy or locked",
    "Device or resource busy",
    "being used by another process",
)


def is_resource_busy(exc: BaseException) -> bool:
    """Whether an exception means the target is locked by another process."""
    if isinstance(exc, ResourceBusyError):
        return True
    if isinstance(exc, OSError):
        if exc.errno == errno.EBUSY:
            return True
        # ERROR_SHARING_VIOLATION / ERROR_LOCK_VIOLATION
        if getattr(exc, "winerror", None) in (32, 33):
            return True
    message = str(exc)
    return any(marker in message for marker in _BUSY_MARKERS)
