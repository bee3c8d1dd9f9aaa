"""Core functionality for tomcat-pilot."""

from tomcat_pilot.core.context import ServerContext
from tomcat_pilot.core.events import LogEventBus
from tomcat_pilot.core.exceptions import (
    BuildError,
    ConfigurationMutationError,
    InstallationNotFoundError,
    ManagerProtocolError,
    PortValidationError,
    ResourceBusyError,
    TomcatPilotError,
)

__all__ = [
    "BuildError",
    "ConfigurationMutationError",
    "InstallationNotFoundError",
    "LogEventBus",
    "ManagerProtocolError",
    "PortValidationError",
    "ResourceBusyError",
    "ServerContext",
    "TomcatPilotError",
]
