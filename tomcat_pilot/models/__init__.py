"""Data models for tomcat-pilot."""

from tomcat_pilot.models.deployment import (
    PROMPT,
    BuildStrategy,
    DeploymentAttempt,
    DeploymentRequest,
    DeploymentResult,
    DeploymentStatus,
    DeploymentTarget,
    SaveReason,
)
from tomcat_pilot.models.log import LogEvent, LogLevel
from tomcat_pilot.models.server import (
    ReloadOutcome,
    ServerInstallation,
    ServerState,
    ServerStatus,
)

__all__ = [
    # Deployment models
    "PROMPT",
    "BuildStrategy",
    "DeploymentAttempt",
    "DeploymentRequest",
    "DeploymentResult",
    "DeploymentStatus",
    "DeploymentTarget",
    "SaveReason",
    # Log models
    "LogEvent",
    "LogLevel",
    # Server models
    "ReloadOutcome",
    "ServerInstallation",
    "ServerState",
    "ServerStatus",
]
