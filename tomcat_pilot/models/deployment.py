"""Deployment data models."""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from tomcat_pilot.models.server import ReloadOutcome

PROMPT = "prompt"


class BuildStrategy(str, Enum):
    """Supported ways of producing a deployable application."""

    FAST = "Fast"
    MAVEN = "Maven"
    GRADLE = "Gradle"


class DeploymentStatus(str, Enum):
    """Terminal status of one deploy() call."""

    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"
    NO_PROJECT = "no_project"


class DeploymentTarget(BaseModel):
    """Where one project's artifacts come from and go to."""

    app_name: str
    source_dir: Path
    target_dir: Path

    @classmethod
    def for_project(cls, project_dir: Path, tomcat_home: Path) -> "DeploymentTarget":
        app_name = project_dir.name
        return cls(
            app_name=app_name,
            source_dir=project_dir,
            target_dir=tomcat_home / "webapps" / app_name,
        )

    @property
    def archive_path(self) -> Path:
        return self.target_dir.with_name(f"{self.app_name}.war")

    def is_deployed(self) -> bool:
        """Whether the target directory or archive exists."""
        return self.target_dir.exists() or self.archive_path.exists()


class DeploymentAttempt(BaseModel):
    """State of the deploy currently in flight."""

    strategy: BuildStrategy
    started_at: datetime = Field(default_factory=datetime.now)
    retries: int = Field(default=0, ge=0, le=3)


class DeploymentRequest(BaseModel):
    """Request body for a deploy."""

    strategy: BuildStrategy | Literal["prompt"] = PROMPT


class DeploymentResult(BaseModel):
    """Result of a deploy."""

    status: DeploymentStatus
    strategy: BuildStrategy | None = None
    app_name: str | None = None
    duration_ms: int = 0
    retries: int = 0
    reload: ReloadOutcome | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.status == DeploymentStatus.COMPLETED


class SaveReason(str, Enum):
    """Why a file save happened; decides whether auto-deploy fires."""

    MANUAL = "manual"
    AUTO = "auto"


DEPLOY_MODE_CYCLE = ("Disabled", "On Shortcut", "On Save")
