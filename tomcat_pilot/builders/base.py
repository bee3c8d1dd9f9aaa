"""Base classes for build strategies."""

import asyncio
from abc import ABC, abstractmethod
from pathlib import Path

from tomcat_pilot.builders.process import filter_error_lines, output_tail, run_command
from tomcat_pilot.builders.sync import copy_file, copy_tree, remove_path
from tomcat_pilot.config import Settings
from tomcat_pilot.core.exceptions import BuildError
from tomcat_pilot.models.deployment import BuildStrategy, DeploymentTarget
from tomcat_pilot.server.installation import InstallationResolver
from tomcat_pilot.utils.logging import get_logger


class BaseBuilder(ABC):
    """Base class for build strategies.

    Subclasses implement:
    - strategy: which BuildStrategy they serve
    - marker: project-relative path that must exist
    - build(): produce the artifacts into the deployment target
    """

    def __init__(self, resolver: InstallationResolver, settings: Settings):
        self.resolver = resolver
        self.settings = settings
        self.logger = get_logger(f"builder.{self.strategy.value.lower()}")

    @property
    @abstractmethod
    def strategy(self) -> BuildStrategy:
        """Strategy served by this builder."""
        pass

    @property
    @abstractmethod
    def marker(self) -> str:
        """Project-relative path that must exist before building."""
        pass

    @property
    def description(self) -> str:
        return f"{self.strategy.value} build"

    def validate(self, project_dir: Path) -> str | None:
        """Check the strategy's precondition; returns an error message or None."""
        if not (project_dir / self.marker).exists():
            return f"{self.marker} not found in {project_dir}"
        return None

    async def run(self, target: DeploymentTarget) -> None:
        error = self.validate(target.source_dir)
        if error:
            raise BuildError(self.strategy.value, error)
        self.logger.info("builder.started", app=target.app_name, target=str(target.target_dir))
        await self.build(target)
        self.logger.info("builder.completed", app=target.app_name)

    @abstractmethod
    async def build(self, target: DeploymentTarget) -> None:
        """Produce the application into ``target.target_dir``."""
        pass


class ToolchainBuilder(BaseBuilder):
    """A strategy that delegates to an external build tool producing a WAR."""

    # Lines worth showing from a failed build, and noise to drop among them
    error_markers: tuple[str, ...] = ()
    boilerplate: tuple[str, ...] = ()
    strip_tokens: tuple[str, ...] = ()

    @abstractmethod
    def command(self, target: DeploymentTarget) -> list[str]:
        pass

    @abstractmethod
    def locate_archive(self, target: DeploymentTarget) -> Path | None:
        pass

    async def build(self, target: DeploymentTarget) -> None:
        result = await run_command(
            self.command(target),
            target.source_dir,
            self.strategy.value,
            encoding=self.settings.log_encoding,
        )
        if not result.ok:
            errors = filter_error_lines(
                result.output, self.error_markers, self.boilerplate, self.strip_tokens
            )
            message = "\n".join(errors) or output_tail(result.output)
            raise BuildError(self.strategy.value, message, output_tail(result.output, 50))

        archive = self.locate_archive(target)
        if archive is None:
            raise BuildError(
                self.strategy.value, f"No WAR file found after {self.strategy.value} build."
            )
        await asyncio.to_thread(self.install_archive, archive, target)

    def install_archive(self, archive: Path, target: DeploymentTarget) -> None:
        """Replace the deployed app with a fresh archive (and exploded copy)."""
        if target.target_dir.exists():
            remove_path(target.target_dir)
        if target.archive_path.exists():
            remove_path(target.archive_path)

        copy_file(archive, target.archive_path)

        exploded = archive.with_suffix("")
        if exploded.is_dir():
            copy_tree(exploded, target.target_dir)
        self.logger.info(
            "builder.archive_installed",
            archive=str(archive),
            exploded=exploded.is_dir(),
        )
