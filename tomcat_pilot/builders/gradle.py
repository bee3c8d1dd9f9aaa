"""Gradle build strategy."""

from pathlib import Path

from tomcat_pilot.builders.base import ToolchainBuilder
from tomcat_pilot.models.deployment import BuildStrategy, DeploymentTarget
from tomcat_pilot.models.server import IS_WINDOWS


class GradleBuilder(ToolchainBuilder):
    """Runs the ``war`` task, preferring the project's Gradle wrapper."""

    error_markers = ("error:", "FAILURE", "What went wrong")
    boilerplate = (
        "--stacktrace",
        "--info",
        "--debug",
        "--scan",
        "Get more help at",
        "http://",
        "https://",
    )

    @property
    def strategy(self) -> BuildStrategy:
        return BuildStrategy.GRADLE

    @property
    def marker(self) -> str:
        return "build.gradle"

    def executable(self, project_dir: Path) -> str:
        wrapper = project_dir / ("gradlew.bat" if IS_WINDOWS else "gradlew")
        return str(wrapper) if wrapper.exists() else "gradle"

    def command(self, target: DeploymentTarget) -> list[str]:
        return [
            self.executable(target.source_dir),
            "war",
            f"-PfinalName={target.app_name}",
        ]

    def locate_archive(self, target: DeploymentTarget) -> Path | None:
        libs = target.source_dir / "build" / "libs"
        named = libs / f"{target.app_name}.war"
        if named.exists():
            return named
        wars = sorted(libs.glob("*.war"))
        return wars[0] if wars else None
