"""Maven build strategy."""

from pathlib import Path

from tomcat_pilot.builders.base import ToolchainBuilder
from tomcat_pilot.models.deployment import BuildStrategy, DeploymentTarget
from tomcat_pilot.models.server import IS_WINDOWS


class MavenBuilder(ToolchainBuilder):
    """Runs ``mvn clean package`` and installs the resulting WAR."""

    error_markers = ("[ERROR]",)
    boilerplate = (
        "Re-run Maven",
        "re-run Maven",
        "[Help",
        "For more information",
        "http://",
        "https://",
        "-e switch",
        "-X switch",
    )
    strip_tokens = ("[ERROR]",)

    @property
    def strategy(self) -> BuildStrategy:
        return BuildStrategy.MAVEN

    @property
    def marker(self) -> str:
        return "pom.xml"

    def command(self, target: DeploymentTarget) -> list[str]:
        return ["mvn.cmd" if IS_WINDOWS else "mvn", "clean", "package"]

    def locate_archive(self, target: DeploymentTarget) -> Path | None:
        wars = sorted((target.source_dir / "target").glob("*.war"))
        return wars[0] if wars else None
