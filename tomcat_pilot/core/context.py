"""Shared state owned by one tomcat-pilot instance."""

from dataclasses import dataclass, field
from pathlib import Path

from tomcat_pilot.config import AutoDeployMode, BuildType, Settings
from tomcat_pilot.core.config_store import PersistedConfig


@dataclass
class ServerContext:
    """Mutable state shared by the orchestrator and the lifecycle manager.

    Holds what the components would otherwise keep as globals: the cached
    installation paths, the active port and the deploy-in-flight flag.
    """

    settings: Settings
    store: PersistedConfig
    project_dir: Path
    port: int
    tomcat_home: Path | None = None
    java_home: Path | None = None
    auto_deploy_mode: AutoDeployMode = "Disabled"
    auto_deploy_build_type: BuildType = "Fast"
    deploy_in_flight: bool = field(default=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ServerContext":
        store = PersistedConfig(Path(settings.config_file).expanduser())
        return cls(
            settings=settings,
            store=store,
            project_dir=settings.project_path,
            port=int(store.get("port", settings.port)),
            auto_deploy_mode=store.get("auto_deploy_mode", settings.auto_deploy_mode),
            auto_deploy_build_type=store.get(
                "auto_deploy_build_type", settings.auto_deploy_build_type
            ),
        )

    @property
    def app_name(self) -> str:
        """Deployed application name: the project's root directory name."""
        return self.project_dir.name

    def invalidate_installation(self) -> None:
        """Forget cached installation paths after a configuration change."""
        self.tomcat_home = None
        self.java_home = None

    def set_port(self, port: int) -> None:
        """Update the in-memory and persisted port together."""
        self.port = port
        self.store.update("port", port)
