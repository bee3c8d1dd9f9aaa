"""Interfaces of the collaborators that live outside the core.

The editor, the scaffolding flow and the browser are driven through these
protocols. The headless defaults below are what the control API uses.
"""

import asyncio
import webbrowser
from pathlib import Path
from typing import Protocol

from tomcat_pilot.models.deployment import BuildStrategy
from tomcat_pilot.utils.logging import get_logger

logger = get_logger(__name__)


class EditorBuffers(Protocol):
    async def save_all(self) -> None: ...


class StrategyPrompt(Protocol):
    async def choose_strategy(self) -> BuildStrategy | None: ...


class FolderPrompt(Protocol):
    async def select_folder(self, label: str) -> Path | None: ...


class ProjectScaffolder(Protocol):
    async def create_project(self, project_dir: Path) -> None: ...


class BrowserController(Protocol):
    async def refresh(self, app_name: str) -> None: ...


class HeadlessEditor:
    """No unsaved buffers outside an editor."""

    async def save_all(self) -> None:
        return None


class FixedStrategyPrompt:
    """Answers the strategy prompt with a preconfigured choice (or dismisses it)."""

    def __init__(self, choice: BuildStrategy | None = None):
        self.choice = choice

    async def choose_strategy(self) -> BuildStrategy | None:
        return self.choice


class NoFolderPrompt:
    """Never finds a folder; resolution falls through to an error."""

    async def select_folder(self, label: str) -> Path | None:
        logger.info("prompt.folder_unavailable", label=label)
        return None


class LoggingScaffolder:
    async def create_project(self, project_dir: Path) -> None:
        logger.warning(
            "scaffold.no_java_ee_project",
            project_dir=str(project_dir),
            hint="create a Maven webapp (maven-archetype-webapp) to get started",
        )


class SystemBrowser:
    """Opens the application URL in the default system browser."""

    def __init__(self, port_getter, host: str = "localhost"):
        self._port_getter = port_getter
        self.host = host

    def url_for(self, app_name: str) -> str:
        return f"http://{self.host}:{self._port_getter()}/{app_name}"

    async def refresh(self, app_name: str) -> None:
        url = self.url_for(app_name)
        logger.info("browser.refresh", url=url)
        await asyncio.to_thread(webbrowser.open, url, 0, False)


class LoggingBrowser:
    """Records refresh requests instead of opening a browser."""

    async def refresh(self, app_name: str) -> None:
        logger.info("browser.refresh_skipped", app=app_name)
