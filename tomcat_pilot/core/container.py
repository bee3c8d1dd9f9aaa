"""Wiring of the long-lived components of one tomcat-pilot instance."""

from dataclasses import dataclass

import httpx

from tomcat_pilot.builders import BuilderRegistry, default_registry
from tomcat_pilot.config import Settings
from tomcat_pilot.core.collaborators import (
    BrowserController,
    EditorBuffers,
    FixedStrategyPrompt,
    FolderPrompt,
    HeadlessEditor,
    LoggingBrowser,
    LoggingScaffolder,
    NoFolderPrompt,
    ProjectScaffolder,
    StrategyPrompt,
    SystemBrowser,
)
from tomcat_pilot.core.context import ServerContext
from tomcat_pilot.core.events import LogEventBus
from tomcat_pilot.core.orchestrator import DeploymentOrchestrator
from tomcat_pilot.logs.classifier import Trigger
from tomcat_pilot.logs.processor import LogStreamProcessor
from tomcat_pilot.server.installation import InstallationResolver
from tomcat_pilot.server.lifecycle import TomcatManager
from tomcat_pilot.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class Services:
    context: ServerContext
    bus: LogEventBus
    processor: LogStreamProcessor
    resolver: InstallationResolver
    manager: TomcatManager
    builders: BuilderRegistry
    orchestrator: DeploymentOrchestrator

    async def start(self) -> None:
        tomcat_home = self.resolver.peek_tomcat_home()
        await self.processor.start(tomcat_home / "logs" if tomcat_home else None)
        logger.info(
            "services.started",
            project_dir=str(self.context.project_dir),
            tomcat_home=str(tomcat_home) if tomcat_home else None,
            port=self.context.port,
        )

    async def shutdown(self) -> None:
        await self.manager.shutdown()
        await self.processor.stop()
        logger.info("services.stopped")


def build_services(
    settings: Settings,
    *,
    http_client: httpx.AsyncClient | None = None,
    editor: EditorBuffers | None = None,
    strategy_prompt: StrategyPrompt | None = None,
    folder_prompt: FolderPrompt | None = None,
    scaffolder: ProjectScaffolder | None = None,
    browser: BrowserController | None = None,
) -> Services:
    """Create the components and connect them; nothing is started yet."""
    context = ServerContext.from_settings(settings)
    bus = LogEventBus()
    processor = LogStreamProcessor(bus, settings)
    resolver = InstallationResolver(context, folder_prompt or NoFolderPrompt())
    manager = TomcatManager(context, processor, resolver, http_client=http_client)
    builders = default_registry(resolver, settings)

    if browser is None:
        browser = (
            SystemBrowser(lambda: context.port) if settings.open_browser else LoggingBrowser()
        )

    async def refresh_on_trigger(trigger: Trigger, line: str) -> None:
        await browser.refresh(context.app_name)

    processor.add_trigger_listener(refresh_on_trigger)

    orchestrator = DeploymentOrchestrator(
        context=context,
        manager=manager,
        processor=processor,
        resolver=resolver,
        builders=builders,
        editor=editor or HeadlessEditor(),
        strategy_prompt=strategy_prompt or FixedStrategyPrompt(),
        scaffolder=scaffolder or LoggingScaffolder(),
        browser=browser,
    )
    return Services(
        context=context,
        bus=bus,
        processor=processor,
        resolver=resolver,
        manager=manager,
        builders=builders,
        orchestrator=orchestrator,
    )
