"""Deployment Orchestrator.

Coordinates one deploy: project detection, strategy selection, the build
itself with bounded retries on file contention, then the hot reload and
browser refresh.
"""

import time

from tomcat_pilot.builders.project import is_java_ee_project
from tomcat_pilot.builders.registry import BuilderRegistry
from tomcat_pilot.core.collaborators import (
    BrowserController,
    EditorBuffers,
    ProjectScaffolder,
    StrategyPrompt,
)
from tomcat_pilot.core.context import ServerContext
from tomcat_pilot.core.exceptions import (
    InstallationNotFoundError,
    TomcatPilotError,
    is_resource_busy,
)
from tomcat_pilot.logs.processor import LogStreamProcessor
from tomcat_pilot.models.deployment import (
    DEPLOY_MODE_CYCLE,
    PROMPT,
    BuildStrategy,
    DeploymentAttempt,
    DeploymentResult,
    DeploymentStatus,
    DeploymentTarget,
    SaveReason,
)
from tomcat_pilot.models.server import ReloadOutcome
from tomcat_pilot.server.installation import InstallationResolver
from tomcat_pilot.server.lifecycle import TomcatManager
from tomcat_pilot.utils.logging import get_logger

# Retries after the first attempt when the target is locked
MAX_BUSY_RETRIES = 3


class DeploymentOrchestrator:
    """Orchestrates deploys of the project into the local Tomcat.

    Deploy phases:
    1. guard - at most one deploy in flight
    2. detect - is there a Java EE project at all
    3. select - resolve "prompt" into a concrete strategy
    4. build - run the builder, killing Tomcat between busy retries
    5. reload - hot-reload through the manager, then refresh the browser
    """

    def __init__(
        self,
        context: ServerContext,
        manager: TomcatManager,
        processor: LogStreamProcessor,
        resolver: InstallationResolver,
        builders: BuilderRegistry,
        editor: EditorBuffers,
        strategy_prompt: StrategyPrompt,
        scaffolder: ProjectScaffolder,
        browser: BrowserController,
    ):
        self.context = context
        self.manager = manager
        self.processor = processor
        self.resolver = resolver
        self.builders = builders
        self.editor = editor
        self.strategy_prompt = strategy_prompt
        self.scaffolder = scaffolder
        self.browser = browser
        self.attempt: DeploymentAttempt | None = None
        self.logger = get_logger("orchestrator")

    @property
    def in_flight(self) -> bool:
        return self.context.deploy_in_flight

    async def deploy(self, strategy: BuildStrategy | str = PROMPT) -> DeploymentResult:
        """Build and deploy the project with ``strategy`` (or ask for one)."""
        if self.context.deploy_in_flight:
            self.logger.info("orchestrator.deploy.skipped", reason="in_flight")
            return DeploymentResult(status=DeploymentStatus.SKIPPED)
        self.context.deploy_in_flight = True
        try:
            return await self._deploy(strategy)
        finally:
            self.context.deploy_in_flight = False
            self.attempt = None

    async def _deploy(self, strategy: BuildStrategy | str) -> DeploymentResult:
        project_dir = self.context.project_dir
        app_name = self.context.app_name

        if not is_java_ee_project(project_dir):
            self.logger.info("orchestrator.deploy.no_project", project_dir=str(project_dir))
            await self.scaffolder.create_project(project_dir)
            return DeploymentResult(status=DeploymentStatus.NO_PROJECT, app_name=app_name)

        if strategy == PROMPT:
            chosen = await self.strategy_prompt.choose_strategy()
            if chosen is None:
                self.logger.info("orchestrator.deploy.cancelled")
                return DeploymentResult(status=DeploymentStatus.CANCELLED, app_name=app_name)
            strategy = chosen
        strategy = BuildStrategy(strategy)

        builder = self.builders.get(strategy)
        if builder is None:
            return self._failed(strategy, app_name, f"No builder registered for {strategy.value}")

        try:
            installation = await self.resolver.resolve()
            if not installation.webapps_dir.is_dir():
                raise InstallationNotFoundError(
                    "Tomcat webapps", [str(installation.webapps_dir)]
                )
        except InstallationNotFoundError as e:
            return self._failed(strategy, app_name, e.message)

        await self.editor.save_all()

        target = DeploymentTarget.for_project(project_dir, installation.tomcat_home)
        self.attempt = DeploymentAttempt(strategy=strategy)

        while True:
            started = time.monotonic()
            self.logger.info(
                "orchestrator.build.started",
                strategy=strategy.value,
                app=app_name,
                retries=self.attempt.retries,
            )
            try:
                await builder.run(target)
            except (TomcatPilotError, OSError) as e:
                if is_resource_busy(e) and self.attempt.retries < MAX_BUSY_RETRIES:
                    self.attempt.retries += 1
                    self.logger.warning(
                        "orchestrator.build.busy",
                        strategy=strategy.value,
                        retry=self.attempt.retries,
                        max_retries=MAX_BUSY_RETRIES,
                    )
                    self.processor.warn(
                        f"Target is locked, stopping Tomcat and retrying "
                        f"({self.attempt.retries}/{MAX_BUSY_RETRIES})"
                    )
                    await self.manager.kill()
                    continue
                return self._failed(
                    strategy,
                    app_name,
                    e.message if isinstance(e, TomcatPilotError) else str(e),
                    retries=self.attempt.retries,
                )
            break

        duration_ms = int((time.monotonic() - started) * 1000)
        if not target.is_deployed():
            return self._failed(
                strategy,
                app_name,
                f"Nothing was deployed to {target.target_dir}",
                retries=self.attempt.retries,
            )

        self.processor.success(f"{strategy.value} Build completed in {duration_ms}ms")
        self.logger.info(
            "orchestrator.build.completed",
            strategy=strategy.value,
            app=app_name,
            duration_ms=duration_ms,
        )

        reload = await self._reload()
        await self._refresh(app_name)

        return DeploymentResult(
            status=DeploymentStatus.COMPLETED,
            strategy=strategy,
            app_name=app_name,
            duration_ms=duration_ms,
            retries=self.attempt.retries,
            reload=reload,
        )

    async def _reload(self) -> ReloadOutcome | None:
        try:
            return await self.manager.reload()
        except TomcatPilotError as e:
            self.logger.error("orchestrator.reload.failed", error=e.message)
            self.processor.error("Reload failed:", e.message)
            return None

    async def _refresh(self, app_name: str) -> None:
        try:
            await self.browser.refresh(app_name)
        except Exception as e:
            self.logger.warning("orchestrator.refresh.failed", app=app_name, error=str(e))

    def _failed(
        self,
        strategy: BuildStrategy,
        app_name: str,
        message: str,
        retries: int = 0,
    ) -> DeploymentResult:
        self.logger.error(
            "orchestrator.build.failed",
            strategy=strategy.value,
            app=app_name,
            retries=retries,
            error=message,
        )
        self.processor.error(f"{strategy.value} Build failed:", message)
        return DeploymentResult(
            status=DeploymentStatus.FAILED,
            strategy=strategy,
            app_name=app_name,
            retries=retries,
            error=message,
        )

    # -- auto deploy -----------------------------------------------------

    async def auto_deploy(self, reason: SaveReason) -> DeploymentResult:
        """Deploy in response to a file save, according to the deploy mode."""
        mode = self.context.auto_deploy_mode
        if mode == "Disabled" or (mode == "On Shortcut" and reason != SaveReason.MANUAL):
            self.logger.debug("orchestrator.auto_deploy.ignored", mode=mode, reason=reason.value)
            return DeploymentResult(status=DeploymentStatus.SKIPPED, app_name=self.context.app_name)
        return await self.deploy(BuildStrategy(self.context.auto_deploy_build_type))

    def toggle_deploy_mode(self) -> str:
        """Advance Disabled -> On Shortcut -> On Save -> Disabled and persist it."""
        current = self.context.auto_deploy_mode
        index = DEPLOY_MODE_CYCLE.index(current) if current in DEPLOY_MODE_CYCLE else -1
        mode = DEPLOY_MODE_CYCLE[(index + 1) % len(DEPLOY_MODE_CYCLE)]
        self.context.auto_deploy_mode = mode
        self.context.store.update("auto_deploy_mode", mode)
        self.processor.info(f"Auto-deploy mode: {mode}")
        self.logger.info("orchestrator.deploy_mode.changed", mode=mode)
        return mode

    def set_deploy_mode(self, mode: str, build_type: str | None = None) -> None:
        """Set the deploy mode (and optionally the auto-deploy strategy) and persist them."""
        if mode not in DEPLOY_MODE_CYCLE:
            raise TomcatPilotError(f"Unknown deploy mode: {mode}", {"mode": mode})
        if build_type is not None and build_type not in {s.value for s in BuildStrategy}:
            raise TomcatPilotError(f"Unknown build type: {build_type}", {"build_type": build_type})
        self.context.auto_deploy_mode = mode
        self.context.store.update("auto_deploy_mode", mode)
        if build_type is not None:
            self.context.auto_deploy_build_type = build_type
            self.context.store.update("auto_deploy_build_type", build_type)
        self.logger.info("orchestrator.deploy_mode.changed", mode=mode, build_type=build_type)
