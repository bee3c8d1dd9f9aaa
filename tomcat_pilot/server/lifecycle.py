"""Process Lifecycle Manager.

Owns the Tomcat JVM: start/stop through the Catalina bootstrap class,
hot reload through the manager text API, listen-port reconfiguration with
rollback, credential self-healing and webapps cleanup.
"""

import asyncio
import os
import shutil
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, Literal

import httpx

from tomcat_pilot.core.context import ServerContext
from tomcat_pilot.core.exceptions import (
    ConfigurationMutationError,
    ManagerProtocolError,
    TomcatPilotError,
)
from tomcat_pilot.logs.classifier import Trigger
from tomcat_pilot.logs.processor import LogStreamProcessor
from tomcat_pilot.models.server import (
    BOOTSTRAP_CLASS,
    ReloadOutcome,
    ServerInstallation,
    ServerState,
    ServerStatus,
)
from tomcat_pilot.server.installation import InstallationResolver
from tomcat_pilot.server.ports import (
    is_port_listening,
    read_config,
    restore_file,
    validate_port,
    write_connector_port,
)
from tomcat_pilot.server.processes import kill_catalina_processes
from tomcat_pilot.server.users import ADMIN_PASSWORD, ADMIN_USER, write_admin_user
from tomcat_pilot.utils.logging import get_logger

# Lines longer than the default 64 KiB StreamReader limit show up in stack traces
STREAM_LIMIT = 1024 * 1024


class TomcatManager:
    """Controls the single local Tomcat instance."""

    def __init__(
        self,
        context: ServerContext,
        processor: LogStreamProcessor,
        resolver: InstallationResolver,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.context = context
        self.settings = context.settings
        self.processor = processor
        self.resolver = resolver
        self.logger = get_logger("lifecycle")

        self.state = ServerState.UNKNOWN
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient()
        self._process: asyncio.subprocess.Process | None = None
        self._pump: asyncio.Task[None] | None = None
        self._background: set[asyncio.Task] = set()

        processor.add_trigger_listener(self._on_trigger)

    # -- state -----------------------------------------------------------

    @property
    def pid(self) -> int | None:
        if self._process is not None and self._process.returncode is None:
            return self._process.pid
        return None

    async def is_running(self) -> bool:
        """Tracked process alive, or something listening on the configured port."""
        if self.pid is not None:
            return True
        return await asyncio.to_thread(is_port_listening, self.context.port)

    async def refresh_state(self) -> ServerState:
        """Resolve the UNKNOWN state by probing the process and the port."""
        running = await self.is_running()
        if not running:
            if self.state != ServerState.STARTING or self.pid is None:
                self.state = ServerState.STOPPED
        elif self.state in (ServerState.UNKNOWN, ServerState.STOPPED):
            self.state = ServerState.RUNNING
        return self.state

    async def status(self) -> ServerStatus:
        state = await self.refresh_state()
        return ServerStatus(
            state=state,
            port=self.context.port,
            pid=self.pid,
            app_name=self.context.app_name,
            tomcat_home=str(self.context.tomcat_home) if self.context.tomcat_home else None,
            java_home=str(self.context.java_home) if self.context.java_home else None,
        )

    def _on_trigger(self, trigger: Trigger, line: str) -> None:
        if trigger == Trigger.STARTUP:
            self.state = ServerState.RUNNING
            self.logger.info("lifecycle.ready", port=self.context.port)

    # -- commands --------------------------------------------------------

    def build_command(
        self, action: Literal["start", "stop"], installation: ServerInstallation
    ) -> list[str]:
        home = installation.tomcat_home
        classpath = os.pathsep.join(
            [str(home / "bin" / "bootstrap.jar"), str(home / "bin" / "tomcat-juli.jar")]
        )
        return [
            str(installation.java_executable),
            "-cp",
            classpath,
            f"-Dcatalina.base={home}",
            f"-Dcatalina.home={home}",
            f"-Djava.io.tmpdir={home / 'temp'}",
            BOOTSTRAP_CLASS,
            action,
        ]

    async def start(self) -> bool:
        """Spawn Tomcat unless it is already running.

        Returns once the process is spawned; readiness is announced later by
        the startup trigger in the log stream.
        """
        installation = await self.resolver.resolve()
        if await self.is_running():
            self.state = ServerState.RUNNING
            self.processor.info("Tomcat is already running")
            return False
        return await self._spawn(installation)

    async def _spawn(self, installation: ServerInstallation) -> bool:
        cmd = self.build_command("start", installation)
        self.state = ServerState.STARTING
        self.logger.info("lifecycle.start.spawning", cmd=" ".join(cmd))
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=str(installation.tomcat_home),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                limit=STREAM_LIMIT,
            )
        except OSError as e:
            self.state = ServerState.STOPPED
            self.logger.error("lifecycle.start.failed", error=str(e))
            self.processor.error("Failed to start Tomcat:", str(e))
            return False

        self._process = process
        self._pump = asyncio.create_task(self._pump_output(process), name="tomcat-output")
        await self.processor.watch_access_logs(installation.logs_dir)
        self.logger.info("lifecycle.start.spawned", pid=process.pid, port=self.context.port)
        return True

    async def _pump_output(self, process: asyncio.subprocess.Process) -> None:
        assert process.stdout is not None
        try:
            while True:
                line = await process.stdout.readline()
                if not line:
                    break
                self.processor.feed_process_line(
                    line.decode(self.settings.log_encoding, errors="replace")
                )
            code = await process.wait()
            self.logger.info("lifecycle.process.exited", pid=process.pid, returncode=code)
        finally:
            if self._process is process:
                self._process = None
                self.state = ServerState.STOPPED

    async def stop(self) -> bool:
        """Terminate the tracked process, or run the Catalina stop command."""
        installation = await self.resolver.resolve()
        if not await self.is_running():
            self.state = ServerState.STOPPED
            self.processor.info("Tomcat is not running")
            return False

        self.state = ServerState.STOPPING
        try:
            if self._process is not None and self._process.returncode is None:
                process = self._process
                self._process = None
                process.terminate()
                await self._wait_for_exit(process)
                self.processor.success("Tomcat stopped (process terminated)")
            else:
                await self._run_stop_command(installation)
                self.processor.success("Tomcat stopped successfully")
        except OSError as e:
            self.logger.error("lifecycle.stop.failed", error=str(e))
            self.processor.error("Failed to stop Tomcat:", str(e))
            await self.refresh_state()
            return False

        self.state = ServerState.STOPPED
        return True

    async def _wait_for_exit(self, process: asyncio.subprocess.Process) -> None:
        try:
            await asyncio.wait_for(process.wait(), timeout=self.settings.stop_timeout)
        except asyncio.TimeoutError:
            self.logger.warning("lifecycle.stop.timeout", pid=process.pid)
            process.kill()
            await process.wait()

    async def _run_stop_command(self, installation: ServerInstallation) -> None:
        cmd = self.build_command("stop", installation)
        process = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=str(installation.tomcat_home),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
        try:
            output, _ = await asyncio.wait_for(
                process.communicate(), timeout=self.settings.stop_timeout
            )
        except asyncio.TimeoutError:
            process.kill()
            raise OSError("Tomcat stop command timed out")
        if process.returncode != 0:
            raise OSError(output.decode(self.settings.log_encoding, errors="replace").strip())

        # The stop command returns before the JVM has released the port
        deadline = asyncio.get_running_loop().time() + self.settings.stop_timeout
        while await asyncio.to_thread(is_port_listening, self.context.port):
            if asyncio.get_running_loop().time() > deadline:
                raise OSError(f"Port {self.context.port} still bound after stop")
            await asyncio.sleep(0.2)

    async def kill(self) -> int:
        """Force-terminate every Catalina JVM to release file locks."""
        killed = 0
        tracked: set[int] = set()
        if self._process is not None and self._process.returncode is None:
            tracked.add(self._process.pid)
            try:
                self._process.kill()
                killed += 1
            except ProcessLookupError:
                pass
        killed += await asyncio.to_thread(kill_catalina_processes, exclude=tracked)
        self.state = ServerState.STOPPED
        self.logger.info("lifecycle.kill", killed=killed)
        return killed

    # -- reload ----------------------------------------------------------

    async def reload(self) -> ReloadOutcome:
        """Hot-reload the project's context through the manager API.

        A rejected request means either the server is down (start it) or the
        manager credentials are missing (repair them in the background and
        restart), so deploy() never waits for more than one request timeout.
        """
        await self.resolver.resolve()
        app_name = self.context.app_name
        if not app_name:
            return ReloadOutcome.SKIPPED

        try:
            await self._request_reload(app_name)
        except (httpx.HTTPError, ManagerProtocolError) as e:
            self.logger.info("lifecycle.reload.rejected", app=app_name, error=str(e))
            if not await self.is_running():
                await self.start()
                return ReloadOutcome.STARTED
            self.processor.warn("Reload failed, attempting to add admin user...")
            self._run_in_background(self.heal_credentials())
            return ReloadOutcome.HEALED

        self.processor.success("Tomcat reloaded")
        return ReloadOutcome.RELOADED

    async def _request_reload(self, app_name: str) -> None:
        response = await self._client.get(
            f"http://localhost:{self.context.port}/manager/text/reload",
            params={"path": f"/{app_name}"},
            auth=(ADMIN_USER, ADMIN_PASSWORD),
            timeout=self.settings.manager_timeout,
        )
        if response.status_code != 200:
            raise ManagerProtocolError(response.status_code, response.text)

    async def heal_credentials(self) -> None:
        """Rewrite the admin manager user, then start Tomcat again."""
        installation = await self.resolver.resolve()
        try:
            if await self.is_running():
                await self.stop()
            await write_admin_user(installation.users_xml)
        except (OSError, ConfigurationMutationError) as e:
            self.logger.error("lifecycle.heal.failed", error=str(e))
            self.processor.error("Failed to add admin user:", str(e))
            return
        self.processor.info("Added admin user to tomcat-users.xml")
        await self.start()

    def _run_in_background(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background_done)

    def _background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self.logger.error("lifecycle.background.failed", error=str(task.exception()))

    async def wait_background(self) -> None:
        """Wait for pending reload fallbacks."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    # -- port ------------------------------------------------------------

    async def update_port(self, new_port: int) -> bool:
        """Move Tomcat to a new HTTP port.

        Either the whole change applies (server.xml, in-memory port, persisted
        port, restart) or the previous port is restored everywhere and the
        server is brought back up if this call stopped it.
        """
        old_port = self.context.port
        if new_port == old_port:
            return False

        installation = await self.resolver.resolve()
        was_running = False
        original_xml: str | None = None
        try:
            await validate_port(new_port)
            if await self.is_running():
                was_running = True
                if not await self.stop():
                    raise TomcatPilotError("Tomcat could not be stopped", {"port": old_port})
            original_xml = await read_config(installation.server_xml)
            await write_connector_port(installation.server_xml, original_xml, new_port)
            self.context.set_port(new_port)
            if not await self.start():
                raise TomcatPilotError(
                    f"Tomcat failed to restart on port {new_port}",
                    {"old_port": old_port, "new_port": new_port},
                )
            self.processor.success(f"Tomcat port updated from {old_port} to {new_port}")
        except (TomcatPilotError, OSError) as e:
            self.logger.error(
                "lifecycle.port.update_failed", old_port=old_port, new_port=new_port, error=str(e)
            )
            await self._rollback_port(installation, old_port, original_xml, was_running)
            self.processor.error("Failed to update Tomcat port:", str(e))
            raise
        return True

    async def _rollback_port(
        self,
        installation: ServerInstallation,
        old_port: int,
        original_xml: str | None,
        was_running: bool,
    ) -> None:
        if original_xml is not None:
            try:
                await restore_file(installation.server_xml, original_xml)
            except OSError as e:
                self.logger.error("lifecycle.port.restore_failed", error=str(e))
        self.context.set_port(old_port)
        if was_running and not await self.is_running():
            await self.start()

    # -- maintenance -----------------------------------------------------

    async def clean(self) -> list[str]:
        """Kill Tomcat, empty webapps except protected apps, reset work/temp."""
        tomcat_home = await self.resolver.tomcat_home()
        webapps = tomcat_home / "webapps"
        if not webapps.is_dir():
            self.processor.warn(f"Webapps directory not found: {webapps}")
            return []

        await self.kill()
        try:
            removed = await asyncio.to_thread(
                self._clean_tree, tomcat_home, set(self.settings.protected_webapps)
            )
        except OSError as e:
            self.logger.error("lifecycle.clean.failed", error=str(e))
            self.processor.error("Tomcat cleanup failed:", str(e))
            raise
        self.processor.success("Tomcat cleaned successfully")
        return removed

    def _clean_tree(self, tomcat_home: Path, protected: set[str]) -> list[str]:
        removed = []
        for entry in (tomcat_home / "webapps").iterdir():
            if entry.name in protected:
                continue
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()
            removed.append(entry.name)
            self.logger.info("lifecycle.clean.removed", path=str(entry))

        for name in ("work", "temp"):
            scratch = tomcat_home / name
            if scratch.exists():
                shutil.rmtree(scratch)
            scratch.mkdir()
        return removed

    async def shutdown(self) -> None:
        """Stop the tracked JVM and release tasks and the HTTP client."""
        for task in list(self._background):
            task.cancel()
        await self.wait_background()
        if self._process is not None and self._process.returncode is None:
            process = self._process
            self._process = None
            try:
                process.terminate()
                await self._wait_for_exit(process)
            except ProcessLookupError:
                pass
        if self._pump is not None:
            self._pump.cancel()
            try:
                await self._pump
            except asyncio.CancelledError:
                pass
            self._pump = None
        if self._owns_client:
            await self._client.aclose()
