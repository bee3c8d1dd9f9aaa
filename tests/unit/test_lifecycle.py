"""Unit tests for the Tomcat lifecycle manager."""

import errno
import os
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

from tomcat_pilot.core.container import Services
from tomcat_pilot.core.exceptions import PortValidationError, TomcatPilotError
from tomcat_pilot.models.server import ReloadOutcome, ServerInstallation, ServerState
from tomcat_pilot.server import lifecycle, processes
from tomcat_pilot.server.lifecycle import TomcatManager
from tomcat_pilot.server.ports import read_connector_port
from tomcat_pilot.server.users import ADMIN_ENTRY
from tomcat_pilot.utils import files


class FakeServer:
    """Replaces process control on a manager with in-memory bookkeeping."""

    def __init__(self, manager: TomcatManager, running: bool):
        self.manager = manager
        self.running = running
        self.started_on: list[int] = []
        self.stops = 0

    async def is_running(self) -> bool:
        return self.running

    async def start(self) -> bool:
        self.started_on.append(self.manager.context.port)
        self.running = True
        return True

    async def stop(self) -> bool:
        self.stops += 1
        self.running = False
        return True

    def install(self, monkeypatch: pytest.MonkeyPatch) -> "FakeServer":
        monkeypatch.setattr(self.manager, "is_running", self.is_running)
        monkeypatch.setattr(self.manager, "start", self.start)
        monkeypatch.setattr(self.manager, "stop", self.stop)
        return self


def server_xml(tomcat_home: Path) -> Path:
    return tomcat_home / "conf" / "server.xml"


class TestUpdatePort:
    """Tests for TomcatManager.update_port."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("port", [80, 1023, 65536])
    async def test_out_of_range_leaves_port_unchanged(
        self, services: Services, tomcat_home: Path, free_port: int, port: int
    ):
        before = server_xml(tomcat_home).read_text()

        with pytest.raises(PortValidationError):
            await services.manager.update_port(port)

        assert services.context.port == free_port
        assert services.context.store.get("port") in (None, free_port)
        assert server_xml(tomcat_home).read_text() == before

    @pytest.mark.asyncio
    async def test_same_port_is_noop(self, services: Services, free_port: int):
        assert await services.manager.update_port(free_port) is False

    @pytest.mark.asyncio
    async def test_success(
        self,
        services: Services,
        tomcat_home: Path,
        monkeypatch: pytest.MonkeyPatch,
        port_factory: Callable[[], int],
    ):
        fake = FakeServer(services.manager, running=True).install(monkeypatch)
        new_port = port_factory()

        assert await services.manager.update_port(new_port) is True

        assert read_connector_port(server_xml(tomcat_home).read_text()) == new_port
        assert services.context.port == new_port
        assert services.context.store.get("port") == new_port
        assert fake.stops == 1
        assert fake.started_on == [new_port]

    @pytest.mark.asyncio
    async def test_failure_before_patch_restarts_on_original_port(
        self,
        services: Services,
        tomcat_home: Path,
        free_port: int,
        monkeypatch: pytest.MonkeyPatch,
        port_factory: Callable[[], int],
    ):
        fake = FakeServer(services.manager, running=True).install(monkeypatch)
        before = server_xml(tomcat_home).read_text()

        async def broken_write(path: Path, original: str, new_port: int) -> None:
            raise PermissionError(13, "Permission denied", str(path))

        monkeypatch.setattr(lifecycle, "write_connector_port", broken_write)

        with pytest.raises(PermissionError):
            await services.manager.update_port(port_factory())

        assert fake.stops == 1
        assert fake.started_on == [free_port]
        assert services.context.port == free_port
        assert services.context.store.get("port") == free_port
        assert server_xml(tomcat_home).read_text() == before

    @pytest.mark.asyncio
    async def test_failure_after_patch_restores_server_xml(
        self,
        services: Services,
        tomcat_home: Path,
        free_port: int,
        monkeypatch: pytest.MonkeyPatch,
        port_factory: Callable[[], int],
    ):
        fake = FakeServer(services.manager, running=False).install(monkeypatch)
        before = server_xml(tomcat_home).read_text()

        async def failing_start() -> bool:
            raise OSError("spawn failed")

        monkeypatch.setattr(services.manager, "start", failing_start)

        with pytest.raises(OSError):
            await services.manager.update_port(port_factory())

        assert server_xml(tomcat_home).read_text() == before
        assert services.context.port == free_port
        assert fake.started_on == []

    @pytest.mark.asyncio
    async def test_failed_write_keeps_server_xml_intact(
        self,
        services: Services,
        tomcat_home: Path,
        free_port: int,
        monkeypatch: pytest.MonkeyPatch,
        port_factory: Callable[[], int],
    ):
        fake = FakeServer(services.manager, running=False).install(monkeypatch)
        before = server_xml(tomcat_home).read_text()
        real_replace = files.os.replace
        failed: list[str] = []

        def disk_full_once(src, dst):
            if str(dst) == str(server_xml(tomcat_home)) and not failed:
                failed.append(str(dst))
                raise OSError(errno.ENOSPC, "No space left on device")
            real_replace(src, dst)

        monkeypatch.setattr(files.os, "replace", disk_full_once)

        with pytest.raises(OSError):
            await services.manager.update_port(port_factory())

        assert failed == [str(server_xml(tomcat_home))]
        assert server_xml(tomcat_home).read_text() == before
        assert sorted(p.name for p in (tomcat_home / "conf").iterdir()) == [
            "server.xml",
            "tomcat-users.xml",
        ]
        assert services.context.port == free_port
        assert services.context.store.get("port") == free_port
        assert fake.started_on == []

    @pytest.mark.asyncio
    async def test_failed_restart_rolls_back(
        self,
        services: Services,
        tomcat_home: Path,
        java_home: Path,
        free_port: int,
        port_factory: Callable[[], int],
    ):
        # java exists but is not executable, so the real spawn fails
        (java_home / "bin" / "java").chmod(0o644)
        before = server_xml(tomcat_home).read_text()

        with pytest.raises(TomcatPilotError, match="failed to restart"):
            await services.manager.update_port(port_factory())

        assert server_xml(tomcat_home).read_text() == before
        assert services.context.port == free_port
        assert services.context.store.get("port") == free_port
        assert services.manager.state == ServerState.STOPPED


class TestReload:
    """Tests for TomcatManager.reload and its fallbacks."""

    @pytest.mark.asyncio
    async def test_reloaded(self, make_manager: Callable[..., TomcatManager], free_port: int):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, text="OK - Reloaded application at context path [/shop]")

        manager = make_manager(handler)

        assert await manager.reload() == ReloadOutcome.RELOADED
        assert len(requests) == 1
        assert requests[0].url.path == "/manager/text/reload"
        assert requests[0].url.params["path"] == "/shop"
        assert requests[0].url.port == free_port
        assert requests[0].headers["authorization"].startswith("Basic ")

    @pytest.mark.asyncio
    async def test_not_running_starts(
        self, make_manager: Callable[..., TomcatManager], monkeypatch: pytest.MonkeyPatch
    ):
        manager = make_manager(lambda request: httpx.Response(404))
        fake = FakeServer(manager, running=False).install(monkeypatch)

        assert await manager.reload() == ReloadOutcome.STARTED
        assert len(fake.started_on) == 1

    @pytest.mark.asyncio
    async def test_connection_refused_starts(
        self, make_manager: Callable[..., TomcatManager], monkeypatch: pytest.MonkeyPatch
    ):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        manager = make_manager(refuse)
        FakeServer(manager, running=False).install(monkeypatch)

        assert await manager.reload() == ReloadOutcome.STARTED

    @pytest.mark.asyncio
    async def test_unauthorized_heals_credentials_in_background(
        self,
        make_manager: Callable[..., TomcatManager],
        tomcat_home: Path,
        monkeypatch: pytest.MonkeyPatch,
    ):
        manager = make_manager(lambda request: httpx.Response(401, text="Unauthorized"))
        fake = FakeServer(manager, running=True).install(monkeypatch)

        assert await manager.reload() == ReloadOutcome.HEALED
        await manager.wait_background()

        users = (tomcat_home / "conf" / "tomcat-users.xml").read_text()
        assert ADMIN_ENTRY in users
        assert fake.stops == 1
        assert len(fake.started_on) == 1


class TestCommands:
    def test_build_command(self, services: Services, tomcat_home: Path, java_home: Path):
        installation = ServerInstallation(tomcat_home=tomcat_home, java_home=java_home)

        cmd = services.manager.build_command("start", installation)

        assert cmd[0] == str(installation.java_executable)
        assert cmd[1] == "-cp"
        assert cmd[2] == os.pathsep.join(
            [str(tomcat_home / "bin" / "bootstrap.jar"), str(tomcat_home / "bin" / "tomcat-juli.jar")]
        )
        assert f"-Dcatalina.base={tomcat_home}" in cmd
        assert f"-Dcatalina.home={tomcat_home}" in cmd
        assert f"-Djava.io.tmpdir={tomcat_home / 'temp'}" in cmd
        assert cmd[-2:] == ["org.apache.catalina.startup.Bootstrap", "start"]

    @pytest.mark.asyncio
    async def test_start_failure_is_reported_not_raised(
        self, services: Services, monkeypatch: pytest.MonkeyPatch
    ):
        _, queue = services.bus.subscribe()
        await services.processor.start()

        async def refuse(*args, **kwargs):
            raise FileNotFoundError(2, "No such file or directory", "java")

        monkeypatch.setattr(lifecycle.asyncio, "create_subprocess_exec", refuse)

        assert await services.manager.start() is False

        await services.processor.drain()
        messages = [queue.get_nowait().message for _ in range(queue.qsize())]
        assert services.manager.state == ServerState.STOPPED
        assert any(m.startswith("Failed to start Tomcat") for m in messages)

    @pytest.mark.asyncio
    async def test_startup_trigger_marks_running(self, services: Services):
        services.manager.state = ServerState.STARTING
        services.processor.feed_process_line("Server startup in [843] milliseconds")
        assert services.manager.state == ServerState.RUNNING

    @pytest.mark.asyncio
    async def test_stop_when_not_running(self, services: Services):
        assert await services.manager.stop() is False
        assert services.manager.state == ServerState.STOPPED


class TestClean:
    @pytest.mark.asyncio
    async def test_clean_keeps_protected(
        self, services: Services, tomcat_home: Path, monkeypatch: pytest.MonkeyPatch
    ):
        monkeypatch.setattr(lifecycle, "kill_catalina_processes", lambda **kwargs: 0)
        webapps = tomcat_home / "webapps"
        (webapps / "shop" / "WEB-INF").mkdir(parents=True)
        (webapps / "old.war").write_bytes(b"PK")
        (tomcat_home / "work" / "Catalina").mkdir()
        (tomcat_home / "temp" / "upload.tmp").write_text("x")

        removed = await services.manager.clean()

        assert sorted(removed) == ["old.war", "shop"]
        assert sorted(p.name for p in webapps.iterdir()) == ["ROOT", "manager"]
        assert list((tomcat_home / "work").iterdir()) == []
        assert list((tomcat_home / "temp").iterdir()) == []


class FakeProc:
    def __init__(self, pid: int, cmdline: list[str]):
        self.pid = pid
        self.info = {"pid": pid, "cmdline": cmdline}
        self.killed = False

    def kill(self) -> None:
        self.killed = True


class TestKill:
    def test_only_catalina_jvms_are_killed(self, monkeypatch: pytest.MonkeyPatch):
        catalina = FakeProc(
            4_194_301, ["java", "-cp", "bootstrap.jar", "org.apache.catalina.startup.Bootstrap", "start"]
        )
        other = FakeProc(4_194_302, ["java", "-jar", "gradle-daemon.jar"])
        monkeypatch.setattr(processes.psutil, "process_iter", lambda attrs: [catalina, other])
        monkeypatch.setattr(processes.psutil, "wait_procs", lambda procs, timeout: (procs, []))

        assert processes.kill_catalina_processes() == 1
        assert catalina.killed
        assert not other.killed

    @pytest.mark.asyncio
    async def test_kill_marks_stopped(self, services: Services, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(lifecycle, "kill_catalina_processes", lambda **kwargs: 2)
        services.manager.state = ServerState.RUNNING

        assert await services.manager.kill() == 2
        assert services.manager.state == ServerState.STOPPED

    def test_tracked_process_is_not_counted_twice(self, monkeypatch: pytest.MonkeyPatch):
        tracked = FakeProc(4_194_303, ["java", "org.apache.catalina.startup.Bootstrap", "start"])
        monkeypatch.setattr(processes.psutil, "process_iter", lambda attrs: [tracked])
        monkeypatch.setattr(processes.psutil, "wait_procs", lambda procs, timeout: (procs, []))

        assert processes.kill_catalina_processes(exclude={tracked.pid}) == 0
        assert not tracked.killed
