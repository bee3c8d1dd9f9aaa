"""Pytest configuration and fixtures."""

import socket
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from tomcat_pilot.config import Settings
from tomcat_pilot.core.container import Services, build_services
from tomcat_pilot.main import create_app
from tomcat_pilot.server.lifecycle import TomcatManager

SERVER_XML = """<?xml version="1.0" encoding="UTF-8"?>
<Server port="8005" shutdown="SHUTDOWN">
  <Service name="Catalina">
    <!--
    <Connector port="8443" protocol="HTTP/1.1" SSLEnabled="true" />
    -->
    <Connector port="{port}" protocol="HTTP/1.1"
               connectionTimeout="20000"
               redirectPort="8443" />
    <Connector port="8009" protocol="AJP/1.3" redirectPort="8443" />
    <Engine name="Catalina" defaultHost="localhost">
      <Host name="localhost" appBase="webapps" />
    </Engine>
  </Service>
</Server>
"""

TOMCAT_USERS_XML = """<?xml version="1.0" encoding="UTF-8"?>
<tomcat-users xmlns="http://tomcat.apache.org/xml" version="1.0">
  <user username="admin" password="secret" roles="manager-gui"/>
  <user username="tomcat" password="tomcat" roles="tomcat"/>
</tomcat-users>
"""


def find_free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class RecordingBrowser:
    """Browser double that remembers refreshed apps."""

    def __init__(self, journal: list[str] | None = None):
        self.refreshed: list[str] = []
        self.journal = journal

    async def refresh(self, app_name: str) -> None:
        self.refreshed.append(app_name)
        if self.journal is not None:
            self.journal.append("refresh")


class RecordingEditor:
    def __init__(self):
        self.saves = 0

    async def save_all(self) -> None:
        self.saves += 1


class RecordingScaffolder:
    def __init__(self):
        self.created: list[Path] = []

    async def create_project(self, project_dir: Path) -> None:
        self.created.append(project_dir)


def manager_ok(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, text="OK - Reloaded application at context path [/shop]")


@pytest.fixture
def free_port() -> int:
    return find_free_port()


@pytest.fixture
def port_factory() -> Callable[[], int]:
    """Hands out further unbound ports."""
    return find_free_port


@pytest.fixture
def tomcat_home(tmp_path: Path, free_port: int) -> Path:
    """A Tomcat directory layout with no binaries behind it."""
    home = tmp_path / "apache-tomcat"
    for name in ("bin", "conf", "lib", "logs", "temp", "work", "webapps/ROOT", "webapps/manager"):
        (home / name).mkdir(parents=True)
    (home / "bin" / "catalina.sh").write_text("#!/bin/sh\n")
    (home / "bin" / "catalina.bat").write_text("@echo off\n")
    (home / "bin" / "bootstrap.jar").write_bytes(b"")
    (home / "bin" / "tomcat-juli.jar").write_bytes(b"")
    (home / "conf" / "server.xml").write_text(SERVER_XML.format(port=free_port))
    (home / "conf" / "tomcat-users.xml").write_text(TOMCAT_USERS_XML)
    return home


@pytest.fixture
def java_home(tmp_path: Path) -> Path:
    home = tmp_path / "jdk"
    (home / "bin").mkdir(parents=True)
    for name in ("java", "javac", "java.exe", "javac.exe"):
        (home / "bin" / name).write_text("")
    return home


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A minimal Java EE project named "shop"."""
    project = tmp_path / "shop"
    webapp = project / "src" / "main" / "webapp"
    (webapp / "WEB-INF").mkdir(parents=True)
    (webapp / "WEB-INF" / "web.xml").write_text("<web-app/>")
    (webapp / "index.jsp").write_text("<h1>shop</h1>")
    return project


@pytest.fixture
def settings(
    tmp_path: Path,
    tomcat_home: Path,
    java_home: Path,
    project_dir: Path,
    free_port: int,
) -> Settings:
    return Settings(
        tomcat_home=str(tomcat_home),
        java_home=str(java_home),
        project_dir=str(project_dir),
        port=free_port,
        config_file=str(tmp_path / "pilot" / "settings.json"),
        log_directory=str(tmp_path / "pilot-logs"),
        manager_timeout=1.0,
        stop_timeout=1.0,
        access_log_poll_interval=0.05,
        open_browser=False,
    )


@pytest.fixture
def journal() -> list[str]:
    """Ordered record of collaborator calls."""
    return []


@pytest.fixture
def browser(journal: list[str]) -> RecordingBrowser:
    return RecordingBrowser(journal)


@pytest.fixture
def editor() -> RecordingEditor:
    return RecordingEditor()


@pytest.fixture
def scaffolder() -> RecordingScaffolder:
    return RecordingScaffolder()


@pytest.fixture
async def services(settings: Settings, browser: RecordingBrowser) -> Services:
    """Wired components whose manager API calls always succeed."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(manager_ok))
    services = build_services(settings, http_client=client, browser=browser)
    yield services
    await services.shutdown()
    await client.aclose()


@pytest.fixture
async def make_manager(services: Services) -> Callable[..., TomcatManager]:
    """Build a TomcatManager whose manager API is answered by ``handler``."""
    clients: list[httpx.AsyncClient] = []

    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> TomcatManager:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        clients.append(client)
        return TomcatManager(
            services.context, services.processor, services.resolver, http_client=client
        )

    yield factory
    for client in clients:
        await client.aclose()


@pytest.fixture
async def client(settings: Settings, services: Services) -> AsyncClient:
    """Async test client for the control API with pre-built services."""
    app = create_app(settings, services)
    app.state.services = services

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
