"""Server installation and lifecycle models."""

import sys
from enum import Enum
from pathlib import Path

from pydantic import BaseModel

IS_WINDOWS = sys.platform == "win32"

BOOTSTRAP_CLASS = "org.apache.catalina.startup.Bootstrap"


class ServerState(str, Enum):
    """Lifecycle state of the managed server."""

    UNKNOWN = "unknown"
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


class ReloadOutcome(str, Enum):
    """What reload() ended up doing."""

    RELOADED = "reloaded"
    STARTED = "started"
    HEALED = "healed"
    SKIPPED = "skipped"


class ServerInstallation(BaseModel):
    """Resolved Tomcat and Java locations."""

    tomcat_home: Path
    java_home: Path

    @property
    def java_executable(self) -> Path:
        return java_executable(self.java_home)

    @property
    def javac_executable(self) -> Path:
        return self.java_home / "bin" / ("javac.exe" if IS_WINDOWS else "javac")

    @property
    def webapps_dir(self) -> Path:
        return self.tomcat_home / "webapps"

    @property
    def server_xml(self) -> Path:
        return self.tomcat_home / "conf" / "server.xml"

    @property
    def users_xml(self) -> Path:
        return self.tomcat_home / "conf" / "tomcat-users.xml"

    @property
    def logs_dir(self) -> Path:
        return self.tomcat_home / "logs"


def catalina_script(tomcat_home: Path) -> Path:
    """Startup script whose presence marks a Tomcat home."""
    return tomcat_home / "bin" / ("catalina.bat" if IS_WINDOWS else "catalina.sh")


def java_executable(java_home: Path) -> Path:
    """The ``java`` launcher inside a Java home."""
    return java_home / "bin" / ("java.exe" if IS_WINDOWS else "java")


class ServerStatus(BaseModel):
    """Snapshot of the lifecycle manager."""

    state: ServerState
    port: int
    pid: int | None = None
    app_name: str
    tomcat_home: str | None = None
    java_home: str | None = None
