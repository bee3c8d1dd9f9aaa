"""Resolution of the Tomcat and Java installations."""

import os
from collections.abc import Callable
from pathlib import Path

from tomcat_pilot.core.collaborators import FolderPrompt
from tomcat_pilot.core.context import ServerContext
from tomcat_pilot.core.exceptions import InstallationNotFoundError
from tomcat_pilot.models.server import ServerInstallation, catalina_script, java_executable
from tomcat_pilot.utils.logging import get_logger

logger = get_logger(__name__)

TOMCAT_ENV_VARS = ("CATALINA_HOME", "TOMCAT_HOME")
JAVA_ENV_VARS = ("JAVA_HOME", "JDK_HOME", "JAVA_JDK_HOME")


def validate_tomcat_home(path: Path) -> bool:
    return catalina_script(path).is_file()


def validate_java_home(path: Path) -> bool:
    return java_executable(path).is_file()


class InstallationResolver:
    """Finds installations through an ordered list of candidates.

    Order: explicit override from settings, environment variables, the
    persisted configuration, then an interactive folder prompt. The first
    valid candidate is persisted and cached on the context until
    ``ServerContext.invalidate_installation`` is called.
    """

    def __init__(self, context: ServerContext, prompt: FolderPrompt):
        self.context = context
        self.prompt = prompt

    async def tomcat_home(self) -> Path:
        if self.context.tomcat_home and validate_tomcat_home(self.context.tomcat_home):
            return self.context.tomcat_home
        path = await self._resolve(
            kind="Tomcat",
            store_key="tomcat_home",
            override=self.context.settings.tomcat_home,
            env_vars=TOMCAT_ENV_VARS,
            validate=validate_tomcat_home,
            prompt_label="Select Tomcat Home Folder",
        )
        self.context.tomcat_home = path
        return path

    async def java_home(self) -> Path:
        if self.context.java_home and validate_java_home(self.context.java_home):
            return self.context.java_home
        path = await self._resolve(
            kind="Java",
            store_key="java_home",
            override=self.context.settings.java_home,
            env_vars=JAVA_ENV_VARS,
            validate=validate_java_home,
            prompt_label="Select Java Home Folder",
        )
        self.context.java_home = path
        return path

    async def resolve(self) -> ServerInstallation:
        """Resolve both installations or raise InstallationNotFoundError."""
        tomcat_home = await self.tomcat_home()
        java_home = await self.java_home()
        return ServerInstallation(tomcat_home=tomcat_home, java_home=java_home)

    def peek_tomcat_home(self) -> Path | None:
        """Best non-interactive guess, used at startup to begin log tailing."""
        for _, value in self._candidates(
            self.context.settings.tomcat_home, TOMCAT_ENV_VARS, "tomcat_home"
        ):
            path = Path(value).expanduser()
            if validate_tomcat_home(path):
                return path
        return None

    def _candidates(
        self, override: str, env_vars: tuple[str, ...], store_key: str
    ) -> list[tuple[str, str]]:
        candidates = [("settings", override)]
        candidates += [(f"env:{name}", os.environ.get(name, "")) for name in env_vars]
        candidates.append(("persisted", self.context.store.get(store_key) or ""))
        return [(source, value) for source, value in candidates if value and value.strip()]

    async def _resolve(
        self,
        kind: str,
        store_key: str,
        override: str,
        env_vars: tuple[str, ...],
        validate: Callable[[Path], bool],
        prompt_label: str,
    ) -> Path:
        tried: list[str] = []
        for source, value in self._candidates(override, env_vars, store_key):
            path = Path(value.strip()).expanduser()
            if validate(path):
                logger.debug("installation.resolved", kind=kind, source=source, path=str(path))
                self._persist(store_key, path)
                return path
            tried.append(str(path))

        selected = await self.prompt.select_folder(prompt_label)
        if selected is not None:
            if validate(selected):
                self._persist(store_key, selected)
                return selected
            logger.warning("installation.invalid_selection", kind=kind, path=str(selected))
            tried.append(str(selected))

        logger.error("installation.not_found", kind=kind, tried=tried)
        raise InstallationNotFoundError(kind, tried)

    def _persist(self, key: str, path: Path) -> None:
        if self.context.store.get(key) != str(path):
            self.context.store.update(key, str(path))
