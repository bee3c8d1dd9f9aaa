"""Management credentials in conf/tomcat-users.xml."""

import asyncio
import re
from pathlib import Path

from tomcat_pilot.core.exceptions import ConfigurationMutationError
from tomcat_pilot.utils.files import atomic_write_text, read_text

ADMIN_USER = "admin"
ADMIN_PASSWORD = "admin"
ADMIN_ROLES = "manager-gui,manager-script"

ADMIN_ENTRY = f'<user username="{ADMIN_USER}" password="{ADMIN_PASSWORD}" roles="{ADMIN_ROLES}"/>'
ADMIN_USER_RE = re.compile(rf'[ \t]*<user\s+username="{ADMIN_USER}"[^>]*/>[ \t]*(?:\r?\n)?')
CLOSING_TAG = "</tomcat-users>"


def with_admin_user(content: str, path: str = "tomcat-users.xml") -> str:
    """Drop existing admin entries and append a fresh one with manager roles."""
    content = ADMIN_USER_RE.sub("", content)
    index = content.rfind(CLOSING_TAG)
    if index == -1:
        raise ConfigurationMutationError(path, f"{CLOSING_TAG} not found in tomcat-users.xml")
    return f"{content[:index]}  {ADMIN_ENTRY}\n{content[index:]}"


async def write_admin_user(path: Path) -> None:
    def _rewrite() -> None:
        updated = with_admin_user(read_text(path), str(path))
        atomic_write_text(path, updated)

    await asyncio.to_thread(_rewrite)
