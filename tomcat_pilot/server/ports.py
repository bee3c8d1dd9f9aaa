"""Listen port validation and server.xml connector patching."""

import asyncio
import re
import socket
from pathlib import Path

import psutil

from tomcat_pilot.core.exceptions import ConfigurationMutationError, PortValidationError
from tomcat_pilot.utils.files import atomic_write_text, read_text

PORT_MIN = 1024
PORT_MAX = 65535

COMMENT_RE = re.compile(r"<!--.*?-->", re.S)
CONNECTOR_RE = re.compile(r"<Connector\b[^>]*>", re.S)
HTTP_PROTOCOL_RE = re.compile(r'\bprotocol="(?:HTTP/1\.1|org\.apache\.coyote\.http11\.[\w.]+)"')
PORT_ATTR_RE = re.compile(r'(\bport=")(\d+)(")')


def listening_ports() -> set[int] | None:
    """Ports with a listening TCP socket, or None if the table is unreadable."""
    try:
        connections = psutil.net_connections(kind="tcp")
    except (psutil.AccessDenied, PermissionError):
        return None
    return {
        conn.laddr.port
        for conn in connections
        if conn.status == psutil.CONN_LISTEN and conn.laddr
    }


def is_port_listening(port: int) -> bool:
    ports = listening_ports()
    if ports is not None:
        return port in ports
    try:
        with socket.create_connection(("127.0.0.1", port), timeout=0.25):
            return True
    except OSError:
        return False


def can_bind(port: int) -> bool:
    """Try to listen on the port ourselves."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind(("", port))
            sock.listen(1)
        except OSError:
            return False
    return True


async def validate_port(port: int) -> None:
    """Reject privileged, out-of-range and already bound ports."""
    if port < PORT_MIN:
        raise PortValidationError(port, f"Ports below {PORT_MIN} require admin privileges")
    if port > PORT_MAX:
        raise PortValidationError(port, f"Maximum allowed port is {PORT_MAX}")
    if await asyncio.to_thread(is_port_listening, port) or not await asyncio.to_thread(
        can_bind, port
    ):
        raise PortValidationError(port, f"Port {port} is already in use")


def _in_comment(position: int, comments: list[tuple[int, int]]) -> bool:
    return any(start <= position < end for start, end in comments)


def find_http_connector(content: str) -> re.Match[str] | None:
    """The first uncommented HTTP/1.1 <Connector> tag."""
    comments = [m.span() for m in COMMENT_RE.finditer(content)]
    for tag in CONNECTOR_RE.finditer(content):
        if _in_comment(tag.start(), comments):
            continue
        if HTTP_PROTOCOL_RE.search(tag.group(0)) and PORT_ATTR_RE.search(tag.group(0)):
            return tag
    return None


def read_connector_port(content: str) -> int | None:
    tag = find_http_connector(content)
    if tag is None:
        return None
    match = PORT_ATTR_RE.search(tag.group(0))
    return int(match.group(2)) if match else None


def patch_connector_port(content: str, new_port: int, path: str = "server.xml") -> str:
    """Replace the port attribute of the HTTP/1.1 connector only."""
    tag = find_http_connector(content)
    if tag is None:
        raise ConfigurationMutationError(path, "HTTP/1.1 connector not found in server.xml")
    new_tag = PORT_ATTR_RE.sub(rf"\g<1>{new_port}\g<3>", tag.group(0), count=1)
    updated = content[: tag.start()] + new_tag + content[tag.end() :]
    if f'port="{new_port}"' not in updated:
        raise ConfigurationMutationError(path, "Failed to update port in server.xml")
    return updated


def _rewrite_port(path: Path, original: str, new_port: int) -> None:
    atomic_write_text(path, patch_connector_port(original, new_port, str(path)))


async def read_config(path: Path) -> str:
    return await asyncio.to_thread(read_text, path)


async def write_connector_port(path: Path, original: str, new_port: int) -> None:
    """Write ``original`` with the HTTP/1.1 connector moved to ``new_port``."""
    await asyncio.to_thread(_rewrite_port, path, original, new_port)


async def restore_file(path: Path, content: str) -> None:
    await asyncio.to_thread(atomic_write_text, path, content)
