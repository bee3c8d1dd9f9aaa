"""Subprocess execution for external build tools."""

import asyncio
from dataclasses import dataclass
from pathlib import Path

from tomcat_pilot.core.exceptions import BuildError
from tomcat_pilot.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class CommandResult:
    returncode: int
    output: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


async def run_command(
    cmd: list[str],
    cwd: Path,
    strategy: str,
    timeout: float | None = None,
    encoding: str = "utf-8",
) -> CommandResult:
    """Run a build command with combined output."""
    logger.info("build.command", cmd=" ".join(cmd), cwd=str(cwd))
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=str(cwd),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
    except FileNotFoundError as e:
        raise BuildError(strategy, f"Executable not found: {cmd[0]}") from e

    try:
        stdout, _ = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise BuildError(strategy, f"{cmd[0]} timed out after {timeout:.0f}s")

    output = stdout.decode(encoding, errors="replace") if stdout else ""
    logger.info("build.command.finished", returncode=process.returncode, output_len=len(output))
    return CommandResult(returncode=process.returncode or 0, output=output)


def filter_error_lines(
    output: str,
    markers: tuple[str, ...],
    boilerplate: tuple[str, ...],
    strip: tuple[str, ...] = (),
) -> list[str]:
    """Actionable error lines, de-duplicated in order of appearance."""
    seen: dict[str, None] = {}
    for line in output.splitlines():
        if not any(marker in line for marker in markers):
            continue
        if any(noise in line for noise in boilerplate):
            continue
        for token in strip:
            line = line.replace(token, "")
        line = line.strip()
        if line:
            seen.setdefault(line, None)
    return list(seen)


def output_tail(output: str, lines: int = 15) -> str:
    return "\n".join(output.strip().splitlines()[-lines:])
