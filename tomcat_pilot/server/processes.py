"""Discovery and forced termination of Catalina JVMs."""

import os
from collections.abc import Collection

import psutil

from tomcat_pilot.models.server import BOOTSTRAP_CLASS
from tomcat_pilot.utils.logging import get_logger

logger = get_logger(__name__)


def find_catalina_processes(exclude: Collection[int] = ()) -> list[psutil.Process]:
    """Processes whose command line runs the Catalina bootstrap class."""
    skipped = {os.getpid(), *exclude}
    found = []
    for proc in psutil.process_iter(["pid", "cmdline"]):
        if proc.info["pid"] in skipped:
            continue
        cmdline = proc.info.get("cmdline") or []
        if any(BOOTSTRAP_CLASS in part for part in cmdline):
            found.append(proc)
    return found


def kill_catalina_processes(timeout: float = 3.0, exclude: Collection[int] = ()) -> int:
    """Force-kill every Catalina JVM except the pids in ``exclude``."""
    procs = find_catalina_processes(exclude)
    for proc in procs:
        try:
            proc.kill()
        except (psutil.NoSuchProcess, psutil.AccessDenied) as e:
            logger.debug("processes.kill_failed", pid=proc.pid, error=str(e))
    if procs:
        psutil.wait_procs(procs, timeout=timeout)
        logger.info("processes.killed", count=len(procs))
    return len(procs)
