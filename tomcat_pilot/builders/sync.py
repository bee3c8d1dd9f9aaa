"""Directory synchronization used to stage exploded web applications."""

import shutil
from pathlib import Path

from tomcat_pilot.core.exceptions import ResourceBusyError, is_resource_busy

# Staged separately by the Fast strategy; survive a restricted sync
RESTRICTED_ENTRIES = frozenset({"classes", "lib"})


def _locked(path: Path | str, exc: OSError) -> ResourceBusyError:
    return ResourceBusyError(
        f"{path} is locked by another process", {"path": str(path), "error": str(exc)}
    )


def remove_path(path: Path) -> None:
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink(missing_ok=True)
    except OSError as e:
        if is_resource_busy(e):
            raise _locked(path, e) from e
        raise


def copy_file(src: Path | str, dest: Path | str) -> None:
    """Copy a file, retrying once after removing a stuck destination."""
    try:
        shutil.copy2(src, dest)
    except OSError:
        try:
            Path(dest).unlink(missing_ok=True)
            shutil.copy2(src, dest)
        except OSError as e:
            if is_resource_busy(e):
                raise _locked(dest, e) from e
            raise


def brutal_sync(src: Path, dest: Path, restricted: bool = False) -> None:
    """Make ``dest`` mirror ``src``.

    Entries in ``dest`` that are missing from ``src`` are deleted at every
    level, except ``classes`` and ``lib`` when ``restricted`` is set. Every
    source file is then copied over its counterpart.
    """
    if dest.exists():
        keepers = {entry.name for entry in src.iterdir()}
        for entry in dest.iterdir():
            if entry.name in keepers:
                continue
            if restricted and entry.name in RESTRICTED_ENTRIES:
                continue
            remove_path(entry)

    dest.mkdir(parents=True, exist_ok=True)
    for entry in src.iterdir():
        target = dest / entry.name
        if entry.is_dir():
            if target.exists() and not target.is_dir():
                remove_path(target)
            brutal_sync(entry, target, restricted)
        else:
            if target.is_dir() and not target.is_symlink():
                remove_path(target)
            copy_file(entry, target)


def copy_tree(src: Path, dest: Path) -> None:
    """Copy ``src`` into ``dest`` overwriting every file, without pruning."""
    dest.mkdir(parents=True, exist_ok=True)
    shutil.copytree(src, dest, dirs_exist_ok=True, copy_function=copy_file)


def reset_dir(path: Path) -> None:
    if path.exists():
        remove_path(path)
    path.mkdir(parents=True)


def find_files(root: Path, pattern: str) -> list[Path]:
    if not root.is_dir():
        return []
    return sorted(p for p in root.rglob(pattern) if p.is_file())
