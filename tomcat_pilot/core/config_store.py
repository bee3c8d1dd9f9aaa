"""Persisted configuration store.

Mirrors the editor's user settings: resolved installation paths, the active
port and the auto-deploy mode survive restarts in a small JSON document.
"""

import json
from pathlib import Path
from typing import Any

from tomcat_pilot.utils.files import atomic_write_text
from tomcat_pilot.utils.logging import get_logger

logger = get_logger(__name__)


class PersistedConfig:
    """JSON-file backed key/value settings."""

    def __init__(self, path: Path):
        self.path = path
        self._data: dict[str, Any] = self._load()

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("config_store.unreadable", path=str(self.path), error=str(e))
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def update(self, key: str, value: Any) -> None:
        """Set a key and write the document through to disk."""
        self._data[key] = value
        self._write()

    def _write(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        atomic_write_text(self.path, json.dumps(self._data, indent=2, sort_keys=True))

    def as_dict(self) -> dict[str, Any]:
        return dict(self._data)
