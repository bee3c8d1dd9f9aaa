"""Unit tests for settings, the persisted store, logging paths and error helpers."""

import errno
from pathlib import Path

import pytest

from tomcat_pilot.config import Settings
from tomcat_pilot.core.config_store import PersistedConfig
from tomcat_pilot.core.exceptions import BuildError, ResourceBusyError, is_resource_busy
from tomcat_pilot.utils.logging import log_file_path


class TestPersistedConfig:
    def test_update_writes_through(self, tmp_path: Path):
        path = tmp_path / "nested" / "settings.json"
        store = PersistedConfig(path)
        store.update("port", 9090)

        assert PersistedConfig(path).get("port") == 9090
        assert list(path.parent.iterdir()) == [path]

    def test_unreadable_file_is_empty(self, tmp_path: Path):
        path = tmp_path / "settings.json"
        path.write_text("{not json")
        store = PersistedConfig(path)

        assert store.as_dict() == {}
        assert store.get("port", 8080) == 8080


class TestSettings:
    def test_environment_prefix(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("TOMCAT_PORT", "9191")
        monkeypatch.setenv("TOMCAT_AUTO_DEPLOY_MODE", "On Save")
        settings = Settings()

        assert settings.port == 9191
        assert settings.auto_deploy_mode == "On Save"

    def test_event_level(self):
        assert Settings(log_level="WARNING").event_level == "WARN"
        assert Settings(log_level="DEBUG").event_level == "DEBUG"

    def test_protected_webapps_default(self):
        assert Settings().protected_webapps == [
            "ROOT",
            "docs",
            "examples",
            "manager",
            "host-manager",
        ]


class TestResourceBusy:
    @pytest.mark.parametrize(
        "exc",
        [
            OSError(errno.EBUSY, "Device or resource busy"),
            ResourceBusyError("locked"),
            BuildError("Maven", "EBUSY: resource busy or locked, rmdir 'target'"),
            PermissionError(
                13, "The process cannot access the file because it is being used by another process"
            ),
        ],
    )
    def test_busy(self, exc: BaseException):
        assert is_resource_busy(exc)

    @pytest.mark.parametrize(
        "exc",
        [
            OSError(errno.ENOENT, "No such file or directory"),
            BuildError("Fast", "cannot find symbol"),
        ],
    )
    def test_not_busy(self, exc: BaseException):
        assert not is_resource_busy(exc)


class TestLogFilePath:
    def test_relative_directory_lives_under_project(self, tmp_path: Path):
        settings = Settings(project_dir=str(tmp_path), log_directory=".logs")

        assert log_file_path(settings) == tmp_path.resolve() / ".logs" / "tomcat-pilot.log"

    def test_absolute_directory_is_kept(self, tmp_path: Path):
        settings = Settings(
            project_dir=str(tmp_path / "shop"),
            log_directory=str(tmp_path / "elsewhere"),
            log_file_name="pilot.log",
        )

        assert log_file_path(settings) == tmp_path / "elsewhere" / "pilot.log"
