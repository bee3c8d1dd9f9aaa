"""Application configuration using pydantic-settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file without clobbering variables already set by the shell
load_dotenv(override=False)

AutoDeployMode = Literal["On Save", "On Shortcut", "Disabled"]
BuildType = Literal["Fast", "Maven", "Gradle"]


class Settings(BaseSettings):
    """Settings loaded from environment variables prefixed with ``TOMCAT_``."""

    model_config = SettingsConfigDict(
        env_prefix="TOMCAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Installation overrides (highest priority during resolution)
    tomcat_home: str = ""
    java_home: str = ""

    # Server
    port: int = 8080
    protected_webapps: list[str] = Field(
        default_factory=lambda: ["ROOT", "docs", "examples", "manager", "host-manager"]
    )
    manager_timeout: float = 5.0
    stop_timeout: float = 10.0

    # Project
    project_dir: str = Field(default_factory=lambda: str(Path.cwd()))
    auto_deploy_mode: AutoDeployMode = "Disabled"
    auto_deploy_build_type: BuildType = "Fast"

    # Persisted editor-style configuration
    config_file: str = Field(
        default_factory=lambda: str(Path.home() / ".tomcat-pilot" / "settings.json")
    )

    # Log stream
    log_encoding: str = "utf-8"
    access_log_poll_interval: float = 0.5
    show_timestamp: bool = True
    open_browser: bool = True

    # Control API
    app_debug: bool = True
    api_host: str = "127.0.0.1"
    api_port: int = 8765

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["console", "json"] = "console"
    log_directory: str = ".logs"
    log_file_name: str = "tomcat-pilot.log"

    @property
    def project_path(self) -> Path:
        """Project directory as a resolved path."""
        return Path(self.project_dir).expanduser().resolve()

    @property
    def event_level(self) -> str:
        """Minimum LogEvent level shown to subscribers."""
        return "WARN" if self.log_level == "WARNING" else self.log_level


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
