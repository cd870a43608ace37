"""Core configuration.

Why here:
- Centralizes environment variables (pydantic-settings) away from the CLI.
- Lets adapters (HTTP clients, credential lookup) read config consistently.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from core import __version__


def default_docker_config_path() -> Path:
    """Location of the Docker client config (`$DOCKER_CONFIG/config.json` first)."""

    override = (os.environ.get("DOCKER_CONFIG") or "").strip()
    if override:
        return Path(override) / "config.json"
    return Path.home() / ".docker" / "config.json"


class AppSettings(BaseSettings):
    """Central application settings.

    Tokens use the conventional unprefixed variable names (`GITHUB_TOKEN`, ...)
    as well as the prefixed ones.
    """

    model_config = SettingsConfigDict(
        env_prefix="VERSION_UPDATER_",
        extra="ignore",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
    )

    http_timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        description="Timeout per request (seconds).",
    )
    user_agent: str = Field(
        default=f"version-updater/{__version__}",
        min_length=1,
        description="User-Agent sent to provider and registry APIs.",
    )

    max_concurrency: int = Field(
        default=4,
        ge=1,
        le=64,
        description="Maximum number of service pipelines in flight.",
    )
    retry_max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts (including the first) for transient failures.",
    )
    retry_base_delay_seconds: float = Field(
        default=0.5,
        ge=0,
        description="Backoff delay after the first failed attempt.",
    )
    retry_max_delay_seconds: float = Field(
        default=8.0,
        ge=0,
        description="Upper bound for a single backoff delay.",
    )
    run_timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Optional wall-clock deadline for the whole run.",
    )

    github_api_url: str = Field(default="https://api.github.com", min_length=8)
    gitlab_api_url: str = Field(default="https://gitlab.com/api/v4", min_length=8)
    codeberg_api_url: str = Field(default="https://codeberg.org/api/v1", min_length=8)

    github_token: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("VERSION_UPDATER_GITHUB_TOKEN", "GITHUB_TOKEN", "github_token"),
    )
    gitlab_token: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("VERSION_UPDATER_GITLAB_TOKEN", "GITLAB_TOKEN", "gitlab_token"),
    )
    codeberg_token: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("VERSION_UPDATER_CODEBERG_TOKEN", "CODEBERG_TOKEN", "codeberg_token"),
    )

    docker_config_path: Path = Field(
        default_factory=default_docker_config_path,
        description="Docker client config holding registry logins.",
    )

    log_level: str = Field(default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR).")
    log_json: bool = Field(default=False, description="Render logs as JSON lines.")
