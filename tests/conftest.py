"""Shared fixtures."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import httpx
import pytest
import structlog

from core.config import AppSettings


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()


@pytest.fixture
def docker_config_path(tmp_path: Path) -> Path:
    return tmp_path / "docker" / "config.json"


@pytest.fixture
def settings(docker_config_path: Path) -> AppSettings:
    """Settings isolated from the developer's environment."""
    return AppSettings(
        _env_file=None,
        github_token=None,
        gitlab_token=None,
        codeberg_token=None,
        docker_config_path=docker_config_path,
        http_timeout_seconds=5.0,
    )


@pytest.fixture
def mock_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    """Build an `httpx.AsyncClient` answering through a handler function."""

    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return factory
