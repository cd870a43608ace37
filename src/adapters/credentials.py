"""Credential lookup.

Sources:
- Git tokens: `AppSettings` (`GITHUB_TOKEN`, `GITLAB_TOKEN`, `CODEBERG_TOKEN`).
- Registry logins: the Docker client config (`~/.docker/config.json`),
  either a base64 `auth` entry or explicit `username`/`password`.

Absent material returns None. Material that is present but unusable raises
`ConfigurationError`, so the run stops before any network call.
"""

from __future__ import annotations

import base64
import binascii
import json
from pathlib import Path
from typing import Any

import structlog
from pydantic import SecretStr

from adapters.registry.reference import DOCKER_HUB_ALIASES
from core.config import AppSettings
from core.domain.models import GitProviderKind, RegistryCredentials
from core.errors import ConfigurationError

logger = structlog.get_logger(__name__)


class EnvCredentialResolver:
    """`CredentialResolver` backed by environment settings and the Docker config."""

    def __init__(self, settings: AppSettings | None = None) -> None:
        self._settings = settings or AppSettings()
        self._auths: dict[str, dict[str, Any]] | None = None
        self._seen: set[str] = set()

    def git_token(self, provider: GitProviderKind) -> SecretStr | None:
        token = {
            GitProviderKind.GITHUB: self._settings.github_token,
            GitProviderKind.GITLAB: self._settings.gitlab_token,
            GitProviderKind.CODEBERG: self._settings.codeberg_token,
        }[provider]
        if token is None or not token.get_secret_value().strip():
            return None
        self._seen.add(token.get_secret_value())
        return token

    def registry_credentials(self, host: str) -> RegistryCredentials | None:
        auths = self._load_auths()
        entry = _find_entry(auths, host)
        if entry is None:
            logger.debug("registry_credentials_absent", registry=host)
            return None
        key, raw = entry
        credentials = _decode_entry(key, raw)
        if credentials is None:
            logger.debug("registry_credentials_absent", registry=host)
            return None
        self._seen.add(credentials.password.get_secret_value())
        logger.info("registry_credentials_found", registry=host, username=credentials.username)
        return credentials

    def secrets(self) -> tuple[str, ...]:
        return tuple(sorted(self._seen))

    def _load_auths(self) -> dict[str, dict[str, Any]]:
        if self._auths is not None:
            return self._auths

        path: Path = self._settings.docker_config_path
        if not path.is_file():
            self._auths = {}
            return self._auths

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as exc:
            raise ConfigurationError(f"Cannot read Docker config {path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Docker config {path} is not valid JSON: {exc.msg}") from exc

        auths = data.get("auths") if isinstance(data, dict) else None
        if auths is None:
            self._auths = {}
        elif isinstance(auths, dict):
            self._auths = {str(k): v for k, v in auths.items() if isinstance(v, dict)}
        else:
            raise ConfigurationError(f"Docker config {path}: 'auths' must be an object")
        return self._auths


def _normalize_host(value: str) -> str:
    host = value.strip().lower()
    for prefix in ("https://", "http://"):
        if host.startswith(prefix):
            host = host[len(prefix):]
    return host.split("/", 1)[0]


def _find_entry(auths: dict[str, dict[str, Any]], host: str) -> tuple[str, dict[str, Any]] | None:
    wanted = _normalize_host(host)
    hub_hosts = {_normalize_host(alias) for alias in DOCKER_HUB_ALIASES}
    for key, raw in auths.items():
        candidate = _normalize_host(key)
        if candidate == wanted or (wanted in hub_hosts and candidate in hub_hosts):
            return key, raw
    return None


def _decode_entry(key: str, raw: dict[str, Any]) -> RegistryCredentials | None:
    auth = raw.get("auth")
    if isinstance(auth, str) and auth:
        try:
            decoded = base64.b64decode(auth, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise ConfigurationError(f"Docker config entry {key!r}: 'auth' is not valid base64") from exc
        username, sep, password = decoded.partition(":")
        if not sep or not username:
            raise ConfigurationError(f"Docker config entry {key!r}: 'auth' must encode 'user:password'")
        return RegistryCredentials(username=username, password=SecretStr(password))

    username = raw.get("username")
    password = raw.get("password")
    if isinstance(username, str) and username and isinstance(password, str):
        return RegistryCredentials(username=username, password=SecretStr(password))
    return None
