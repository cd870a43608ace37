"""Shared HTTP plumbing for Git hosting providers.

Each concrete provider only knows its endpoint, its auth header and the
shape of its release payload; status-code classification lives here.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from pydantic import SecretStr

from adapters.http_client import build_async_client, describe_transport_error, retry_after_seconds
from core.config import AppSettings
from core.domain.models import GitProviderKind, GitSource, RawRelease
from core.errors import (
    GitError,
    GitMalformed,
    GitNotFound,
    GitRateLimited,
    GitTransient,
    GitUnauthorized,
)

logger = structlog.get_logger(__name__)


class HttpGitProvider:
    """Base for providers speaking JSON over HTTPS.

    Subclasses implement `_release_url`, `_auth_headers` and `_parse_release`.
    The client is owned (and closed) by the provider unless one is injected.
    """

    kind: GitProviderKind

    def __init__(
        self,
        *,
        settings: AppSettings | None = None,
        token: SecretStr | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or AppSettings()
        self._token = token
        self._owns_client = client is None
        self._client = client or build_async_client(self._settings)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _use_token(self, source: GitSource) -> bool:
        return self._token is not None

    def _release_url(self, source: GitSource) -> str:
        raise NotImplementedError

    def _release_params(self, source: GitSource) -> dict[str, str | int]:
        return {}

    def _auth_headers(self, token: str) -> dict[str, str]:
        raise NotImplementedError

    def _extra_headers(self) -> dict[str, str]:
        return {}

    def _parse_release(self, payload: Any, source: GitSource) -> RawRelease:
        raise NotImplementedError

    async def resolve_latest_release(self, source: GitSource) -> RawRelease:
        url = self._release_url(source)
        headers = self._extra_headers()
        authenticated = self._use_token(source)
        if authenticated and self._token is not None:
            headers.update(self._auth_headers(self._token.get_secret_value()))

        log = logger.bind(provider=self.kind.value, repo=source.display_name(), authenticated=authenticated)
        log.debug("release_lookup", url=url)

        try:
            response = await self._client.get(url, params=self._release_params(source), headers=headers)
        except httpx.TransportError as exc:
            raise GitTransient(f"{source.display_name()}: {describe_transport_error(exc)}") from exc

        self._raise_for_status(response, source)

        try:
            payload = response.json()
        except ValueError as exc:
            raise GitMalformed(f"{source.display_name()}: response is not valid JSON") from exc

        release = self._parse_release(payload, source)
        log.info("release_resolved", tag=release.name, ref=release.ref)
        return release

    def _raise_for_status(self, response: httpx.Response, source: GitSource) -> None:
        status = response.status_code
        name = source.display_name()
        if 200 <= status < 300:
            return
        if status == 404:
            raise GitNotFound(f"{name}: no release found")
        if status == 429 or (status == 403 and _looks_rate_limited(response)):
            raise GitRateLimited(
                f"{name}: rate limited by {self.kind.label()} API",
                retry_after=retry_after_seconds(response),
            )
        if status in (401, 403):
            raise GitUnauthorized(f"{name}: {self.kind.label()} API refused access (HTTP {status})")
        if status >= 500:
            raise GitTransient(f"{name}: {self.kind.label()} API returned HTTP {status}")
        raise GitError(f"{name}: unexpected HTTP {status} from {self.kind.label()} API")


def _looks_rate_limited(response: httpx.Response) -> bool:
    if response.headers.get("x-ratelimit-remaining") == "0":
        return True
    if response.headers.get("retry-after"):
        return True
    try:
        body = response.text
    except (httpx.ResponseNotRead, UnicodeDecodeError):
        return False
    return "rate limit" in body.lower()


def require_str(payload: Any, key: str, *, context: str) -> str:
    if not isinstance(payload, dict):
        raise GitMalformed(f"{context}: expected a JSON object, got {type(payload).__name__}")
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise GitMalformed(f"{context}: missing '{key}' in release payload")
    return value.strip()


def optional_str(payload: dict[str, Any], key: str) -> str | None:
    value = payload.get(key)
    return value if isinstance(value, str) and value else None
