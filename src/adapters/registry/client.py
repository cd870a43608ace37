"""Container registry client (Docker Registry HTTP API v2 / OCI distribution).

Flow for `tag_exists`:
1) HEAD the manifest endpoint anonymously.
2) On 401, read the WWW-Authenticate challenge, obtain a pull-scoped token
   from its realm (basic auth with the registry login when we have one),
   and retry once with the token.
3) A second 401/403 is a hard error; there is no loop.

Registries differ only by host: Docker Hub, GHCR, GitLab and Quay all go
through the same challenge/token exchange.
"""

from __future__ import annotations

import base64
from typing import Any

import httpx
import structlog

from adapters.http_client import build_async_client, describe_transport_error, retry_after_seconds
from adapters.registry.challenge import AuthChallenge, parse_challenge
from adapters.registry.reference import ImageReference, parse_image_reference
from core.config import AppSettings
from core.domain.models import RegistryCredentials
from core.errors import (
    RegistryError,
    RegistryMalformed,
    RegistryRateLimited,
    RegistryTransient,
    RegistryUnauthorized,
)

logger = structlog.get_logger(__name__)

MANIFEST_MEDIA_TYPES: tuple[str, ...] = (
    "application/vnd.docker.distribution.manifest.v2+json",
    "application/vnd.docker.distribution.manifest.list.v2+json",
    "application/vnd.oci.image.manifest.v1+json",
    "application/vnd.oci.image.index.v1+json",
)


class OciRegistryClient:
    """Single `RegistryClient` implementation for every v2-compatible registry."""

    def __init__(
        self,
        *,
        settings: AppSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or AppSettings()
        self._owns_client = client is None
        self._client = client or build_async_client(self._settings)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def tag_exists(
        self,
        image_name: str,
        tag: str,
        credentials: RegistryCredentials | None = None,
    ) -> bool:
        try:
            ref = parse_image_reference(image_name)
        except ValueError as exc:
            raise RegistryError(f"invalid image name {image_name!r}: {exc}") from exc

        url = ref.manifest_url(tag)
        log = logger.bind(image=image_name, tag=tag, registry=ref.registry)
        log.debug("manifest_probe", url=url)

        response = await self._probe(url)
        if response.status_code == 401:
            challenge = parse_challenge(response.headers.get("www-authenticate"))
            auth_headers = await self._authorize(challenge, ref, credentials)
            log.debug("manifest_probe_authenticated", scheme=challenge.scheme if challenge else None)
            response = await self._probe(url, auth_headers)
            if response.status_code in (401, 403):
                raise RegistryUnauthorized(
                    f"{ref.registry}: access to {ref.repository} denied after token exchange "
                    f"(HTTP {response.status_code})"
                )

        exists = self._interpret(response, ref, tag)
        log.info("manifest_checked", exists=exists)
        return exists

    async def _probe(self, url: str, headers: dict[str, str] | None = None) -> httpx.Response:
        request_headers = {"Accept": ", ".join(MANIFEST_MEDIA_TYPES)}
        if headers:
            request_headers.update(headers)
        try:
            response = await self._client.head(url, headers=request_headers)
            if response.status_code == 405:
                response = await self._client.get(url, headers=request_headers)
        except httpx.TransportError as exc:
            raise RegistryTransient(describe_transport_error(exc)) from exc
        return response

    async def _authorize(
        self,
        challenge: AuthChallenge | None,
        ref: ImageReference,
        credentials: RegistryCredentials | None,
    ) -> dict[str, str]:
        if challenge is None:
            raise RegistryUnauthorized(f"{ref.registry}: authentication required but no challenge was sent")

        if challenge.scheme == "basic":
            if credentials is None:
                raise RegistryUnauthorized(f"{ref.registry}: basic authentication required and no login configured")
            raw = f"{credentials.username}:{credentials.password.get_secret_value()}".encode("utf-8")
            encoded = base64.b64encode(raw).decode("ascii")
            return {"Authorization": f"Basic {encoded}"}

        if challenge.scheme != "bearer":
            raise RegistryUnauthorized(f"{ref.registry}: unsupported auth scheme {challenge.scheme!r}")

        token = await self._fetch_token(challenge, ref, credentials)
        return {"Authorization": f"Bearer {token}"}

    async def _fetch_token(
        self,
        challenge: AuthChallenge,
        ref: ImageReference,
        credentials: RegistryCredentials | None,
    ) -> str:
        realm = challenge.realm
        if not realm:
            raise RegistryMalformed(f"{ref.registry}: bearer challenge without realm")

        params: dict[str, str] = {"scope": f"repository:{ref.repository}:pull"}
        if challenge.service:
            params["service"] = challenge.service

        auth: httpx.BasicAuth | None = None
        if credentials is not None:
            auth = httpx.BasicAuth(credentials.username, credentials.password.get_secret_value())

        logger.debug("registry_token_request", registry=ref.registry, realm=realm, authenticated=auth is not None)
        try:
            if auth is not None:
                response = await self._client.get(realm, params=params, auth=auth)
            else:
                response = await self._client.get(realm, params=params)
        except httpx.TransportError as exc:
            raise RegistryTransient(describe_transport_error(exc)) from exc

        status = response.status_code
        if status == 429:
            raise RegistryRateLimited(
                f"{ref.registry}: token endpoint rate limited",
                retry_after=retry_after_seconds(response),
            )
        if status in (401, 403):
            raise RegistryUnauthorized(f"{ref.registry}: token request rejected (HTTP {status})")
        if status >= 500:
            raise RegistryTransient(f"{ref.registry}: token endpoint returned HTTP {status}")
        if status != 200:
            raise RegistryError(f"{ref.registry}: unexpected HTTP {status} from token endpoint")

        try:
            payload: Any = response.json()
        except ValueError as exc:
            raise RegistryMalformed(f"{ref.registry}: token response is not valid JSON") from exc

        token = None
        if isinstance(payload, dict):
            token = payload.get("token") or payload.get("access_token")
        if not isinstance(token, str) or not token:
            raise RegistryMalformed(f"{ref.registry}: token response has no token")
        return token

    def _interpret(self, response: httpx.Response, ref: ImageReference, tag: str) -> bool:
        status = response.status_code
        if status == 200:
            return True
        if status == 404:
            return False
        if status == 429:
            raise RegistryRateLimited(
                f"{ref.registry}: rate limited while checking {ref.repository}:{tag}",
                retry_after=retry_after_seconds(response),
            )
        if status in (401, 403):
            raise RegistryUnauthorized(f"{ref.registry}: access to {ref.repository} denied (HTTP {status})")
        if status >= 500:
            raise RegistryTransient(f"{ref.registry}: manifest endpoint returned HTTP {status}")
        raise RegistryError(f"{ref.registry}: unexpected HTTP {status} checking {ref.repository}:{tag}")
