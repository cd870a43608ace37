"""Git provider: GitHub.

Uses the REST endpoint `GET /repos/{owner}/{repo}/releases/latest`
(most recent published, non-draft, non-prerelease release).
"""

from __future__ import annotations

from typing import Any

import httpx
from pydantic import SecretStr

from adapters.git_providers._base import HttpGitProvider, optional_str, require_str
from core.config import AppSettings
from core.domain.models import GitProviderKind, GitSource, RawRelease


class GitHubProvider(HttpGitProvider):
    """Latest GitHub release.

    Authentication is opt-in: the token is sent for private repositories or
    when the global `authenticate` flag is on (unauthenticated calls get a far
    lower rate limit).
    """

    kind = GitProviderKind.GITHUB

    def __init__(
        self,
        *,
        settings: AppSettings | None = None,
        token: SecretStr | None = None,
        authenticate: bool = False,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(settings=settings, token=token, client=client)
        self._authenticate = authenticate

    def _use_token(self, source: GitSource) -> bool:
        return self._token is not None and (source.private or self._authenticate)

    def _release_url(self, source: GitSource) -> str:
        base = self._settings.github_api_url.rstrip("/")
        return f"{base}/repos/{source.repo.strip('/')}/releases/latest"

    def _extra_headers(self) -> dict[str, str]:
        return {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def _auth_headers(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    def _parse_release(self, payload: Any, source: GitSource) -> RawRelease:
        tag = require_str(payload, "tag_name", context=source.display_name())
        return RawRelease(
            name=tag,
            ref=optional_str(payload, "target_commitish"),
            url=optional_str(payload, "html_url"),
        )
