"""Git provider: Codeberg (Gitea/Forgejo API).

`GET /repos/{owner}/{repo}/releases/latest`, bearer token.
"""

from __future__ import annotations

from typing import Any

from adapters.git_providers._base import HttpGitProvider, optional_str, require_str
from core.domain.models import GitProviderKind, GitSource, RawRelease


class CodebergProvider(HttpGitProvider):
    kind = GitProviderKind.CODEBERG

    def _release_url(self, source: GitSource) -> str:
        base = self._settings.codeberg_api_url.rstrip("/")
        return f"{base}/repos/{source.repo.strip('/')}/releases/latest"

    def _auth_headers(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    def _parse_release(self, payload: Any, source: GitSource) -> RawRelease:
        tag = require_str(payload, "tag_name", context=source.display_name())
        return RawRelease(
            name=tag,
            ref=optional_str(payload, "target_commitish"),
            url=optional_str(payload, "html_url"),
        )
