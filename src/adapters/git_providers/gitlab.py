"""Git provider: GitLab (gitlab.com or self-hosted).

Lists `GET /projects/{id}/releases` ordered by `released_at` descending and
takes the first entry, so "latest" follows GitLab's own release order.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

from adapters.git_providers._base import HttpGitProvider, optional_str, require_str
from core.domain.models import GitProviderKind, GitSource, RawRelease
from core.errors import GitMalformed, GitNotFound


class GitLabProvider(HttpGitProvider):
    """Latest GitLab release. Authenticates whenever a token is available."""

    kind = GitProviderKind.GITLAB

    def _release_url(self, source: GitSource) -> str:
        base = self._settings.gitlab_api_url.rstrip("/")
        return f"{base}/projects/{project_ref(source)}/releases"

    def _release_params(self, source: GitSource) -> dict[str, str | int]:
        return {"order_by": "released_at", "sort": "desc", "per_page": 1}

    def _auth_headers(self, token: str) -> dict[str, str]:
        return {"PRIVATE-TOKEN": token}

    def _parse_release(self, payload: Any, source: GitSource) -> RawRelease:
        context = source.display_name()
        if not isinstance(payload, list):
            raise GitMalformed(f"{context}: expected a JSON list of releases")
        if not payload:
            raise GitNotFound(f"{context}: project has no releases")

        latest = payload[0]
        tag = require_str(latest, "tag_name", context=context)

        commit = latest.get("commit")
        ref = optional_str(commit, "id") if isinstance(commit, dict) else None
        links = latest.get("_links")
        url = optional_str(links, "self") if isinstance(links, dict) else None
        return RawRelease(name=tag, ref=ref or tag, url=url)


def project_ref(source: GitSource) -> str:
    """Numeric project id, or the URL-encoded `group/project` path."""

    if source.project_id is not None:
        return str(source.project_id)
    return quote(source.repo.strip("/"), safe="")
