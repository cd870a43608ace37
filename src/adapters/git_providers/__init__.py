"""Git hosting providers (concrete implementations of `GitProvider`).

Why a package:
- One module per provider (GitHub, GitLab, Codeberg).
- `build_git_provider` selects the variant once, at configuration-load time.
"""

from __future__ import annotations

import httpx
from pydantic import SecretStr

from adapters.git_providers._base import HttpGitProvider
from adapters.git_providers.codeberg import CodebergProvider
from adapters.git_providers.github import GitHubProvider
from adapters.git_providers.gitlab import GitLabProvider
from core.config import AppSettings
from core.domain.models import GitProviderKind


def build_git_provider(
    kind: GitProviderKind,
    *,
    settings: AppSettings,
    token: SecretStr | None,
    github_authenticate: bool = False,
    client: httpx.AsyncClient | None = None,
) -> HttpGitProvider:
    if kind is GitProviderKind.GITHUB:
        return GitHubProvider(settings=settings, token=token, authenticate=github_authenticate, client=client)
    if kind is GitProviderKind.GITLAB:
        return GitLabProvider(settings=settings, token=token, client=client)
    if kind is GitProviderKind.CODEBERG:
        return CodebergProvider(settings=settings, token=token, client=client)
    raise ValueError(f"Unsupported git provider: {kind}")


__all__ = [
    "CodebergProvider",
    "GitHubProvider",
    "GitLabProvider",
    "HttpGitProvider",
    "build_git_provider",
]
