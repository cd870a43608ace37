"""Provider and registry contracts.

Why Protocol:
- Structural contracts (duck typing) without rigid inheritance.
- GitHub/GitLab/Codeberg providers and the registry client stay swappable and
  testable against fixture responses or in-memory fakes.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from pydantic import SecretStr

from core.domain.models import GitProviderKind, GitSource, RawRelease, RegistryCredentials


@runtime_checkable
class GitProvider(Protocol):
    """Resolves the latest release of a repository.

    Design rules:
    - "Latest" is the provider's own release order (publish time), never a
      semver sort.
    - One request per call with a timeout; no internal retries.
    - Failures are raised as `core.errors.GitError` subclasses.
    """

    kind: GitProviderKind

    async def resolve_latest_release(self, source: GitSource) -> RawRelease:
        ...

    async def aclose(self) -> None:
        ...


@runtime_checkable
class RegistryClient(Protocol):
    """Checks that an image tag exists in a container registry.

    Returns False when the manifest is not found; raises
    `core.errors.RegistryError` subclasses for every other failure.
    """

    async def tag_exists(
        self,
        image_name: str,
        tag: str,
        credentials: RegistryCredentials | None = None,
    ) -> bool:
        ...

    async def aclose(self) -> None:
        ...


@runtime_checkable
class CredentialResolver(Protocol):
    """Supplies credentials on demand. `None` means absent.

    Present-but-invalid material raises `ConfigurationError` instead.
    """

    def git_token(self, provider: GitProviderKind) -> SecretStr | None:
        ...

    def registry_credentials(self, host: str) -> RegistryCredentials | None:
        ...

    def secrets(self) -> tuple[str, ...]:
        ...
