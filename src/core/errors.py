"""Error taxonomy for the resolution pipeline.

Layout:
- `ConfigurationError` is the only process-fatal error; it is raised before
  any network call is made.
- Everything else is per-service and ends up inside a `ServiceResult`.
- `RateLimitedError` and `TransientError` are classification mixins so the
  pipeline and the retry policy can reason about Git and registry failures
  alike.
"""

from __future__ import annotations

import re
from typing import Iterable


class VersionUpdaterError(Exception):
    """Base class for every error raised by this project."""


class ConfigurationError(VersionUpdaterError):
    """Malformed service spec or missing required credential."""


class RateLimitedError(VersionUpdaterError):
    """Provider or registry signalled throttling."""

    def __init__(self, message: str, *, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class TransientError(VersionUpdaterError):
    """Network failure or 5xx response, eligible for bounded retry."""


class VersionNoMatch(VersionUpdaterError):
    """The version filter did not match the raw tag (or captured nothing)."""

    def __init__(self, raw_tag: str, pattern: str) -> None:
        super().__init__(f"No matching version in tag {raw_tag!r} for filter {pattern!r}")
        self.raw_tag = raw_tag
        self.pattern = pattern


# Git hosting providers


class GitError(VersionUpdaterError):
    """Base class for Git provider failures."""


class GitNotFound(GitError):
    """Repository has no release (or the repository itself is not visible)."""


class GitRateLimited(GitError, RateLimitedError):
    pass


class GitUnauthorized(GitError):
    """401/403 that is not a rate-limit signal."""


class GitTransient(GitError, TransientError):
    pass


class GitMalformed(GitError):
    """Unexpected response shape."""


# Container registries


class RegistryError(VersionUpdaterError):
    """Base class for registry failures."""


class RegistryRateLimited(RegistryError, RateLimitedError):
    pass


class RegistryUnauthorized(RegistryError):
    pass


class RegistryTransient(RegistryError, TransientError):
    pass


class RegistryMalformed(RegistryError):
    pass


_REDACTED = "***"
_AUTH_HEADER_RE = re.compile(r"\b(Bearer|Basic)\s+(?=[A-Za-z0-9._~+/=-]*[0-9._~+/=])[A-Za-z0-9._~+/=-]{8,}")
_QUERY_SECRET_RE = re.compile(r"(?i)\b(access_token|private_token|token|password)=([^&\s]+)")


def redact(message: str, secrets: Iterable[str] = ()) -> str:
    """Strip credential material from a message meant for users."""

    text = message
    # Longest first so a secret that contains another one is removed whole.
    for secret in sorted({s for s in secrets if s}, key=len, reverse=True):
        text = text.replace(secret, _REDACTED)
    text = _AUTH_HEADER_RE.sub(lambda m: f"{m.group(1)} {_REDACTED}", text)
    text = _QUERY_SECRET_RE.sub(lambda m: f"{m.group(1)}={_REDACTED}", text)
    return text
