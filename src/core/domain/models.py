"""Domain models (Pydantic v2).

These models describe *what* a service is and what a release looks like,
not *how* it is fetched. Every model is frozen: specs are shared read-only
between concurrent pipelines.
"""

from __future__ import annotations

import re
from enum import Enum

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic.config import ConfigDict

RELEASE_VERSION_PLACEHOLDER = "${RELEASE_VERSION}"


class GitProviderKind(str, Enum):
    """Supported Git hosting providers."""

    GITHUB = "github"
    GITLAB = "gitlab"
    CODEBERG = "codeberg"

    def label(self) -> str:
        return {"github": "GitHub", "gitlab": "GitLab", "codeberg": "Codeberg"}[self.value]


class GitSource(BaseModel):
    """Where the releases of a service live."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    provider: GitProviderKind = Field(
        ...,
        alias="type",
        description="Git hosting provider.",
    )
    repo: str = Field(
        ...,
        min_length=1,
        description="Repository path (`owner/name`, or the GitLab project path).",
    )
    project_id: int | None = Field(
        default=None,
        ge=1,
        description="Numeric GitLab project id; takes precedence over `repo` for GitLab.",
    )
    version_filter: str | None = Field(
        default=None,
        description="Regex with exactly one capture group that extracts the version.",
    )
    private: bool = Field(
        default=False,
        description="Private repository: a token is mandatory.",
    )

    @field_validator("version_filter")
    @classmethod
    def _check_filter(cls, value: str | None) -> str | None:
        if value is None:
            return None
        try:
            compiled = re.compile(value)
        except re.error as exc:
            raise ValueError(f"invalid version_filter {value!r}: {exc}") from exc
        if compiled.groups != 1:
            raise ValueError(
                f"version_filter {value!r} must contain exactly one capture group "
                f"(found {compiled.groups})"
            )
        return value

    def display_name(self) -> str:
        if self.provider is GitProviderKind.GITLAB and self.project_id is not None:
            return f"{self.provider.label()}({self.project_id})"
        return f"{self.provider.label()}({self.repo})"


class ImageSpec(BaseModel):
    """Container image to validate, tag given as a template."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(
        ...,
        min_length=1,
        description="Image reference without tag (e.g. `ghcr.io/org/app`, `nginx`).",
    )
    tag: str = Field(
        ...,
        min_length=1,
        description=f"Tag template containing `{RELEASE_VERSION_PLACEHOLDER}`.",
    )

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        if "@" in value:
            raise ValueError(f"image name {value!r} must not contain a digest")
        last = value.rsplit("/", 1)[-1]
        if ":" in last:
            raise ValueError(f"image name {value!r} must not contain a tag")
        return value

    @field_validator("tag")
    @classmethod
    def _check_tag(cls, value: str) -> str:
        if RELEASE_VERSION_PLACEHOLDER not in value:
            raise ValueError(f"image tag template {value!r} must contain {RELEASE_VERSION_PLACEHOLDER}")
        return value


class ServiceSpec(BaseModel):
    """One configured logical service (unique by `name`)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1, max_length=256)
    git: GitSource
    image: ImageSpec


class RawRelease(BaseModel):
    """Release as returned by a provider, before version extraction."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Tag/release name (e.g. `v1.2.3`).")
    ref: str | None = Field(
        default=None,
        description="Canonical identifier of the release (commit sha or tag ref).",
    )
    url: str | None = Field(default=None, description="Human facing release URL.")


class RegistryCredentials(BaseModel):
    """Registry login (username + password/token)."""

    model_config = ConfigDict(frozen=True)

    username: str = Field(..., min_length=1)
    password: SecretStr
