"""Single-service resolution pipeline.

Init -> GitResolving -> VersionExtracting -> RegistryValidating -> Done

Any failing stage short-circuits to Done with a classified result; later
stages never run. Retries (transient failures only) are applied around the
two network stages through the policy handed down by the orchestrator.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum

import structlog

from core.domain.models import RegistryCredentials, ServiceSpec
from core.domain.results import (
    ErrorResult,
    FoundResult,
    NotFoundResult,
    RateLimitedResult,
    ServiceResult,
)
from core.domain.versioning import extract_version, render_tag
from core.errors import GitNotFound, RateLimitedError, VersionNoMatch, VersionUpdaterError, redact
from core.interfaces.providers import GitProvider, RegistryClient
from core.retry import NO_RETRY, RetryPolicy, call_with_retry

logger = structlog.get_logger(__name__)


class PipelineStage(str, Enum):
    INIT = "init"
    GIT_RESOLVING = "git_resolving"
    VERSION_EXTRACTING = "version_extracting"
    REGISTRY_VALIDATING = "registry_validating"
    DONE = "done"


_FAILURE_PREFIX = {
    PipelineStage.GIT_RESOLVING: "Failed to get version",
    PipelineStage.VERSION_EXTRACTING: "Failed to extract version",
    PipelineStage.REGISTRY_VALIDATING: "Failed to validate image tag",
}


def classify_error(
    exc: VersionUpdaterError,
    *,
    stage: PipelineStage | None = None,
    secrets: tuple[str, ...] = (),
) -> ServiceResult:
    """Map an internal error to the user-facing `ServiceResult`."""

    if isinstance(exc, (GitNotFound, VersionNoMatch)):
        return NotFoundResult(reason=redact(str(exc), secrets))
    if isinstance(exc, RateLimitedError):
        return RateLimitedResult(retry_after=exc.retry_after)

    prefix = _FAILURE_PREFIX.get(stage) if stage is not None else None
    message = f"{prefix}: {exc}" if prefix else str(exc)
    return ErrorResult(message=redact(message, secrets))


@dataclass
class ServicePipeline:
    """Drives one `ServiceSpec` to exactly one `ServiceResult`."""

    spec: ServiceSpec
    provider: GitProvider
    registry: RegistryClient
    registry_credentials: RegistryCredentials | None = None
    retry_policy: RetryPolicy = NO_RETRY
    secrets: tuple[str, ...] = ()
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep
    stage: PipelineStage = field(default=PipelineStage.INIT, init=False)
    visited: list[PipelineStage] = field(default_factory=list, init=False)

    def _enter(self, stage: PipelineStage) -> None:
        self.stage = stage
        self.visited.append(stage)

    async def run(self) -> ServiceResult:
        if self.stage is not PipelineStage.INIT:
            raise RuntimeError(f"pipeline for {self.spec.name!r} already ran")

        spec = self.spec
        log = logger.bind(service=spec.name, repo=spec.git.display_name(), image=spec.image.name)

        try:
            self._enter(PipelineStage.GIT_RESOLVING)
            release = await call_with_retry(
                lambda: self.provider.resolve_latest_release(spec.git),
                self.retry_policy,
                sleep=self.sleep,
                service=spec.name,
                stage=self.stage.value,
            )

            self._enter(PipelineStage.VERSION_EXTRACTING)
            version = extract_version(release.name, spec.git.version_filter)
            tag = render_tag(spec.image.tag, version)
            log.debug("version_extracted", raw_tag=release.name, version=version, tag=tag)

            self._enter(PipelineStage.REGISTRY_VALIDATING)
            exists = await call_with_retry(
                lambda: self.registry.tag_exists(spec.image.name, tag, self.registry_credentials),
                self.retry_policy,
                sleep=self.sleep,
                service=spec.name,
                stage=self.stage.value,
            )
        except VersionUpdaterError as exc:
            failed_at = self.stage
            self._enter(PipelineStage.DONE)
            result = classify_error(exc, stage=failed_at, secrets=self.secrets)
            log.warning("service_failed", stage=failed_at.value, status=result.status, error=redact(str(exc), self.secrets))
            return result

        self._enter(PipelineStage.DONE)
        if not exists:
            log.warning("image_tag_missing", tag=tag)
            return NotFoundResult(reason=f"{spec.image.name}:{tag} does not exist in the registry")

        log.info("service_resolved", tag=tag)
        return FoundResult(image=spec.image.name, tag=tag)
