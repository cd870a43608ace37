"""Concurrent multi-service orchestration.

Replaces the old sequential loop: every service runs in its own task under
a shared semaphore, and each task writes only its own pre-reserved slot.
Failures stay inside the service's `ServiceResult`; only configuration
errors (raised during preflight, before any network call) abort the run.

Cancellation: `cancel()` (wired to SIGINT/SIGTERM by the CLI) cancels the
in-flight tasks. Finished services are kept, unfinished ones are omitted
from the `ResultMap` and listed in `ResultMap.omitted`.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field

import structlog
from pydantic import SecretStr

from adapters.git_providers import build_git_provider
from adapters.registry import OciRegistryClient, parse_image_reference
from core.config import AppSettings
from core.domain.models import GitProviderKind, RegistryCredentials, ServiceSpec
from core.domain.results import ErrorResult, ResultMap, ServiceResult
from core.errors import ConfigurationError, redact
from core.interfaces.providers import CredentialResolver, GitProvider, RegistryClient
from core.retry import RetryPolicy
from core.services.service_pipeline import ServicePipeline

logger = structlog.get_logger(__name__)

ProviderFactory = Callable[[GitProviderKind, SecretStr | None], GitProvider]

RUN_DEADLINE_MESSAGE = "run deadline exceeded"

_TOKEN_ENV = {
    GitProviderKind.GITHUB: "GITHUB_TOKEN",
    GitProviderKind.GITLAB: "GITLAB_TOKEN",
    GitProviderKind.CODEBERG: "CODEBERG_TOKEN",
}


@dataclass(frozen=True)
class PreparedService:
    """A spec with everything resolved that must exist before the run."""

    spec: ServiceSpec
    provider: GitProvider
    registry_credentials: RegistryCredentials | None = None


@dataclass
class OrchestratorHooks:
    """Optional callbacks for UI layers (progress)."""

    service_done: Callable[[str, ServiceResult], None] | None = None


@dataclass
class PreparedRun:
    services: list[PreparedService]
    providers: list[GitProvider] = field(default_factory=list)
    secrets: tuple[str, ...] = ()


def prepare_services(
    specs: Sequence[ServiceSpec],
    *,
    resolver: CredentialResolver,
    provider_factory: ProviderFactory,
    github_authenticate: bool = False,
) -> PreparedRun:
    """Preflight: validate specs and resolve credentials. No network I/O.

    Raises:
        ConfigurationError: duplicate service names, unparsable image names,
            missing required tokens, unusable registry credentials
    """

    seen: set[str] = set()
    for spec in specs:
        if spec.name in seen:
            raise ConfigurationError(f"Duplicate service name '{spec.name}'")
        seen.add(spec.name)

    tokens: dict[GitProviderKind, SecretStr | None] = {}
    for spec in specs:
        kind = spec.git.provider
        if kind not in tokens:
            tokens[kind] = resolver.git_token(kind)
        needs_token = spec.git.private or (kind is GitProviderKind.GITHUB and github_authenticate)
        if needs_token and tokens[kind] is None:
            reason = "is private" if spec.git.private else "uses authenticated GitHub requests"
            raise ConfigurationError(
                f"Service '{spec.name}' {reason} and requires {_TOKEN_ENV[kind]} for authentication"
            )

    registry_creds: dict[str, RegistryCredentials | None] = {}
    hosts: dict[str, str] = {}
    for spec in specs:
        try:
            ref = parse_image_reference(spec.image.name)
        except ValueError as exc:
            raise ConfigurationError(f"Service '{spec.name}': invalid image name: {exc}") from exc
        hosts[spec.name] = ref.registry
        if ref.registry not in registry_creds:
            registry_creds[ref.registry] = resolver.registry_credentials(ref.registry)

    providers: dict[GitProviderKind, GitProvider] = {
        kind: provider_factory(kind, token) for kind, token in tokens.items()
    }
    services = [
        PreparedService(
            spec=spec,
            provider=providers[spec.git.provider],
            registry_credentials=registry_creds[hosts[spec.name]],
        )
        for spec in specs
    ]
    return PreparedRun(services=services, providers=list(providers.values()), secrets=resolver.secrets())


class PipelineOrchestrator:
    """Runs one `ServicePipeline` per spec with bounded concurrency."""

    def __init__(
        self,
        *,
        settings: AppSettings | None = None,
        resolver: CredentialResolver,
        registry: RegistryClient | None = None,
        provider_factory: ProviderFactory | None = None,
        github_authenticate: bool = False,
        retry_policy: RetryPolicy | None = None,
        max_concurrency: int | None = None,
        run_timeout: float | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        hooks: OrchestratorHooks | None = None,
    ) -> None:
        self._settings = settings or AppSettings()
        self._resolver = resolver
        self._registry = registry
        self._provider_factory = provider_factory
        self._github_authenticate = github_authenticate
        self._retry_policy = retry_policy or RetryPolicy(
            max_attempts=self._settings.retry_max_attempts,
            base_delay=self._settings.retry_base_delay_seconds,
            max_delay=self._settings.retry_max_delay_seconds,
        )
        self._max_concurrency = max(1, max_concurrency or self._settings.max_concurrency)
        self._run_timeout = run_timeout if run_timeout is not None else self._settings.run_timeout_seconds
        self._sleep = sleep
        self._hooks = hooks or OrchestratorHooks()
        self._tasks: list[asyncio.Task[None]] = []

    def _default_provider(self, kind: GitProviderKind, token: SecretStr | None) -> GitProvider:
        return build_git_provider(
            kind,
            settings=self._settings,
            token=token,
            github_authenticate=self._github_authenticate,
        )

    def cancel(self) -> None:
        """Abort in-flight pipelines at their next suspension point."""

        pending = [t for t in self._tasks if not t.done()]
        if pending:
            logger.warning("run_cancel_requested", pending=len(pending))
        for task in pending:
            task.cancel()

    async def run(self, specs: Sequence[ServiceSpec]) -> ResultMap:
        factory = self._provider_factory or self._default_provider
        prepared = prepare_services(
            specs,
            resolver=self._resolver,
            provider_factory=factory,
            github_authenticate=self._github_authenticate,
        )

        owns_registry = self._registry is None
        registry = self._registry or OciRegistryClient(settings=self._settings)
        try:
            return await self._execute(prepared, registry)
        finally:
            if self._provider_factory is None:
                for provider in prepared.providers:
                    await provider.aclose()
            if owns_registry:
                await registry.aclose()

    async def _execute(self, prepared: PreparedRun, registry: RegistryClient) -> ResultMap:
        order = [svc.spec.name for svc in prepared.services]
        slots: dict[str, ServiceResult | None] = {name: None for name in order}
        if not order:
            return ResultMap([])

        semaphore = asyncio.Semaphore(self._max_concurrency)
        logger.info("run_started", services=len(order), max_concurrency=self._max_concurrency)

        async def drive(service: PreparedService) -> None:
            async with semaphore:
                pipeline = ServicePipeline(
                    spec=service.spec,
                    provider=service.provider,
                    registry=registry,
                    registry_credentials=service.registry_credentials,
                    retry_policy=self._retry_policy,
                    secrets=prepared.secrets,
                    sleep=self._sleep,
                )
                try:
                    result = await pipeline.run()
                except Exception as exc:
                    logger.exception("service_crashed", service=service.spec.name)
                    result = ErrorResult(message=redact(f"Unexpected error: {exc}", prepared.secrets))
            slots[service.spec.name] = result
            if self._hooks.service_done:
                self._hooks.service_done(service.spec.name, result)

        self._tasks = [asyncio.create_task(drive(svc), name=f"pipeline:{svc.spec.name}") for svc in prepared.services]
        timed_out: set[str] = set()
        try:
            _, pending = await asyncio.wait(self._tasks, timeout=self._run_timeout)
            if pending:
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)
                timed_out = {name for name, slot in slots.items() if slot is None}
                logger.warning("run_deadline_exceeded", timeout=self._run_timeout, unfinished=sorted(timed_out))
        except asyncio.CancelledError:
            self.cancel()
            await asyncio.gather(*self._tasks, return_exceptions=True)
            raise
        finally:
            self._tasks = []

        entries: list[tuple[str, ServiceResult]] = []
        omitted: list[str] = []
        for name in order:
            slot = slots[name]
            if slot is not None:
                entries.append((name, slot))
            elif name in timed_out:
                entries.append((name, ErrorResult(message=RUN_DEADLINE_MESSAGE)))
            else:
                omitted.append(name)

        result_map = ResultMap(entries, omitted=omitted)
        logger.info(
            "run_finished",
            services=len(order),
            resolved=len(result_map) - len(result_map.unresolved()),
            unresolved=len(result_map.unresolved()),
            omitted=len(omitted),
        )
        return result_map

