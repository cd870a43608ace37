from __future__ import annotations

import asyncio

import pytest

from core.domain.models import GitProviderKind, RegistryCredentials
from core.domain.results import ErrorResult, FoundResult, NotFoundResult, RateLimitedResult
from core.errors import ConfigurationError, GitRateLimited, GitTransient
from core.retry import RetryPolicy
from core.services.orchestrator import RUN_DEADLINE_MESSAGE, OrchestratorHooks, PipelineOrchestrator
from fakes import FakeGitProvider, FakeRegistry, FakeResolver, make_spec


async def no_sleep(delay: float) -> None:
    return None


def orchestrator(settings, providers, registry, resolver=None, **kwargs) -> PipelineOrchestrator:
    created: list[GitProviderKind] = []

    def factory(kind, token):
        created.append(kind)
        return providers[kind]

    orch = PipelineOrchestrator(
        settings=settings,
        resolver=resolver or FakeResolver(),
        registry=registry,
        provider_factory=factory,
        retry_policy=kwargs.pop("retry_policy", RetryPolicy(max_attempts=3, base_delay=0)),
        sleep=no_sleep,
        **kwargs,
    )
    orch.created = created
    return orch


def registry_with(*names: str, tag: str = "1.0") -> FakeRegistry:
    return FakeRegistry(existing={(f"ghcr.io/org/{n}", tag) for n in names})


@pytest.mark.asyncio
async def test_one_rate_limited_service_does_not_affect_others(settings) -> None:
    names = ["a", "b", "c", "d"]
    releases = {f"org/{n}": "1.0" for n in names}
    releases["org/c"] = GitRateLimited("slow down")
    provider = FakeGitProvider(releases)
    orch = orchestrator(settings, {GitProviderKind.GITHUB: provider}, registry_with(*names))

    result = await orch.run([make_spec(n) for n in names])

    assert list(result) == names
    assert isinstance(result["c"], RateLimitedResult)
    for name in ("a", "b", "d"):
        assert result[name] == FoundResult(image=f"ghcr.io/org/{name}", tag="1.0")
    assert result.complete
    assert result.to_output()["c"] == "<RATE_LIMITED>"


@pytest.mark.asyncio
async def test_runs_are_repeatable(settings) -> None:
    specs = [make_spec("a"), make_spec("b", version_filter=r"^v(\d+)")]
    providers = {GitProviderKind.GITHUB: FakeGitProvider({"org/a": "1.0", "org/b": "release-3"})}

    first = await orchestrator(settings, providers, registry_with("a")).run(specs)
    second = await orchestrator(settings, providers, registry_with("a")).run(specs)

    assert first == second
    assert isinstance(first["b"], NotFoundResult)


@pytest.mark.asyncio
async def test_missing_token_aborts_before_network(settings) -> None:
    provider = FakeGitProvider({"org/a": "1.0", "org/b": "1.0"})
    registry = FakeRegistry()
    orch = orchestrator(settings, {GitProviderKind.GITHUB: provider}, registry)

    with pytest.raises(ConfigurationError, match="GITHUB_TOKEN"):
        await orch.run([make_spec("a"), make_spec("b", private=True)])

    assert provider.calls == []
    assert registry.calls == []
    assert orch.created == []


@pytest.mark.asyncio
async def test_github_authenticate_requires_token(settings) -> None:
    orch = orchestrator(settings, {}, FakeRegistry(), github_authenticate=True)

    with pytest.raises(ConfigurationError):
        await orch.run([make_spec("a")])


@pytest.mark.asyncio
async def test_private_repo_with_token(settings) -> None:
    provider = FakeGitProvider({"org/a": "1.0"})
    resolver = FakeResolver(tokens={GitProviderKind.GITHUB: "ghp_abc"})
    orch = orchestrator(settings, {GitProviderKind.GITHUB: provider}, registry_with("a"), resolver=resolver)

    result = await orch.run([make_spec("a", private=True)])

    assert isinstance(result["a"], FoundResult)


@pytest.mark.asyncio
async def test_duplicate_service_names(settings) -> None:
    orch = orchestrator(settings, {}, FakeRegistry())

    with pytest.raises(ConfigurationError, match="Duplicate"):
        await orch.run([make_spec("a"), make_spec("a")])


@pytest.mark.asyncio
async def test_registry_credentials_resolved_once_per_host(settings) -> None:
    login = RegistryCredentials(username="bot", password="pw-123")
    resolver = FakeResolver(registry={"ghcr.io": login})
    registry = registry_with("a", "b")
    provider = FakeGitProvider({"org/a": "1.0", "org/b": "1.0"})
    orch = orchestrator(settings, {GitProviderKind.GITHUB: provider}, registry, resolver=resolver)

    await orch.run([make_spec("a"), make_spec("b")])

    assert resolver.registry_lookups == ["ghcr.io"]
    assert {call[2] for call in registry.calls} == {login}


@pytest.mark.asyncio
async def test_transient_errors_retried_then_reported(settings) -> None:
    provider = FakeGitProvider(
        {
            "org/flaky": [GitTransient("reset"), GitTransient("reset"), "1.0"],
            "org/down": [GitTransient("reset")] * 3,
        }
    )
    orch = orchestrator(settings, {GitProviderKind.GITHUB: provider}, registry_with("flaky"))

    result = await orch.run([make_spec("flaky"), make_spec("down")])

    assert isinstance(result["flaky"], FoundResult)
    assert isinstance(result["down"], ErrorResult)
    assert result["down"].message.startswith("Failed to get version")
    assert provider.calls.count("org/down") == 3


@pytest.mark.asyncio
async def test_concurrency_is_bounded(settings) -> None:
    in_flight = 0
    peak = 0

    class SlowProvider(FakeGitProvider):
        async def resolve_latest_release(self, source):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return await super().resolve_latest_release(source)

    names = [f"s{i}" for i in range(6)]
    provider = SlowProvider({f"org/{n}": "1.0" for n in names})
    orch = orchestrator(settings, {GitProviderKind.GITHUB: provider}, registry_with(*names), max_concurrency=2)

    result = await orch.run([make_spec(n) for n in names])

    assert len(result) == 6
    assert peak == 2


@pytest.mark.asyncio
async def test_unexpected_exception_is_isolated(settings) -> None:
    provider = FakeGitProvider({"org/a": ValueError("boom"), "org/b": "1.0"})
    orch = orchestrator(settings, {GitProviderKind.GITHUB: provider}, registry_with("b"))

    result = await orch.run([make_spec("a"), make_spec("b")])

    assert result["a"] == ErrorResult(message="Unexpected error: boom")
    assert isinstance(result["b"], FoundResult)


class GatedProvider(FakeGitProvider):
    def __init__(self, releases, blocked: str) -> None:
        super().__init__(releases)
        self.blocked = blocked
        self.gate = asyncio.Event()

    async def resolve_latest_release(self, source):
        if source.repo == self.blocked:
            await self.gate.wait()
        return await super().resolve_latest_release(source)


@pytest.mark.asyncio
async def test_cancel_omits_unfinished_services(settings) -> None:
    provider = GatedProvider({"org/a": "1.0", "org/slow": "1.0", "org/b": "1.0"}, blocked="org/slow")
    finished: list[str] = []
    orch = orchestrator(
        settings,
        {GitProviderKind.GITHUB: provider},
        registry_with("a", "slow", "b"),
        hooks=OrchestratorHooks(service_done=lambda name, _: finished.append(name)),
    )

    task = asyncio.create_task(orch.run([make_spec("a"), make_spec("slow"), make_spec("b")]))

    async def wait_for_fast_services() -> None:
        while len(finished) < 2:
            await asyncio.sleep(0)

    await asyncio.wait_for(wait_for_fast_services(), timeout=5)
    orch.cancel()
    result = await task

    assert list(result) == ["a", "b"]
    assert result.omitted == ("slow",)
    assert result.complete is False


@pytest.mark.asyncio
async def test_run_deadline(settings) -> None:
    provider = GatedProvider({"org/a": "1.0", "org/slow": "1.0"}, blocked="org/slow")
    orch = orchestrator(settings, {GitProviderKind.GITHUB: provider}, registry_with("a", "slow"), run_timeout=0.05)

    result = await orch.run([make_spec("a"), make_spec("slow")])

    assert isinstance(result["a"], FoundResult)
    assert result["slow"] == ErrorResult(message=RUN_DEADLINE_MESSAGE)
    assert result.complete


@pytest.mark.asyncio
async def test_empty_run(settings) -> None:
    result = await orchestrator(settings, {}, FakeRegistry()).run([])
    assert len(result) == 0
    assert result.complete
