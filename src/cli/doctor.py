"""Doctor command for environment diagnostics."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from adapters.config_loader import load_config
from adapters.credentials import EnvCredentialResolver
from adapters.http_client import build_async_client
from core.config import AppSettings
from core.domain.models import GitProviderKind
from core.errors import ConfigurationError

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

_console = Console(stderr=True)


async def _check_http(url: str, settings: AppSettings) -> tuple[bool, str]:
    try:
        async with build_async_client(settings) as client:
            response = await client.get(url)
        return True, f"HTTP {response.status_code}"
    except Exception as exc:
        return False, str(exc)


def _check_docker_config(settings: AppSettings) -> tuple[str, str]:
    path = settings.docker_config_path
    if not path.is_file():
        return "OPTIONAL", f"{path} not found -> anonymous registry access"
    resolver = EnvCredentialResolver(settings)
    try:
        resolver.registry_credentials("docker.io")
    except ConfigurationError as exc:
        return "FAIL", str(exc)
    return "OK", str(path)


@app.command()
def run(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Also validate this config file."),
) -> None:
    """Run baseline diagnostics and show recommended fixes."""

    settings = AppSettings()
    resolver = EnvCredentialResolver(settings)

    table = Table(title="version-updater doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    for kind in GitProviderKind:
        token = resolver.git_token(kind)
        if token is not None:
            table.add_row(f"{kind.label()} token", "OK", "set")
        else:
            table.add_row(f"{kind.label()} token", "OPTIONAL", "not set -> only public repositories")

    status, detail = _check_docker_config(settings)
    table.add_row("Docker config", status, escape(detail))

    if config is not None:
        try:
            parsed = load_config(config)
            table.add_row("Config file", "OK", f"{len(parsed.services)} services")
        except ConfigurationError as exc:
            table.add_row("Config file", "FAIL", escape(str(exc)))

    # Connectivity (best-effort)
    for label, url in (
        ("GitHub API", settings.github_api_url),
        ("GitLab API", settings.gitlab_api_url),
        ("Codeberg API", settings.codeberg_api_url),
    ):
        ok, detail = asyncio.run(_check_http(url, settings))
        table.add_row(label, "OK" if ok else "FAIL", escape(detail))

    _console.print(table)
