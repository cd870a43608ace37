from __future__ import annotations

import base64
import json
from pathlib import Path

import pytest
from pydantic import SecretStr

from adapters.credentials import EnvCredentialResolver
from core.config import AppSettings
from core.domain.models import GitProviderKind
from core.errors import ConfigurationError


def write_docker_config(path: Path, auths: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"auths": auths}), encoding="utf-8")


def b64(value: str) -> str:
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


def test_missing_docker_config(settings) -> None:
    assert EnvCredentialResolver(settings).registry_credentials("ghcr.io") is None


def test_auth_entry_is_decoded(settings, docker_config_path) -> None:
    write_docker_config(docker_config_path, {"ghcr.io": {"auth": b64("bot:hunter22")}})
    resolver = EnvCredentialResolver(settings)

    credentials = resolver.registry_credentials("ghcr.io")

    assert credentials is not None
    assert credentials.username == "bot"
    assert credentials.password.get_secret_value() == "hunter22"
    assert "hunter22" in resolver.secrets()


def test_explicit_username_password(settings, docker_config_path) -> None:
    write_docker_config(docker_config_path, {"https://quay.io": {"username": "robot", "password": "pw-123"}})

    credentials = EnvCredentialResolver(settings).registry_credentials("quay.io")

    assert credentials is not None
    assert credentials.username == "robot"


def test_docker_hub_aliases(settings, docker_config_path) -> None:
    write_docker_config(docker_config_path, {"https://index.docker.io/v1/": {"auth": b64("me:pw")}})

    credentials = EnvCredentialResolver(settings).registry_credentials("docker.io")

    assert credentials is not None
    assert credentials.username == "me"


def test_unrelated_host_has_no_credentials(settings, docker_config_path) -> None:
    write_docker_config(docker_config_path, {"ghcr.io": {"auth": b64("bot:hunter22")}})
    assert EnvCredentialResolver(settings).registry_credentials("quay.io") is None


@pytest.mark.parametrize(
    "auths",
    [
        {"ghcr.io": {"auth": "%%%not-base64%%%"}},
        {"ghcr.io": {"auth": b64("no-colon")}},
        ["not", "an", "object"],
    ],
)
def test_unusable_docker_config(settings, docker_config_path, auths) -> None:
    write_docker_config(docker_config_path, auths)

    with pytest.raises(ConfigurationError):
        EnvCredentialResolver(settings).registry_credentials("ghcr.io")


def test_invalid_json(settings, docker_config_path) -> None:
    docker_config_path.parent.mkdir(parents=True)
    docker_config_path.write_text("{broken", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        EnvCredentialResolver(settings).registry_credentials("ghcr.io")


def test_git_tokens(docker_config_path) -> None:
    settings = AppSettings(
        _env_file=None,
        github_token=SecretStr("ghp_abc"),
        gitlab_token=SecretStr("   "),
        codeberg_token=None,
        docker_config_path=docker_config_path,
    )
    resolver = EnvCredentialResolver(settings)

    assert resolver.git_token(GitProviderKind.GITHUB).get_secret_value() == "ghp_abc"
    assert resolver.git_token(GitProviderKind.GITLAB) is None
    assert resolver.git_token(GitProviderKind.CODEBERG) is None
    assert resolver.secrets() == ("ghp_abc",)


def test_tokens_read_from_environment(monkeypatch, docker_config_path) -> None:
    monkeypatch.setenv("GITLAB_TOKEN", "glpat-from-env")
    monkeypatch.delenv("VERSION_UPDATER_GITLAB_TOKEN", raising=False)

    settings = AppSettings(_env_file=None, docker_config_path=docker_config_path)

    token = EnvCredentialResolver(settings).git_token(GitProviderKind.GITLAB)
    assert token is not None
    assert token.get_secret_value() == "glpat-from-env"
