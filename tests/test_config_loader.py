from __future__ import annotations

from pathlib import Path

import pytest

from adapters.config_loader import load_config, parse_config
from core.domain.models import GitProviderKind
from core.errors import ConfigurationError

CONFIG = """
global:
  git:
    github:
      authenticate: true
services:
  api:
    git:
      type: github
      repo: org/api
      version_filter: "v(.*)"
    image:
      name: ghcr.io/org/api
      tag: "${RELEASE_VERSION}"
  worker:
    git:
      type: gitlab
      repo: group/worker
      project_id: 42
      private: true
    image:
      name: registry.gitlab.com/group/worker
      tag: "${RELEASE_VERSION}-alpine"
"""


def test_parse_config() -> None:
    config = parse_config(CONFIG)

    assert config.github_authenticate is True
    specs = config.service_specs()
    assert [s.name for s in specs] == ["api", "worker"]
    assert specs[0].git.provider is GitProviderKind.GITHUB
    assert specs[0].git.version_filter == "v(.*)"
    assert specs[1].git.provider is GitProviderKind.GITLAB
    assert specs[1].git.project_id == 42
    assert specs[1].git.private is True
    assert specs[1].image.tag == "${RELEASE_VERSION}-alpine"


def test_global_section_is_optional() -> None:
    config = parse_config("services: {}")
    assert config.github_authenticate is False
    assert config.service_specs() == []


def test_empty_file() -> None:
    assert parse_config("").service_specs() == []


@pytest.mark.parametrize(
    "text",
    [
        "services: [",
        "- just a list",
        "services:\n  api:\n    git: {type: svn, repo: org/api}\n    image: {name: x/y, tag: '${RELEASE_VERSION}'}",
        "services:\n  api:\n    git: {type: github, repo: org/api}\n    image: {name: x/y, tag: latest}",
        "services:\n  api:\n    git: {type: github, repo: org/api, version_filter: 'v\\d+'}\n    image: {name: x/y, tag: '${RELEASE_VERSION}'}",
        "services:\n  api:\n    git: {type: github, repo: org/api}\n    image: {name: 'x/y:1.0', tag: '${RELEASE_VERSION}'}",
        "services:\n  api:\n    git: {type: github, repo: org/api}",
        "unknown: true",
    ],
    ids=["yaml", "not-mapping", "provider", "placeholder", "filter-group", "image-tag", "image-missing", "extra-key"],
)
def test_invalid_config(text: str) -> None:
    with pytest.raises(ConfigurationError):
        parse_config(text)


def test_error_message_names_the_field() -> None:
    with pytest.raises(ConfigurationError) as excinfo:
        parse_config("services:\n  api:\n    git: {type: github, repo: org/api}\n    image: {name: x/y, tag: latest}")
    assert "services.api.image.tag" in str(excinfo.value)


def test_load_config(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG, encoding="utf-8")
    assert len(load_config(path).service_specs()) == 2


def test_load_missing_config(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="Cannot read config file"):
        load_config(tmp_path / "missing.yaml")
