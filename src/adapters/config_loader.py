"""Service configuration file (YAML).

```yaml
global:
  git:
    github:
      authenticate: true
services:
  api:
    git: {type: github, repo: org/api, version_filter: "v(.*)"}
    image: {name: ghcr.io/org/api, tag: "${RELEASE_VERSION}"}
```

Service order in the file is the order of the result map.
"""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError
from pydantic.config import ConfigDict

from core.domain.models import GitSource, ImageSpec, ServiceSpec
from core.errors import ConfigurationError


class GlobalGithubConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    authenticate: bool = Field(
        default=False,
        description="Send GITHUB_TOKEN on every GitHub call (higher rate limit).",
    )


class GlobalGitConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    github: GlobalGithubConfig = Field(default_factory=GlobalGithubConfig)


class GlobalConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    git: GlobalGitConfig = Field(default_factory=GlobalGitConfig)


class ServiceConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    git: GitSource
    image: ImageSpec


class ConfigModel(BaseModel):
    """Parsed configuration file."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    global_: GlobalConfig = Field(default_factory=GlobalConfig, alias="global")
    services: dict[str, ServiceConfig] = Field(default_factory=dict)

    @property
    def github_authenticate(self) -> bool:
        return self.global_.git.github.authenticate

    def service_specs(self) -> list[ServiceSpec]:
        return [ServiceSpec(name=name, git=svc.git, image=svc.image) for name, svc in self.services.items()]


def parse_config(text: str, *, source: str = "<config>") -> ConfigModel:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"{source}: invalid YAML: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{source}: top level must be a mapping")

    try:
        return ConfigModel.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"{source}: invalid configuration:\n{_format_errors(exc)}") from exc


def load_config(path: Path) -> ConfigModel:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Cannot read config file {path}: {exc.strerror or exc}") from exc
    return parse_config(text, source=str(path))


def _format_errors(exc: ValidationError) -> str:
    lines: list[str] = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()))
        lines.append(f"  - {loc or '<root>'}: {err.get('msg')}")
    return "\n".join(lines)
