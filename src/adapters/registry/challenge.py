"""WWW-Authenticate challenge parsing (RFC 7235 subset used by registries).

Bearer realm="https://ghcr.io/token",service="ghcr.io",scope="repository:org/app:pull"
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

_PARAM_RE = re.compile(r'([A-Za-z_][A-Za-z0-9_-]*)\s*=\s*(?:"((?:[^"\\]|\\.)*)"|([^\s,]+))')


@dataclass(frozen=True)
class AuthChallenge:
    scheme: str
    params: dict[str, str] = field(default_factory=dict)

    @property
    def realm(self) -> str | None:
        return self.params.get("realm")

    @property
    def service(self) -> str | None:
        return self.params.get("service")

    @property
    def scope(self) -> str | None:
        return self.params.get("scope")


def parse_challenge(header: str | None) -> AuthChallenge | None:
    if not header or not header.strip():
        return None

    parts = header.strip().split(None, 1)
    scheme = parts[0].lower()
    params: dict[str, str] = {}
    if len(parts) > 1:
        for match in _PARAM_RE.finditer(parts[1]):
            key = match.group(1).lower()
            value = match.group(2) if match.group(2) is not None else match.group(3)
            params[key] = value.replace('\\"', '"')
    return AuthChallenge(scheme=scheme, params=params)
