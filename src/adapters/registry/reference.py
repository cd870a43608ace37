"""Image reference parsing and registry endpoint construction.

Examples:
    nginx                      -> docker.io, library/nginx
    bitnami/redis              -> docker.io, bitnami/redis
    ghcr.io/org/app            -> ghcr.io, org/app
    localhost:5000/team/app    -> localhost:5000, team/app
"""

from __future__ import annotations

from dataclasses import dataclass

DOCKER_HUB = "docker.io"
DOCKER_HUB_ENDPOINT = "registry-1.docker.io"
DOCKER_HUB_ALIASES: frozenset[str] = frozenset(
    {
        "docker.io",
        "index.docker.io",
        "registry-1.docker.io",
        "registry.hub.docker.com",
        "https://index.docker.io/v1/",
    }
)


@dataclass(frozen=True)
class ImageReference:
    registry: str
    repository: str

    @property
    def endpoint(self) -> str:
        """Host (and port) serving the registry HTTP API."""

        if self.registry == DOCKER_HUB:
            return DOCKER_HUB_ENDPOINT
        return self.registry

    @property
    def scheme(self) -> str:
        host = self.registry.split(":", 1)[0]
        return "http" if host in ("localhost", "127.0.0.1") else "https"

    def manifest_url(self, tag: str) -> str:
        return f"{self.scheme}://{self.endpoint}/v2/{self.repository}/manifests/{tag}"


def parse_image_reference(image_name: str) -> ImageReference:
    """Split an image name (without tag) into registry and repository."""

    name = image_name.strip().strip("/")
    if not name:
        raise ValueError("empty image name")

    registry = DOCKER_HUB
    repository = name
    if "/" in name:
        first, rest = name.split("/", 1)
        if "." in first or ":" in first or first == "localhost":
            registry = first.lower()
            repository = rest

    if registry in DOCKER_HUB_ALIASES:
        registry = DOCKER_HUB
        if "/" not in repository:
            repository = f"library/{repository}"

    return ImageReference(registry=registry, repository=repository)
