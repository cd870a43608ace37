"""Container registry access (manifest lookups, token exchange)."""

from adapters.registry.client import OciRegistryClient
from adapters.registry.reference import ImageReference, parse_image_reference

__all__ = ["ImageReference", "OciRegistryClient", "parse_image_reference"]
