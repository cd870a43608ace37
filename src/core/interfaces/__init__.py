"""Core interfaces/abstractions.

Why:
- Defines the contracts (Protocol) that concrete adapters implement.
- Services program against these contracts; httpx code stays in `adapters`.
"""

from core.interfaces.providers import CredentialResolver, GitProvider, RegistryClient

__all__ = ["CredentialResolver", "GitProvider", "RegistryClient"]
