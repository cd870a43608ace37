"""Core: domain, services and contracts of the release resolver.

The core knows nothing about the CLI. It depends on the abstractions in
`core.interfaces`; concrete HTTP code lives in `adapters`.
"""

__version__ = "0.3.0"
