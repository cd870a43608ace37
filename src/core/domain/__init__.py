"""Domain models and entities.

Why:
- Pure, strict data structures (Pydantic v2) plus the pure version helpers.
- The domain knows nothing about HTTP or the CLI, only the problem concepts.
"""
