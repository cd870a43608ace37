"""Adapters: HTTP I/O against Git providers and container registries,
credential lookup, config file loading and result export."""
