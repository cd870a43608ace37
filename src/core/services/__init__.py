"""Application services: per-service pipeline and the concurrent orchestrator."""
