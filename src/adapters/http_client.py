"""httpx wrapper.

Why a wrapper:
- Standardizes timeouts, headers and User-Agent for every provider/registry.
- Eases testing: callers accept an injected client (e.g. `httpx.MockTransport`).
"""

from __future__ import annotations

import time
from email.utils import parsedate_to_datetime

import httpx

from core.config import AppSettings


def build_async_client(
    settings: AppSettings | None = None,
    *,
    base_url: str = "",
    extra_headers: dict[str, str] | None = None,
    follow_redirects: bool = True,
) -> httpx.AsyncClient:
    """Create an `httpx.AsyncClient` with safe defaults.

    Every request made through it carries the configured per-call timeout.
    """

    settings = settings or AppSettings()
    headers: dict[str, str] = {
        "User-Agent": settings.user_agent,
        "Accept": "application/json",
    }
    if extra_headers:
        headers.update(extra_headers)
    return httpx.AsyncClient(
        base_url=base_url,
        timeout=httpx.Timeout(settings.http_timeout_seconds),
        follow_redirects=follow_redirects,
        headers=headers,
    )


def retry_after_seconds(response: httpx.Response, *, now: float | None = None) -> float | None:
    """Read a throttling hint from `Retry-After` or `X-RateLimit-Reset`."""

    headers = response.headers
    value = headers.get("retry-after")
    if value:
        value = value.strip()
        try:
            return max(0.0, float(value))
        except ValueError:
            pass
        try:
            when = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            when = None
        if when is not None:
            current = time.time() if now is None else now
            return max(0.0, when.timestamp() - current)

    reset = headers.get("x-ratelimit-reset")
    if reset:
        try:
            reset_at = float(reset)
        except ValueError:
            return None
        current = time.time() if now is None else now
        return max(0.0, reset_at - current)
    return None


def describe_transport_error(exc: httpx.HTTPError) -> str:
    """Short, credential-free description of an httpx failure."""

    name = type(exc).__name__
    try:
        url = str(exc.request.url).split("?", 1)[0]
    except RuntimeError:
        return f"{name}: {exc}"
    return f"{name} calling {url}: {exc}" if str(exc) else f"{name} calling {url}"
