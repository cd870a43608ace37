"""Per-service outcomes and the consolidated result map.

`ServiceResult` is a closed, tagged union (discriminated on `status`).
`ResultMap` keeps input order and is read-only once built.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

NOT_FOUND_MARKER = "<NOT_FOUND>"
RATE_LIMITED_MARKER = "<RATE_LIMITED>"


class FoundResult(BaseModel):
    """Image exists with the resolved tag."""

    model_config = ConfigDict(frozen=True)

    status: Literal["found"] = "found"
    image: str
    tag: str

    def to_output(self) -> dict[str, str]:
        return {"image": self.image, "tag": self.tag}


class NotFoundResult(BaseModel):
    """No release, no matching version, or no such image tag."""

    model_config = ConfigDict(frozen=True)

    status: Literal["not_found"] = "not_found"
    reason: str | None = None

    def to_output(self) -> str:
        return NOT_FOUND_MARKER


class RateLimitedResult(BaseModel):
    """Provider or registry throttled the request; never retried within a run."""

    model_config = ConfigDict(frozen=True)

    status: Literal["rate_limited"] = "rate_limited"
    retry_after: float | None = Field(
        default=None,
        description="Seconds the provider asked to wait, when it said so.",
    )

    def to_output(self) -> str:
        return RATE_LIMITED_MARKER


class ErrorResult(BaseModel):
    """Any other failure; the message is already free of credentials."""

    model_config = ConfigDict(frozen=True)

    status: Literal["error"] = "error"
    message: str

    def to_output(self) -> dict[str, str]:
        return {"error": self.message}


ServiceResult = Annotated[
    Union[FoundResult, NotFoundResult, RateLimitedResult, ErrorResult],
    Field(discriminator="status"),
]


class ResultMap(Mapping[str, ServiceResult]):
    """Service name -> ServiceResult, in input order.

    `complete` is False when the run was interrupted; `omitted` then lists the
    services with no entry. A short map never means "the rest succeeded".
    """

    def __init__(
        self,
        entries: Iterable[tuple[str, ServiceResult]],
        *,
        omitted: Iterable[str] = (),
    ) -> None:
        self._entries: dict[str, ServiceResult] = dict(entries)
        self._omitted: tuple[str, ...] = tuple(omitted)

    def __getitem__(self, key: str) -> ServiceResult:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ResultMap):
            return list(self._entries.items()) == list(other._entries.items()) and self._omitted == other._omitted
        return NotImplemented

    def __repr__(self) -> str:
        return f"ResultMap({self._entries!r}, omitted={self._omitted!r})"

    @property
    def complete(self) -> bool:
        return not self._omitted

    @property
    def omitted(self) -> tuple[str, ...]:
        return self._omitted

    def unresolved(self) -> dict[str, ServiceResult]:
        """Entries that did not resolve to a `FoundResult`."""

        return {name: r for name, r in self._entries.items() if not isinstance(r, FoundResult)}

    def to_output(self) -> dict[str, Any]:
        """Serializer-facing shape: `{name: {image, tag} | marker | {error}}`."""

        return {name: result.to_output() for name, result in self._entries.items()}
