"""Tagged fetch results.

Every public fetch returns one of ``Success``, ``Failure`` or ``Cancelled`` so
callers can tell authoritative data from degraded data without catching
exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Literal, TypeVar, Union

from sentiment_pulse.core.errors import ErrorKind, FetchError

T = TypeVar("T")

SourceTier = Literal["live", "fallback-ai", "fallback-static", "neutral-default"]


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T
    source: SourceTier = "live"

    @property
    def degraded(self) -> bool:
        return self.source != "live"


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    message: str = ""

    @classmethod
    def from_error(cls, error: FetchError) -> "Failure":
        return cls(kind=error.kind, message=str(error))


@dataclass(frozen=True)
class Cancelled:
    reason: str = "cancelled"


FetchOutcome = Union[Success[T], Failure, Cancelled]
