from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel

from sentiment_pulse.core.errors import ErrorKind
from sentiment_pulse.schemas.outcome import Cancelled, Failure, FetchOutcome, Success


class OutcomeResponse(BaseModel):
    """Wire form of a fetch outcome; ``degraded`` drives the dashboard badge."""

    status: Literal["success", "failure", "cancelled"]
    source: Optional[str] = None
    degraded: bool = False
    error_kind: Optional[ErrorKind] = None
    message: Optional[str] = None
    data: Any = None

    @classmethod
    def from_outcome(cls, outcome: FetchOutcome) -> "OutcomeResponse":
        if isinstance(outcome, Success):
            return cls(status="success", source=outcome.source, degraded=outcome.degraded, data=outcome.value)
        if isinstance(outcome, Failure):
            return cls(status="failure", error_kind=outcome.kind, message=outcome.message)
        if isinstance(outcome, Cancelled):
            return cls(status="cancelled", error_kind=ErrorKind.CANCELLED, message=outcome.reason)
        raise TypeError(f"not a fetch outcome: {outcome!r}")


class SnapshotOut(BaseModel):
    key: str
    kind: str
    coin: str
    fetched_at: datetime
    outcome: OutcomeResponse


class SnapshotsResponse(BaseModel):
    scheduler_running: bool
    data: list[SnapshotOut]


class CancelResponse(BaseModel):
    kind: str
    coin: str | None = None
    cancelled: bool


class HealthResponse(BaseModel):
    status: str
    env: str
    transport: str
    scheduler_running: bool
    pending_fetches: int
    credentials: dict[str, bool]
