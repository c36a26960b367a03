"""Fallback chain: ordered sources tried until one succeeds."""

from __future__ import annotations

import asyncio
from typing import Generic, List, Optional, Sequence, TypeVar

from sentiment_pulse.core.errors import ErrorKind
from sentiment_pulse.core.logging import get_logger
from sentiment_pulse.ingestion.sources import DataSource
from sentiment_pulse.schemas.outcome import Failure, FetchOutcome, Success

log = get_logger("ingestion.chain")

T = TypeVar("T")


class FallbackChain(Generic[T]):
    """Runs sources strictly in order and returns the first ``Success``.

    A ``deadline`` (event-loop time) bounds the networked sources: each one gets
    whatever time is left and is abandoned as ``Timeout`` when it overruns.
    Offline sources always run, so a chain ending in one never fails.
    """

    def __init__(self, kind: str, sources: Sequence[DataSource[T]], label: str = ""):
        self.kind = kind
        self.sources = list(sources)
        self.label = label or kind

    async def run(self, deadline: Optional[float] = None) -> FetchOutcome[T]:
        loop = asyncio.get_running_loop()
        errors: List[str] = []
        timed_out = False

        for source in self.sources:
            if source.offline or deadline is None:
                outcome = await source.fetch()
            else:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    timed_out = True
                    errors.append(f"{source.name}: skipped, no time left")
                    log.warning(f"chain={self.label} source={source.name} skipped: fetch deadline reached")
                    continue
                try:
                    outcome = await asyncio.wait_for(source.fetch(), timeout=remaining)
                except asyncio.TimeoutError:
                    timed_out = True
                    errors.append(f"{source.name}: {ErrorKind.TIMEOUT.value}")
                    log.warning(f"chain={self.label} source={source.name} failed kind={ErrorKind.TIMEOUT.value}")
                    continue

            if isinstance(outcome, Success):
                if errors:
                    log.info(
                        f"chain={self.label} served by {source.name} (source={outcome.source}) "
                        f"after {len(errors)} failed source(s)"
                    )
                return outcome

            kind = outcome.kind.value if isinstance(outcome, Failure) else ErrorKind.CANCELLED.value
            message = outcome.message if isinstance(outcome, Failure) else outcome.reason
            errors.append(f"{source.name}: {kind}")
            log.warning(f"chain={self.label} source={source.name} failed kind={kind}: {message}")

        summary = "; ".join(errors) or "no sources configured"
        if timed_out:
            return Failure(kind=ErrorKind.TIMEOUT, message=summary)
        log.error(f"chain={self.label} exhausted every source: {summary}")
        return Failure(kind=ErrorKind.EXHAUSTED, message=summary)
