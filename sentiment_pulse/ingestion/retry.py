"""Retry with exponential backoff for async upstream calls.

``execute`` runs an operation up to ``policy.max_attempts`` times and always
returns a ``FetchOutcome``; it never raises except for ``asyncio.CancelledError``,
so a cancelled fetch stops sleeping and stops calling out immediately.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from sentiment_pulse.core.config import Settings, settings as default_settings
from sentiment_pulse.core.errors import ErrorKind, FetchError
from sentiment_pulse.core.logging import get_logger
from sentiment_pulse.schemas.outcome import Failure, FetchOutcome, SourceTier, Success

log = get_logger("ingestion.retry")

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    initial_delay: float = 60.0
    max_delay: float = 300.0
    jitter: bool = True

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "RetryPolicy":
        config = config or default_settings
        return cls(
            max_attempts=config.RETRY_MAX_ATTEMPTS,
            initial_delay=config.RETRY_INITIAL_DELAY_SECONDS,
            max_delay=config.RETRY_MAX_DELAY_SECONDS,
            jitter=config.RETRY_JITTER,
        )


def backoff_delay(attempt: int, policy: RetryPolicy, rng: Optional[random.Random] = None) -> float:
    """Seconds to wait before ``attempt`` (1-based). The first attempt never waits."""
    if attempt < 2:
        return 0.0
    delay = min(policy.initial_delay * 2 ** (attempt - 2), policy.max_delay)
    if policy.jitter:
        delay += (rng or random).random()
    return delay


def is_retryable(error: BaseException) -> bool:
    return isinstance(error, FetchError) and error.retryable


async def execute(
    operation: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    *,
    target: str = "upstream",
    source: SourceTier = "live",
    sleep: Sleep = asyncio.sleep,
) -> FetchOutcome[T]:
    """Run ``operation`` with retries and return a tagged outcome."""
    policy = policy or RetryPolicy.from_settings()
    last_error: Optional[FetchError] = None

    for attempt in range(1, policy.max_attempts + 1):
        delay = backoff_delay(attempt, policy)
        if delay > 0:
            log.info(f"attempt={attempt}/{policy.max_attempts} target={target} backoff={delay:.1f}s")
            await sleep(delay)

        try:
            value = await operation()
        except FetchError as exc:
            last_error = exc
            if not is_retryable(exc):
                log.warning(
                    f"attempt={attempt}/{policy.max_attempts} target={target} outcome=terminal kind={exc.kind.value} error={exc}"
                )
                return Failure.from_error(exc)
            log.warning(
                f"attempt={attempt}/{policy.max_attempts} target={target} outcome=retryable kind={exc.kind.value} error={exc}"
            )
            continue
        except Exception as exc:  # noqa: BLE001
            log.exception(f"attempt={attempt}/{policy.max_attempts} target={target} outcome=unexpected error={exc}")
            return Failure(kind=ErrorKind.UNEXPECTED, message=f"{type(exc).__name__}: {exc}")

        log.info(f"attempt={attempt}/{policy.max_attempts} target={target} outcome=success source={source}")
        return Success(value=value, source=source)

    message = str(last_error) if last_error else "no attempts made"
    log.error(f"target={target} exhausted after {policy.max_attempts} attempts: {message}")
    return Failure(kind=ErrorKind.EXHAUSTED, message=message)
