"""Periodic refresh of tracked coins.

Each subscription (kind + coin) has an interval and a next-due time on the
event-loop clock. ``tick()`` dispatches every due fetch concurrently through the
gateway and keeps the latest outcome per subscription for ``/snapshots``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sentiment_pulse.core.config import Settings, settings as default_settings
from sentiment_pulse.core.coins import normalize_ticker
from sentiment_pulse.core.logging import get_logger
from sentiment_pulse.schemas.outcome import Cancelled, FetchOutcome
from sentiment_pulse.services.gateway import ALL_COINS, DataKind, GatewayClient

log = get_logger("scheduler")

# Lower bound on the idle sleep between ticks
MIN_POLL_SECONDS = 1.0


@dataclass
class Subscription:
    kind: DataKind
    coin: str
    interval: float
    next_due: float = 0.0

    @property
    def key(self) -> str:
        return f"{self.kind}:{self.coin}"


@dataclass(frozen=True)
class Snapshot:
    kind: DataKind
    coin: str
    outcome: FetchOutcome
    fetched_at: datetime


class RefreshScheduler:
    def __init__(self, gateway: GatewayClient, config: Optional[Settings] = None):
        self.gateway = gateway
        self.config = config or default_settings
        self.subscriptions: Dict[str, Subscription] = {}
        self.snapshots: Dict[str, Snapshot] = {}
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self, kind: DataKind, coin: Optional[str], interval: float, next_due: float = 0.0) -> Subscription:
        coin = normalize_ticker(coin) if coin else ALL_COINS
        subscription = Subscription(kind=kind, coin=coin, interval=interval, next_due=next_due)
        self.subscriptions[subscription.key] = subscription
        return subscription

    def unsubscribe(self, key: str) -> bool:
        self.snapshots.pop(key, None)
        return self.subscriptions.pop(key, None) is not None

    def subscribe_tracked(self) -> None:
        """Register the configured coins with the configured intervals."""
        for coin in self.config.TRACKED_COINS:
            self.subscribe("sentiment", coin, self.config.SENTIMENT_REFRESH_SECONDS)
            self.subscribe("onchain", coin, self.config.ONCHAIN_REFRESH_SECONDS)
        self.subscribe("events", None, self.config.EVENTS_REFRESH_SECONDS)
        log.info(f"Tracking {len(self.config.TRACKED_COINS)} coins ({len(self.subscriptions)} subscriptions)")

    def due(self, now: float) -> List[Subscription]:
        return [s for s in self.subscriptions.values() if s.next_due <= now]

    async def tick(self, now: Optional[float] = None) -> Dict[str, FetchOutcome]:
        """Run every due subscription once; returns outcomes keyed by subscription."""
        if now is None:
            now = asyncio.get_running_loop().time()
        due = self.due(now)
        if not due:
            return {}

        for subscription in due:
            subscription.next_due = now + subscription.interval

        outcomes = await asyncio.gather(*(self._refresh(s) for s in due))
        return {s.key: outcome for s, outcome in zip(due, outcomes)}

    async def _refresh(self, subscription: Subscription) -> FetchOutcome:
        if subscription.kind == "sentiment":
            outcome = await self.gateway.get_sentiment(subscription.coin)
        elif subscription.kind == "onchain":
            outcome = await self.gateway.get_onchain(subscription.coin)
        else:
            outcome = await self.gateway.get_events()

        # A superseded refresh keeps the previous snapshot
        if not isinstance(outcome, Cancelled):
            self.snapshots[subscription.key] = Snapshot(
                kind=subscription.kind,
                coin=subscription.coin,
                outcome=outcome,
                fetched_at=datetime.now(timezone.utc),
            )
        return outcome

    def seconds_until_next(self, now: float) -> float:
        if not self.subscriptions:
            return MIN_POLL_SECONDS
        soonest = min(s.next_due for s in self.subscriptions.values())
        return max(soonest - now, MIN_POLL_SECONDS)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================
    def start(self) -> None:
        if self._task is not None:
            log.warning("Refresh scheduler already running")
            return
        self._task = asyncio.create_task(self._loop(), name="refresh-scheduler")
        log.info(f"Started refresh scheduler ({len(self.subscriptions)} subscriptions)")

    def stop(self) -> None:
        if self._task:
            self._task.cancel()
            self._task = None
            log.info("Stopped refresh scheduler")

    async def _loop(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            try:
                results = await self.tick(loop.time())
                if results:
                    log.debug(f"Refreshed {', '.join(results)}")
                await asyncio.sleep(self.seconds_until_next(loop.time()))
            except asyncio.CancelledError:
                log.info("Refresh loop cancelled")
                break
            except Exception as exc:
                log.exception(f"Refresh tick failed: {exc}")
                await asyncio.sleep(MIN_POLL_SECONDS)
