"""Gateway client: the single entry point for sentiment, on-chain and event data.

Usage:
    gateway = GatewayClient()
    outcome = await gateway.get_sentiment("BTC")
    if isinstance(outcome, Success) and outcome.degraded:
        ...  # rendered with a "degraded" badge

Each call resolves the ticker, checks the credential precondition for the data
kind, then runs the kind's fallback chain inside its own task bounded by
``FETCH_TIMEOUT_SECONDS``. A second call for the same kind and coin supersedes
the pending one; ``cancel()`` aborts a pending call. Unrelated calls run
concurrently.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Dict, List, Literal, Optional, Tuple

from sentiment_pulse.core.coins import CoinIdentity, normalize_ticker, resolve_coin, supported_tickers
from sentiment_pulse.core.config import Settings, settings as default_settings
from sentiment_pulse.core.errors import ErrorKind
from sentiment_pulse.core.logging import get_logger
from sentiment_pulse.core.upstreams import UPSTREAMS
from sentiment_pulse.ingestion.ai_source import AIOnChainAdapter, AISentimentAdapter
from sentiment_pulse.ingestion.chain import FallbackChain
from sentiment_pulse.ingestion.events_source import NO_TITLE, CryptoPanicEventsAdapter
from sentiment_pulse.ingestion.news_source import NewsAPIHeadlinesAdapter
from sentiment_pulse.ingestion.onchain_source import CoinMetricsOnChainAdapter
from sentiment_pulse.ingestion.retry import RetryPolicy, Sleep
from sentiment_pulse.ingestion.sentiment_source import SantimentSentimentAdapter
from sentiment_pulse.ingestion.sources import (
    AdapterSource,
    DataSource,
    HeadlineSentimentSource,
    empty_events_source,
    neutral_sentiment_source,
    static_onchain_source,
    zeroed_onchain_source,
)
from sentiment_pulse.ingestion.transport import Transport, build_transport
from sentiment_pulse.schemas.domain import MarketEvent, OnChainSnapshot, SentimentReading
from sentiment_pulse.schemas.outcome import Cancelled, Failure, FetchOutcome, Success

log = get_logger("gateway")

DataKind = Literal["sentiment", "onchain", "events"]
ALL_COINS = "*"


class GatewayClient:
    def __init__(
        self,
        transport: Optional[Transport] = None,
        config: Optional[Settings] = None,
        policy: Optional[RetryPolicy] = None,
        timeout: Optional[float] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.config = config or default_settings
        self.transport = transport or build_transport(self.config)
        self.policy = policy or RetryPolicy.from_settings(self.config)
        self.timeout = timeout if timeout is not None else self.config.FETCH_TIMEOUT_SECONDS
        self.sleep = sleep

        self.sentiment_adapter = SantimentSentimentAdapter()
        self.onchain_adapter = CoinMetricsOnChainAdapter()
        self.events_adapter = CryptoPanicEventsAdapter(currencies=self.config.EVENT_CURRENCIES)
        self.news_adapter = NewsAPIHeadlinesAdapter()
        self.ai_sentiment_adapter = AISentimentAdapter(model=self.config.OPENAI_MODEL)
        self.ai_onchain_adapter = AIOnChainAdapter(model=self.config.OPENAI_MODEL)

        self._inflight: Dict[Tuple[str, str], asyncio.Task] = {}
        self._cancel_reasons: Dict[asyncio.Task, str] = {}
        self._events_cache: Optional[Tuple[float, List[MarketEvent]]] = None

    # =========================================================================
    # PUBLIC OPERATIONS
    # =========================================================================
    async def get_sentiment(self, coin: str) -> FetchOutcome[SentimentReading]:
        ticker = normalize_ticker(coin)
        identity = resolve_coin(ticker)
        if identity is None:
            log.warning(f"kind=sentiment coin={ticker} outcome=failure kind={ErrorKind.UNSUPPORTED_COIN.value}")
            return Failure(
                kind=ErrorKind.UNSUPPORTED_COIN,
                message=f"No provider mapping for {ticker}; supported: {', '.join(supported_tickers())}",
            )

        missing = self._missing_credential("santiment")
        if missing:
            return missing

        chain = FallbackChain("sentiment", self._sentiment_sources(identity), label=f"sentiment:{ticker}")
        return await self._run("sentiment", ticker, chain.run)

    async def get_onchain(self, coin: str) -> FetchOutcome[OnChainSnapshot]:
        ticker = normalize_ticker(coin)
        identity = resolve_coin(ticker)

        missing = self._missing_credential("coinmetrics")
        if missing:
            return missing

        if identity is None:
            # Unmapped coins skip the metrics provider and go straight to estimation
            log.info(f"kind=onchain coin={ticker} unmapped, routing to estimation fallback")

        chain = FallbackChain("onchain", self._onchain_sources(ticker, identity), label=f"onchain:{ticker}")
        return await self._run("onchain", ticker, chain.run)

    async def get_events(self) -> FetchOutcome[List[MarketEvent]]:
        missing = self._missing_credential("cryptopanic")
        if missing:
            return missing

        chain = FallbackChain("events", [self._live_events_source(), empty_events_source()], label="events")
        outcome = await self._run("events", ALL_COINS, chain.run)
        if isinstance(outcome, Success) and outcome.source == "live":
            self._store_events(outcome.value)
        return outcome

    def cancel(self, kind: DataKind, coin: Optional[str] = None) -> bool:
        """Cancel the pending fetch for ``kind``/``coin``; False when nothing is pending."""
        key = normalize_ticker(coin) if coin else ALL_COINS
        task = self._inflight.get((kind, key))
        if task is None or task.done():
            return False
        self._cancel_reasons[task] = "cancelled by caller"
        task.cancel()
        return True

    def cancel_all(self) -> int:
        cancelled = 0
        for task in list(self._inflight.values()):
            if not task.done():
                self._cancel_reasons[task] = "gateway shutting down"
                task.cancel()
                cancelled += 1
        return cancelled

    def pending(self) -> List[Tuple[str, str]]:
        return [slot for slot, task in self._inflight.items() if not task.done()]

    async def aclose(self) -> None:
        self.cancel_all()
        await self.transport.aclose()

    # =========================================================================
    # TASK MANAGEMENT
    # =========================================================================
    async def _run(
        self,
        kind: DataKind,
        key: str,
        runner: Callable[[Optional[float]], Awaitable[FetchOutcome]],
    ) -> FetchOutcome:
        slot = (kind, key)
        previous = self._inflight.get(slot)
        if previous is not None and not previous.done():
            log.info(f"kind={kind} coin={key} superseding pending fetch")
            self._cancel_reasons[previous] = "superseded"
            previous.cancel()

        deadline = asyncio.get_running_loop().time() + self.timeout
        task = asyncio.create_task(runner(deadline), name=f"fetch:{kind}:{key}")
        self._inflight[slot] = task

        try:
            outcome = await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                # The caller itself was cancelled; let it unwind
                raise
            reason = self._cancel_reasons.get(task, "cancelled")
            log.info(f"kind={kind} coin={key} outcome={ErrorKind.CANCELLED.value} reason={reason}")
            return Cancelled(reason=reason)
        finally:
            self._cancel_reasons.pop(task, None)
            if self._inflight.get(slot) is task:
                del self._inflight[slot]

        if isinstance(outcome, Success):
            log.info(f"kind={kind} coin={key} outcome=success source={outcome.source}")
        elif isinstance(outcome, Failure):
            log.bind(kind=kind, coin=key).error(
                f"kind={kind} coin={key} outcome=failure kind={outcome.kind.value}: {outcome.message}"
            )
        return outcome

    def _missing_credential(self, upstream: str) -> Optional[Failure]:
        if self.transport.has_credential(upstream):
            return None
        setting = UPSTREAMS[upstream].credential_setting
        log.error(f"{setting} is not configured, {upstream} requests disabled")
        return Failure(kind=ErrorKind.MISSING_CREDENTIAL, message=f"{setting} is not configured")

    # =========================================================================
    # CHAIN CONSTRUCTION
    # =========================================================================
    def _adapter_source(self, adapter, slug: str, coin: str, tier="live") -> AdapterSource:
        return AdapterSource(adapter, self.transport, slug, coin, tier=tier, policy=self.policy, sleep=self.sleep)

    def _ai_enabled(self) -> bool:
        return self.transport.has_credential("openai")

    def _sentiment_sources(self, identity: CoinIdentity) -> List[DataSource[SentimentReading]]:
        ticker = identity.ticker
        sources: List[DataSource[SentimentReading]] = [
            self._adapter_source(self.sentiment_adapter, identity.santiment_slug, ticker),
        ]
        if self._ai_enabled():
            sources.append(
                HeadlineSentimentSource(
                    self.ai_sentiment_adapter,
                    self.transport,
                    ticker,
                    ticker,
                    policy=self.policy,
                    sleep=self.sleep,
                    headlines=lambda: self._headlines_for(identity),
                )
            )
        sources.append(neutral_sentiment_source(ticker))
        return sources

    def _onchain_sources(self, ticker: str, identity: Optional[CoinIdentity]) -> List[DataSource[OnChainSnapshot]]:
        sources: List[DataSource[OnChainSnapshot]] = []
        if identity is not None:
            sources.append(self._adapter_source(self.onchain_adapter, identity.coinmetrics_slug, ticker))
        if self._ai_enabled():
            name = identity.name if identity is not None else ticker
            sources.append(self._adapter_source(self.ai_onchain_adapter, name, ticker, tier="fallback-ai"))
        sources.append(static_onchain_source(ticker))
        sources.append(zeroed_onchain_source(ticker))
        return sources

    def _live_events_source(self) -> AdapterSource[List[MarketEvent]]:
        return self._adapter_source(self.events_adapter, "", ALL_COINS)

    # =========================================================================
    # EVENTS CACHE
    # =========================================================================
    def _store_events(self, events: List[MarketEvent]) -> None:
        self._events_cache = (asyncio.get_running_loop().time(), list(events))

    def cached_events(self) -> Optional[List[MarketEvent]]:
        if self._events_cache is None:
            return None
        stored_at, events = self._events_cache
        if asyncio.get_running_loop().time() - stored_at > self.config.EVENTS_CACHE_TTL_SECONDS:
            return None
        return events

    async def _recent_events(self) -> List[MarketEvent]:
        events = self.cached_events()
        if events is not None:
            return events
        if not self.transport.has_credential("cryptopanic"):
            return []

        outcome = await self._live_events_source().fetch()
        if isinstance(outcome, Success):
            self._store_events(outcome.value)
            return outcome.value
        return []

    async def _headlines_for(self, identity: CoinIdentity) -> List[str]:
        """Headlines for the AI estimate: cached CryptoPanic events first, then NewsAPI."""
        events = await self._recent_events()
        titles = [e.title for e in events if e.coin == identity.cryptopanic_code and e.title != NO_TITLE]
        if titles or not self.transport.has_credential("newsapi"):
            return titles

        log.info(f"kind=sentiment coin={identity.ticker} no CryptoPanic headlines, trying NewsAPI")
        outcome = await self._adapter_source(self.news_adapter, identity.name, identity.ticker).fetch()
        return outcome.value if isinstance(outcome, Success) else []
