"""Fallback chain tests"""

import asyncio

import pytest

from sentiment_pulse.core.errors import ErrorKind
from sentiment_pulse.ingestion.chain import FallbackChain
from sentiment_pulse.ingestion.sources import (
    DataSource,
    StaticSource,
    static_onchain_source,
    zeroed_onchain_source,
)
from sentiment_pulse.schemas.outcome import Failure, Success


class MockSource(DataSource):
    """Networked source returning a fixed outcome, optionally after a delay"""

    def __init__(self, name, outcome, delay=0.0, tier="live"):
        self.name = name
        self.tier = tier
        self.outcome = outcome
        self.delay = delay
        self.calls = 0

    async def fetch(self):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.outcome


def failing(name, kind=ErrorKind.EXHAUSTED, **kwargs):
    return MockSource(name, Failure(kind=kind, message=f"{name} down"), **kwargs)


class TestFallbackChain:
    """Ordered fallback semantics"""

    @pytest.mark.asyncio
    async def test_first_success_wins(self):
        live = MockSource("live", Success(value=1))
        backup = MockSource("backup", Success(value=2, source="fallback-ai"))
        outcome = await FallbackChain("test", [live, backup]).run()

        assert outcome == Success(value=1)
        assert backup.calls == 0

    @pytest.mark.asyncio
    async def test_falls_through_to_static(self):
        live = failing("live", ErrorKind.INSUFFICIENT_DATA)
        ai = failing("ai")
        outcome = await FallbackChain("onchain", [live, ai, static_onchain_source("ETH")]).run()

        assert isinstance(outcome, Success)
        assert outcome.source == "fallback-static"
        assert outcome.degraded
        assert outcome.value.active_wallets == 75000
        assert live.calls == ai.calls == 1

    @pytest.mark.asyncio
    async def test_unmapped_coin_reaches_zeroed_default(self):
        chain = FallbackChain("onchain", [static_onchain_source("PEPE"), zeroed_onchain_source("PEPE")])
        outcome = await chain.run()

        assert outcome.source == "neutral-default"
        assert outcome.value.is_all_zero()

    @pytest.mark.asyncio
    async def test_all_networked_failures_exhaust(self):
        outcome = await FallbackChain("test", [failing("a"), failing("b")]).run()

        assert isinstance(outcome, Failure)
        assert outcome.kind == ErrorKind.EXHAUSTED
        assert "a:" in outcome.message and "b:" in outcome.message

    @pytest.mark.asyncio
    async def test_static_miss_is_a_failure_step(self):
        missing = StaticSource("lookup", "fallback-static", lambda: None)
        outcome = await FallbackChain("test", [missing, MockSource("last", Success(value=3))]).run()
        assert outcome.value == 3

    @pytest.mark.asyncio
    async def test_slow_source_times_out_and_chain_continues(self):
        loop = asyncio.get_running_loop()
        slow = MockSource("slow", Success(value="late"), delay=5)
        outcome = await FallbackChain("test", [slow, static_onchain_source("BTC")]).run(deadline=loop.time() + 0.05)

        assert outcome.source == "fallback-static"

    @pytest.mark.asyncio
    async def test_networked_only_chain_reports_timeout(self):
        loop = asyncio.get_running_loop()
        slow = MockSource("slow", Success(value="late"), delay=5)
        after = MockSource("after", Success(value="late too"), delay=5)
        outcome = await FallbackChain("test", [slow, after]).run(deadline=loop.time() + 0.05)

        assert isinstance(outcome, Failure)
        assert outcome.kind == ErrorKind.TIMEOUT

    @pytest.mark.asyncio
    async def test_expired_deadline_still_runs_offline_sources(self):
        loop = asyncio.get_running_loop()
        live = MockSource("live", Success(value=1))
        outcome = await FallbackChain("test", [live, zeroed_onchain_source("BTC")]).run(deadline=loop.time() - 1)

        assert live.calls == 0
        assert outcome.source == "neutral-default"
