"""Gateway client tests: preconditions, fallbacks, cancellation and concurrency"""

import asyncio

import pytest

from conftest import (
    ScriptedTransport,
    coinmetrics_payload,
    cryptopanic_payload,
    json_response,
    newsapi_payload,
    openai_payload,
    santiment_payload,
)
from sentiment_pulse.core.errors import ErrorKind
from sentiment_pulse.schemas.outcome import Cancelled, Failure, Success
from sentiment_pulse.services.gateway import GatewayClient


def headline(title, code, event_id):
    return {"id": event_id, "title": title, "currencies": [{"code": code}], "published_at": "2024-05-09T08:00:00Z"}


class TestPreconditions:
    """Checks that happen before any network call"""

    @pytest.mark.asyncio
    async def test_unsupported_coin_sentiment(self, gateway, transport):
        outcome = await gateway.get_sentiment("pepe")

        assert isinstance(outcome, Failure)
        assert outcome.kind == ErrorKind.UNSUPPORTED_COIN
        assert "BTC" in outcome.message
        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_missing_sentiment_credential(self, config, policy, sleeper):
        transport = ScriptedTransport(credentials={"coinmetrics", "cryptopanic", "openai"})
        gateway = GatewayClient(transport=transport, config=config, policy=policy, sleep=sleeper)
        outcome = await gateway.get_sentiment("BTC")

        assert outcome.kind == ErrorKind.MISSING_CREDENTIAL
        assert "SANTIMENT_API_KEY" in outcome.message
        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_missing_events_credential(self, config, policy, sleeper):
        transport = ScriptedTransport(credentials={"santiment", "coinmetrics"})
        gateway = GatewayClient(transport=transport, config=config, policy=policy, sleep=sleeper)
        outcome = await gateway.get_events()

        assert outcome.kind == ErrorKind.MISSING_CREDENTIAL
        assert transport.calls == []


class TestSentiment:
    """Sentiment fallback chain"""

    @pytest.mark.asyncio
    async def test_live_reading(self, gateway, transport):
        transport.script("santiment", json_response(santiment_payload(0.2)))
        outcome = await gateway.get_sentiment("btc")

        assert isinstance(outcome, Success)
        assert outcome.source == "live"
        assert not outcome.degraded
        assert outcome.value.coin == "BTC"
        assert outcome.value.score == 60
        assert transport.calls_to("santiment")[0].json_body["variables"]["slug"] == "bitcoin"

    @pytest.mark.asyncio
    async def test_rate_limited_then_success_is_live(self, gateway, transport, sleeper):
        transport.script(
            "santiment",
            json_response({}, status=429),
            json_response({}, status=429),
            json_response(santiment_payload(0.5)),
        )
        outcome = await gateway.get_sentiment("ETH")

        assert outcome.source == "live"
        assert len(transport.calls_to("santiment")) == 3
        assert sleeper.delays == [60, 120]

    @pytest.mark.asyncio
    async def test_ai_estimate_from_headlines(self, gateway, transport):
        transport.script("santiment", json_response({"errors": [{"message": "upgrade your plan"}]}))
        transport.script(
            "cryptopanic",
            json_response(
                cryptopanic_payload(
                    [
                        headline("Bitcoin breaks resistance", "BTC", 1),
                        headline("Ether gas fees fall", "ETH", 2),
                    ]
                )
            ),
        )
        transport.script("openai", json_response(openai_payload("7")))
        outcome = await gateway.get_sentiment("BTC")

        assert outcome.source == "fallback-ai"
        assert outcome.degraded
        assert outcome.value.score == 85
        prompt = transport.calls_to("openai")[0].json_body["messages"][0]["content"]
        assert "Bitcoin breaks resistance" in prompt
        assert "Ether gas fees fall" not in prompt

    @pytest.mark.asyncio
    async def test_neutral_default_when_everything_fails(self, gateway, transport):
        transport.script("santiment", json_response({}, status=401))
        transport.script("cryptopanic", json_response(cryptopanic_payload([])))
        transport.script("newsapi", json_response(newsapi_payload("[Removed]")))
        outcome = await gateway.get_sentiment("SOL")

        assert outcome.source == "neutral-default"
        assert outcome.value.score == 50
        assert transport.calls_to("openai") == []
        assert len(transport.calls_to("newsapi")) == 1

    @pytest.mark.asyncio
    async def test_newsapi_headlines_when_no_events_for_coin(self, gateway, transport):
        transport.script("santiment", json_response({}, status=401))
        transport.script("cryptopanic", json_response(cryptopanic_payload([headline("Ether gas fees fall", "ETH", 2)])))
        transport.script("newsapi", json_response(newsapi_payload("Bitcoin miners expand capacity")))
        transport.script("openai", json_response(openai_payload("6")))
        outcome = await gateway.get_sentiment("BTC")

        assert outcome.source == "fallback-ai"
        assert outcome.value.score == 80
        assert transport.calls_to("newsapi")[0].params["q"] == "Bitcoin"
        prompt = transport.calls_to("openai")[0].json_body["messages"][0]["content"]
        assert "Bitcoin miners expand capacity" in prompt
        assert "Ether gas fees fall" not in prompt

    @pytest.mark.asyncio
    async def test_newsapi_not_called_when_events_have_headlines(self, gateway, transport):
        transport.script("santiment", json_response({}, status=401))
        transport.script("cryptopanic", json_response(cryptopanic_payload([headline("Bitcoin ETF inflows", "BTC", 1)])))
        transport.script("openai", json_response(openai_payload("3")))
        outcome = await gateway.get_sentiment("BTC")

        assert outcome.source == "fallback-ai"
        assert transport.calls_to("newsapi") == []

    @pytest.mark.asyncio
    async def test_neutral_when_neither_headline_source_has_titles(self, config, policy, sleeper):
        transport = ScriptedTransport(credentials={"santiment", "coinmetrics", "cryptopanic", "openai"})
        transport.script("santiment", json_response({}, status=401))
        transport.script("cryptopanic", json_response(cryptopanic_payload([])))
        gateway = GatewayClient(transport=transport, config=config, policy=policy, sleep=sleeper)
        outcome = await gateway.get_sentiment("BTC")

        assert outcome.source == "neutral-default"
        assert transport.calls_to("newsapi") == []
        assert transport.calls_to("openai") == []

    @pytest.mark.asyncio
    async def test_ai_tier_skipped_without_openai_key(self, config, policy, sleeper):
        transport = ScriptedTransport(credentials={"santiment", "coinmetrics", "cryptopanic"})
        transport.script("santiment", json_response({}, status=401))
        gateway = GatewayClient(transport=transport, config=config, policy=policy, sleep=sleeper)
        outcome = await gateway.get_sentiment("BTC")

        assert outcome.source == "neutral-default"
        assert transport.calls_to("cryptopanic") == []


class TestOnChain:
    """On-chain fallback chain"""

    @pytest.mark.asyncio
    async def test_live_snapshot(self, gateway, transport):
        transport.script("coinmetrics", json_response(coinmetrics_payload((1000, 20), (1100, 25))))
        outcome = await gateway.get_onchain("BTC")

        assert outcome.source == "live"
        assert outcome.value.active_wallets_growth_pct == 10.0

    @pytest.mark.asyncio
    async def test_single_point_falls_to_ai(self, gateway, transport):
        transport.script("coinmetrics", json_response(coinmetrics_payload((1000, 20))))
        transport.script("openai", json_response(openai_payload("Active Wallets: 900000, Growth: 1.2, Large Transactions: 350")))
        outcome = await gateway.get_onchain("BTC")

        assert outcome.source == "fallback-ai"
        assert outcome.value.active_wallets == 900000
        assert len(transport.calls_to("coinmetrics")) == 1

    @pytest.mark.asyncio
    async def test_static_table_after_ai_failure(self, gateway, transport):
        transport.script("coinmetrics", json_response({}, status=402))
        transport.script("openai", json_response(openai_payload("I don't know")))
        outcome = await gateway.get_onchain("USDT")

        assert outcome.source == "fallback-static"
        assert outcome.value.large_transaction_count == 600

    @pytest.mark.asyncio
    async def test_unmapped_coin_skips_metrics_provider(self, gateway, transport):
        transport.script("openai", json_response(openai_payload("Active Wallets: 1200, Growth: 3.5, Large Transactions: 40")))
        outcome = await gateway.get_onchain("PEPE")

        assert outcome.source == "fallback-ai"
        assert outcome.value.coin == "PEPE"
        assert transport.calls_to("coinmetrics") == []

    @pytest.mark.asyncio
    async def test_unmapped_coin_never_fails(self, gateway, transport):
        transport.script("openai", json_response({}, status=500))
        outcome = await gateway.get_onchain("PEPE")

        assert isinstance(outcome, Success)
        assert outcome.source == "neutral-default"
        assert outcome.value.is_all_zero()


class TestEvents:
    """Events feed and cache"""

    @pytest.mark.asyncio
    async def test_live_events_are_cached(self, gateway, transport):
        transport.script("cryptopanic", json_response(cryptopanic_payload([headline("Solana upgrade", "SOL", 9)])))
        outcome = await gateway.get_events()

        assert outcome.source == "live"
        assert [e.coin for e in outcome.value] == ["SOL"]
        assert gateway.cached_events() == outcome.value

    @pytest.mark.asyncio
    async def test_cached_batch_feeds_ai_sentiment(self, gateway, transport):
        transport.script("cryptopanic", json_response(cryptopanic_payload([headline("Solana upgrade", "SOL", 9)])))
        await gateway.get_events()

        transport.script("santiment", json_response({}, status=401))
        transport.script("openai", json_response(openai_payload("-4")))
        outcome = await gateway.get_sentiment("SOL")

        assert outcome.source == "fallback-ai"
        assert outcome.value.score == 30
        assert len(transport.calls_to("cryptopanic")) == 1

    @pytest.mark.asyncio
    async def test_empty_list_when_provider_down(self, gateway, transport):
        transport.script("cryptopanic", json_response({}, status=401))
        outcome = await gateway.get_events()

        assert outcome.source == "neutral-default"
        assert outcome.value == []
        assert gateway.cached_events() is None


class TestCancellation:
    """Cancel, supersede and concurrency"""

    @pytest.mark.asyncio
    async def test_cancel_during_retry_delay(self, config, policy, transport):
        transport.script("santiment", json_response({}, status=503))
        sleeping = asyncio.Event()

        async def blocking_sleep(delay):
            sleeping.set()
            await asyncio.sleep(3600)

        gateway = GatewayClient(transport=transport, config=config, policy=policy, sleep=blocking_sleep)
        pending = asyncio.create_task(gateway.get_sentiment("ETH"))
        await asyncio.wait_for(sleeping.wait(), timeout=1)

        assert gateway.cancel("sentiment", "eth")
        outcome = await pending

        assert isinstance(outcome, Cancelled)
        assert outcome.reason == "cancelled by caller"
        await asyncio.sleep(0)
        assert len(transport.calls) == 1
        assert gateway.pending() == []

    @pytest.mark.asyncio
    async def test_cancel_without_pending_fetch(self, gateway):
        assert gateway.cancel("onchain", "BTC") is False

    @pytest.mark.asyncio
    async def test_new_request_supersedes_pending_one(self, gateway, transport):
        release = asyncio.Event()
        started = asyncio.Event()
        calls = []

        async def santiment(request):
            calls.append(request)
            if len(calls) == 1:
                started.set()
                await release.wait()
            return json_response(santiment_payload(0.1))

        transport.script("santiment", santiment)
        first = asyncio.create_task(gateway.get_sentiment("BTC"))
        await asyncio.wait_for(started.wait(), timeout=1)

        second = await asyncio.wait_for(gateway.get_sentiment("BTC"), timeout=1)
        first_outcome = await first

        assert isinstance(second, Success)
        assert first_outcome == Cancelled(reason="superseded")

    @pytest.mark.asyncio
    async def test_different_coins_do_not_block_each_other(self, gateway, transport):
        release = asyncio.Event()

        async def santiment(request):
            if request.json_body["variables"]["slug"] == "bitcoin":
                await release.wait()
            return json_response(santiment_payload(0.3))

        transport.script("santiment", santiment)
        btc = asyncio.create_task(gateway.get_sentiment("BTC"))
        await asyncio.sleep(0)

        eth = await asyncio.wait_for(gateway.get_sentiment("ETH"), timeout=1)
        assert eth.source == "live"
        assert not btc.done()

        release.set()
        btc_outcome = await asyncio.wait_for(btc, timeout=1)
        assert btc_outcome.source == "live"
        assert btc_outcome.value.coin == "BTC"

    @pytest.mark.asyncio
    async def test_caller_cancellation_propagates(self, gateway, transport):
        started = asyncio.Event()

        async def santiment(request):
            started.set()
            await asyncio.sleep(3600)

        transport.script("santiment", santiment)
        caller = asyncio.create_task(gateway.get_sentiment("BTC"))
        await asyncio.wait_for(started.wait(), timeout=1)
        caller.cancel()

        with pytest.raises(asyncio.CancelledError):
            await caller
        assert gateway.pending() == []

    @pytest.mark.asyncio
    async def test_slow_provider_bounded_by_fetch_timeout(self, transport, config, policy, sleeper):
        async def santiment(request):
            await asyncio.sleep(3600)

        transport.script("santiment", santiment)
        transport.script("cryptopanic", json_response(cryptopanic_payload([])))
        gateway = GatewayClient(transport=transport, config=config, policy=policy, timeout=0.05, sleep=sleeper)
        outcome = await asyncio.wait_for(gateway.get_sentiment("BTC"), timeout=2)

        assert outcome.source == "neutral-default"
