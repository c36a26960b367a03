"""Fetch entrypoint - one-shot fetch of every data kind, for cron jobs and debugging.

Usage:
    python -m sentiment_pulse.fetch_entrypoint              # Tracked coins (TRACKED_COINS)
    python -m sentiment_pulse.fetch_entrypoint BTC ETH      # Specific coins
"""

import asyncio
import sys
from typing import Dict, List, Optional, Sequence

from sentiment_pulse.core.config import settings
from sentiment_pulse.core.coins import normalize_ticker
from sentiment_pulse.core.logging import get_logger
from sentiment_pulse.schemas.outcome import Failure, FetchOutcome, Success
from sentiment_pulse.services.gateway import GatewayClient

logger = get_logger("fetch_entrypoint")


def describe(outcome: FetchOutcome) -> str:
    if isinstance(outcome, Success):
        suffix = " (degraded)" if outcome.degraded else ""
        return f"success source={outcome.source}{suffix}"
    if isinstance(outcome, Failure):
        return f"failure kind={outcome.kind.value}: {outcome.message}"
    return f"cancelled: {outcome.reason}"


async def fetch_all(coins: Sequence[str], gateway: GatewayClient) -> Dict[str, FetchOutcome]:
    """Fetch sentiment and on-chain data for each coin, plus the events feed, concurrently."""
    labels: List[str] = []
    calls = []
    for coin in coins:
        labels += [f"sentiment:{coin}", f"onchain:{coin}"]
        calls += [gateway.get_sentiment(coin), gateway.get_onchain(coin)]
    labels.append("events")
    calls.append(gateway.get_events())

    outcomes = await asyncio.gather(*calls)
    return dict(zip(labels, outcomes))


async def run(coins: Sequence[str]) -> Dict[str, FetchOutcome]:
    gateway = GatewayClient()
    try:
        return await fetch_all(coins, gateway)
    finally:
        await gateway.aclose()


def main(argv: Optional[Sequence[str]] = None) -> Dict[str, FetchOutcome]:
    """Main entry point for the one-shot fetch."""
    if argv is None:
        argv = sys.argv[1:]
    coins = [normalize_ticker(c) for c in argv] or list(settings.TRACKED_COINS)
    logger.info(f"Fetching data for {', '.join(coins)}")

    results = asyncio.run(run(coins))
    for label, outcome in results.items():
        logger.info(f"{label}: {describe(outcome)}")

    # Exit with error code if any fetch failed
    if any(isinstance(outcome, Failure) for outcome in results.values()):
        sys.exit(1)
    return results


if __name__ == "__main__":
    main()
