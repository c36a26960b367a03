"""Static ticker -> provider slug mapping.

Each upstream names coins differently (Santiment uses ``bitcoin``, CoinMetrics
uses ``btc``, CryptoPanic uses the ticker itself). The table is loaded at import
and never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional


@dataclass(frozen=True)
class CoinIdentity:
    ticker: str
    name: str
    santiment_slug: str
    coinmetrics_slug: str
    cryptopanic_code: str


_IDENTITIES = [
    CoinIdentity("BTC", "Bitcoin", "bitcoin", "btc", "BTC"),
    CoinIdentity("ETH", "Ethereum", "ethereum", "eth", "ETH"),
    CoinIdentity("USDT", "Tether", "tether", "usdt", "USDT"),
    CoinIdentity("SOL", "Solana", "solana", "sol", "SOL"),
    CoinIdentity("BNB", "BNB", "binance-coin", "bnb", "BNB"),
    CoinIdentity("XRP", "XRP", "xrp", "xrp", "XRP"),
    CoinIdentity("USDC", "USD Coin", "usd-coin", "usdc", "USDC"),
    CoinIdentity("DOGE", "Dogecoin", "dogecoin", "doge", "DOGE"),
    CoinIdentity("ADA", "Cardano", "cardano", "ada", "ADA"),
    CoinIdentity("TRX", "TRON", "tron", "trx", "TRX"),
    CoinIdentity("AVAX", "Avalanche", "avalanche", "avax", "AVAX"),
    CoinIdentity("LINK", "Chainlink", "chainlink", "link", "LINK"),
    CoinIdentity("DOT", "Polkadot", "polkadot-new", "dot", "DOT"),
    CoinIdentity("LTC", "Litecoin", "litecoin", "ltc", "LTC"),
    CoinIdentity("BCH", "Bitcoin Cash", "bitcoin-cash", "bch", "BCH"),
]

COIN_IDENTITIES: Mapping[str, CoinIdentity] = MappingProxyType({c.ticker: c for c in _IDENTITIES})


def normalize_ticker(ticker: str) -> str:
    return ticker.strip().lstrip("$").upper()


def resolve_coin(ticker: str) -> Optional[CoinIdentity]:
    """Look up a ticker (case-insensitive, optional ``$`` prefix)."""
    return COIN_IDENTITIES.get(normalize_ticker(ticker))


def supported_tickers() -> list[str]:
    return list(COIN_IDENTITIES)
