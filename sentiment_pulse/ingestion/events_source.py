"""CryptoPanic hot-posts adapter.

A malformed row never fails the batch: missing fields get placeholders and rows
without a currency are kept under ``UNKNOWN``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from sentiment_pulse.core.logging import get_logger
from sentiment_pulse.ingestion.base import BaseAdapter
from sentiment_pulse.ingestion.transport import HttpRequest, HttpResponse
from sentiment_pulse.schemas.domain import MarketEvent
from sentiment_pulse.schemas.raw import CryptoPanicResponse

log = get_logger("ingestion.cryptopanic")

DEFAULT_CURRENCIES = ("BTC", "ETH", "USDT", "SOL")
UNKNOWN_COIN = "UNKNOWN"
NO_TITLE = "No title available"


class CryptoPanicEventsAdapter(BaseAdapter[List[MarketEvent]]):
    name = "cryptopanic"
    upstream = "cryptopanic"

    def __init__(
        self,
        currencies: Sequence[str] = DEFAULT_CURRENCIES,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.currencies = [c.upper() for c in currencies]
        self.clock = clock

    def build_request(self, slug: str = "", params: Optional[Dict[str, Any]] = None) -> HttpRequest:
        query: Dict[str, Any] = {
            "currencies": slug or ",".join(self.currencies),
            "filter": "hot",
            "public": "true",
        }
        query.update(params or {})
        return HttpRequest(upstream=self.upstream, endpoint="posts/", params=query)

    def parse_response(self, response: HttpResponse, coin: str = "") -> List[MarketEvent]:
        self.raise_for_status(response, self.name)
        payload = self.validate(CryptoPanicResponse, self.decode_json(response))

        now = self.clock()
        seen: Set[str] = set()
        events = [self._parse_row(row, index, now, seen) for index, row in enumerate(payload.results)]
        log.info(f"Parsed {len(events)} events from CryptoPanic")
        return events

    def _parse_row(self, row: Any, index: int, now: datetime, seen: Set[str]) -> MarketEvent:
        if not isinstance(row, dict):
            log.warning(f"Event row {index} is not an object, using placeholders")
            row = {}

        raw_id = row.get("id")
        base_id = str(raw_id) if raw_id not in (None, "") else f"evt-{int(now.timestamp() * 1000)}-{index}"
        event_id, suffix = base_id, 1
        while event_id in seen:
            event_id = f"{base_id}-{suffix}"
            suffix += 1
        seen.add(event_id)

        title = row.get("title")
        if not isinstance(title, str) or not title.strip():
            title = NO_TITLE

        description = row.get("description")
        if not isinstance(description, str):
            metadata = row.get("metadata")
            description = metadata.get("description") if isinstance(metadata, dict) else None
        if not isinstance(description, str):
            description = ""

        kind = row.get("kind")
        return MarketEvent(
            id=event_id,
            coin=self._resolve_coin(row.get("currencies")),
            published_at=self._parse_timestamp(row.get("published_at")) or now,
            title=title.strip(),
            description=description,
            event_kind=kind if isinstance(kind, str) and kind else "news",
            url=row.get("url") if isinstance(row.get("url"), str) else None,
        )

    @staticmethod
    def _resolve_coin(currencies: Any) -> str:
        if isinstance(currencies, list):
            for currency in currencies:
                if isinstance(currency, dict) and isinstance(currency.get("code"), str) and currency["code"]:
                    return currency["code"].upper()
        return UNKNOWN_COIN
