"""CoinMetrics on-chain metrics adapter."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from sentiment_pulse.core.errors import InsufficientDataError
from sentiment_pulse.core.logging import get_logger
from sentiment_pulse.ingestion.base import BaseAdapter
from sentiment_pulse.ingestion.transport import HttpRequest, HttpResponse
from sentiment_pulse.schemas.domain import OnChainSnapshot, compute_growth_pct
from sentiment_pulse.schemas.raw import CoinMetricsResponse

log = get_logger("ingestion.coinmetrics")

METRICS = "AdrActCnt,TxCnt"
WINDOW_DAYS = 7
PAGE_SIZE = 2


class CoinMetricsOnChainAdapter(BaseAdapter[OnChainSnapshot]):
    """Active addresses and transaction count from the two most recent daily points."""

    name = "coinmetrics"
    upstream = "coinmetrics"

    def __init__(self, clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.clock = clock

    def build_request(self, slug: str, params: Optional[Dict[str, Any]] = None) -> HttpRequest:
        now = self.clock()
        query: Dict[str, Any] = {
            "assets": slug,
            "metrics": METRICS,
            "frequency": "1d",
            "start_time": (now - timedelta(days=WINDOW_DAYS)).strftime("%Y-%m-%d"),
            "end_time": now.strftime("%Y-%m-%d"),
            "page_size": PAGE_SIZE,
            "paging_from": "end",
        }
        query.update(params or {})
        return HttpRequest(upstream=self.upstream, endpoint="timeseries/asset-metrics", params=query)

    def parse_response(self, response: HttpResponse, coin: str) -> OnChainSnapshot:
        self.raise_for_status(response, f"{self.name}:{coin}")
        payload = self.validate(CoinMetricsResponse, self.decode_json(response))

        rows = [r for r in payload.data if r.active_addresses is not None]
        if len(rows) < 2:
            raise InsufficientDataError(f"expected 2 daily points for {coin}, got {len(rows)}")

        rows.sort(key=lambda r: r.time)
        previous, current = rows[-2], rows[-1]

        growth = compute_growth_pct(previous.active_addresses, current.active_addresses)
        observed_at = self._parse_timestamp(current.time) or self.clock()
        log.debug(f"{coin}: AdrActCnt {previous.active_addresses:.0f} -> {current.active_addresses:.0f} ({growth:+.2f}%)")

        return OnChainSnapshot(
            coin=coin,
            active_wallets=int(current.active_addresses),
            active_wallets_growth_pct=round(growth, 2),
            large_transaction_count=int(current.tx_count or 0),
            observed_at=observed_at,
        )
