"""Santiment social-sentiment adapter."""

from __future__ import annotations

from typing import Any, Dict, Optional

from sentiment_pulse.core.errors import InsufficientDataError, InvalidRequestError, ParseError, PaymentRequiredError
from sentiment_pulse.core.logging import get_logger
from sentiment_pulse.ingestion.base import BaseAdapter
from sentiment_pulse.ingestion.transport import HttpRequest, HttpResponse
from sentiment_pulse.schemas.domain import SentimentReading
from sentiment_pulse.schemas.raw import SantimentResponse

log = get_logger("ingestion.santiment")

SENTIMENT_METRIC = "sentiment_weighted_total"

TIMESERIES_QUERY = """
query SentimentSnapshot($metric: String!, $slug: String!) {
  getMetric(metric: $metric) {
    timeseriesData(slug: $slug, from: "utc_now-1d", to: "utc_now", interval: "1d") {
      datetime
      value
    }
  }
}
""".strip()

_PLAN_MARKERS = ("subscription", "plan", "restricted", "upgrade")


def compound_to_score(value: float) -> float:
    """Rescale a [-1, 1] compound value to [0, 100]."""
    value = min(max(value, -1.0), 1.0)
    return (value + 1) * 50


class SantimentSentimentAdapter(BaseAdapter[SentimentReading]):
    """Reads the most recent daily point of a compound sentiment timeseries."""

    name = "santiment"
    upstream = "santiment"

    def __init__(self, metric: str = SENTIMENT_METRIC):
        self.metric = metric

    def build_request(self, slug: str, params: Optional[Dict[str, Any]] = None) -> HttpRequest:
        variables = {"metric": self.metric, "slug": slug}
        variables.update(params or {})
        return HttpRequest(
            upstream=self.upstream,
            endpoint="graphql",
            method="POST",
            json_body={"query": TIMESERIES_QUERY, "variables": variables},
        )

    def parse_response(self, response: HttpResponse, coin: str) -> SentimentReading:
        self.raise_for_status(response, f"{self.name}:{coin}")
        payload = self.validate(SantimentResponse, self.decode_json(response))

        if payload.errors:
            message = "; ".join(err.message for err in payload.errors)
            if any(marker in message.lower() for marker in _PLAN_MARKERS):
                raise PaymentRequiredError(message)
            raise InvalidRequestError(message)

        if payload.data is None or payload.data.get_metric is None:
            raise ParseError("missing data.getMetric in Santiment response")

        points = [p for p in payload.data.get_metric.timeseries_data if p.value is not None]
        if not points:
            raise InsufficientDataError(f"no sentiment datapoints for {coin}")

        latest = max(points, key=lambda p: p.observed_at)
        score = compound_to_score(latest.value)
        log.debug(f"{coin}: compound={latest.value:.3f} score={score:.1f}")
        return SentimentReading.from_score(coin, score, latest.observed_at)
