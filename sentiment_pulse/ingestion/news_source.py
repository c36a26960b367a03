"""NewsAPI headlines adapter.

Feeds the AI sentiment estimate when the events feed has nothing for a coin.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sentiment_pulse.core.errors import InsufficientDataError
from sentiment_pulse.core.logging import get_logger
from sentiment_pulse.ingestion.base import BaseAdapter
from sentiment_pulse.ingestion.transport import HttpRequest, HttpResponse
from sentiment_pulse.schemas.raw import NewsAPIResponse

log = get_logger("ingestion.newsapi")

PAGE_SIZE = 5
REMOVED_TITLE = "[Removed]"


class NewsAPIHeadlinesAdapter(BaseAdapter[List[str]]):
    """Most recent English headlines mentioning a coin."""

    name = "newsapi"
    upstream = "newsapi"

    def build_request(self, slug: str, params: Optional[Dict[str, Any]] = None) -> HttpRequest:
        query: Dict[str, Any] = {
            "q": slug,
            "language": "en",
            "sortBy": "publishedAt",
            "pageSize": PAGE_SIZE,
        }
        query.update(params or {})
        return HttpRequest(upstream=self.upstream, endpoint="everything", params=query)

    def parse_response(self, response: HttpResponse, coin: str) -> List[str]:
        self.raise_for_status(response, f"{self.name}:{coin}")
        payload = self.validate(NewsAPIResponse, self.decode_json(response))

        titles = []
        for article in payload.articles:
            title = (article.title or "").strip()
            if title and title != REMOVED_TITLE:
                titles.append(title)
        if not titles:
            raise InsufficientDataError(f"no headlines for {coin}")

        log.info(f"{coin}: {len(titles)} headlines from NewsAPI")
        return titles
