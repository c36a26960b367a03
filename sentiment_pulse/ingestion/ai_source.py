"""OpenAI-backed estimation adapters used as fallback tiers.

The model answers in free text; both adapters pattern-match the answer and
refuse an all-zero estimate, which usually means the model declined.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Sequence, TypeVar

from sentiment_pulse.core.config import settings
from sentiment_pulse.core.errors import ParseError
from sentiment_pulse.core.logging import get_logger
from sentiment_pulse.ingestion.base import BaseAdapter
from sentiment_pulse.ingestion.sentiment_source import compound_to_score
from sentiment_pulse.ingestion.transport import HttpRequest, HttpResponse
from sentiment_pulse.schemas.domain import OnChainSnapshot, SentimentReading
from sentiment_pulse.schemas.raw import ChatCompletionResponse

log = get_logger("ingestion.openai")

T = TypeVar("T")

MAX_HEADLINES = 5

FEW_SHOT_EXAMPLES = "\n\n".join(
    [
        "Instruction: Analyze sentiment of 'BTC price up 5% today!'\n### Answer: 7",
        "Instruction: Analyze sentiment of 'ETH crash incoming'\n### Answer: -6",
        "Instruction: Analyze sentiment of 'SOL network stable'\n### Answer: 4",
        "Instruction: Analyze sentiment of 'XRP lawsuit news'\n### Answer: -3",
    ]
)

_LEADING_SCORE_RE = re.compile(r"^\s*(?:#*\s*answer\s*:)?\s*(?P<score>[-+]?\d+(?:\.\d+)?)", re.IGNORECASE)
_ONCHAIN_RE = re.compile(
    r"active\s+wallets:\s*(?P<wallets>[\d,]+(?:\.\d+)?)\s*,?\s*"
    r"growth:\s*(?P<growth>[-+]?\d+(?:\.\d+)?)\s*%?\s*,?\s*"
    r"large\s+transactions:\s*(?P<large>[\d,]+)",
    re.IGNORECASE,
)


class OpenAIChatAdapter(BaseAdapter[T]):
    """Shared request/response handling for chat-completion estimates."""

    upstream = "openai"

    def __init__(self, model: Optional[str] = None, clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.model = model or settings.OPENAI_MODEL
        self.clock = clock

    def chat_request(self, prompt: str) -> HttpRequest:
        return HttpRequest(
            upstream=self.upstream,
            endpoint="chat/completions",
            method="POST",
            json_body={
                "model": self.model,
                "messages": [{"role": "user", "content": prompt}],
                "max_tokens": 60,
                "temperature": 0.5,
            },
        )

    def answer_text(self, response: HttpResponse, coin: str) -> str:
        self.raise_for_status(response, f"{self.name}:{coin}")
        payload = self.validate(ChatCompletionResponse, self.decode_json(response))
        content = payload.choices[0].message.content
        if not content or not content.strip():
            raise ParseError(f"empty completion for {coin}")
        return content.strip()


class AISentimentAdapter(OpenAIChatAdapter[SentimentReading]):
    """Scores recent headlines on a -10..10 scale and rescales to 0..100."""

    name = "openai-sentiment"

    def build_request(self, slug: str, params: Optional[Dict[str, Any]] = None) -> HttpRequest:
        headlines: Sequence[str] = (params or {}).get("headlines", [])
        lines = "\n".join(headlines[:MAX_HEADLINES])
        prompt = (
            f"{FEW_SHOT_EXAMPLES}\n\n"
            f"Instruction: Analyze the sentiment of the following headlines about {slug} and provide "
            f"a score between -10 (very negative) and 10 (very positive):\n\n{lines}\n### Answer:"
        )
        return self.chat_request(prompt)

    def parse_response(self, response: HttpResponse, coin: str) -> SentimentReading:
        text = self.answer_text(response, coin)
        # Only a leading score counts; prose may quote the -10..10 scale itself
        match = _LEADING_SCORE_RE.match(text)
        if match is None:
            raise ParseError(f"completion does not start with a score: {text[:80]!r}")

        raw = min(max(float(match.group("score")), -10.0), 10.0)
        if raw == 0:
            raise ParseError(f"all-zero sentiment estimate for {coin}")

        score = compound_to_score(raw / 10)
        log.info(f"{coin}: AI sentiment estimate {raw:+.1f} -> score {score:.1f}")
        return SentimentReading.from_score(coin, score, self.clock())


class AIOnChainAdapter(OpenAIChatAdapter[OnChainSnapshot]):
    """Asks for a fixed-format estimate and pattern-matches the three figures."""

    name = "openai-onchain"

    def build_request(self, slug: str, params: Optional[Dict[str, Any]] = None) -> HttpRequest:
        prompt = (
            f"Estimate current on-chain activity for the cryptocurrency {slug}. "
            "Reply on one line in exactly this format and nothing else:\n"
            "Active Wallets: <integer>, Growth: <percent change vs previous day>, "
            "Large Transactions: <integer>"
        )
        return self.chat_request(prompt)

    def parse_response(self, response: HttpResponse, coin: str) -> OnChainSnapshot:
        text = self.answer_text(response, coin)
        match = _ONCHAIN_RE.search(text)
        if match is None:
            raise ParseError(f"on-chain estimate not in expected format: {text[:80]!r}")

        try:
            snapshot = OnChainSnapshot(
                coin=coin,
                active_wallets=int(float(match.group("wallets").replace(",", ""))),
                active_wallets_growth_pct=float(match.group("growth")),
                large_transaction_count=int(match.group("large").replace(",", "")),
                observed_at=self.clock(),
            )
        except ValueError as exc:
            raise ParseError(f"on-chain estimate out of range: {exc}") from exc

        if snapshot.is_all_zero():
            raise ParseError(f"all-zero on-chain estimate for {coin}")
        log.info(
            f"{coin}: AI on-chain estimate wallets={snapshot.active_wallets} "
            f"growth={snapshot.active_wallets_growth_pct:+.2f}% large_tx={snapshot.large_transaction_count}"
        )
        return snapshot
