"""Normalized domain entities returned by the fetch layer."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

NEUTRAL_SHARE = 33.33


class SentimentReading(BaseModel):
    """Positive/negative/neutral split plus a 0-100 summary score."""

    model_config = ConfigDict(frozen=True)

    coin: str
    positive_share: float = Field(ge=0, le=100)
    negative_share: float = Field(ge=0, le=100)
    neutral_share: float = Field(ge=0, le=100)
    score: float = Field(ge=0, le=100)
    observed_at: datetime

    @model_validator(mode="after")
    def _shares_sum_to_hundred(self) -> "SentimentReading":
        total = self.positive_share + self.negative_share + self.neutral_share
        if abs(total - 100.0) > 0.1:
            raise ValueError(f"sentiment shares must sum to 100, got {total:.2f}")
        return self

    @classmethod
    def from_score(cls, coin: str, score: float, observed_at: datetime) -> "SentimentReading":
        """Derive shares from distance above/below the neutral midpoint of 50."""
        score = min(max(score, 0.0), 100.0)
        positive = min(max((score - 50.0) * 2, 0.0), 100.0)
        negative = min(max((50.0 - score) * 2, 0.0), 100.0)
        neutral = 100.0 - positive - negative
        return cls(
            coin=coin,
            positive_share=round(positive, 2),
            negative_share=round(negative, 2),
            neutral_share=round(neutral, 2),
            score=round(score, 2),
            observed_at=observed_at,
        )

    @classmethod
    def neutral(cls, coin: str, observed_at: datetime) -> "SentimentReading":
        """Even split used when nothing is known about the coin."""
        return cls(
            coin=coin,
            positive_share=NEUTRAL_SHARE,
            negative_share=NEUTRAL_SHARE,
            neutral_share=NEUTRAL_SHARE,
            score=50.0,
            observed_at=observed_at,
        )


def compute_growth_pct(previous: float, current: float) -> float:
    """Percent change between two consecutive daily observations; 0 when previous is 0."""
    if previous == 0:
        return 0.0
    return (current - previous) / previous * 100


class OnChainSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    coin: str
    active_wallets: int = Field(ge=0)
    active_wallets_growth_pct: float
    large_transaction_count: int = Field(ge=0)
    observed_at: datetime

    def is_all_zero(self) -> bool:
        return (
            self.active_wallets == 0
            and self.active_wallets_growth_pct == 0
            and self.large_transaction_count == 0
        )


class MarketEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    coin: str
    published_at: datetime
    title: str
    description: str = ""
    event_kind: str = "news"
    url: str | None = None
