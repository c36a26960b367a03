"""Raw upstream payload schemas, validated at the adapter boundary."""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SantimentPoint(BaseModel):
    observed_at: datetime = Field(alias="datetime")
    value: Optional[float] = None


class SantimentMetric(BaseModel):
    timeseries_data: List[SantimentPoint] = Field(default_factory=list, alias="timeseriesData")


class SantimentData(BaseModel):
    get_metric: Optional[SantimentMetric] = Field(default=None, alias="getMetric")


class GraphQLError(BaseModel):
    model_config = ConfigDict(extra="allow")

    message: str = ""


class SantimentResponse(BaseModel):
    """Santiment GraphQL ``getMetric { timeseriesData }`` response."""

    data: Optional[SantimentData] = None
    errors: Optional[List[GraphQLError]] = None


class CoinMetricsRow(BaseModel):
    # CoinMetrics returns metric values as strings and nanosecond timestamps
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    asset: str
    time: str
    active_addresses: Optional[float] = Field(default=None, alias="AdrActCnt")
    tx_count: Optional[float] = Field(default=None, alias="TxCnt")


class CoinMetricsResponse(BaseModel):
    data: List[CoinMetricsRow] = Field(default_factory=list)
    next_page_token: Optional[str] = None


class CryptoPanicResponse(BaseModel):
    """CryptoPanic ``posts`` response; rows are parsed one by one."""

    model_config = ConfigDict(extra="allow")

    count: Optional[int] = None
    results: List[Any]


class NewsArticle(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    title: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None
    published_at: Optional[str] = Field(default=None, alias="publishedAt")


class NewsAPIResponse(BaseModel):
    """NewsAPI ``everything`` response; errors arrive as non-2xx with ``status: error``."""

    model_config = ConfigDict(extra="allow")

    status: str = "ok"
    total_results: Optional[int] = Field(default=None, alias="totalResults")
    articles: List[NewsArticle] = Field(default_factory=list)


class ChatMessage(BaseModel):
    role: str = "assistant"
    content: Optional[str] = None


class ChatChoice(BaseModel):
    index: int = 0
    message: ChatMessage


class ChatCompletionResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    choices: List[ChatChoice] = Field(min_length=1)
