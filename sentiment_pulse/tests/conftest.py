"""Shared fixtures: a scripted transport and provider payload builders."""

import json
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Union

import pytest

from sentiment_pulse.core.config import Settings
from sentiment_pulse.core.errors import NetworkError
from sentiment_pulse.core.upstreams import UPSTREAMS
from sentiment_pulse.ingestion.retry import RetryPolicy
from sentiment_pulse.ingestion.transport import HttpRequest, HttpResponse, Transport
from sentiment_pulse.services.gateway import GatewayClient

Scripted = Union[HttpResponse, Exception, Callable[[HttpRequest], Awaitable[HttpResponse]]]


def json_response(payload: Any, status: int = 200) -> HttpResponse:
    return HttpResponse(status=status, body=json.dumps(payload), headers={"content-type": "application/json"})


def santiment_payload(*values: float) -> Dict[str, Any]:
    points = [{"datetime": f"2024-05-0{i + 1}T00:00:00Z", "value": v} for i, v in enumerate(values)]
    return {"data": {"getMetric": {"timeseriesData": points}}}


def coinmetrics_payload(*rows: tuple) -> Dict[str, Any]:
    """Rows of (active_addresses, tx_count), oldest first."""
    return {
        "data": [
            {
                "asset": "btc",
                "time": f"2024-05-0{i + 1}T00:00:00.000000000Z",
                "AdrActCnt": str(active),
                "TxCnt": str(tx),
            }
            for i, (active, tx) in enumerate(rows)
        ]
    }


def cryptopanic_payload(rows: List[Any]) -> Dict[str, Any]:
    return {"count": len(rows), "results": rows}


def openai_payload(text: str) -> Dict[str, Any]:
    return {"choices": [{"index": 0, "message": {"role": "assistant", "content": text}}]}


def newsapi_payload(*titles: Optional[str]) -> Dict[str, Any]:
    articles = [
        {"title": title, "description": "", "url": f"https://news.example.com/{i}", "publishedAt": "2024-05-09T08:00:00Z"}
        for i, title in enumerate(titles)
    ]
    return {"status": "ok", "totalResults": len(articles), "articles": articles}


class ScriptedTransport(Transport):
    """Plays back scripted responses per upstream; the last entry repeats."""

    def __init__(self, credentials: Optional[Iterable[str]] = None):
        self.routes: Dict[str, List[Scripted]] = {}
        self.calls: List[HttpRequest] = []
        self.credentials = set(UPSTREAMS if credentials is None else credentials)

    def script(self, upstream: str, *responses: Scripted) -> "ScriptedTransport":
        self.routes.setdefault(upstream, []).extend(responses)
        return self

    def calls_to(self, upstream: str) -> List[HttpRequest]:
        return [c for c in self.calls if c.upstream == upstream]

    def has_credential(self, upstream: str) -> bool:
        return upstream in self.credentials

    async def send(self, request: HttpRequest) -> HttpResponse:
        self.calls.append(request)
        queue = self.routes.get(request.upstream)
        if not queue:
            raise NetworkError(f"no scripted response for {request.target}")
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return await item(request)
        return item


class RecordingSleep:
    """Stand-in for ``asyncio.sleep`` that records delays without waiting."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def config() -> Settings:
    return Settings(
        _env_file=None,
        ENV="dev",
        FETCH_TIMEOUT_SECONDS=5,
        EVENTS_CACHE_TTL_SECONDS=300,
        TRACKED_COINS="BTC,ETH",
        EVENT_CURRENCIES="BTC,ETH,USDT,SOL",
        SCHEDULER_ENABLED=False,
    )


@pytest.fixture
def policy() -> RetryPolicy:
    return RetryPolicy(max_attempts=3, initial_delay=60, max_delay=300, jitter=False)


@pytest.fixture
def sleeper() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def transport() -> ScriptedTransport:
    return ScriptedTransport()


@pytest.fixture
def gateway(transport, config, policy, sleeper) -> GatewayClient:
    return GatewayClient(transport=transport, config=config, policy=policy, sleep=sleeper)
