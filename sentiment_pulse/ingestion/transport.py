"""HTTP transport abstraction.

Adapters build ``HttpRequest`` objects naming an upstream and an endpoint; a
transport decides how to reach it. ``HttpxTransport`` calls the provider
directly and injects the credential itself, ``ProxyTransport`` hands the
request to the serverless proxy, which owns the credentials.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Mapping, Optional

import httpx

from sentiment_pulse.core.config import Settings, settings as default_settings
from sentiment_pulse.core.errors import InvalidRequestError, MissingCredentialError, NetworkError
from sentiment_pulse.core.logging import get_logger
from sentiment_pulse.core.upstreams import get_upstream, has_credential, inject_credentials

log = get_logger("ingestion.transport")

USER_AGENT = "CryptoSentimentPulse/1.0"


@dataclass(frozen=True)
class HttpRequest:
    upstream: str
    endpoint: str
    method: Literal["GET", "POST"] = "GET"
    params: Dict[str, Any] = field(default_factory=dict)
    json_body: Optional[Dict[str, Any]] = None
    headers: Dict[str, str] = field(default_factory=dict)
    timeout: Optional[float] = None

    @property
    def target(self) -> str:
        return f"{self.upstream}/{self.endpoint}"


@dataclass(frozen=True)
class HttpResponse:
    status: int
    body: str
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def content_type(self) -> str:
        for key, value in self.headers.items():
            if key.lower() == "content-type":
                return value
        return ""


class Transport(ABC):
    """Sends an ``HttpRequest`` and returns the raw response, whatever the status."""

    @abstractmethod
    async def send(self, request: HttpRequest) -> HttpResponse:
        """Raise ``NetworkError`` when no response was received."""

    @abstractmethod
    def has_credential(self, upstream: str) -> bool:
        """Whether a request to ``upstream`` can be authenticated."""

    async def aclose(self) -> None:
        return None


class HttpxTransport(Transport):
    """Calls upstream providers directly with an ``httpx.AsyncClient``."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, config: Optional[Settings] = None):
        self.config = config or default_settings
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=self.config.UPSTREAM_TIMEOUT_SECONDS,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
        )

    def has_credential(self, upstream: str) -> bool:
        return has_credential(upstream, self.config)

    async def send(self, request: HttpRequest) -> HttpResponse:
        upstream = get_upstream(request.upstream)
        if upstream is None:
            raise InvalidRequestError(f"Unknown upstream '{request.upstream}'")
        if not has_credential(upstream.name, self.config):
            raise MissingCredentialError(f"{upstream.credential_setting} is not configured")

        headers, params = inject_credentials(upstream, request.headers, request.params, self.config)
        timeout = request.timeout or self.config.UPSTREAM_TIMEOUT_SECONDS
        try:
            resp = await self.client.request(
                request.method,
                upstream.url(request.endpoint),
                params=params or None,
                json=request.json_body,
                headers=headers,
                timeout=timeout,
            )
        except httpx.TransportError as exc:
            raise NetworkError(f"{request.target}: {type(exc).__name__}: {exc}") from exc

        return HttpResponse(status=resp.status_code, body=resp.text, headers=dict(resp.headers))

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()


class ProxyTransport(Transport):
    """Routes requests through the serverless proxy as ``{api, endpoint, params}``."""

    def __init__(
        self,
        proxy_url: str,
        client: Optional[httpx.AsyncClient] = None,
        config: Optional[Settings] = None,
    ):
        self.config = config or default_settings
        self.proxy_url = proxy_url
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=self.config.UPSTREAM_TIMEOUT_SECONDS,
            headers={"User-Agent": USER_AGENT},
        )

    def has_credential(self, upstream: str) -> bool:
        # Credentials live in the proxy's environment
        return get_upstream(upstream) is not None

    async def send(self, request: HttpRequest) -> HttpResponse:
        payload = request.json_body if request.method == "POST" else request.params
        query = {
            "api": request.upstream,
            "endpoint": request.endpoint,
            "params": json.dumps(payload or {}),
        }
        timeout = request.timeout or self.config.UPSTREAM_TIMEOUT_SECONDS
        try:
            if request.method == "POST":
                resp = await self.client.post(self.proxy_url, params=query, json=payload, timeout=timeout)
            else:
                resp = await self.client.get(self.proxy_url, params=query, timeout=timeout)
        except httpx.TransportError as exc:
            raise NetworkError(f"proxy -> {request.target}: {type(exc).__name__}: {exc}") from exc

        return HttpResponse(status=resp.status_code, body=resp.text, headers=dict(resp.headers))

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()


def build_transport(config: Optional[Settings] = None) -> Transport:
    config = config or default_settings
    if config.PROXY_URL:
        log.info(f"Routing upstream calls through proxy at {config.PROXY_URL}")
        return ProxyTransport(config.PROXY_URL, config=config)
    return HttpxTransport(config=config)
