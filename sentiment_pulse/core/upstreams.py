"""Canonical upstream table: base URLs and credential injection.

Both the direct transport and the serverless proxy inject credentials from
this one table, so a provider is always authenticated the same way.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Literal, Optional, Tuple
from urllib.parse import urlparse

from sentiment_pulse.core.config import Settings, settings as default_settings


@dataclass(frozen=True)
class Upstream:
    name: str
    base_url: str
    credential_setting: str
    auth_style: Literal["header", "query"]
    auth_name: str
    auth_prefix: str = ""
    credential_required: bool = True

    @property
    def host(self) -> str:
        return urlparse(self.base_url).netloc

    def url(self, endpoint: str) -> str:
        return f"{self.base_url.rstrip('/')}/{endpoint.lstrip('/')}"


UPSTREAMS: Dict[str, Upstream] = {
    "santiment": Upstream(
        name="santiment",
        base_url="https://api.santiment.net",
        credential_setting="SANTIMENT_API_KEY",
        auth_style="header",
        auth_name="Authorization",
        auth_prefix="Apikey ",
    ),
    "coinmetrics": Upstream(
        name="coinmetrics",
        base_url="https://community-api.coinmetrics.io/v4",
        credential_setting="COINMETRICS_API_KEY",
        auth_style="query",
        auth_name="api_key",
        credential_required=False,
    ),
    "cryptopanic": Upstream(
        name="cryptopanic",
        base_url="https://cryptopanic.com/api/v1",
        credential_setting="CRYPTOPANIC_API_TOKEN",
        auth_style="query",
        auth_name="auth_token",
    ),
    "openai": Upstream(
        name="openai",
        base_url="https://api.openai.com/v1",
        credential_setting="OPENAI_API_KEY",
        auth_style="header",
        auth_name="Authorization",
        auth_prefix="Bearer ",
    ),
    "newsapi": Upstream(
        name="newsapi",
        base_url="https://newsapi.org/v2",
        credential_setting="NEWSAPI_KEY",
        auth_style="header",
        auth_name="X-Api-Key",
    ),
}


def get_upstream(name: str) -> Optional[Upstream]:
    return UPSTREAMS.get(name)


def upstream_for_url(url: str) -> Optional[Upstream]:
    """Find the upstream whose host matches a full URL."""
    host = urlparse(url).netloc
    for upstream in UPSTREAMS.values():
        if upstream.host == host:
            return upstream
    return None


def credential_for(upstream: Upstream, config: Optional[Settings] = None) -> Optional[str]:
    config = config or default_settings
    value = getattr(config, upstream.credential_setting, None)
    return value or None


def has_credential(name: str, config: Optional[Settings] = None) -> bool:
    """True when the upstream can be called: key present or not required."""
    upstream = UPSTREAMS.get(name)
    if upstream is None:
        return False
    if not upstream.credential_required:
        return True
    return credential_for(upstream, config) is not None


def inject_credentials(
    upstream: Upstream,
    headers: Dict[str, str],
    params: Dict[str, Any],
    config: Optional[Settings] = None,
) -> Tuple[Dict[str, str], Dict[str, Any]]:
    """Return copies of ``headers`` and ``params`` with the upstream's credential applied."""
    headers = dict(headers)
    params = dict(params)
    token = credential_for(upstream, config)
    if token is None:
        return headers, params

    if upstream.auth_style == "header":
        headers[upstream.auth_name] = f"{upstream.auth_prefix}{token}"
    else:
        params[upstream.auth_name] = token
    return headers, params
