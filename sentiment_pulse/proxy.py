"""Serverless proxy that keeps provider credentials off the client.

Deploy ``handler`` as a Netlify/Lambda function; the API also mounts it at
``/api/proxy``. Two request shapes are accepted in the query string:

    ?api=santiment&endpoint=graphql&params={"query": "..."}
    ?url=https://api.santiment.net/graphql&query={...}

The credential for the target upstream is injected from the environment, the
call is forwarded with a fixed timeout, and the upstream status and body come
back verbatim. Every response carries CORS headers.
"""

import json
from typing import Any, Dict, Optional, Tuple

import httpx

from sentiment_pulse.core.config import Settings, settings as default_settings
from sentiment_pulse.core.logging import get_logger
from sentiment_pulse.core.upstreams import Upstream, get_upstream, inject_credentials, upstream_for_url

log = get_logger("proxy")

USER_AGENT = "CryptoSentimentPulse/1.0"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET,POST,OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type,Authorization",
}


class ProxyRequestError(ValueError):
    """The incoming request cannot be routed (answered with 400)."""

    def __init__(self, error: str, details: Optional[str] = None):
        super().__init__(error)
        self.error = error
        self.details = details


def _response(status: int, body: str = "", content_type: Optional[str] = "application/json") -> Dict[str, Any]:
    headers = dict(CORS_HEADERS)
    if content_type:
        headers["Content-Type"] = content_type
    return {"statusCode": status, "headers": headers, "body": body}


def _error(status: int, error: str, details: Any = None) -> Dict[str, Any]:
    return _response(status, json.dumps({"error": error, "details": details}))


def _parse_json(raw: Optional[str], what: str) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ProxyRequestError(f"Invalid {what} format", str(exc)) from exc


def resolve_target(event: Dict[str, Any]) -> Tuple[Upstream, str, str, Dict[str, Any], Optional[Any]]:
    """Turn an incoming event into (upstream, url, method, query params, json body)."""
    query = event.get("queryStringParameters") or {}
    method = (event.get("httpMethod") or "GET").upper()
    body = _parse_json(event.get("body"), "body") if method == "POST" else None

    if query.get("url"):
        url = query["url"]
        if not url.startswith("http"):
            raise ProxyRequestError("Invalid or missing URL parameter")
        upstream = upstream_for_url(url)
        if upstream is None:
            raise ProxyRequestError("Unsupported API", f"host not allowed: {url}")
        graphql = query.get("query")
        if graphql:
            return upstream, url, "POST", {}, {"query": graphql}
        return upstream, url, method, {}, body

    api, endpoint = query.get("api"), query.get("endpoint")
    if not api or not endpoint:
        raise ProxyRequestError("Missing api or endpoint parameter")
    upstream = get_upstream(api)
    if upstream is None:
        raise ProxyRequestError("Unsupported API", f"unknown api: {api}")

    params = _parse_json(query.get("params"), "params") or {}
    if not isinstance(params, dict):
        raise ProxyRequestError("Invalid params format", "params must be a JSON object")

    if method == "POST":
        return upstream, upstream.url(endpoint), "POST", {}, body if body is not None else params
    return upstream, upstream.url(endpoint), "GET", params, None


def forward(
    event: Dict[str, Any],
    client: httpx.Client,
    config: Optional[Settings] = None,
) -> Dict[str, Any]:
    config = config or default_settings
    try:
        upstream, url, method, params, body = resolve_target(event)
    except ProxyRequestError as exc:
        log.warning(f"Rejected proxy request: {exc.error} ({exc.details})")
        return _error(400, exc.error, exc.details)

    headers, params = inject_credentials(
        upstream,
        {"Accept": "application/json", "User-Agent": USER_AGENT},
        params,
        config,
    )
    log.info(f"Proxying {method} {upstream.name} -> {url}")

    try:
        if method == "POST":
            resp = client.post(url, params=params, json=body, headers=headers, timeout=config.UPSTREAM_TIMEOUT_SECONDS)
        else:
            resp = client.get(url, params=params, headers=headers, timeout=config.UPSTREAM_TIMEOUT_SECONDS)
    except httpx.HTTPError as exc:
        log.error(f"Proxy error for {upstream.name}: {type(exc).__name__}: {exc}")
        return _error(500, str(exc) or type(exc).__name__, None)

    if resp.status_code >= 400:
        log.warning(f"Upstream {upstream.name} returned HTTP {resp.status_code}")
        return _error(resp.status_code, f"Upstream returned HTTP {resp.status_code}", resp.text[:2000])

    return _response(resp.status_code, resp.text, resp.headers.get("content-type"))


def handler(
    event: Dict[str, Any],
    context: Any = None,
    client: Optional[httpx.Client] = None,
    config: Optional[Settings] = None,
) -> Dict[str, Any]:
    """Function entry point: ``{statusCode, headers, body}`` like the hosting platform expects."""
    if (event.get("httpMethod") or "GET").upper() == "OPTIONS":
        return _response(204, "", content_type=None)

    if client is not None:
        return forward(event, client, config)
    with httpx.Client(follow_redirects=True) as owned:
        return forward(event, owned, config)


# For local testing
if __name__ == "__main__":
    import sys

    if len(sys.argv) < 3:
        print("usage: python -m sentiment_pulse.proxy <api> <endpoint> [params-json]")
        sys.exit(2)
    result = handler(
        {
            "httpMethod": "GET",
            "queryStringParameters": {
                "api": sys.argv[1],
                "endpoint": sys.argv[2],
                "params": sys.argv[3] if len(sys.argv) > 3 else "{}",
            },
        },
        None,
    )
    print(json.dumps(result, indent=2))
