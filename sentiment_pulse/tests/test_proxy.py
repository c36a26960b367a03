"""Serverless proxy tests"""

import json

import httpx
import pytest

from sentiment_pulse import proxy
from sentiment_pulse.core.config import Settings


class TestProxyHandler:
    """Routing, credential injection and error bodies"""

    @pytest.fixture
    def keys(self):
        return Settings(
            _env_file=None,
            SANTIMENT_API_KEY="san-key",
            CRYPTOPANIC_API_TOKEN="cp-token",
            OPENAI_API_KEY="sk-test",
            NEWSAPI_KEY="news-key",
        )

    @pytest.fixture
    def upstream(self):
        """httpx client whose requests are recorded and answered by ``reply``"""
        seen = []
        state = {"reply": httpx.Response(200, json={"ok": True})}

        def handle(request):
            seen.append(request)
            reply = state["reply"]
            if isinstance(reply, Exception):
                raise reply
            return reply

        client = httpx.Client(transport=httpx.MockTransport(handle))
        yield client, seen, state
        client.close()

    def call(self, upstream, keys, method="GET", body=None, **query):
        client, _, _ = upstream
        event = {"httpMethod": method, "queryStringParameters": query, "body": body}
        return proxy.handler(event, None, client=client, config=keys)

    def test_options_preflight(self):
        result = proxy.handler({"httpMethod": "OPTIONS"}, None)
        assert result["statusCode"] == 204
        assert result["headers"]["Access-Control-Allow-Origin"] == "*"
        assert result["headers"]["Access-Control-Allow-Methods"] == "GET,POST,OPTIONS"

    def test_missing_api_or_endpoint(self, upstream, keys):
        result = self.call(upstream, keys, api="santiment")
        assert result["statusCode"] == 400
        assert json.loads(result["body"])["error"] == "Missing api or endpoint parameter"
        assert result["headers"]["Access-Control-Allow-Origin"] == "*"

    def test_unsupported_api(self, upstream, keys):
        result = self.call(upstream, keys, api="reddit", endpoint="r/CryptoCurrency")
        assert result["statusCode"] == 400
        assert json.loads(result["body"])["error"] == "Unsupported API"

    def test_invalid_params_json(self, upstream, keys):
        result = self.call(upstream, keys, api="coinmetrics", endpoint="timeseries/asset-metrics", params="{nope")
        body = json.loads(result["body"])
        assert result["statusCode"] == 400
        assert body["error"] == "Invalid params format"
        assert body["details"]

    def test_cryptopanic_token_in_query(self, upstream, keys):
        _, seen, _ = upstream
        result = self.call(upstream, keys, api="cryptopanic", endpoint="posts/", params='{"currencies": "BTC"}')

        assert result["statusCode"] == 200
        assert json.loads(result["body"]) == {"ok": True}
        request = seen[0]
        assert request.url.host == "cryptopanic.com"
        assert request.url.path == "/api/v1/posts/"
        assert request.url.params["auth_token"] == "cp-token"
        assert request.url.params["currencies"] == "BTC"

    def test_santiment_post_with_apikey_header(self, upstream, keys):
        _, seen, _ = upstream
        payload = {"query": "{ getMetric }", "variables": {"slug": "bitcoin"}}
        result = self.call(upstream, keys, method="POST", body=json.dumps(payload), api="santiment", endpoint="graphql")

        assert result["statusCode"] == 200
        request = seen[0]
        assert request.method == "POST"
        assert request.headers["Authorization"] == "Apikey san-key"
        assert json.loads(request.content) == payload

    def test_openai_bearer_token(self, upstream, keys):
        _, seen, _ = upstream
        self.call(upstream, keys, method="POST", body='{"model": "gpt-3.5-turbo"}', api="openai", endpoint="chat/completions")
        assert seen[0].headers["Authorization"] == "Bearer sk-test"

    def test_newsapi_key_header(self, upstream, keys):
        _, seen, _ = upstream
        self.call(upstream, keys, api="newsapi", endpoint="everything", params='{"q": "bitcoin"}')
        assert seen[0].headers["X-Api-Key"] == "news-key"

    def test_url_form_with_graphql_query(self, upstream, keys):
        _, seen, _ = upstream
        result = self.call(upstream, keys, url="https://api.santiment.net/graphql", query="{ projects { slug } }")

        assert result["statusCode"] == 200
        assert seen[0].method == "POST"
        assert json.loads(seen[0].content) == {"query": "{ projects { slug } }"}
        assert seen[0].headers["Authorization"] == "Apikey san-key"

    def test_url_form_rejects_unknown_host(self, upstream, keys):
        _, seen, _ = upstream
        result = self.call(upstream, keys, url="https://evil.example.com/steal")
        assert result["statusCode"] == 400
        assert seen == []

    def test_upstream_error_status_is_forwarded(self, upstream, keys):
        _, _, state = upstream
        state["reply"] = httpx.Response(401, text="invalid token")
        result = self.call(upstream, keys, api="cryptopanic", endpoint="posts/")

        body = json.loads(result["body"])
        assert result["statusCode"] == 401
        assert body["details"] == "invalid token"
        assert "401" in body["error"]

    def test_network_failure_is_500(self, upstream, keys):
        _, _, state = upstream
        state["reply"] = httpx.ConnectError("connection refused")
        result = self.call(upstream, keys, api="coinmetrics", endpoint="timeseries/asset-metrics")

        assert result["statusCode"] == 500
        assert json.loads(result["body"])["error"] == "connection refused"
