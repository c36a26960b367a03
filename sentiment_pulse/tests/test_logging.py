"""Slack alert sink tests"""

import pytest
from loguru import logger

from sentiment_pulse.core.logging import SlackAlertSink, get_logger


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestSlackAlertSink:
    """Repeated fetch failures alert once per cooldown window"""

    @pytest.fixture
    def alerts(self):
        posted = []
        clock = FakeClock()
        sink = SlackAlertSink(
            "https://hooks.slack.test/T000",
            cooldown=900,
            post=lambda url, text: posted.append((url, text)),
            clock=clock,
        )
        handler_id = logger.add(sink, level="ERROR")
        yield posted, clock
        logger.remove(handler_id)

    def test_repeated_error_is_throttled(self, alerts):
        posted, clock = alerts
        log = get_logger("gateway")

        log.error("SANTIMENT_API_KEY is not configured, santiment requests disabled")
        clock.now = 300
        log.error("SANTIMENT_API_KEY is not configured, santiment requests disabled")
        assert len(posted) == 1

        clock.now = 901
        log.error("SANTIMENT_API_KEY is not configured, santiment requests disabled")
        assert len(posted) == 2

    def test_distinct_errors_are_all_sent(self, alerts):
        posted, _ = alerts
        get_logger("gateway").error("kind=events coin=* outcome=failure kind=Exhausted: down")
        get_logger("ingestion.chain").error("kind=events coin=* outcome=failure kind=Exhausted: down")
        get_logger("gateway").error("kind=onchain coin=BTC outcome=failure kind=Timeout: slow")
        assert len(posted) == 3

    def test_fetch_context_in_alert(self, alerts):
        posted, _ = alerts
        get_logger("gateway").bind(kind="sentiment", coin="ETH").error("outcome=failure kind=Timeout")

        url, text = posted[0]
        assert url == "https://hooks.slack.test/T000"
        assert text.startswith("[ERROR] gateway:")
        assert "(kind=sentiment coin=ETH)" in text.splitlines()[0]
        assert text.splitlines()[1] == "outcome=failure kind=Timeout"

    def test_warnings_are_not_sent(self, alerts):
        posted, _ = alerts
        get_logger("ingestion.retry").warning("attempt=1/3 target=santiment:bitcoin outcome=retryable")
        assert posted == []
