"""Application logging with Loguru + Slack alerts for failed fetches."""

import logging
import sys
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

import httpx
from loguru import logger

from sentiment_pulse.core.config import Settings, settings

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {extra[name]}:{function}:{line} | {message}"

# Track if logging is already configured to prevent duplicates
_logging_configured = False


class InterceptHandler(logging.Handler):
    """Redirect stdlib logs (httpx, uvicorn) to Loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_name == "emit":
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _post_to_slack(webhook_url: str, text: str) -> None:
    try:
        httpx.post(webhook_url, json={"text": text}, timeout=5.0)
    except httpx.HTTPError as exc:
        # Logging from inside a sink would recurse
        sys.stderr.write(f"Slack notification failed: {exc}\n")


class SlackAlertSink:
    """
    Loguru sink posting ERROR records to a Slack webhook.

    A failing provider logs the same error on every scheduled refresh, so an
    alert with the same logger name and message is posted at most once per
    ``cooldown`` seconds. Fetch context bound as ``kind``/``coin`` is included.
    """

    def __init__(
        self,
        webhook_url: str,
        cooldown: float,
        post: Callable[[str, str], None] = _post_to_slack,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.webhook_url = webhook_url
        self.cooldown = cooldown
        self.post = post
        self.clock = clock
        self._last_sent: Dict[Tuple[str, str], float] = {}

    def __call__(self, message: Any) -> None:
        record = message.record
        extra = record["extra"]
        name = extra.get("name") or record.get("name", "sentiment_pulse")
        key = (name, record["message"][:200])

        now = self.clock()
        last = self._last_sent.get(key)
        if last is not None and now - last < self.cooldown:
            return
        self._last_sent[key] = now

        context = " ".join(f"{field}={extra[field]}" for field in ("kind", "coin") if field in extra)
        header = f"[{record['level'].name}] {name}:{record['function']}:{record['line']}"
        if context:
            header = f"{header} ({context})"
        self.post(self.webhook_url, f"{header}\n{record['message']}")


def _resolve_level(raw: Optional[str]) -> str:
    level = (raw or "INFO").strip().upper()
    level = {
        "WARN": "WARNING",
        "FATAL": "CRITICAL",
    }.get(level, level)
    if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
        level = "INFO"
    return level


def configure_logging(config: Optional[Settings] = None) -> None:
    global _logging_configured

    if _logging_configured:
        return
    _logging_configured = True

    config = config or settings
    level = _resolve_level(config.effective_log_level)

    logger.remove()
    logger.configure(extra={"name": "sentiment_pulse"})
    logger.add(
        sys.stdout,
        level=level,
        format=LOG_FORMAT,
        backtrace=False,
        diagnose=False,
    )

    if config.LOG_DIR:
        log_dir = Path(config.LOG_DIR)
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_dir / "sentiment_pulse.log",
            level=level,
            format=LOG_FORMAT,
            rotation="10 MB",
            retention="14 days",
            enqueue=True,
            backtrace=False,
            diagnose=False,
        )

    if config.SLACK_WEBHOOK_URL:
        sink = SlackAlertSink(config.SLACK_WEBHOOK_URL, cooldown=config.SLACK_ALERT_COOLDOWN_SECONDS)
        logger.add(sink, level="ERROR", enqueue=True)

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    # httpx logs every request at INFO; the retry engine already logs each attempt
    logging.getLogger("httpx").setLevel(logging.WARNING)

    for logger_name in ["uvicorn", "uvicorn.error", "uvicorn.access"]:
        logging.getLogger(logger_name).handlers = [InterceptHandler()]
        logging.getLogger(logger_name).propagate = False


def get_logger(name: str) -> logger.__class__:
    return logger.bind(name=name)


configure_logging()
