"""Abstract provider adapter interface."""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Generic, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from sentiment_pulse.core.errors import InvalidResponseFormatError, ParseError, error_for_status
from sentiment_pulse.ingestion.transport import HttpRequest, HttpResponse

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

HTML_MARKERS = ("<!doctype html", "<html", "<head>", "<body")

_FRACTION_RE = re.compile(r"\.(\d{6})\d+")


class BaseAdapter(ABC, Generic[T]):
    """Maps one provider's request/response shapes to a normalized entity."""

    name: str
    upstream: str

    @abstractmethod
    def build_request(self, slug: str, params: Optional[Dict[str, Any]] = None) -> HttpRequest:
        """Build the provider request for a coin slug."""

    @abstractmethod
    def parse_response(self, response: HttpResponse, coin: str) -> T:
        """Turn a raw response into a domain entity or raise a ``FetchError``."""

    @staticmethod
    def raise_for_status(response: HttpResponse, target: str) -> None:
        if response.status < 400:
            return
        detail = response.body[:200] if response.body else "no body"
        raise error_for_status(response.status, f"{target}: {detail}")

    @staticmethod
    def decode_json(response: HttpResponse) -> Any:
        """Decode a JSON body, rejecting HTML error pages and non-JSON text."""
        body = (response.body or "").strip()
        if "html" in response.content_type.lower():
            raise InvalidResponseFormatError("upstream returned an HTML page instead of JSON")
        if body and body[0] in "{[":
            try:
                return json.loads(body)
            except json.JSONDecodeError as exc:
                raise InvalidResponseFormatError(f"malformed JSON: {exc}") from exc

        # Only non-JSON bodies are scanned; JSON string values may quote markup
        lowered = body[:512].lower()
        if any(marker in lowered for marker in HTML_MARKERS):
            raise InvalidResponseFormatError("upstream returned an HTML page instead of JSON")
        raise InvalidResponseFormatError(f"response is not JSON: {body[:80]!r}")

    @staticmethod
    def validate(model: Type[M], payload: Any) -> M:
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise ParseError(f"{model.__name__}: {exc.error_count()} validation error(s): {exc.errors()[0]['msg']}") from exc

    @staticmethod
    def _parse_timestamp(value: Any) -> Optional[datetime]:
        if not value:
            return None
        try:
            if isinstance(value, datetime):
                return value.astimezone(timezone.utc)
            if isinstance(value, (int, float)):
                return datetime.fromtimestamp(value, tz=timezone.utc)
            if isinstance(value, str):
                value = _FRACTION_RE.sub(r".\1", value.replace("Z", "+00:00"))
                parsed = datetime.fromisoformat(value)
                if parsed.tzinfo is None:
                    parsed = parsed.replace(tzinfo=timezone.utc)
                return parsed.astimezone(timezone.utc)
        except (ValueError, OverflowError, OSError):
            return None
        return None
