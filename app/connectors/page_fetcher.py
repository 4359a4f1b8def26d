"""
app/connectors/page_fetcher.py

Single-page HTTP fetch against an arbitrary third-party API.

HTTP error statuses are returned as outcome values, never raised.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, ClassVar, Union

import requests

from app.config import ExternalHTTPSettings

logger = logging.getLogger(__name__)

BODYLESS_METHODS = frozenset({"GET", "HEAD"})
INVALID_REQUEST_CODE = "InvalidRequest"
RATE_LIMIT_MARKERS = ("rate limit", "rate_limit", "ratelimit", "too many requests")
AUTH_SUGGESTIONS = (
    "Check if the authentication token/key is correct and complete",
    "Verify the token has not expired",
    "Ensure the token has the necessary permissions",
    "Verify you are using the correct authentication method",
)


@dataclass(frozen=True)
class PageOk:
    kind: ClassVar[str] = "ok"

    status: int
    headers: dict[str, str]
    body: Any


@dataclass(frozen=True)
class PageAuthError:
    kind: ClassVar[str] = "auth_error"

    status: int
    status_text: str
    details: Any
    suggestions: tuple[str, ...] = field(default=AUTH_SUGGESTIONS)


@dataclass(frozen=True)
class PageRateLimited:
    kind: ClassVar[str] = "rate_limited"

    status: int
    status_text: str
    details: Any


@dataclass(frozen=True)
class PageClientOrServerError:
    kind: ClassVar[str] = "target_api_error"

    status: int
    status_text: str
    details: Any


@dataclass(frozen=True)
class PageTransportFailure:
    kind: ClassVar[str] = "transport_failure"

    reason: str
    code: str | None = None


FetchOutcome = Union[
    PageOk,
    PageAuthError,
    PageRateLimited,
    PageClientOrServerError,
    PageTransportFailure,
]


def describe_outcome(outcome: FetchOutcome) -> dict[str, Any]:
    """
    Build the error detail stored on a terminal page record.
    """

    if isinstance(outcome, PageTransportFailure):
        return {
            "kind": outcome.kind,
            "error": "Connection Failed" if outcome.code == "ConnectionError" else "Request Failed",
            "details": outcome.reason,
            "code": outcome.code,
        }
    if isinstance(outcome, PageOk):
        return {"kind": outcome.kind, "status": outcome.status}

    detail: dict[str, Any] = {
        "kind": outcome.kind,
        "status": outcome.status,
        "status_text": outcome.status_text,
        "details": outcome.details,
    }
    if isinstance(outcome, PageAuthError):
        detail["error"] = "Authentication Failed"
        detail["suggestions"] = list(outcome.suggestions)
    elif isinstance(outcome, PageRateLimited):
        detail["error"] = "Rate Limited"
    else:
        detail["error"] = "API Request Failed"
    return detail


class PageFetcher:
    """
    Issues one outbound call per page and normalizes its result.

    One instance belongs to one execution; it owns its HTTP session and the
    minimum spacing between that execution's requests.
    """

    def __init__(
        self,
        *,
        http_settings: ExternalHTTPSettings,
        session: requests.Session | None = None,
    ) -> None:
        self._session = session or requests.Session()
        self._timeout_seconds = http_settings.timeout_seconds
        self._min_request_interval_seconds = (
            1.0 / http_settings.rate_limit_per_second if http_settings.rate_limit_per_second > 0 else 0.0
        )
        self._last_request_monotonic: float = 0.0

    def fetch(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        body: Any = None,
    ) -> FetchOutcome:
        normalized_method = method.strip().upper()
        request_kwargs: dict[str, Any] = {
            "method": normalized_method,
            "url": url,
            "headers": headers or None,
            "timeout": self._timeout_seconds,
        }
        if body is not None and normalized_method not in BODYLESS_METHODS:
            if isinstance(body, (str, bytes)):
                request_kwargs["data"] = body
            else:
                request_kwargs["json"] = body

        self._apply_rate_limit()
        try:
            response = self._session.request(**request_kwargs)
        except requests.Timeout as exc:
            return PageTransportFailure(reason=str(exc) or "Request timed out", code="Timeout")
        except requests.ConnectionError as exc:
            return PageTransportFailure(
                reason=str(exc) or "Could not connect to the server",
                code="ConnectionError",
            )
        except (
            requests.exceptions.InvalidURL,
            requests.exceptions.InvalidSchema,
            requests.exceptions.MissingSchema,
        ) as exc:
            return PageTransportFailure(reason=str(exc), code=INVALID_REQUEST_CODE)
        except requests.RequestException as exc:
            return PageTransportFailure(reason=str(exc), code=type(exc).__name__)

        return classify_response(
            status=response.status_code,
            status_text=response.reason or "",
            headers={key.lower(): value for key, value in response.headers.items()},
            body=_parse_body(response),
        )

    def close(self) -> None:
        self._session.close()

    def _apply_rate_limit(self) -> None:
        """
        Enforce minimum interval between outbound requests.
        """

        if self._min_request_interval_seconds <= 0:
            return

        now = time.monotonic()
        elapsed = now - self._last_request_monotonic
        remaining = self._min_request_interval_seconds - elapsed
        if remaining > 0:
            time.sleep(remaining)
        self._last_request_monotonic = time.monotonic()


def classify_response(
    *,
    status: int,
    status_text: str,
    headers: dict[str, str],
    body: Any,
) -> FetchOutcome:
    if status == 429:
        return PageRateLimited(status=status, status_text=status_text, details=body)
    if 400 <= status < 500 and _mentions_rate_limit(body):
        return PageRateLimited(status=status, status_text=status_text, details=body)
    if status in (401, 403):
        return PageAuthError(status=status, status_text=status_text, details=body)
    if status >= 400:
        return PageClientOrServerError(status=status, status_text=status_text, details=body)
    return PageOk(status=status, headers=headers, body=body)


def _parse_body(response: requests.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _mentions_rate_limit(body: Any) -> bool:
    if body is None:
        return False
    if isinstance(body, str):
        text = body
    else:
        try:
            text = json.dumps(body, default=str)
        except (TypeError, ValueError):
            text = str(body)
    lowered = text.lower()
    return any(marker in lowered for marker in RATE_LIMIT_MARKERS)
