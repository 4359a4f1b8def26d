"""
tests/test_page_fetcher.py

PageFetcher against a mocked ``requests.Session``: no network I/O.
"""

from __future__ import annotations

import unittest
from typing import Any
from unittest import mock

import requests

from app.config import ExternalHTTPSettings
from app.connectors.page_fetcher import (
    AUTH_SUGGESTIONS,
    INVALID_REQUEST_CODE,
    PageAuthError,
    PageClientOrServerError,
    PageFetcher,
    PageOk,
    PageRateLimited,
    PageTransportFailure,
    classify_response,
    describe_outcome,
)

NO_THROTTLE = ExternalHTTPSettings(timeout_seconds=7.0, rate_limit_per_second=0)


def _response(
    status: int,
    body: Any = None,
    *,
    headers: dict[str, str] | None = None,
    reason: str = "",
    text: str | None = None,
) -> mock.Mock:
    response = mock.Mock(spec=requests.Response)
    response.status_code = status
    response.reason = reason
    response.headers = headers or {}
    if text is not None:
        response.content = text.encode("utf-8")
        response.text = text
        response.json.side_effect = ValueError("not json")
    elif body is None:
        response.content = b""
        response.text = ""
        response.json.side_effect = ValueError("empty")
    else:
        response.content = b"{...}"
        response.json.return_value = body
    return response


class TestPageFetcher(unittest.TestCase):
    def setUp(self) -> None:
        self.session = mock.Mock(spec=requests.Session)
        self.fetcher = PageFetcher(http_settings=NO_THROTTLE, session=self.session)

    def test_get_never_sends_a_body(self) -> None:
        self.session.request.return_value = _response(200, {"items": []})

        self.fetcher.fetch("get", "https://api.example.com/x", {"Authorization": "Bearer t"}, {"q": 1})

        kwargs = self.session.request.call_args.kwargs
        self.assertEqual(kwargs["method"], "GET")
        self.assertEqual(kwargs["url"], "https://api.example.com/x")
        self.assertEqual(kwargs["headers"], {"Authorization": "Bearer t"})
        self.assertEqual(kwargs["timeout"], 7.0)
        self.assertNotIn("json", kwargs)
        self.assertNotIn("data", kwargs)

    def test_structured_body_is_sent_as_json(self) -> None:
        self.session.request.return_value = _response(200, {"items": []})

        self.fetcher.fetch("POST", "https://api.example.com/search", None, {"q": "shoes"})

        kwargs = self.session.request.call_args.kwargs
        self.assertEqual(kwargs["json"], {"q": "shoes"})
        self.assertIsNone(kwargs["headers"])

    def test_text_body_is_sent_as_data(self) -> None:
        self.session.request.return_value = _response(200, {"items": []})

        self.fetcher.fetch("PUT", "https://api.example.com/x", {}, "raw=1")

        self.assertEqual(self.session.request.call_args.kwargs["data"], "raw=1")

    def test_success_returns_parsed_body_and_lowercased_headers(self) -> None:
        self.session.request.return_value = _response(
            200,
            {"data": [1, 2]},
            headers={"Link": '<https://api.example.com/x?page=2>; rel="next"'},
        )

        outcome = self.fetcher.fetch("GET", "https://api.example.com/x")

        self.assertIsInstance(outcome, PageOk)
        self.assertEqual(outcome.status, 200)
        self.assertEqual(outcome.body, {"data": [1, 2]})
        self.assertIn("link", outcome.headers)

    def test_non_json_body_falls_back_to_text(self) -> None:
        self.session.request.return_value = _response(200, text="id,name\n1,a")

        outcome = self.fetcher.fetch("GET", "https://api.example.com/export.csv")

        self.assertEqual(outcome.body, "id,name\n1,a")

    def test_empty_body_is_none(self) -> None:
        self.session.request.return_value = _response(204)

        outcome = self.fetcher.fetch("GET", "https://api.example.com/x")

        self.assertIsInstance(outcome, PageOk)
        self.assertIsNone(outcome.body)

    def test_unauthorized_is_auth_error_with_suggestions(self) -> None:
        self.session.request.return_value = _response(401, {"message": "bad token"}, reason="Unauthorized")

        outcome = self.fetcher.fetch("GET", "https://api.example.com/x")

        self.assertIsInstance(outcome, PageAuthError)
        self.assertEqual(outcome.status_text, "Unauthorized")
        self.assertEqual(outcome.suggestions, AUTH_SUGGESTIONS)

    def test_timeout_is_transport_failure(self) -> None:
        self.session.request.side_effect = requests.Timeout("read timed out")

        outcome = self.fetcher.fetch("GET", "https://api.example.com/x")

        self.assertIsInstance(outcome, PageTransportFailure)
        self.assertEqual(outcome.code, "Timeout")

    def test_connection_error_is_transport_failure(self) -> None:
        self.session.request.side_effect = requests.ConnectionError("refused")

        outcome = self.fetcher.fetch("GET", "https://api.example.com/x")

        self.assertIsInstance(outcome, PageTransportFailure)
        self.assertEqual(outcome.code, "ConnectionError")
        self.assertEqual(describe_outcome(outcome)["error"], "Connection Failed")

    def test_other_request_exceptions_are_transport_failures(self) -> None:
        self.session.request.side_effect = requests.exceptions.TooManyRedirects("loop")

        outcome = self.fetcher.fetch("GET", "https://api.example.com/x")

        self.assertIsInstance(outcome, PageTransportFailure)
        self.assertEqual(outcome.code, "TooManyRedirects")

    def test_malformed_urls_get_the_invalid_request_code(self) -> None:
        for error in (
            requests.exceptions.InvalidURL("bad url"),
            requests.exceptions.InvalidSchema("no adapter for ftp"),
            requests.exceptions.MissingSchema("no scheme"),
        ):
            with self.subTest(error=type(error).__name__):
                self.session.request.side_effect = error

                outcome = self.fetcher.fetch("GET", "https://api.example.com/x")

                self.assertIsInstance(outcome, PageTransportFailure)
                self.assertEqual(outcome.code, INVALID_REQUEST_CODE)

    def test_close_closes_the_session(self) -> None:
        self.fetcher.close()

        self.session.close.assert_called_once_with()


class TestClassifyResponse(unittest.TestCase):
    def _classify(self, status: int, body: Any = None) -> Any:
        return classify_response(status=status, status_text="", headers={}, body=body)

    def test_429_is_rate_limited(self) -> None:
        self.assertIsInstance(self._classify(429), PageRateLimited)

    def test_forbidden_with_rate_limit_message_is_rate_limited(self) -> None:
        outcome = self._classify(403, {"message": "API Rate Limit exceeded for user"})

        self.assertIsInstance(outcome, PageRateLimited)

    def test_rate_limit_marker_in_text_body(self) -> None:
        self.assertIsInstance(self._classify(400, "Too Many Requests, slow down"), PageRateLimited)

    def test_forbidden_without_marker_is_auth_error(self) -> None:
        self.assertIsInstance(self._classify(403, {"message": "forbidden"}), PageAuthError)

    def test_server_error_mentioning_rate_limit_is_not_rate_limited(self) -> None:
        self.assertIsInstance(self._classify(503, {"message": "rate limit backend down"}), PageClientOrServerError)

    def test_other_errors_are_client_or_server_errors(self) -> None:
        for status in (400, 404, 422, 500, 502):
            with self.subTest(status=status):
                self.assertIsInstance(self._classify(status, {"error": "x"}), PageClientOrServerError)

    def test_describe_outcome_reports_target_api_error(self) -> None:
        detail = describe_outcome(
            PageClientOrServerError(status=404, status_text="Not Found", details={"error": "missing"})
        )

        self.assertEqual(
            detail,
            {
                "kind": "target_api_error",
                "status": 404,
                "status_text": "Not Found",
                "details": {"error": "missing"},
                "error": "API Request Failed",
            },
        )


if __name__ == "__main__":
    unittest.main()
