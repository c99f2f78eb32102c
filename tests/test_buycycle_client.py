# tests/test_buycycle_client.py

"""Tests for the buycycle snapshot fetcher using mocked HTTP responses."""

import json
import unittest
from typing import Any
from unittest.mock import MagicMock, patch

from bikewatch.config.settings import Settings
from bikewatch.scrapers.buycycle_client import (
    BuycycleClient,
    build_request_body,
    extract_bikes,
)
from bikewatch.scrapers.credentials import StaticCredentialProvider
from bikewatch.scrapers.errors import FetchError, MissingAuthContextError

API_BODY: dict[str, Any] = {
    "bikes": {
        "data": [
            {"id": 1, "price": 4299, "slug": "orbea-rise-1"},
            {"id": 2, "price": 5100, "slug": "orbea-rise-2"},
        ],
        "total": 2,
    }
}


def _response(status: int = 200, body: Any = None) -> MagicMock:
    """Build a mock curl_cffi response."""
    resp = MagicMock()
    resp.status_code = status
    if isinstance(body, Exception):
        resp.json.side_effect = body
    else:
        resp.json.return_value = API_BODY if body is None else body
    return resp


class TestRequestBody(unittest.TestCase):
    """The fixed filter payload."""

    def test_payload_fields(self) -> None:
        body = build_request_body()
        self.assertEqual(body["brands"], ["orbea"])
        self.assertEqual(body["families"], ["rise"])
        self.assertEqual(body["frame-sizes"], ["m"])
        self.assertEqual(body["frame-material"], ["carbon"])
        self.assertEqual(body["sort-by"], "new")
        self.assertEqual(body["perPage"], 51)
        self.assertEqual(body["filter_url"], Settings.FILTER_URL)
        self.assertIsNone(body["recommendationVersion"])
        self.assertEqual(body["distinct_id"], "")

    def test_custom_filter_url(self) -> None:
        self.assertEqual(
            build_request_body("/pl-pl/shop/x")["filter_url"], "/pl-pl/shop/x",
        )


class TestExtractBikes(unittest.TestCase):
    """Pulling listings out of the response body."""

    def test_happy_path(self) -> None:
        self.assertEqual(len(extract_bikes(API_BODY)), 2)

    def test_missing_bikes_key(self) -> None:
        self.assertEqual(extract_bikes({}), [])
        self.assertEqual(extract_bikes({"bikes": {"data": None}}), [])

    def test_non_object_body(self) -> None:
        with self.assertRaises(FetchError):
            extract_bikes(["unexpected"])


class TestBuycycleClient(unittest.TestCase):
    """fetch_snapshot behaviour."""

    def setUp(self) -> None:
        """A client with captured headers and a mocked session."""
        self.session = MagicMock()
        self.credentials = StaticCredentialProvider(
            {"Cookie": "session=abc", "Content-Length": "10"}
        )
        self.client = BuycycleClient(self.credentials, session=self.session)

    def test_fetch_returns_listings(self) -> None:
        self.session.post.return_value = _response()

        bikes = self.client.fetch_snapshot()

        self.assertEqual([b["id"] for b in bikes], [1, 2])
        call = self.session.post.call_args
        self.assertEqual(call.args[0], Settings.API_URL)
        headers = call.kwargs["headers"]
        self.assertEqual(headers["Cookie"], "session=abc")
        self.assertEqual(headers["Content-Type"], "application/json")
        self.assertNotIn("Content-Length", headers)
        self.assertEqual(call.kwargs["json"]["perPage"], 51)

    def test_missing_headers_skip_the_request(self) -> None:
        client = BuycycleClient(
            StaticCredentialProvider(), session=self.session,
        )
        with self.assertRaises(MissingAuthContextError):
            client.fetch_snapshot()
        self.session.post.assert_not_called()

    def test_network_error_after_retries(self) -> None:
        self.session.post.side_effect = ConnectionError("connection reset")

        with self.assertRaises(FetchError) as ctx:
            self.client.fetch_snapshot()

        self.assertIn("connection reset", str(ctx.exception))
        self.assertEqual(
            self.session.post.call_count, Settings.MAX_RETRIES,
        )

    def test_retries_transient_failure(self) -> None:
        self.session.post.side_effect = [
            ConnectionError("timeout"),
            _response(),
        ]
        self.assertEqual(len(self.client.fetch_snapshot()), 2)

    def test_rate_limit_escalates_delay(self) -> None:
        self.session.post.side_effect = [_response(429), _response()]

        self.client.fetch_snapshot()

        self.assertEqual(self.session.post.call_count, 2)

    def test_client_error_is_not_retried(self) -> None:
        self.session.post.return_value = _response(401)

        with self.assertRaises(FetchError) as ctx:
            self.client.fetch_snapshot()

        self.assertIn("HTTP 401", str(ctx.exception))
        self.assertEqual(self.session.post.call_count, 1)

    def test_server_error_exhausts_retries(self) -> None:
        self.session.post.return_value = _response(503)

        with self.assertRaises(FetchError):
            self.client.fetch_snapshot()
        self.assertEqual(
            self.session.post.call_count, Settings.MAX_RETRIES,
        )

    def test_server_error_backs_off_before_retry(self) -> None:
        """5xx retries wait like transport errors do."""
        self.session.post.side_effect = [_response(502), _response()]

        with patch("time.sleep") as mock_sleep:
            self.client.fetch_snapshot()

        mock_sleep.assert_called_once_with(Settings.REQUEST_DELAY)
        self.assertEqual(self.session.post.call_count, 2)

    def test_undecodable_body(self) -> None:
        self.session.post.return_value = _response(
            body=json.JSONDecodeError("Expecting value", "<html>", 0)
        )
        with self.assertRaises(FetchError):
            self.client.fetch_snapshot()

    @patch("bikewatch.scrapers.buycycle_client.curl_requests.Session")
    def test_default_session_impersonates_browser(
        self, mock_session_cls: MagicMock,
    ) -> None:
        BuycycleClient(self.credentials)
        mock_session_cls.assert_called_once_with(
            impersonate=Settings.IMPERSONATE_BROWSER
        )


if __name__ == "__main__":
    unittest.main()
