# bikewatch/scrapers/buycycle_client.py

"""Snapshot fetcher for the buycycle.com shop API."""

import json
import logging
import time
from typing import Any

from curl_cffi import requests as curl_requests

from bikewatch.config.settings import Settings
from bikewatch.scrapers.credentials import CredentialProvider
from bikewatch.scrapers.errors import FetchError


def build_request_body(filter_url: str | None = None) -> dict[str, Any]:
    """Return the fixed filter payload the shop page itself sends."""
    return {
        **Settings.FILTER_PAYLOAD,
        "filter_url": filter_url or Settings.FILTER_URL,
        "perPage": Settings.PER_PAGE,
        "distinct_id": "",
        "recommendationVersion": None,
    }


def extract_bikes(data: Any) -> list[dict[str, Any]]:
    """Pull the listing array out of a ``get-content`` response body."""
    if not isinstance(data, dict):
        raise FetchError(
            f"Unexpected response type: {type(data).__name__}"
        )
    bikes = data.get("bikes")
    items = bikes.get("data") if isinstance(bikes, dict) else None
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]


class BuycycleClient:
    """Fetches one page of bike listings with captured browser headers.

    Every call is a complete snapshot for the configured filter. Missing
    headers raise ``MissingAuthContextError`` before any request is made;
    network and decoding failures raise ``FetchError``.
    """

    def __init__(
        self,
        credentials: CredentialProvider,
        session: Any = None,
        filter_url: str | None = None,
    ) -> None:
        self.logger = logging.getLogger("bikewatch.buycycle")
        self.settings = Settings()
        self.credentials = credentials
        self.filter_url = filter_url or self.settings.FILTER_URL
        self.session = session or curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )
        self._current_delay: float = self.settings.REQUEST_DELAY

    def _escalate_delay(self) -> None:
        """Double the current delay up to the configured max."""
        max_delay = (
            self.settings.REQUEST_DELAY
            * self.settings.MAX_DELAY_MULTIPLIER
        )
        self._current_delay = min(self._current_delay * 2, max_delay)
        self.logger.warning(
            "[buycycle] Rate-limited, delay escalated to %.1fs",
            self._current_delay,
        )

    def _post(
        self, headers: dict[str, str], payload: dict[str, Any],
    ) -> Any:
        """POST with retries; returns the 200 response or raises."""
        last_error = "no response"
        for attempt in range(self.settings.MAX_RETRIES):
            try:
                resp = self.session.post(
                    self.settings.API_URL,
                    headers=headers,
                    json=payload,
                    timeout=self.settings.REQUEST_TIMEOUT,
                )
            except Exception as exc:
                last_error = str(exc)
                self.logger.warning(
                    "[buycycle] Request error on attempt %d: %s",
                    attempt + 1,
                    exc,
                    exc_info=True,
                )
                time.sleep(self._current_delay * (attempt + 1))
                continue

            if resp.status_code == 200:
                self._current_delay = self.settings.REQUEST_DELAY
                return resp
            last_error = f"HTTP {resp.status_code}"
            self.logger.warning(
                "[buycycle] HTTP %d on attempt %d",
                resp.status_code,
                attempt + 1,
            )
            if resp.status_code in (429, 403):
                self._escalate_delay()
                time.sleep(self._current_delay)
            elif 400 <= resp.status_code < 500:
                # Client errors (expired session, bad payload) won't heal
                break
            else:
                time.sleep(self._current_delay * (attempt + 1))
        raise FetchError(last_error)

    def fetch_snapshot(self) -> list[dict[str, Any]]:
        """Fetch the current listing set for the configured filter."""
        headers = {
            **self.credentials.get_headers(),
            "Content-Type": "application/json",
        }
        payload = build_request_body(self.filter_url)
        self.logger.info(
            "[buycycle] Fetching listings for %s", self.filter_url,
        )
        resp = self._post(headers, payload)
        try:
            data = resp.json()
        except (json.JSONDecodeError, ValueError) as exc:
            self.logger.error(
                "[buycycle] Response body is not JSON: %s", exc,
            )
            raise FetchError(str(exc)) from exc

        bikes = extract_bikes(data)
        self.logger.info("[buycycle] Received %d listings", len(bikes))
        self.logger.debug(
            "[buycycle] Full response: %s",
            json.dumps(data, ensure_ascii=False)[:5000],
        )
        return bikes
