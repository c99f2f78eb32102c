# bikewatch/scrapers/credentials.py

"""Providers for the request headers the vendor API needs.

The shop API only answers requests that carry the cookies and tokens of
a real browser session. Those headers are captured from the browser
(DevTools "Copy request headers", or an exported ``requestHeaders``
list) and handed to the fetcher through a provider. Until something has
been captured, providers raise :class:`MissingAuthContextError`.
"""

import json
import logging
from pathlib import Path
from typing import Any, Protocol, cast

from bikewatch.config.settings import Settings
from bikewatch.scrapers.errors import MissingAuthContextError

logger = logging.getLogger("bikewatch.credentials")

MISSING_HEADERS_MESSAGE = (
    "No headers captured yet. Please visit the Buycycle page first."
)


def headers_to_dict(headers: Any) -> dict[str, str]:
    """Normalise captured headers to a ``{name: value}`` dict.

    Accepts a mapping or the browser's ``[{"name": ..., "value": ...}]``
    list. Headers that must not be replayed (length, host, ...) are
    dropped. Later duplicates win.
    """
    pairs: list[tuple[str, str]] = []
    if isinstance(headers, dict):
        items = cast(dict[Any, Any], headers)
        pairs = [(str(k), str(v)) for k, v in items.items()]
    elif isinstance(headers, list):
        for item in cast(list[Any], headers):
            if isinstance(item, dict) and "name" in item:
                entry = cast(dict[str, Any], item)
                pairs.append((str(entry["name"]), str(entry.get("value", ""))))
    return {
        name: value
        for name, value in pairs
        if name.lower() not in Settings.DROPPED_HEADERS
    }


class CredentialProvider(Protocol):
    """Source of the captured request headers."""

    def get_headers(self) -> dict[str, str]:
        """Return the headers, or raise MissingAuthContextError."""
        ...


class StaticCredentialProvider:
    """Headers held in memory; ``None`` means not captured yet."""

    def __init__(self, headers: Any = None) -> None:
        self._headers: dict[str, str] | None = (
            headers_to_dict(headers) if headers else None
        )

    @property
    def available(self) -> bool:
        return bool(self._headers)

    def capture(self, headers: Any) -> None:
        """Replace the held headers with a fresh capture."""
        self._headers = headers_to_dict(headers) or None
        logger.debug(
            "Captured %d request headers",
            len(self._headers or {}),
        )

    def get_headers(self) -> dict[str, str]:
        if not self._headers:
            raise MissingAuthContextError(MISSING_HEADERS_MESSAGE)
        return dict(self._headers)


class FileCredentialProvider:
    """Headers read from a JSON file written by :func:`capture_headers`."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or Settings.HEADERS_PATH

    def get_headers(self) -> dict[str, str]:
        if not self.path.exists():
            raise MissingAuthContextError(MISSING_HEADERS_MESSAGE)
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning(
                "Unreadable headers file %s: %s", self.path, exc,
            )
            raise MissingAuthContextError(MISSING_HEADERS_MESSAGE) from exc
        headers = headers_to_dict(data)
        if not headers:
            raise MissingAuthContextError(MISSING_HEADERS_MESSAGE)
        return headers


def parse_raw_headers(text: str) -> dict[str, str]:
    """Parse ``Name: value`` lines as copied from browser DevTools."""
    headers: dict[str, str] = {}
    for line in text.splitlines():
        name, sep, value = line.partition(":")
        # HTTP/2 pseudo-headers (":authority") start with the separator
        if not sep or not name.strip():
            continue
        headers[name.strip()] = value.strip()
    return headers


def capture_headers(source: Path, path: Path | None = None) -> int:
    """Store headers captured in the browser for later fetches.

    ``source`` may hold JSON (object or ``requestHeaders`` list) or raw
    ``Name: value`` lines. Returns the number of headers stored.

    Raises:
        MissingAuthContextError: when ``source`` holds no usable headers.
    """
    text = source.read_text(encoding="utf-8")
    try:
        headers = headers_to_dict(json.loads(text))
    except json.JSONDecodeError:
        headers = headers_to_dict(parse_raw_headers(text))
    if not headers:
        raise MissingAuthContextError(
            f"No request headers found in {source}"
        )
    target = path or Settings.HEADERS_PATH
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w", encoding="utf-8") as f:
        json.dump(headers, f, ensure_ascii=False, indent=2)
    logger.info("Stored %d captured headers at %s", len(headers), target)
    return len(headers)
