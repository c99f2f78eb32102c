# bikewatch/models/price_history.py

"""Timestamped price observation for a tracked bike."""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

SOLD_MARKER = "sold"


def parse_price(value: Any) -> int | float | None:
    """Read a vendor price as a number.

    Accepts ints, floats and numeric strings such as ``"1 299,00"`` or
    ``"1299.00"``. Returns ``None`` for anything else, including bools,
    NaN and infinities.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        cleaned = value.replace(" ", "").replace("\u00a0", "")
        if "," in cleaned and "." not in cleaned:
            cleaned = cleaned.replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
        try:
            number = float(cleaned)
        except ValueError:
            return None
        if not math.isfinite(number):
            return None
        return int(number) if number.is_integer() else number
    return None


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp; JavaScript's trailing ``Z`` is accepted."""
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value:
        return None
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


@dataclass(frozen=True)
class PriceHistoryEntry:
    """A single price observation, or the terminal sold marker."""

    price: int | float
    timestamp: datetime
    status: str | None = None

    @property
    def is_sold_marker(self) -> bool:
        """True for the entry appended when a listing disappears."""
        return self.status == SOLD_MARKER

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the stored JSON shape."""
        data: dict[str, Any] = {
            "price": self.price,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.status:
            data["status"] = self.status
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PriceHistoryEntry | None":
        """Build an entry from stored JSON.

        Older versions stored the time under ``date``. Entries without a
        readable price are dropped (``None``); a missing time falls back
        to the Unix epoch so the entry keeps its position.
        """
        price = parse_price(data.get("price"))
        if price is None:
            return None
        timestamp = parse_timestamp(
            data.get("timestamp", data.get("date"))
        )
        status = data.get("status")
        return cls(
            price=price,
            timestamp=timestamp or datetime.fromtimestamp(0, timezone.utc),
            status=str(status) if status else None,
        )
