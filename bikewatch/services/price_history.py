# bikewatch/services/price_history.py

"""Append-only merge policy for a bike's price history.

Entries are never removed or reordered. A new observation is compared
with the immediately preceding entry only: a price that comes back to an
earlier value after other changes is recorded again, while repeated
identical readings collapse into one entry.
"""

from datetime import datetime

from bikewatch.models.price_history import (
    SOLD_MARKER,
    PriceHistoryEntry,
)


def last_price(history: list[PriceHistoryEntry]) -> int | float | None:
    """Most recent recorded price, sold markers included."""
    return history[-1].price if history else None


def append_price(
    history: list[PriceHistoryEntry],
    price: int | float,
    timestamp: datetime,
) -> bool:
    """Record ``price`` unless it repeats the preceding entry.

    A sold marker never suppresses the next observation, so a bike that
    comes back on sale always gets a fresh entry.

    Returns True when an entry was appended.
    """
    if history:
        previous = history[-1]
        if not previous.is_sold_marker and previous.price == price:
            return False
    history.append(PriceHistoryEntry(price=price, timestamp=timestamp))
    return True


def mark_sold(
    history: list[PriceHistoryEntry],
    timestamp: datetime,
    fallback_price: int | float | None = None,
) -> bool:
    """Append the terminal sold marker at the last known price.

    Does nothing when the history already ends in a sold marker, or when
    no price is known at all.

    Returns True when a marker was appended.
    """
    if history and history[-1].is_sold_marker:
        return False
    price = last_price(history)
    if price is None:
        price = fallback_price
    if price is None:
        return False
    history.append(
        PriceHistoryEntry(price=price, timestamp=timestamp, status=SOLD_MARKER)
    )
    return True
