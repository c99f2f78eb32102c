# bikewatch/services/reconciler.py

"""Merge a fetched snapshot into the stored bike state.

``reconcile`` is pure: it reads the prior state and the snapshot, builds
new records and returns a new mapping. Nothing passed in is mutated and
no I/O happens here.

The snapshot is treated as the complete listing set. A bike stored as
available that is missing from it is assumed sold: its status flips and
one sold marker is appended to its history. Bikes already sold stay as
they are, so reconciling repeatedly against snapshots that keep omitting
a bike never stacks up markers.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from bikewatch.models.bike import BikeRecord, BikeStatus, Listing
from bikewatch.models.price_history import PriceHistoryEntry
from bikewatch.services.price_history import (
    append_price,
    last_price,
    mark_sold,
)

logger = logging.getLogger("bikewatch.reconciler")

PersistedState = dict[str, BikeRecord]


@dataclass
class ReconcileStats:
    """Counts of what one reconciliation run changed."""

    new: int = 0
    price_changed: int = 0
    unchanged: int = 0
    reactivated: int = 0
    sold: int = 0
    skipped: int = 0
    duplicates: int = 0
    new_ids: list[str] = field(default_factory=lambda: list[str]())
    sold_ids: list[str] = field(default_factory=lambda: list[str]())

    @property
    def observed(self) -> int:
        """Number of distinct bikes in the snapshot."""
        return (
            self.new + self.price_changed
            + self.unchanged + self.reactivated
        )


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _unique_listings(
    snapshot: Iterable[Listing | dict[str, Any]],
    stats: ReconcileStats,
) -> dict[str, Listing]:
    """Parse the snapshot and collapse duplicate ids, last one winning."""
    listings: dict[str, Listing] = {}
    for position, item in enumerate(snapshot):
        if isinstance(item, Listing):
            listing: Listing | None = item
        elif isinstance(item, dict):
            listing = Listing.from_raw(item)
        else:
            listing = None
        if listing is None:
            stats.skipped += 1
            logger.warning(
                "Skipping snapshot entry %d without a usable id", position,
            )
            continue
        if listing.id in listings:
            stats.duplicates += 1
            logger.warning(
                "Duplicate id %s in snapshot, keeping the later entry",
                listing.id,
            )
        listings[listing.id] = listing
    return listings


def _merge_listing(
    listing: Listing,
    existing: BikeRecord | None,
    now: datetime,
    stats: ReconcileStats,
) -> BikeRecord:
    """Build the updated record for a bike present in the snapshot."""
    history: list[PriceHistoryEntry] = (
        list(existing.price_history) if existing else []
    )
    before = len(history)

    # Vendor-detected change: back-fill the point we never observed.
    if (
        existing is not None
        and not existing.is_sold
        and history
        and listing.price_log is not None
    ):
        log = listing.price_log
        append_price(history, log.old_price, now)
        if log.new_price != log.old_price:
            append_price(history, log.new_price, now)

    if listing.price is None:
        logger.warning(
            "Bike %s has no readable price (%r)",
            listing.id,
            listing.raw.get("price"),
        )
    else:
        append_price(history, listing.price, now)

    if existing is None:
        stats.new += 1
        stats.new_ids.append(listing.id)
        logger.debug("New bike %s at %s", listing.id, listing.price)
    elif existing.is_sold:
        stats.reactivated += 1
        logger.info("Bike %s is back on sale", listing.id)
    elif len(history) > before:
        stats.price_changed += 1
        logger.info(
            "Price change for bike %s: %s -> %s",
            listing.id,
            last_price(existing.price_history),
            last_price(history),
        )
    else:
        stats.unchanged += 1

    return BikeRecord(
        id=listing.id,
        fields=dict(listing.raw),
        url=listing.url,
        image_url=listing.image_url,
        price_history=history,
        status=BikeStatus.AVAILABLE,
    )


def _retire(
    record: BikeRecord, now: datetime, stats: ReconcileStats,
) -> BikeRecord:
    """Carry over a bike missing from the snapshot, marking it sold once."""
    if record.is_sold:
        return record
    history = list(record.price_history)
    marked = mark_sold(history, now, fallback_price=record.price)
    if marked:
        logger.debug("Bike %s sold at %s", record.id, history[-1].price)
    elif history and history[-1].is_sold_marker:
        # Reactivated without a readable price, then gone again
        logger.info(
            "Bike %s disappeared again before a new price was seen; "
            "keeping its existing sold marker",
            record.id,
        )
    else:
        logger.warning(
            "Bike %s disappeared with no known price; no sold marker",
            record.id,
        )
    stats.sold += 1
    stats.sold_ids.append(record.id)
    logger.info("Bike %s no longer listed, marked sold", record.id)
    return BikeRecord(
        id=record.id,
        fields=dict(record.fields),
        url=record.url,
        image_url=record.image_url,
        price_history=history,
        status=BikeStatus.SOLD,
    )


def reconcile_with_stats(
    prior_state: Mapping[str, BikeRecord],
    snapshot: Iterable[Listing | dict[str, Any]],
    now: datetime | None = None,
) -> tuple[PersistedState, ReconcileStats]:
    """Reconcile and also report what changed.

    The returned mapping lists snapshot bikes first, in snapshot order,
    followed by the stored bikes the snapshot no longer contains, in
    their stored order.
    """
    moment = now or _utc_now()
    stats = ReconcileStats()
    listings = _unique_listings(snapshot, stats)

    new_state: PersistedState = {}
    for listing_id, listing in listings.items():
        new_state[listing_id] = _merge_listing(
            listing, prior_state.get(listing_id), moment, stats,
        )

    for record_id, record in prior_state.items():
        if record_id not in new_state:
            new_state[record_id] = _retire(record, moment, stats)

    logger.info(
        "Reconciled %d listings against %d stored bikes: "
        "%d new, %d price changes, %d reactivated, %d sold, %d skipped",
        len(listings),
        len(prior_state),
        stats.new,
        stats.price_changed,
        stats.reactivated,
        stats.sold,
        stats.skipped,
    )
    return new_state, stats


def reconcile(
    prior_state: Mapping[str, BikeRecord],
    snapshot: Iterable[Listing | dict[str, Any]],
    now: datetime | None = None,
) -> PersistedState:
    """Return the new stored state after observing ``snapshot``."""
    new_state, _stats = reconcile_with_stats(prior_state, snapshot, now)
    return new_state
