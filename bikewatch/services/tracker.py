# bikewatch/services/tracker.py

"""Runs one fetch-reconcile-store cycle and reports the outcome."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from bikewatch.models.bike import BikeRecord
from bikewatch.scrapers.errors import FetchError, MissingAuthContextError
from bikewatch.services.reconciler import (
    ReconcileStats,
    reconcile_with_stats,
)
from bikewatch.storage.file_manager import FileManager
from bikewatch.storage.state_store import StateStore

logger = logging.getLogger("bikewatch.tracker")


class SnapshotFetcher(Protocol):
    """Anything that returns the current complete listing set."""

    def fetch_snapshot(self) -> list[dict[str, Any]]:
        ...


@dataclass
class CycleResult:
    """Outcome of one tracking cycle, ready to show to the user."""

    success: bool
    message: str
    state: dict[str, BikeRecord] = field(
        default_factory=lambda: dict[str, BikeRecord]()
    )
    stats: ReconcileStats | None = None


def _summary(count: int, stats: ReconcileStats) -> str:
    return (
        f"Captured {count} bikes ({stats.new} new, "
        f"{stats.price_changed} price changes, {stats.sold} sold)."
    )


class BikeTracker:
    """Fetches a snapshot and folds it into the stored state.

    A failed fetch never reaches the store: the previous state stays as
    it was and the failure comes back as a message.
    """

    def __init__(
        self,
        fetcher: SnapshotFetcher,
        store: StateStore,
        file_manager: FileManager | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.store = store
        self.file_manager = file_manager

    def run_cycle(self, now: datetime | None = None) -> CycleResult:
        """Fetch, reconcile and persist; never raises for fetch failures."""
        try:
            listings = self.fetcher.fetch_snapshot()
        except MissingAuthContextError as exc:
            logger.warning("Fetch skipped: %s", exc)
            return CycleResult(success=False, message=str(exc))
        except FetchError as exc:
            logger.error("Error in fetch or processing data: %s", exc)
            return CycleResult(
                success=False,
                message=f"Failed to capture data. Error: {exc}",
            )

        if self.file_manager is not None:
            try:
                self.file_manager.save_snapshot(listings)
            except OSError as exc:
                logger.error(
                    "Could not archive raw snapshot: %s", exc, exc_info=True,
                )

        def _compute(
            prior: dict[str, BikeRecord],
        ) -> tuple[dict[str, BikeRecord], tuple[dict[str, BikeRecord], ReconcileStats]]:
            new_state, stats = reconcile_with_stats(prior, listings, now)
            return new_state, (new_state, stats)

        state, stats = self.store.update(_compute)
        message = _summary(stats.observed, stats)
        logger.info(message)
        return CycleResult(
            success=True, message=message, state=state, stats=stats,
        )
