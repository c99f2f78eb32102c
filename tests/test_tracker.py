# tests/test_tracker.py

"""Tests for the fetch-reconcile-store cycle."""

import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

from bikewatch.models.bike import BikeStatus
from bikewatch.scrapers.errors import FetchError, MissingAuthContextError
from bikewatch.services.tracker import BikeTracker
from bikewatch.storage.file_manager import FileManager
from bikewatch.storage.state_store import StateStore

DAY1 = datetime(2026, 10, 1, tzinfo=timezone.utc)
DAY2 = datetime(2026, 10, 2, tzinfo=timezone.utc)


def _fetcher(*snapshots: Any) -> MagicMock:
    """Fetcher stub returning (or raising) each item in turn."""
    fetcher = MagicMock()
    fetcher.fetch_snapshot.side_effect = list(snapshots)
    return fetcher


class TestBikeTracker(unittest.TestCase):
    """run_cycle outcomes."""

    def setUp(self) -> None:
        """Fresh store in a temp directory."""
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.tmp_dir = Path(self._tmp.name)
        self.store = StateStore(db_path=self.tmp_dir / "state.db")
        self.addCleanup(self.store.close)

    def test_successful_cycle_persists_state(self) -> None:
        fetcher = _fetcher([{"id": "1", "price": 1000, "slug": "a"}])
        result = BikeTracker(fetcher, self.store).run_cycle(now=DAY1)

        self.assertTrue(result.success)
        self.assertEqual(
            result.message,
            "Captured 1 bikes (1 new, 0 price changes, 0 sold).",
        )
        self.assertEqual(list(self.store.load()), ["1"])
        assert result.stats is not None
        self.assertEqual(result.stats.new_ids, ["1"])

    def test_two_cycles_detect_change_and_sale(self) -> None:
        fetcher = _fetcher(
            [{"id": "1", "price": 1000}, {"id": "2", "price": 2000}],
            [{"id": "1", "price": 900}],
        )
        tracker = BikeTracker(fetcher, self.store)
        tracker.run_cycle(now=DAY1)
        result = tracker.run_cycle(now=DAY2)

        self.assertEqual(
            result.message,
            "Captured 1 bikes (0 new, 1 price changes, 1 sold).",
        )
        state = self.store.load()
        self.assertEqual(
            [e.price for e in state["1"].price_history], [1000, 900],
        )
        self.assertEqual(state["2"].status, BikeStatus.SOLD)

    def test_missing_headers_leave_state_untouched(self) -> None:
        fetcher = _fetcher(
            [{"id": "1", "price": 1000}],
            MissingAuthContextError("No headers captured yet."),
        )
        tracker = BikeTracker(fetcher, self.store)
        tracker.run_cycle(now=DAY1)
        before = self.store.get_raw()

        result = tracker.run_cycle(now=DAY2)

        self.assertFalse(result.success)
        self.assertEqual(result.message, "No headers captured yet.")
        self.assertEqual(self.store.get_raw(), before)

    def test_fetch_failure_message(self) -> None:
        fetcher = _fetcher(FetchError("HTTP 500"))
        result = BikeTracker(fetcher, self.store).run_cycle(now=DAY1)

        self.assertFalse(result.success)
        self.assertEqual(
            result.message, "Failed to capture data. Error: HTTP 500",
        )
        self.assertIsNone(self.store.get_raw())
        self.assertIsNone(result.stats)

    def test_empty_snapshot_after_failure_is_not_confused(self) -> None:
        """A failed fetch must not be treated as 'everything sold'."""
        fetcher = _fetcher(
            [{"id": "1", "price": 1000}],
            FetchError("timeout"),
        )
        tracker = BikeTracker(fetcher, self.store)
        tracker.run_cycle(now=DAY1)
        tracker.run_cycle(now=DAY2)

        self.assertEqual(self.store.load()["1"].status, BikeStatus.AVAILABLE)

    def test_corrupt_prior_state_recovers(self) -> None:
        self.store.set_raw("{broken")
        fetcher = _fetcher([{"id": "1", "price": 1000}])

        result = BikeTracker(fetcher, self.store).run_cycle(now=DAY1)

        self.assertTrue(result.success)
        self.assertEqual(list(self.store.load()), ["1"])

    def test_archives_raw_snapshot(self) -> None:
        file_manager = FileManager(results_dir=self.tmp_dir / "results")
        fetcher = _fetcher([{"id": "1", "price": 1000}])

        BikeTracker(fetcher, self.store, file_manager).run_cycle(now=DAY1)

        archived = list((self.tmp_dir / "results").glob("snapshot_*.json"))
        self.assertEqual(len(archived), 1)


if __name__ == "__main__":
    unittest.main()
