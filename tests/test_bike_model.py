# tests/test_bike_model.py

"""Tests for the Listing and BikeRecord models."""

import unittest
from datetime import datetime, timezone

from bikewatch.models.bike import BikeRecord, BikeStatus, Listing, PriceLog
from bikewatch.models.price_history import PriceHistoryEntry

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class TestListing(unittest.TestCase):
    """Parsing raw vendor records."""

    def test_from_raw_full_record(self) -> None:
        raw = {
            "id": 48213,
            "price": 4299,
            "slug": "orbea-rise-m20-2023-48213",
            "name": "Orbea Rise M20",
            "image_side": {"file_url": "https://cdn.example/side.jpg"},
            "bike_price_log_shop": {"old_price": 4599, "new_price": 4299},
        }
        listing = Listing.from_raw(raw)
        assert listing is not None

        self.assertEqual(listing.id, "48213")
        self.assertEqual(listing.price, 4299)
        self.assertEqual(
            listing.url,
            "https://buycycle.com/pl-pl/bike/orbea-rise-m20-2023-48213",
        )
        self.assertEqual(listing.image_url, "https://cdn.example/side.jpg")
        self.assertEqual(listing.price_log, PriceLog(4599, 4299))
        self.assertEqual(listing.raw["name"], "Orbea Rise M20")

    def test_from_raw_without_id(self) -> None:
        self.assertIsNone(Listing.from_raw({"price": 1}))
        self.assertIsNone(Listing.from_raw({"id": "", "price": 1}))

    def test_image_side_not_an_object(self) -> None:
        listing = Listing.from_raw({"id": "1", "image_side": None})
        assert listing is not None
        self.assertIsNone(listing.image_url)
        self.assertIsNone(listing.price)
        self.assertIsNone(listing.url)

    def test_raw_is_copied(self) -> None:
        raw = {"id": "1", "price": 5}
        listing = Listing.from_raw(raw)
        assert listing is not None
        raw["price"] = 6
        self.assertEqual(listing.raw["price"], 5)


class TestBikeRecord(unittest.TestCase):
    """Record serialisation."""

    def _record(self) -> BikeRecord:
        return BikeRecord(
            id="1",
            fields={"id": 1, "name": "Rise", "price": 900, "status": "x"},
            url="https://buycycle.com/pl-pl/bike/rise",
            image_url=None,
            price_history=[
                PriceHistoryEntry(price=1000, timestamp=NOW),
                PriceHistoryEntry(price=900, timestamp=NOW),
            ],
        )

    def test_to_dict_flattens_fields(self) -> None:
        """Vendor fields and derived fields share one object."""
        data = self._record().to_dict()

        self.assertEqual(data["name"], "Rise")
        self.assertEqual(data["id"], 1)
        self.assertEqual(data["status"], "available")
        self.assertEqual(len(data["price_history"]), 2)
        self.assertIsNone(data["image_url"])

    def test_round_trip_keeps_history_and_status(self) -> None:
        record = self._record()
        record.status = BikeStatus.SOLD
        restored = BikeRecord.from_dict(record.to_dict(), record_id="1")

        self.assertEqual(restored.price_history, record.price_history)
        self.assertEqual(restored.status, BikeStatus.SOLD)
        self.assertEqual(restored.get("name"), "Rise")
        self.assertEqual(restored.price, 900)

    def test_from_dict_legacy_record(self) -> None:
        """Old extension records: ``date`` keys and no status."""
        restored = BikeRecord.from_dict({
            "id": 77,
            "price": 3000,
            "url": "https://buycycle.com/pl-pl/bike/x",
            "image_url": "https://cdn.example/x.jpg",
            "price_history": [
                {"price": 3000, "date": "2024-05-01T10:20:30.000Z"},
                "garbage",
            ],
        })

        self.assertEqual(restored.id, "77")
        self.assertEqual(restored.status, BikeStatus.AVAILABLE)
        self.assertEqual(len(restored.price_history), 1)
        self.assertEqual(restored.image_url, "https://cdn.example/x.jpg")
        self.assertNotIn("price_history", restored.fields)

    def test_mapping_key_wins_over_embedded_id(self) -> None:
        restored = BikeRecord.from_dict({"id": "a"}, record_id="b")
        self.assertEqual(restored.id, "b")


if __name__ == "__main__":
    unittest.main()
