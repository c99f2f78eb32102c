# bikewatch/models/bike.py

"""Bike listing and persisted bike record models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from bikewatch.config.settings import Settings
from bikewatch.models.price_history import PriceHistoryEntry, parse_price

# Keys the record owns; pass-through vendor fields with these names are
# overwritten on serialisation.
DERIVED_KEYS: frozenset[str] = frozenset({
    "url", "image_url", "price_history", "status",
})


class BikeStatus(str, Enum):
    """Availability of a tracked bike."""

    AVAILABLE = "available"
    SOLD = "sold"


@dataclass(frozen=True)
class PriceLog:
    """A price change the vendor already detected between its own fetches."""

    old_price: int | float
    new_price: int | float


def _price_log_from_raw(value: Any) -> PriceLog | None:
    if not isinstance(value, dict):
        return None
    old_price = parse_price(value.get("old_price"))
    new_price = parse_price(value.get("new_price"))
    if old_price is None or new_price is None:
        return None
    return PriceLog(old_price=old_price, new_price=new_price)


@dataclass
class Listing:
    """One bike-for-sale record from a fetched snapshot."""

    id: str
    price: int | float | None
    slug: str | None = None
    image_url: str | None = None
    price_log: PriceLog | None = None
    raw: dict[str, Any] = field(default_factory=lambda: dict[str, Any]())

    @property
    def url(self) -> str | None:
        """Public listing page built from the slug."""
        if not self.slug:
            return None
        return Settings.BIKE_URL_TEMPLATE.format(slug=self.slug)

    @classmethod
    def from_raw(cls, raw: dict[str, Any]) -> "Listing | None":
        """Parse a vendor record.

        Returns ``None`` when the record has no usable ``id``. Every
        other missing or malformed field degrades to ``None``.
        """
        raw_id = raw.get("id")
        if raw_id is None or isinstance(raw_id, bool) or raw_id == "":
            return None
        image_side = raw.get("image_side")
        image_url = (
            image_side.get("file_url")
            if isinstance(image_side, dict)
            else None
        )
        slug = raw.get("slug")
        return cls(
            id=str(raw_id),
            price=parse_price(raw.get("price")),
            slug=str(slug) if slug else None,
            image_url=str(image_url) if image_url else None,
            price_log=_price_log_from_raw(raw.get("bike_price_log_shop")),
            raw=dict(raw),
        )


@dataclass
class BikeRecord:
    """A stored bike: vendor fields plus url, image, history and status."""

    id: str
    fields: dict[str, Any] = field(default_factory=lambda: dict[str, Any]())
    url: str | None = None
    image_url: str | None = None
    price_history: list[PriceHistoryEntry] = field(
        default_factory=lambda: list[PriceHistoryEntry]()
    )
    status: BikeStatus = BikeStatus.AVAILABLE

    @property
    def price(self) -> int | float | None:
        """The vendor price last seen for this bike."""
        return parse_price(self.fields.get("price"))

    @property
    def is_sold(self) -> bool:
        return self.status is BikeStatus.SOLD

    def get(self, key: str, default: Any = None) -> Any:
        """Read a pass-through vendor field."""
        return self.fields.get(key, default)

    def to_dict(self) -> dict[str, Any]:
        """Flatten to the stored JSON object."""
        data = {
            k: v for k, v in self.fields.items() if k not in DERIVED_KEYS
        }
        data["id"] = self.fields.get("id", self.id)
        data["url"] = self.url
        data["image_url"] = self.image_url
        data["price_history"] = [e.to_dict() for e in self.price_history]
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], record_id: str | None = None,
    ) -> "BikeRecord":
        """Rebuild a record from its stored JSON object.

        ``record_id`` (the mapping key) wins over the embedded ``id``.
        Unreadable history entries are dropped; an unknown status reads
        as available.
        """
        raw_history = data.get("price_history")
        history: list[PriceHistoryEntry] = []
        if isinstance(raw_history, list):
            for item in raw_history:
                if isinstance(item, dict):
                    entry = PriceHistoryEntry.from_dict(item)
                    if entry is not None:
                        history.append(entry)
        status = (
            BikeStatus.SOLD
            if data.get("status") == BikeStatus.SOLD.value
            else BikeStatus.AVAILABLE
        )
        fields = {k: v for k, v in data.items() if k not in DERIVED_KEYS}
        url = data.get("url")
        image_url = data.get("image_url")
        return cls(
            id=str(record_id if record_id is not None else data.get("id")),
            fields=fields,
            url=str(url) if url else None,
            image_url=str(image_url) if image_url else None,
            price_history=history,
            status=status,
        )
