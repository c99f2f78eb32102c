# bikewatch/presentation/bike_table.py

"""Tabular view of the stored bikes, shared by the CLI, TUI and CSV export."""

import math
from collections.abc import Mapping
from typing import Any

from bikewatch.models.bike import BikeRecord
from bikewatch.models.price_history import PriceHistoryEntry, parse_timestamp

COLUMNS: list[str] = [
    "Name",
    "Year",
    "Current Price",
    "MSRP",
    "Status",
    "Preowned",
    "Receipt",
    "Last Service",
    "Mileage",
    "Component",
    "City",
    "Price Data",
    "Price History",
    "Info",
]

# Longest Info text shown in the terminal views
INFO_WIDTH = 80

DATE_FORMAT = "%d/%m/%Y, %H:%M:%S"


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _yes_no(value: Any) -> str:
    return "Yes" if value else "No"


def _format_price(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return _text(value)


def format_date(value: Any) -> str:
    """Render a vendor or history timestamp as ``dd/mm/YYYY, HH:MM:SS``.

    Empty values give an empty string; text that is not a timestamp is
    shown as it is.
    """
    if value is None or value == "":
        return ""
    parsed = parse_timestamp(value)
    if parsed is None:
        return str(value)
    return parsed.strftime(DATE_FORMAT)


def component_name(record: BikeRecord) -> str:
    """Groupset name: ``component`` or the first of ``components``."""
    component = record.get("component")
    if isinstance(component, dict):
        return _text(component.get("name"))
    if component:
        return str(component)
    components = record.get("components")
    if isinstance(components, list) and components:
        first = components[0]
        if isinstance(first, dict):
            return _text(first.get("name"))
    return ""


def format_price_data(record: BikeRecord) -> str:
    """Vendor lifecycle dates: created, price changed, updated, sold."""
    return " | ".join([
        f"Created: {format_date(record.get('created_at'))}",
        f"Changed: {format_date(record.get('price_changed_at'))}",
        f"Updated: {format_date(record.get('updated_at'))}",
        f"Sold: {format_date(record.get('sold_date'))}",
    ])


def format_history(history: list[PriceHistoryEntry]) -> str:
    """Every entry with its date, e.g. ``1000 on 01/10/2026, 08:00:00``."""
    parts: list[str] = []
    for entry in history:
        label = (
            "sold" if entry.is_sold_marker else _format_price(entry.price)
        )
        parts.append(f"{label} on {entry.timestamp.strftime(DATE_FORMAT)}")
    return " → ".join(parts)


def format_info(value: Any, width: int | None = INFO_WIDTH) -> str:
    """Free-text listing info on one line, cut to ``width`` characters."""
    text = " ".join(_text(value).split())
    if width is not None and len(text) > width:
        return text[: width - 1].rstrip() + "…"
    return text


def build_row(
    record: BikeRecord, info_width: int | None = INFO_WIDTH,
) -> list[str]:
    """One table row for a record, aligned with COLUMNS.

    ``info_width=None`` keeps the Info text whole (CSV export).
    """
    price = _format_price(record.get("price"))
    formatted = record.get("price_converted_formatted")
    return [
        _text(record.get("name")),
        _text(record.get("year")),
        f"{formatted} ({price})" if formatted else price,
        _text(
            record.get("msrp_converted_formatted") or record.get("msrp")
        ),
        record.status.value,
        _yes_no(record.get("preowned")),
        _yes_no(record.get("receipt_present")),
        _text(record.get("last_service_code")),
        _text(record.get("mileage_code")),
        component_name(record),
        _text(record.get("city")),
        format_price_data(record),
        format_history(record.price_history),
        format_info(record.get("info"), info_width),
    ]


def build_rows(
    state: Mapping[str, BikeRecord], info_width: int | None = INFO_WIDTH,
) -> list[list[str]]:
    """Rows in stored order."""
    return [build_row(record, info_width) for record in state.values()]


def _as_number(text: str) -> float | None:
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _price_column_number(text: str) -> float | None:
    """Read ``"4 299 zł (4299)"`` style cells by their raw price."""
    if text.endswith(")") and "(" in text:
        return _as_number(text[text.rindex("(") + 1:-1])
    return _as_number(text)


def sort_rows(
    rows: list[list[str]],
    column: int | str,
    ascending: bool = True,
) -> list[list[str]]:
    """Sort rows by a column, numerically when every filled cell is a number.

    ``column`` is an index or a name from COLUMNS. Blank cells go last in
    either direction. Columns mixing numbers and text fall back to
    case-insensitive text order.
    """
    index = COLUMNS.index(column) if isinstance(column, str) else column
    filled = [row for row in rows if row[index].strip()]
    blank = [row for row in rows if not row[index].strip()]
    numbers = [_price_column_number(row[index].strip()) for row in filled]
    if filled and all(n is not None for n in numbers):
        keyed = list(zip(numbers, filled))
        keyed.sort(key=lambda pair: pair[0] or 0.0, reverse=not ascending)
        ordered = [row for _, row in keyed]
    else:
        ordered = sorted(
            filled,
            key=lambda row: row[index].strip().casefold(),
            reverse=not ascending,
        )
    return ordered + blank


def resolve_column(name: str) -> int:
    """Match a column by case-insensitive name or prefix.

    Raises:
        ValueError: when nothing or more than one column matches.
    """
    wanted = name.strip().casefold()
    exact = [i for i, c in enumerate(COLUMNS) if c.casefold() == wanted]
    if exact:
        return exact[0]
    matches = [
        i for i, c in enumerate(COLUMNS) if c.casefold().startswith(wanted)
    ]
    if len(matches) != 1:
        raise ValueError(
            f"Unknown or ambiguous column {name!r}; "
            f"choose from: {', '.join(COLUMNS)}"
        )
    return matches[0]
