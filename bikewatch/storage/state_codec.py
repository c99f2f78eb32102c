# bikewatch/storage/state_codec.py

"""Decode and encode the persisted bike state.

The canonical stored form is a JSON object keyed by bike id. Early
versions stored a bare JSON array of records; that shape is migrated on
load by re-keying each record on its ``id``.
"""

import json
import logging
from collections.abc import Mapping
from typing import Any, cast

from bikewatch.models.bike import BikeRecord

logger = logging.getLogger("bikewatch.state")


class CorruptStateError(ValueError):
    """Stored state exists but cannot be decoded."""


def _from_mapping(data: dict[str, Any]) -> dict[str, BikeRecord]:
    state: dict[str, BikeRecord] = {}
    for key, value in data.items():
        if not isinstance(value, dict):
            raise CorruptStateError(
                f"record {key!r} is {type(value).__name__}, not an object"
            )
        state[str(key)] = BikeRecord.from_dict(
            cast(dict[str, Any], value), record_id=str(key),
        )
    return state


def _from_legacy_list(items: list[Any]) -> dict[str, BikeRecord]:
    state: dict[str, BikeRecord] = {}
    dropped = 0
    for item in items:
        if not isinstance(item, dict) or item.get("id") in (None, ""):
            dropped += 1
            continue
        record_id = str(item["id"])
        state[record_id] = BikeRecord.from_dict(
            cast(dict[str, Any], item), record_id=record_id,
        )
    logger.info(
        "Migrated legacy array state: %d records (%d without id dropped)",
        len(state),
        dropped,
    )
    return state


def decode_state(raw: Any) -> dict[str, BikeRecord]:
    """Decode stored state into a mapping of id to record.

    Accepts JSON text, ``bytes``, an already-parsed mapping, or the
    legacy array form. ``None`` and empty text mean "nothing stored".

    Raises:
        CorruptStateError: when ``raw`` is present but unusable.
    """
    if raw is None:
        return {}
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise CorruptStateError(str(exc)) from exc
    if isinstance(raw, str):
        if not raw.strip():
            return {}
        try:
            raw = json.loads(raw)
        except (ValueError, RecursionError) as exc:
            # Oversized integers and deep nesting fail outside JSONDecodeError
            raise CorruptStateError(str(exc)) from exc

    if isinstance(raw, dict):
        return _from_mapping(cast(dict[str, Any], raw))
    if isinstance(raw, list):
        return _from_legacy_list(cast(list[Any], raw))
    raise CorruptStateError(
        f"expected an object or array, got {type(raw).__name__}"
    )


def load_state(raw: Any) -> dict[str, BikeRecord]:
    """Decode stored state, falling back to an empty state when corrupt.

    The fallback loses every stored history; it is logged, not raised,
    so a fresh fetch can still be recorded.
    """
    try:
        return decode_state(raw)
    except CorruptStateError as exc:
        logger.error(
            "Stored bike state is corrupt, starting from empty state: %s",
            exc,
        )
        return {}


def encode_state(state: Mapping[str, BikeRecord]) -> str:
    """Serialise the state to its canonical JSON text."""
    return json.dumps(
        {key: record.to_dict() for key, record in state.items()},
        ensure_ascii=False,
    )


def state_as_list(state: Mapping[str, BikeRecord]) -> list[BikeRecord]:
    """Records in stored order, for tabular rendering."""
    return list(state.values())
