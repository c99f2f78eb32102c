# bikewatch/storage/state_store.py

"""SQLite-backed key/value store for the persisted bike state.

The whole state lives as one JSON blob under a single key, the same way
the browser extension keeps it in ``chrome.storage.local``. Updates go
through :meth:`StateStore.update`, which reads, computes and writes inside
one immediate transaction so two concurrent cycles cannot lose each
other's work.
"""

import json
import logging
import sqlite3
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import TypeVar

from bikewatch.config.settings import Settings
from bikewatch.models.bike import BikeRecord
from bikewatch.storage.state_codec import (
    decode_state,
    encode_state,
    load_state,
)

logger = logging.getLogger("bikewatch.store")

T = TypeVar("T")

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS storage (
    key        TEXT PRIMARY KEY,
    value      TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


class StateStore:
    """Single-key blob store for the bike state."""

    def __init__(
        self,
        db_path: Path | None = None,
        key: str | None = None,
    ) -> None:
        path = db_path or Settings.STATE_DB_PATH
        if str(path) != ":memory:":
            path.parent.mkdir(parents=True, exist_ok=True)
        self.key = key or Settings.STORAGE_KEY
        # Transactions are managed explicitly in update().
        self._conn = sqlite3.connect(
            str(path), isolation_level=None, check_same_thread=False,
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)
        logger.debug("StateStore opened at %s (key=%s)", path, self.key)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # ── Raw blob access ──────────────────────────────────

    def get_raw(self) -> str | None:
        """Return the stored JSON text, or ``None`` if nothing is stored."""
        row = self._conn.execute(
            "SELECT value FROM storage WHERE key = ?", (self.key,),
        ).fetchone()
        return row[0] if row else None

    def set_raw(self, value: str) -> None:
        """Overwrite the stored JSON text."""
        self._conn.execute(
            "INSERT INTO storage (key, value, updated_at) "
            "VALUES (?, ?, ?) "
            "ON CONFLICT(key) DO UPDATE SET "
            "value=excluded.value, updated_at=excluded.updated_at",
            (self.key, value, datetime.now(timezone.utc).isoformat()),
        )

    # ── Typed access ─────────────────────────────────────

    def load(self) -> dict[str, BikeRecord]:
        """Load the state; corrupt data reads as an empty state."""
        return load_state(self.get_raw())

    def save(self, state: dict[str, BikeRecord]) -> None:
        """Replace the stored state."""
        self.set_raw(encode_state(state))
        logger.info("Stored %d bikes under '%s'", len(state), self.key)

    def update(
        self,
        compute: Callable[
            [dict[str, BikeRecord]], tuple[dict[str, BikeRecord], T]
        ],
    ) -> T:
        """Read, compute and write the state as one unit.

        ``compute`` receives the current state and returns the new state
        plus any extra value, which is handed back to the caller. If
        ``compute`` raises, nothing is written.
        """
        self._conn.execute("BEGIN IMMEDIATE")
        try:
            prior = self.load()
            new_state, extra = compute(prior)
            self.save(new_state)
        except BaseException:
            self._conn.execute("ROLLBACK")
            raise
        self._conn.execute("COMMIT")
        return extra

    # ── Import / export ──────────────────────────────────

    def import_file(self, filepath: Path) -> int:
        """Replace the stored state with a JSON export.

        Accepts both the canonical mapping and the legacy array form.
        Returns the number of imported bikes.

        Raises:
            CorruptStateError: when the file content cannot be decoded.
            OSError: when the file cannot be read.
        """
        text = filepath.read_text(encoding="utf-8")
        state = decode_state(text)
        self.save(state)
        logger.info("Imported %d bikes from %s", len(state), filepath)
        return len(state)

    def export_file(self, filepath: Path) -> int:
        """Write the current state to ``filepath`` as indented JSON."""
        state = self.load()
        filepath.parent.mkdir(parents=True, exist_ok=True)
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(
                {k: r.to_dict() for k, r in state.items()},
                f,
                ensure_ascii=False,
                indent=2,
            )
        logger.info("Exported %d bikes to %s", len(state), filepath)
        return len(state)
