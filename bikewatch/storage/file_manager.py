# bikewatch/storage/file_manager.py

"""Writes raw snapshots and table exports to the results directory."""

import csv
import json
import logging
from collections.abc import Mapping
from datetime import datetime
from pathlib import Path
from typing import Any

from bikewatch.config.settings import Settings
from bikewatch.models.bike import BikeRecord
from bikewatch.presentation.bike_table import COLUMNS, build_rows

logger = logging.getLogger("bikewatch.storage")


class FileManager:
    """Writes raw snapshots and table exports to the results directory."""

    def __init__(self, results_dir: Path | None = None) -> None:
        self.results_dir: Path = results_dir or Settings.RESULTS_DIR
        self.results_dir.mkdir(parents=True, exist_ok=True)
        logger.debug(
            "FileManager initialised — results_dir=%s", self.results_dir,
        )

    @staticmethod
    def stamp() -> str:
        """Timestamp used in result file names."""
        return datetime.now().strftime("%Y%m%d_%H%M%S")

    def save_snapshot(self, listings: list[dict[str, Any]]) -> Path:
        """Archive a raw fetched snapshot as timestamped JSON."""
        filepath = self.results_dir / f"snapshot_{self.stamp()}.json"
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(listings, f, ensure_ascii=False, indent=2)
        logger.info(
            "Saved raw snapshot of %d listings to %s",
            len(listings),
            filepath,
        )
        return filepath

    def export_csv(self, state: Mapping[str, BikeRecord]) -> Path:
        """Export the bike table (plus id and URL) to a CSV file."""
        filepath = self.results_dir / f"export_bikes_{self.stamp()}.csv"
        rows = build_rows(state, info_width=None)
        with open(filepath, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(["ID", *COLUMNS, "URL"])
            for record, row in zip(state.values(), rows):
                writer.writerow([record.id, *row, record.url or ""])
        logger.info("Exported %d bikes to %s", len(rows), filepath)
        return filepath
