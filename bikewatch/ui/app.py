# bikewatch/ui/app.py

"""Terminal dashboard for the tracked bikes."""

import asyncio
import logging
import webbrowser
from typing import cast

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.widgets import DataTable, Footer, Header, Static

from bikewatch.models.bike import BikeRecord
from bikewatch.presentation.bike_table import COLUMNS, build_row, sort_rows
from bikewatch.services.tracker import BikeTracker
from bikewatch.storage.file_manager import FileManager
from bikewatch.storage.state_store import StateStore

logger = logging.getLogger("bikewatch.ui")

_STATUS_STYLES = {"available": "green", "sold": "red"}


class BikewatchApp(App[object]):
    """Sortable table of every bike ever seen, with its price history."""

    TITLE = "bikewatch"

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("f", "fetch", "Fetch"),
        Binding("r", "reload", "Reload"),
        Binding("e", "export", "Export CSV"),
    ]

    def __init__(
        self,
        store: StateStore,
        tracker: BikeTracker | None = None,
        file_manager: FileManager | None = None,
    ) -> None:
        super().__init__()
        self.store = store
        self.tracker = tracker
        self.file_manager = file_manager
        self.state: dict[str, BikeRecord] = {}
        # (row cells, record) pairs in display order
        self.rows: list[tuple[list[str], BikeRecord]] = []
        self.sort_column: int | None = None
        self.sort_ascending: bool = True
        self.fetching: bool = False

    def compose(self) -> ComposeResult:
        """Build the widget tree for the TUI."""
        yield Header()
        yield Container(
            Static("Ready", id="status"),
            cast(
                DataTable[str | Text],
                DataTable(
                    id="bike_table",
                    zebra_stripes=True,
                    cursor_type="row",
                ),
            ),
            id="main_container",
        )
        yield Footer()

    def on_mount(self) -> None:
        """Configure the table and load the stored bikes."""
        self._table().add_columns(*COLUMNS)
        self.action_reload()

    def _table(self) -> DataTable[str | Text]:
        return cast(
            DataTable[str | Text],
            self.query_one("#bike_table", DataTable),
        )

    def _set_status(self, message: str) -> None:
        self.query_one("#status", Static).update(message)

    def load_state(self, state: dict[str, BikeRecord]) -> None:
        """Show ``state`` in stored order, keeping the active sort."""
        self.state = state
        self.rows = [(build_row(r), r) for r in state.values()]
        if self.sort_column is not None:
            self._apply_sort()
        self.populate_table()

    def populate_table(self) -> None:
        """Fill the DataTable from ``self.rows``."""
        table = self._table()
        table.clear()
        status_index = COLUMNS.index("Status")
        for cells, _record in self.rows:
            rendered: list[str | Text] = list(cells)
            rendered[status_index] = Text(
                cells[status_index],
                style=_STATUS_STYLES.get(cells[status_index], ""),
            )
            table.add_row(*rendered)

    def _apply_sort(self) -> None:
        if self.sort_column is None:
            return
        by_cells = {id(cells): record for cells, record in self.rows}
        ordered = sort_rows(
            [cells for cells, _ in self.rows],
            self.sort_column,
            ascending=self.sort_ascending,
        )
        self.rows = [(cells, by_cells[id(cells)]) for cells in ordered]

    def sort_by(self, column: int) -> None:
        """Sort by ``column``; selecting it again flips the direction."""
        if self.sort_column == column:
            self.sort_ascending = not self.sort_ascending
        else:
            self.sort_column = column
            self.sort_ascending = True
        self._apply_sort()
        self.populate_table()
        arrow = "▲" if self.sort_ascending else "▼"
        self._set_status(f"Sorted by {COLUMNS[column]} {arrow}")

    def on_data_table_header_selected(
        self, event: DataTable.HeaderSelected
    ) -> None:
        """Clicking a column header sorts by that column."""
        self.sort_by(event.column_index)

    def on_data_table_row_selected(
        self, event: DataTable.RowSelected
    ) -> None:
        """Open the selected bike's listing page."""
        if 0 <= event.cursor_row < len(self.rows):
            url = self.rows[event.cursor_row][1].url
            if url:
                webbrowser.open(url)

    def action_reload(self) -> None:
        """Re-read the stored state."""
        self.load_state(self.store.load())
        self._set_status(f"{len(self.state)} bikes tracked")

    async def action_fetch(self) -> None:
        """Run one fetch cycle off the UI thread."""
        if self.tracker is None:
            self.notify("Fetching is not configured", severity="warning")
            return
        if self.fetching:
            self.notify("A fetch is already running", severity="warning")
            return
        self.fetching = True
        self._set_status("Capturing data...")
        try:
            result = await asyncio.to_thread(self.tracker.run_cycle)
        except Exception as exc:
            logger.error("Fetch cycle crashed: %s", exc, exc_info=True)
            self._set_status(f"Fetch failed: {exc}")
            self.notify(f"Error: {exc}", severity="error")
            return
        finally:
            self.fetching = False

        self._set_status(result.message)
        if result.success:
            self.load_state(result.state)
        else:
            self.notify(result.message, severity="error")

    def action_export(self) -> None:
        """Export the current table to CSV."""
        if not self.state:
            self.notify("No bikes to export", severity="warning")
            return
        try:
            manager = self.file_manager or FileManager()
            path = manager.export_csv(self.state)
        except OSError as exc:
            logger.error("Failed to export bikes", exc_info=True)
            self.notify(f"Export failed: {exc}", severity="error")
            return
        logger.info("Exported bikes to %s", path)
        self.notify(f"Exported to {path}")
