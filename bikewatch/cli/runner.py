# bikewatch/cli/runner.py

"""Headless CLI commands: fetch, show, export, chart, import, capture."""

import logging
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from bikewatch.config.settings import Settings
from bikewatch.presentation.bike_table import (
    COLUMNS,
    build_rows,
    resolve_column,
    sort_rows,
)
from bikewatch.scrapers.buycycle_client import BuycycleClient
from bikewatch.scrapers.credentials import (
    FileCredentialProvider,
    capture_headers,
)
from bikewatch.scrapers.errors import MissingAuthContextError
from bikewatch.services.tracker import BikeTracker
from bikewatch.storage.file_manager import FileManager
from bikewatch.storage.state_codec import CorruptStateError
from bikewatch.storage.state_store import StateStore

logger = logging.getLogger("bikewatch.cli")

# Stderr console for status messages so stdout stays clean for tables
_err = Console(stderr=True)

_STATUS_STYLES = {"available": "green", "sold": "red"}


def _print_table(rows: list[list[str]], title: str) -> None:
    """Render the bike table to stdout."""
    table = Table(title=title, show_lines=True, title_style="bold cyan")
    for name in COLUMNS:
        justify = (
            "right" if name in ("Year", "Current Price", "MSRP") else "left"
        )
        table.add_column(name, justify=justify, overflow="fold")
    status_index = COLUMNS.index("Status")
    for row in rows:
        # Text cells so vendor strings are never parsed as markup
        cells = [Text(cell) for cell in row]
        style = _STATUS_STYLES.get(row[status_index])
        if style:
            cells[status_index].stylize(style)
        table.add_row(*cells)
    Console().print(table)


def run_fetch(
    headers_path: Path | None = None,
    db_path: Path | None = None,
    archive: bool = False,
) -> int:
    """Fetch one snapshot and reconcile it into the stored state."""
    store = StateStore(db_path)
    try:
        client = BuycycleClient(FileCredentialProvider(headers_path))
        tracker = BikeTracker(
            client, store, FileManager() if archive else None,
        )
        _err.print("[bold]Capturing data...[/bold]")
        result = tracker.run_cycle()
    finally:
        store.close()

    if not result.success:
        _err.print(f"[red]{escape(result.message)}[/red]")
        return 1

    _err.print(f"[green]✓ {escape(result.message)}[/green]")
    stats = result.stats
    if stats is not None:
        if stats.new_ids:
            _err.print(f"[dim]New: {escape(', '.join(stats.new_ids))}[/dim]")
        if stats.sold_ids:
            _err.print(f"[dim]Sold: {escape(', '.join(stats.sold_ids))}[/dim]")
    return 0


def run_show(
    sort_by: str | None = None,
    descending: bool = False,
    db_path: Path | None = None,
) -> int:
    """Print the stored bikes as a table, optionally sorted."""
    store = StateStore(db_path)
    try:
        state = store.load()
    finally:
        store.close()

    if not state:
        _err.print("[yellow]No bike data found in storage.[/yellow]")
        return 1

    rows = build_rows(state)
    if sort_by:
        try:
            column = resolve_column(sort_by)
        except ValueError as exc:
            _err.print(f"[red]{escape(str(exc))}[/red]")
            return 1
        rows = sort_rows(rows, column, ascending=not descending)
    _print_table(rows, title=f"Tracked bikes ({len(rows)})")
    return 0


def run_export(
    as_json: bool = False, db_path: Path | None = None,
) -> int:
    """Export the stored bikes to CSV, or the raw state to JSON."""
    store = StateStore(db_path)
    try:
        state = store.load()
        if not state:
            _err.print("[yellow]No bike data found in storage.[/yellow]")
            return 1
        file_manager = FileManager()
        if as_json:
            path = file_manager.results_dir / (
                f"{Settings.STORAGE_KEY}_{file_manager.stamp()}.json"
            )
            store.export_file(path)
        else:
            path = file_manager.export_csv(state)
    except OSError as exc:
        logger.error("Export failed: %s", exc, exc_info=True)
        _err.print(f"[red]Export failed: {escape(str(exc))}[/red]")
        return 1
    finally:
        store.close()
    _err.print(f"[green]✓ Exported {len(state)} bikes → {path}[/green]")
    return 0


def run_chart(
    bike_id: str,
    open_browser: bool = True,
    db_path: Path | None = None,
) -> int:
    """Write the price history chart for one bike."""
    from bikewatch.storage.chart_exporter import export_price_chart

    store = StateStore(db_path)
    try:
        record = store.load().get(bike_id)
    finally:
        store.close()
    if record is None:
        _err.print(f"[red]Unknown bike id: {escape(bike_id)}[/red]")
        return 1
    path = export_price_chart(record, open_browser=open_browser)
    if path is None:
        _err.print("[yellow]No price history to chart.[/yellow]")
        return 1
    _err.print(f"[green]✓ Chart saved → {path}[/green]")
    return 0


def run_import_state(
    filepath: Path, db_path: Path | None = None,
) -> int:
    """Replace the stored state with a JSON export (map or legacy array)."""
    store = StateStore(db_path)
    try:
        count = store.import_file(filepath)
    except (CorruptStateError, OSError) as exc:
        logger.error("Import of %s failed: %s", filepath, exc)
        _err.print(f"[red]Import failed: {escape(str(exc))}[/red]")
        return 1
    finally:
        store.close()
    _err.print(f"[green]✓ Imported {count} bikes from {filepath}[/green]")
    return 0


def run_capture_headers(
    source: Path, headers_path: Path | None = None,
) -> int:
    """Store request headers copied from the browser."""
    try:
        count = capture_headers(source, headers_path)
    except (MissingAuthContextError, OSError) as exc:
        _err.print(f"[red]{escape(str(exc))}[/red]")
        return 1
    target = headers_path or Settings.HEADERS_PATH
    _err.print(f"[green]✓ Stored {count} headers → {target}[/green]")
    return 0
