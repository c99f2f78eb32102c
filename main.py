# main.py

"""Entry point for bikewatch (TUI or headless CLI commands)."""

import argparse
import logging
import sys
from pathlib import Path

from bikewatch.config.logging_config import setup_logging
from bikewatch.presentation.bike_table import COLUMNS

logger = logging.getLogger("bikewatch.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="bikewatch",
        description="Track buycycle.com listings and their price history.",
        epilog="Run without a command to open the interactive table.",
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        dest="db_path",
        help="State database path (default: data/bikewatch.db).",
    )
    commands = parser.add_subparsers(dest="command")

    fetch = commands.add_parser(
        "fetch", help="Fetch listings and update the stored history.",
    )
    fetch.add_argument(
        "--headers",
        type=Path,
        default=None,
        dest="headers_path",
        help="Captured headers file (default: data/headers.json).",
    )
    fetch.add_argument(
        "--archive",
        action="store_true",
        default=False,
        help="Also save the raw API snapshot under results/.",
    )

    show = commands.add_parser("show", help="Print the stored bikes.")
    show.add_argument(
        "-s",
        "--sort",
        default=None,
        dest="sort_by",
        help=f"Column to sort by: {', '.join(COLUMNS)}.",
    )
    show.add_argument(
        "--desc",
        action="store_true",
        default=False,
        help="Sort descending.",
    )

    export = commands.add_parser(
        "export", help="Export the stored bikes to CSV.",
    )
    export.add_argument(
        "--json",
        action="store_true",
        default=False,
        dest="as_json",
        help="Export the raw stored state as JSON instead.",
    )

    chart = commands.add_parser(
        "chart", help="Write a price history chart for one bike.",
    )
    chart.add_argument("bike_id", help="Vendor bike id.")
    chart.add_argument(
        "--no-open",
        action="store_false",
        default=True,
        dest="open_browser",
        help="Do not open the chart in a browser.",
    )

    import_state = commands.add_parser(
        "import-state",
        help="Replace the stored state with a JSON export.",
    )
    import_state.add_argument("file", type=Path)

    capture = commands.add_parser(
        "capture-headers",
        help="Store request headers copied from the browser.",
    )
    capture.add_argument(
        "file",
        type=Path,
        help="JSON headers or raw 'Name: value' lines.",
    )
    capture.add_argument(
        "--headers",
        type=Path,
        default=None,
        dest="headers_path",
        help="Where to store them (default: data/headers.json).",
    )
    return parser


def _run_tui(db_path: Path | None) -> None:
    """Launch the interactive Textual table."""
    from bikewatch.scrapers.buycycle_client import BuycycleClient
    from bikewatch.scrapers.credentials import FileCredentialProvider
    from bikewatch.services.tracker import BikeTracker
    from bikewatch.storage.state_store import StateStore
    from bikewatch.ui.app import BikewatchApp

    store = StateStore(db_path)
    tracker = BikeTracker(
        BuycycleClient(FileCredentialProvider()), store,
    )
    try:
        BikewatchApp(store, tracker).run()
    except Exception:
        logger.critical("Fatal error during TUI run", exc_info=True)
        raise
    finally:
        store.close()
        logger.info("bikewatch TUI shutting down")


def _run_command(args: argparse.Namespace) -> int:
    """Dispatch a headless command and return its exit code."""
    from bikewatch.cli import runner

    if args.command == "fetch":
        return runner.run_fetch(
            headers_path=args.headers_path,
            db_path=args.db_path,
            archive=args.archive,
        )
    if args.command == "show":
        return runner.run_show(
            sort_by=args.sort_by,
            descending=args.desc,
            db_path=args.db_path,
        )
    if args.command == "export":
        return runner.run_export(as_json=args.as_json, db_path=args.db_path)
    if args.command == "chart":
        return runner.run_chart(
            args.bike_id,
            open_browser=args.open_browser,
            db_path=args.db_path,
        )
    if args.command == "import-state":
        return runner.run_import_state(args.file, db_path=args.db_path)
    return runner.run_capture_headers(
        args.file, headers_path=args.headers_path,
    )


def main() -> None:
    """Route to the TUI (no command) or a headless command."""
    log_file = setup_logging()
    logger.info("bikewatch starting — log file: %s", log_file)

    args = _build_parser().parse_args()
    if args.command is None:
        _run_tui(args.db_path)
    else:
        sys.exit(_run_command(args))


if __name__ == "__main__":
    main()
