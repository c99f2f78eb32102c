# bikewatch/config/logging_config.py

"""Per-run logging setup for bikewatch.

Every launch (CLI command or TUI session) writes to its own file in
``logs/`` named after the launch time, e.g. ``logs/run_20261019_081500.log``.
All ``bikewatch.*`` loggers propagate to the project logger configured
here, so the fetcher, the reconciler and the store share one log per run.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from bikewatch.config.settings import Settings

_FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | "
    "%(module)s:%(funcName)s:%(lineno)d | %(message)s"
)
_CONSOLE_FORMAT = "%(levelname)-8s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

PROJECT_LOGGER = "bikewatch"


def setup_logging(
    logs_dir: Path | None = None,
    console_level: int = logging.WARNING,
) -> Path:
    """Attach a per-run file handler and a stderr handler.

    Repeated calls reuse the handlers installed by the first call.

    Returns:
        The path of the log file for this run.
    """
    directory = logs_dir or Settings.LOGS_DIR
    directory.mkdir(parents=True, exist_ok=True)
    log_file = directory / f"run_{datetime.now():%Y%m%d_%H%M%S}.log"

    project_logger = logging.getLogger(PROJECT_LOGGER)
    project_logger.setLevel(logging.DEBUG)
    for handler in project_logger.handlers:
        if isinstance(handler, logging.FileHandler):
            return Path(handler.baseFilename)
    if project_logger.handlers:
        return log_file

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT)
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(
        logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT)
    )

    project_logger.addHandler(file_handler)
    project_logger.addHandler(console_handler)
    project_logger.info("Logging to %s", log_file)
    return log_file
