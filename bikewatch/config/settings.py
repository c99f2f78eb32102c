# bikewatch/config/settings.py

"""Central configuration for the bikewatch tracker."""

import os
from pathlib import Path
from typing import Any

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Central configuration for the bikewatch tracker."""

    # --- Vendor API ---
    API_URL: str = "https://buycycle.com/pl-pl/shop-api/get-content"
    FILTER_URL: str = (
        "/pl-pl/shop/brands/orbea/families/rise"
        "/frame-sizes/m/frame-material/carbon/sort-by/new"
    )
    BIKE_URL_TEMPLATE: str = "https://buycycle.com/pl-pl/bike/{slug}"
    PER_PAGE: int = 51                  # Single fixed page, no pagination
    FILTER_PAYLOAD: dict[str, Any] = {
        "frame-material": ["carbon"],
        "frame-sizes": ["m"],
        "brands": ["orbea"],
        "families": ["rise"],
        "sort-by": "new",
    }

    # --- Fetching ---
    REQUEST_DELAY: float = 2.0          # Base backoff between retries
    REQUEST_TIMEOUT: int = 15           # Seconds before a request times out
    MAX_RETRIES: int = 3                # Retry count on transient failures
    MAX_DELAY_MULTIPLIER: int = 8       # Cap for adaptive backoff

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"

    # Captured headers that must not be replayed verbatim
    DROPPED_HEADERS: frozenset[str] = frozenset({
        "content-length",
        "content-type",
        "host",
        "connection",
        "accept-encoding",
    })

    # --- Storage ---
    STORAGE_KEY: str = "bikeData"

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    DATA_DIR: Path = Path(
        os.getenv("BIKEWATCH_DATA_DIR", str(BASE_DIR / "data"))
    )
    STATE_DB_PATH: Path = DATA_DIR / "bikewatch.db"
    HEADERS_PATH: Path = DATA_DIR / "headers.json"
    RESULTS_DIR: Path = DATA_DIR / "results"
    CHARTS_DIR: Path = DATA_DIR / "charts"
    LOGS_DIR: Path = BASE_DIR / "logs"
