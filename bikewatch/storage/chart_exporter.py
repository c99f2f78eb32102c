# bikewatch/storage/chart_exporter.py

"""Plotly HTML chart of one bike's price history."""

import importlib
import logging
import re
import webbrowser
from datetime import datetime
from pathlib import Path
from types import ModuleType
from typing import Any

from bikewatch.config.settings import Settings
from bikewatch.models.bike import BikeRecord

logger = logging.getLogger("bikewatch.chart")


def _get_plotly_go() -> ModuleType:
    """Import plotly.graph_objects lazily."""
    return importlib.import_module("plotly.graph_objects")


def _build_chart(record: BikeRecord) -> Any:
    """Step chart of observed prices with sold markers highlighted."""
    go = _get_plotly_go()
    title = str(record.get("name") or record.id)
    dates = [e.timestamp for e in record.price_history]
    prices = [e.price for e in record.price_history]

    fig: Any = go.Figure()
    fig.add_trace(go.Scatter(
        x=dates,
        y=prices,
        mode="lines+markers",
        line={"shape": "hv"},
        name=title[:50],
        hovertemplate=(
            "%{x|%Y-%m-%d %H:%M}<br>"
            "Price: %{y}"
            "<extra></extra>"
        ),
    ))

    sold = [e for e in record.price_history if e.is_sold_marker]
    if sold:
        fig.add_trace(go.Scatter(
            x=[e.timestamp for e in sold],
            y=[e.price for e in sold],
            mode="markers",
            marker={"symbol": "x", "size": 12, "color": "red"},
            name="sold",
        ))

    fig.update_layout(
        title=f"Price History — {title[:60]}",
        xaxis_title="Date",
        yaxis_title="Price",
        hovermode="x unified",
        template="plotly_white",
    )
    return fig


def export_price_chart(
    record: BikeRecord,
    charts_dir: Path | None = None,
    open_browser: bool = True,
) -> Path | None:
    """Write a bike's price chart to HTML; ``None`` without history."""
    if not record.price_history:
        logger.warning("No price history to chart for bike %s", record.id)
        return None

    fig = _build_chart(record)
    directory = charts_dir or Settings.CHARTS_DIR
    directory.mkdir(parents=True, exist_ok=True)
    slug = re.sub(r"[^A-Za-z0-9_-]+", "_", str(record.get("slug") or record.id))
    filepath = directory / f"{slug[:40]}_{datetime.now():%Y%m%d_%H%M%S}.html"
    fig.write_html(str(filepath))
    logger.info("Chart saved to %s", filepath)

    if open_browser:
        webbrowser.open(filepath.as_uri())
    return filepath
