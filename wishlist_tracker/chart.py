"""Render price-history line charts as PNG images."""

from __future__ import annotations

import io
import re
from datetime import date, datetime
from typing import Iterable, Optional

from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.dates import DateFormatter
from matplotlib.figure import Figure
from matplotlib.ticker import FuncFormatter

from .models import PriceHistory

WIDTH = 600
HEIGHT = 280
_DPI = 100

_LINE_COLOUR = "#2563eb"
_LABEL_COLOUR = "#16a34a"
_CANVAS_COLOUR = "#f8fafc"
_DAY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class ChartError(Exception):
    """Raised when a chart cannot be drawn from the given history."""


def _parse_day(text: object) -> Optional[datetime]:
    if not isinstance(text, str) or not _DAY_RE.match(text):
        return None
    try:
        day = date.fromisoformat(text)
    except ValueError:
        return None
    return datetime(day.year, day.month, day.day)


def _money(value: float, _position: object = None) -> str:
    # The dollar sign is escaped so it is never read as math markup.
    return rf"\${value:.2f}"


def render(history: Iterable[PriceHistory], product_name: str) -> bytes:
    """Draw the price history as a PNG and return its bytes."""
    entries = list(history)
    if len(entries) < 2:
        raise ChartError(f"need at least 2 data points, got {len(entries)}")

    points = [
        (day, entry.price)
        for entry in entries
        if (day := _parse_day(entry.date)) is not None
    ]
    if len(points) < 2:
        raise ChartError("not enough valid data points after parsing")

    days = [day for day, _ in points]
    prices = [price for _, price in points]
    low, high = min(prices), max(prices)
    padding = max((high - low) * 0.15, 0.5)

    figure = Figure(figsize=(WIDTH / _DPI, HEIGHT / _DPI), dpi=_DPI, facecolor="white")
    FigureCanvasAgg(figure)
    axes = figure.add_subplot()
    axes.set_facecolor(_CANVAS_COLOUR)
    axes.plot(
        days,
        prices,
        color=_LINE_COLOUR,
        linewidth=2.5,
        marker="o",
        markersize=3,
        markerfacecolor=_LINE_COLOUR,
        markeredgecolor=_LINE_COLOUR,
    )
    axes.set_ylim(low - padding, high + padding)
    axes.yaxis.set_major_formatter(FuncFormatter(_money))
    axes.xaxis.set_major_formatter(DateFormatter("%Y-%m-%d"))
    axes.tick_params(axis="x", labelsize=8)
    axes.tick_params(axis="y", labelsize=9)
    axes.set_title(product_name.replace("$", r"\$"), fontsize=12)
    axes.annotate(
        _money(prices[-1]),
        xy=(days[-1], prices[-1]),
        xytext=(6, 0),
        textcoords="offset points",
        ha="left",
        va="center",
        fontsize=10,
        color="white",
        bbox={
            "boxstyle": "square,pad=0.4",
            "facecolor": _LABEL_COLOUR,
            "edgecolor": _LABEL_COLOUR,
        },
        annotation_clip=False,
    )
    figure.subplots_adjust(left=0.12, right=0.86, top=0.88, bottom=0.12)

    buffer = io.BytesIO()
    try:
        figure.savefig(buffer, format="png", dpi=_DPI, facecolor=figure.get_facecolor())
    except (ValueError, RuntimeError, OSError) as exc:
        raise ChartError(f"render chart: {exc}") from exc
    return buffer.getvalue()