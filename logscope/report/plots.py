"""
Metric Chart Renderer
Draws metric time series as line charts (SVG by default) with matplotlib.
"""

import logging
import math
from datetime import timedelta
from pathlib import Path
from typing import Dict, List, Tuple, Union

import matplotlib

matplotlib.use("Agg")  # Non-interactive backend
import matplotlib.dates as mdates  # noqa: E402
import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402

from logscope.core.schema import Metric  # noqa: E402

logger = logging.getLogger(__name__)

DPI = 100
ANNOTATE_TOP_N = 3

Series = Dict[str, Tuple[List, List[float]]]


def nice_upper(value: float) -> float:
    """Round up to 1, 2 or 5 times a power of ten. Non-positive values give 1."""
    if value <= 0:
        return 1.0
    pow10 = 10.0 ** math.floor(math.log10(value))
    n = value / pow10
    # guard against log10 rounding at exact powers of ten
    if n >= 10:
        pow10 *= 10
        n /= 10
    for step in (1, 2, 5):
        if n <= step:
            return step * pow10
    return 10 * pow10


def group_series(metrics: List[Metric]) -> Series:
    """Time-sorted (times, values) per metric name; unset times are dropped."""
    by_name: Dict[str, List[Metric]] = {}
    for m in metrics:
        if m.time is None:
            continue
        by_name.setdefault(m.name, []).append(m)

    series: Series = {}
    for name in sorted(by_name):
        points = sorted(by_name[name], key=lambda m: m.time)
        series[name] = ([p.time for p in points], [p.value for p in points])
    return series


def robust_ylim(values: List[float]) -> Tuple[float, float]:
    """
    Y-axis range that is not dominated by a few spikes.

    With at least 3 points the top is the 95th percentile plus 5% headroom,
    rounded up with nice_upper. A flat range is widened by 1.
    """
    arr = np.asarray(values, dtype=float)
    low = float(arr.min())
    high = float(arr.max())

    if arr.size >= 3:
        ordered = np.sort(arr)
        p95 = float(ordered[int((arr.size - 1) * 0.95)])
        if p95 > low:
            high = p95
        head = (high - low) * 0.05
        if head <= 0:
            head = 1.0
        high = nice_upper(high + head)

    if high <= low:
        high = low + 1
    return low, high


class ChartRenderer:
    """
    Renders one chart per call.

    Args:
        width: Figure width in pixels.
        height: Figure height in pixels.
        title: Chart title.
        grid: Draw grid lines.
    """

    def __init__(self, width: int = 1200, height: int = 600, title: str = "", grid: bool = True):
        self.width = width
        self.height = height
        self.title = title
        self.grid = grid

    def _draw(self, ax, series: Series, title: str) -> None:
        all_values: List[float] = []
        all_times = []

        for name, (times, values) in series.items():
            ax.plot(times, values, linewidth=1.2, label=name)
            all_values.extend(values)
            all_times.extend(times)

            # annotate the largest positive values
            arr = np.asarray(values, dtype=float)
            for idx in np.argsort(arr)[::-1][:ANNOTATE_TOP_N]:
                if arr[idx] <= 0:
                    break
                ax.annotate(
                    f"{arr[idx]:.4g}",
                    (times[idx], arr[idx]),
                    textcoords="offset points",
                    xytext=(0, 4),
                    ha="center",
                    fontsize=7,
                )

        low, high = robust_ylim(all_values)
        ax.set_ylim(low, high)

        t0, t1 = min(all_times), max(all_times)
        if t1 <= t0:
            t1 = t0 + timedelta(minutes=1)
        ax.set_xlim(t0, t1)
        ax.xaxis.set_major_formatter(mdates.DateFormatter("%m-%d %H:%M"))

        if title:
            ax.set_title(title, fontsize=12, fontweight="bold")
        if self.grid:
            ax.grid(True, alpha=0.3)
        ax.legend(loc="upper right", fontsize=8)

    def render(self, metrics: List[Metric], out_path: Union[str, Path]) -> Path:
        """
        Draw one line per metric name and save to out_path.

        Raises:
            ValueError: if there is nothing with a set time to draw.
        """
        if not metrics:
            raise ValueError("no metrics to render")
        series = group_series(metrics)
        if not series:
            raise ValueError("no valid metrics (missing time)")

        out_path = Path(out_path)
        out_path.parent.mkdir(parents=True, exist_ok=True)

        fig, ax = plt.subplots(figsize=(self.width / DPI, self.height / DPI))
        try:
            self._draw(ax, series, self.title)
            fig.autofmt_xdate()
            fig.savefig(out_path, dpi=DPI, bbox_inches="tight")
        finally:
            plt.close(fig)

        logger.info(f"Chart saved: {out_path}")
        return out_path

    def render_grid(self, panels: List[Tuple[str, List[Metric]]], out_path: Union[str, Path]) -> Path:
        """
        Compose (title, metrics) panels into one figure, two columns wide.

        Raises:
            ValueError: if no panel has anything to draw.
        """
        drawable = [(title, group_series(metrics)) for title, metrics in panels]
        drawable = [(title, series) for title, series in drawable if series]
        if not drawable:
            raise ValueError("no panels to render")

        cols = 2 if len(drawable) > 1 else 1
        rows = math.ceil(len(drawable) / cols)

        out_path = Path(out_path)
        out_path.parent.mkdir(parents=True, exist_ok=True)

        panel_w = self.width / DPI / 2
        panel_h = self.height / DPI / 1.5
        fig, axes = plt.subplots(rows, cols, figsize=(panel_w * cols, panel_h * rows), squeeze=False)
        try:
            flat = axes.flatten()
            for ax, (title, series) in zip(flat, drawable):
                self._draw(ax, series, title)
                ax.tick_params(axis="x", labelrotation=30)
            for ax in flat[len(drawable):]:
                ax.set_visible(False)
            if self.title:
                fig.suptitle(self.title, fontsize=14, fontweight="bold")
            fig.tight_layout()
            fig.savefig(out_path, dpi=DPI)
        finally:
            plt.close(fig)

        logger.info(f"Chart grid saved: {out_path} ({len(drawable)} panels)")
        return out_path
