"""
logscope Report Module - CSV export, chart configuration and rendering.
"""

from logscope.report.charts import (
    ChartConfigError,
    ChartGroup,
    ChartOrchestrator,
    ChartsConfig,
    ExprSpec,
    load_charts_config,
    parse_charts_spec,
    pick_agg_mode,
    select_metrics,
)
from logscope.report.csv_export import MetricCSVWriter, write_metrics_csv
from logscope.report.plots import ChartRenderer, nice_upper

__all__ = [
    "ChartConfigError",
    "ChartGroup",
    "ChartOrchestrator",
    "ChartsConfig",
    "ExprSpec",
    "load_charts_config",
    "parse_charts_spec",
    "pick_agg_mode",
    "select_metrics",
    "MetricCSVWriter",
    "write_metrics_csv",
    "ChartRenderer",
    "nice_upper",
]
