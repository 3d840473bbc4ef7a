"""
Metric CSV Export
Persists metrics as Time,SourceCategory,Name,Value rows and loads them back.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Union

import pandas as pd

from logscope.core.schema import TIME_FORMAT, Metric, RecordCategory

logger = logging.getLogger(__name__)

CSV_COLUMNS = ["Time", "SourceCategory", "Name", "Value"]


def metrics_to_frame(metrics: List[Metric]) -> pd.DataFrame:
    """Canonical string rows as a DataFrame."""
    if not metrics:
        return pd.DataFrame(columns=CSV_COLUMNS)
    return pd.DataFrame([m.to_row() for m in metrics], columns=CSV_COLUMNS)


class MetricCSVWriter:
    """
    Writes metrics to CSV.

    Args:
        include_header: Write the header row. In append mode the header is
            suppressed whenever the target file already has content.
        delimiter: Field delimiter.
        append: Append to the target instead of truncating it.
    """

    def __init__(self, include_header: bool = True, delimiter: str = ",", append: bool = False):
        self.include_header = include_header
        self.delimiter = delimiter
        self.append = append

    def write_file(self, metrics: List[Metric], path: Union[str, Path]) -> Path:
        path = Path(path)
        header = self.include_header
        if self.append and path.exists() and path.stat().st_size > 0:
            header = False

        if path.parent and not path.parent.exists():
            path.parent.mkdir(parents=True, exist_ok=True)

        metrics_to_frame(metrics).to_csv(
            path,
            sep=self.delimiter,
            header=header,
            index=False,
            mode="a" if self.append else "w",
        )
        logger.info(f"Wrote {len(metrics)} metrics to {path}")
        return path

    def read_file(self, path: Union[str, Path]) -> List[Metric]:
        """Load a file written with a header row back into metrics."""
        df = pd.read_csv(path, sep=self.delimiter, dtype=str, keep_default_na=False)
        missing = [c for c in CSV_COLUMNS if c not in df.columns]
        if missing:
            raise ValueError(f"{path}: missing columns {missing}")

        metrics: List[Metric] = []
        for row in df.itertuples(index=False):
            time = datetime.strptime(row.Time, TIME_FORMAT) if row.Time else None
            metrics.append(
                Metric(
                    source_category=RecordCategory(row.SourceCategory),
                    time=time,
                    name=row.Name,
                    value=float(row.Value),
                )
            )
        return metrics


def write_metrics_csv(metrics: List[Metric], path: Union[str, Path], append: bool = False) -> Path:
    """Write metrics with the default header and delimiter."""
    return MetricCSVWriter(append=append).write_file(metrics, path)
