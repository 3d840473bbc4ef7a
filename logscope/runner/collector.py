"""
Metric Collector
Drives streams and extractors over log files for a time window.
"""

import glob
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterator, List, Union

from logscope.core.schema import Metric, Record, StreamKind, format_time
from logscope.extract import get_extractor
from logscope.stream import EndOfData, open_stream

logger = logging.getLogger(__name__)


def expand_paths(pattern: str) -> List[str]:
    """Sorted glob expansion; a pattern matching nothing yields no paths."""
    return sorted(glob.glob(pattern))


class MetricCollector:
    """
    Collects metrics from log files for records starting within [start, end].

    Usage:
        collector = MetricCollector(start, end)
        metrics = collector.collect({"LOG": "/data/db/LOG*", "SLOWLOG": "/data/pika.slow*"})
    """

    def __init__(self, start: datetime, end: datetime):
        self.start = start
        self.end = end

    def iter_records(self, kind: StreamKind, path: Union[str, Path]) -> Iterator[Record]:
        """Yield records of `path` whose head time lies within the window."""
        with open_stream(kind, path) as stream:
            try:
                record = stream.seek(self.start)
            except EndOfData:
                logger.debug(f"{path}: nothing at or after {format_time(self.start)}")
                return

            while record.start_time <= self.end:
                yield record
                if not stream.next():
                    break
                record = stream.value()

    def collect_file(self, kind: StreamKind, path: Union[str, Path]) -> List[Metric]:
        """Extract metrics from every in-window record of one file."""
        extractor = get_extractor(kind)
        metrics: List[Metric] = []
        records = 0
        for record in self.iter_records(kind, path):
            records += 1
            metrics.extend(extractor.parse(record))

        logger.info(f"{path}: {records} records, {len(metrics)} metrics")
        return metrics

    def collect(self, file_types: Dict[str, str]) -> List[Metric]:
        """
        Collect from a mapping of file type (LOG, ROCKSDB, SLOWLOG) to glob pattern.
        Unknown file types are logged and skipped.
        """
        metrics: List[Metric] = []
        for type_name, pattern in file_types.items():
            try:
                kind = StreamKind.from_name(type_name)
            except ValueError:
                logger.warning(f"Unknown file type {type_name!r}, skipping {pattern}")
                continue

            paths = expand_paths(pattern)
            if not paths:
                logger.warning(f"No files match {pattern}")
            for path in paths:
                metrics.extend(self.collect_file(kind, path))

        return metrics
