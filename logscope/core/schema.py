"""
logscope Data Schema Definitions
Dataclasses and enums shared by the streams, extractors, aggregator and expression engine.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

# Canonical textual timestamp layout, e.g. 2025/11/30-03:16:58.152255
TIME_FORMAT = "%Y/%m/%d-%H:%M:%S.%f"


class RecordCategory(Enum):
    """Kind of a logical log record (and provenance tag of a metric)."""

    DUMP = "DUMP"  # DUMPING STATS block merged with its DB Stats half
    STATISTICS = "STATISTICS"
    EVENTS = "EVENTS"  # compaction/flush/table-file events and stall notices
    SLOWLOG = "SLOWLOG"
    OTHER = "OTHER"
    EXPR = "EXPR"  # derived series produced by the expression engine


class StreamKind(Enum):
    """Framing rule used to segment a log file into records."""

    ROCKSDB = "rocksdb"
    SLOWLOG = "slowlog"

    @classmethod
    def from_name(cls, name: str) -> "StreamKind":
        """Resolve a user-facing file type name (LOG, ROCKSDB, SLOWLOG)."""
        key = name.strip().lower()
        if key in ("log", "rocksdb"):
            return cls.ROCKSDB
        if key == "slowlog":
            return cls.SLOWLOG
        raise ValueError(f"Unknown log type: {name}")


class AggregateMode(Enum):
    """Bucket reduction mode. The value is the suffix appended to metric names."""

    COUNT = "Count"
    SUM = "Sum"
    FIRST = "First"
    AVG = "Avg"
    DELTA = "Delta"

    @property
    def suffix(self) -> str:
        return f"_{self.value}"


@dataclass
class Record:
    """
    One logical log entry: a head line plus the continuation lines that belong to it.

    A fresh Record is built every time a stream advances; streams never hand out
    the same object twice.
    """

    start_time: Optional[datetime]
    lines: List[str] = field(default_factory=list)
    category: RecordCategory = RecordCategory.OTHER

    @property
    def head(self) -> str:
        return self.lines[0] if self.lines else ""


@dataclass(frozen=True)
class Metric:
    """
    A single numeric datum.

    Attributes:
        source_category: Category of the record (or EXPR for derived series).
        time: Point time or bucket-aligned time. None means unset.
        name: Metric name, possibly suffixed by an aggregation mode.
        value: The metric value.
    """

    source_category: RecordCategory
    time: Optional[datetime]
    name: str
    value: float

    def to_row(self) -> List[str]:
        """Canonical row: Time, SourceCategory, Name, Value."""
        return [
            format_time(self.time),
            self.source_category.value,
            self.name,
            format_value(self.value),
        ]


def format_time(t: Optional[datetime]) -> str:
    """Format a timestamp as YYYY/MM/DD-HH:MM:SS.ffffff; unset times render empty."""
    if t is None:
        return ""
    return t.strftime(TIME_FORMAT)


def format_value(value: float) -> str:
    """Shortest round-trip form; integral values are written without a fraction."""
    value = float(value)
    if value.is_integer() and abs(value) < 1e16:
        return str(int(value))
    return repr(value)
