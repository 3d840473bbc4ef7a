"""
logscope Core Module - Schemas and utilities.
"""

from logscope.core.schema import *
from logscope.core.utils import *

__all__ = [
    "Record",
    "Metric",
    "RecordCategory",
    "StreamKind",
    "AggregateMode",
    "format_time",
    "format_value",
    "parse_time_flexible",
    "parse_duration",
    "setup_logging",
]
