"""
logscope Stream Module - record segmentation and seek over log files.
"""

from pathlib import Path
from typing import Union

from logscope.core.schema import StreamKind
from logscope.stream.base import (
    TAIL_READ_BYTES,
    EndOfData,
    LineCursor,
    LogOpenError,
    LogStream,
    NoCurrentRecord,
    StreamClosedError,
)
from logscope.stream.rocksdb_log import RocksDBLogStream
from logscope.stream.slowlog import DEFAULT_YEAR, SlowLogStream

_STREAM_CLASSES = {
    StreamKind.ROCKSDB: RocksDBLogStream,
    StreamKind.SLOWLOG: SlowLogStream,
}


def open_stream(kind: StreamKind, path: Union[str, Path]) -> LogStream:
    """Open a record stream over `path` using the framing rule of `kind`."""
    return _STREAM_CLASSES[kind](path)


__all__ = [
    "LogStream",
    "RocksDBLogStream",
    "SlowLogStream",
    "LineCursor",
    "open_stream",
    "EndOfData",
    "NoCurrentRecord",
    "StreamClosedError",
    "LogOpenError",
    "TAIL_READ_BYTES",
    "DEFAULT_YEAR",
]
