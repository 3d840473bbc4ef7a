"""
Log Stream Base
Pull cursor over the lines of a log file, shared seek logic and the stream error types.

A stream turns a finite log file into an ordered sequence of Records. Concrete
streams decide what a record head looks like and which lines a record absorbs;
this module owns the file handle, the one-line lookahead and the tail heuristic
that answers "is there anything after time T?" without scanning the whole file.
"""

import logging
import os
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, Iterator, List, Optional, Union

from logscope.core.schema import Record, format_time

logger = logging.getLogger(__name__)

# Size of the window read from the end of the file by the tail heuristic.
TAIL_READ_BYTES = 1024 * 1024

LINE_SOURCE_PREFIX = "LOG:"


class EndOfData(Exception):
    """No further record exists at or after the requested position."""


class NoCurrentRecord(LookupError):
    """value() was called while no record is current."""


class StreamClosedError(RuntimeError):
    """The stream was used after close()."""


class LogOpenError(OSError):
    """The log file could not be opened."""


def strip_log_prefix(line: str) -> str:
    """Drop an optional 'LOG:' line-source prefix and any leading spaces."""
    if line.startswith(LINE_SOURCE_PREFIX):
        line = line[len(LINE_SOURCE_PREFIX):]
    return line.lstrip(" ")


class LineCursor:
    """
    Line reader with a single-slot pushback buffer.

    Pushing back a second line before the first one was consumed is a
    programming error and raises AssertionError instead of overwriting.
    """

    def __init__(self, fileobj: BinaryIO, encoding: str = "utf-8"):
        self._file = fileobj
        self._encoding = encoding
        self._pending: Optional[str] = None
        self.lines_read = 0

    def next_line(self) -> Optional[str]:
        """Return the next line without its line terminator, or None at end of input."""
        if self._pending is not None:
            line, self._pending = self._pending, None
            return line

        raw = self._file.readline()
        if not raw:
            return None
        self.lines_read += 1
        return raw.decode(self._encoding, errors="replace").rstrip("\r\n")

    def unread(self, line: str) -> None:
        """Push one line back so the next call to next_line() returns it."""
        if self._pending is not None:
            raise AssertionError("unread buffer already occupied")
        self._pending = line


class LogStream(ABC):
    """
    Base class for record streams over a single log file.

    Usage:
        with open_stream(StreamKind.ROCKSDB, "LOG") as stream:
            record = stream.seek(start)
            while record.start_time <= end:
                ...
                if not stream.next():
                    break
                record = stream.value()
    """

    def __init__(self, path: Union[str, Path], encoding: str = "utf-8"):
        self.path = Path(path)
        self._file: Optional[BinaryIO] = None
        self._current: Optional[Record] = None

        try:
            self._file = open(self.path, "rb")
        except OSError as e:
            raise LogOpenError(e.errno, f"Cannot open log file {self.path}: {e.strerror}") from e

        try:
            self._cursor = LineCursor(self._file, encoding=encoding)
        except Exception:
            self.close()
            raise

    # ------------------------------------------------------------------
    # Framing hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def _scan_to(self, at: datetime) -> Optional[Record]:
        """Build the first qualifying record whose head time is >= at."""

    @abstractmethod
    def _advance(self) -> Optional[Record]:
        """Build the next qualifying record after the current position."""

    @abstractmethod
    def _latest_head_time(self, lines: List[str]) -> Optional[datetime]:
        """Latest head timestamp among lines, or None if none can be parsed."""

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._file is None

    @property
    def lines_read(self) -> int:
        """Number of lines pulled from the file by the forward cursor."""
        return self._cursor.lines_read

    def seek(self, at: datetime) -> Record:
        """
        Position on the first record whose head time is at or after `at`.

        When the tail check alone decides there is nothing after `at`, the
        stream is left at the start of the file; a following `next()` begins
        again from the first record, so callers should stop on `EndOfData`.

        Returns:
            The record that is now current.

        Raises:
            EndOfData: if no such record exists.
            StreamClosedError: if the stream was closed.
        """
        self._ensure_open()

        if not self._has_any_after(at):
            logger.debug(f"{self.path}: last head is not after {format_time(at)}, skipping scan")
            self._current = None
            raise EndOfData(f"No record at or after {format_time(at)} in {self.path}")

        self._current = self._scan_to(at)
        if self._current is None:
            raise EndOfData(f"No record at or after {format_time(at)} in {self.path}")
        return self._current

    def next(self) -> bool:
        """Advance to the next record. Returns False once the input is exhausted."""
        self._ensure_open()
        self._current = self._advance()
        return self._current is not None

    def value(self) -> Record:
        """Return the current record."""
        if self._current is None:
            raise NoCurrentRecord("No current record")
        return self._current

    def close(self) -> None:
        """Release the file handle. Safe to call more than once."""
        if self._file is not None:
            try:
                self._file.close()
            finally:
                self._file = None
                self._current = None

    def __enter__(self) -> "LogStream":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[Record]:
        """Yield the current record (if any) and every record after it."""
        if self._current is None and not self.next():
            return
        while True:
            yield self._current
            if not self.next():
                return

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._file is None:
            raise StreamClosedError(f"Stream over {self.path} is closed")

    def _read_at(self, offset: int, size: int = -1) -> bytes:
        """Read raw bytes at an absolute offset without disturbing the cursor position."""
        pos = self._file.tell()
        try:
            self._file.seek(offset)
            return self._file.read(size)
        finally:
            self._file.seek(pos)

    def _has_any_after(self, at: datetime) -> bool:
        """
        Tail heuristic: inspect the last TAIL_READ_BYTES of the file.

        Returns False only when the tail holds a parsable head and the latest
        one is not after `at`. An inconclusive tail returns True so the caller
        falls back to a full forward scan.
        """
        try:
            size = os.fstat(self._file.fileno()).st_size
        except OSError as e:
            logger.debug(f"{self.path}: stat failed ({e}), falling back to full scan")
            return True

        if size <= 0:
            return False

        try:
            data = self._read_at(max(0, size - TAIL_READ_BYTES))
        except OSError as e:
            logger.debug(f"{self.path}: tail read failed ({e}), falling back to full scan")
            return True

        lines = data.decode("utf-8", errors="replace").splitlines()
        latest = self._latest_head_time(lines)
        if latest is None:
            logger.debug(f"{self.path}: no parsable head in tail window, falling back to full scan")
            return True
        return latest > at
