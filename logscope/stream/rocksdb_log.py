"""
RocksDB LOG Stream
Segments a RocksDB LOG file into records framed by microsecond timestamp heads.

Every line starting with YYYY/MM/DD-HH:MM:SS.ffffff opens a record; lines up
to the next head belong to it. RocksDB writes one stats dump as two headed
blocks ("DUMPING STATS" followed by the DB Stats header from db_impl.cc:670),
so a DUMP record also swallows that second block.
"""

import logging
import re
from datetime import datetime
from typing import List, Optional

from logscope.core.schema import Record, RecordCategory
from logscope.stream.base import LogStream, strip_log_prefix

logger = logging.getLogger(__name__)

HEAD_RE = re.compile(r"^[0-9]{4}/[0-9]{2}/[0-9]{2}-[0-9]{2}:[0-9]{2}:[0-9]{2}\.[0-9]+")

_HEAD_TIME_RE = re.compile(
    r"^([0-9]{4})/([0-9]{2})/([0-9]{2})-([0-9]{2}):([0-9]{2}):([0-9]{2})(?:\.([0-9]+))?$"
)

# Secondary head that carries the second half of a stats dump.
DB_STATS_MARKER = "[/db_impl.cc:670]"

_EVENT_MARKERS = (
    '"event": "compaction_started"',
    '"event": "compaction_finished"',
    '"event": "flush_started"',
    '"event": "flush_finished"',
    '"event": "trival_move"',
    '"event": "trivial_move"',
    '"event": "table_file_creation"',
    '"event": "table_file_deletion"',
    "Stalling writes because of estimated pending compaction bytes",
    "Stopping writes because of estimated pending compaction bytes",
)


def is_head(line: str) -> bool:
    return HEAD_RE.match(strip_log_prefix(line)) is not None


def is_db_stats_head(line: str) -> bool:
    return DB_STATS_MARKER in strip_log_prefix(line)


def parse_head_time(line: str) -> Optional[datetime]:
    """
    Parse the timestamp token at the start of a line.

    Accepts second precision and any number of fraction digits (truncated to
    microseconds). Returns None when the token is not a valid timestamp.
    """
    token = strip_log_prefix(line).split(" ", 1)[0]
    m = _HEAD_TIME_RE.match(token)
    if not m:
        return None

    year, month, day, hour, minute, second = (int(g) for g in m.groups()[:6])
    fraction = m.group(7) or ""
    micros = int(fraction[:6].ljust(6, "0")) if fraction else 0
    try:
        return datetime(year, month, day, hour, minute, second, micros)
    except ValueError:
        return None


def classify_head(line: str) -> RecordCategory:
    s = strip_log_prefix(line)
    if "STATISTICS" in s:
        return RecordCategory.STATISTICS
    if "DUMPING STATS" in s:
        return RecordCategory.DUMP
    # A DB Stats header met on its own is still the dump's second half.
    if is_db_stats_head(line):
        return RecordCategory.DUMP
    return RecordCategory.OTHER


def classify_by_content(lines: List[str]) -> RecordCategory:
    """Classify a record whose head gave no signal, strongest signal first."""
    for line in lines:
        s = line.strip()
        lowered = s.lower()
        if any(marker in s for marker in _EVENT_MARKERS):
            return RecordCategory.EVENTS
        if "table_file_creation" in lowered or "table_file_deletion" in lowered:
            return RecordCategory.EVENTS

    for line in lines:
        if "STATISTICS" in line:
            return RecordCategory.STATISTICS
        if "DUMPING STATS" in line or line.strip().startswith("** DB Stats **"):
            return RecordCategory.DUMP

    return RecordCategory.OTHER


class RocksDBLogStream(LogStream):
    """Record stream over a RocksDB LOG file."""

    def _scan_to(self, at: datetime) -> Optional[Record]:
        while True:
            line = self._cursor.next_line()
            if line is None:
                return None
            if not is_head(line):
                continue

            head_time = parse_head_time(line)
            if head_time is not None and head_time >= at:
                return self._build(line, head_time)

            # Earlier record: drop its body without building it.
            self._read_continuation(keep=False)

    def _advance(self) -> Optional[Record]:
        while True:
            line = self._cursor.next_line()
            if line is None:
                return None
            if not is_head(line):
                continue

            head_time = parse_head_time(line)
            if head_time is None:
                logger.debug(f"{self.path}: skipping head with unparsable timestamp: {line[:40]!r}")
                self._read_continuation(keep=False)
                continue
            return self._build(line, head_time)

    def _latest_head_time(self, lines: List[str]) -> Optional[datetime]:
        latest = None
        for line in lines:
            t = parse_head_time(line)
            if t is not None and (latest is None or t > latest):
                latest = t
        return latest

    def _read_continuation(self, keep: bool = True) -> List[str]:
        """Consume lines up to (not including) the next head."""
        lines: List[str] = []
        while True:
            line = self._cursor.next_line()
            if line is None:
                break
            if is_head(line):
                self._cursor.unread(line)
                break
            if keep:
                lines.append(line)
        return lines

    def _build(self, head: str, head_time: datetime) -> Record:
        category = classify_head(head)
        lines = [head]

        while True:
            line = self._cursor.next_line()
            if line is None:
                break
            if is_head(line):
                if category is RecordCategory.DUMP and is_db_stats_head(line):
                    lines.append(line)
                    lines.extend(self._read_continuation())
                    break
                self._cursor.unread(line)
                break
            lines.append(line)

        if category is RecordCategory.OTHER:
            category = classify_by_content(lines)

        return Record(start_time=head_time, lines=lines, category=category)
