"""
Slow Log Stream
Segments a Pika glog-style slow-query log into one record per slow command.

glog heads carry month/day but no year (I1130 03:16:58.152255 ...). The year
is recovered from "Log file created at: YYYY/..." lines and kept in a single
field that only moves forward while the file is scanned.
"""

import logging
import re
from datetime import datetime
from typing import List, Optional, Tuple

from logscope.core.schema import Record, RecordCategory
from logscope.stream.base import LogStream, strip_log_prefix

logger = logging.getLogger(__name__)

# Year assumed for glog heads until a "created at" marker has been seen.
DEFAULT_YEAR = 2025

# Window at the start of the file searched for the year by the tail heuristic.
HEAD_READ_BYTES = 128 * 1024

GLOG_TS_RE = re.compile(r"^[IWEF]([0-9]{2})([0-9]{2})\s([0-9]{2}):([0-9]{2}):([0-9]{2})(?:\.([0-9]+))?")
CREATED_RE = re.compile(
    r"^Log file created at:\s*([0-9]{4})/([0-9]{2})/([0-9]{2})\s+([0-9]{2}:[0-9]{2}:[0-9]{2})"
)
CMD_QUOTED_RE = re.compile(r'\bcommand\s*:\s*"([^"]+)"', re.IGNORECASE)
CMD_SHORT_RE = re.compile(r"\bcmd\s*:\s*([a-z_]+)", re.IGNORECASE)
START_SEC_RE = re.compile(r"\bstart_time\(s\)\s*:\s*([0-9]+)\b")

REPL_WORKER_MARKER = "pika_repl_bgworker.cc"


def parse_glog_time(line: str, year: int) -> Optional[datetime]:
    """Parse a glog head timestamp using the given year. None if the line is not a head."""
    m = GLOG_TS_RE.match(strip_log_prefix(line))
    if not m:
        return None

    month, day, hour, minute, second = (int(g) for g in m.groups()[:5])
    fraction = m.group(6) or ""
    micros = int(fraction[:6].ljust(6, "0")) if fraction else 0
    try:
        return datetime(year, month, day, hour, minute, second, micros)
    except ValueError:
        return None


def parse_created_year(line: str) -> Optional[int]:
    m = CREATED_RE.match(strip_log_prefix(line))
    return int(m.group(1)) if m else None


def is_command_head(line: str) -> bool:
    """True if the line opens a slow-command record."""
    s = strip_log_prefix(line).strip()
    lowered = s.lower()
    if CMD_QUOTED_RE.search(s):
        return True
    # replication worker slow line: ... pika_repl_bgworker.cc ... command: pkbulkload ...
    if REPL_WORKER_MARKER in s and "command:" in lowered:
        return True
    if START_SEC_RE.search(s) and ("command:" in lowered or "cmd:" in lowered):
        return True
    return False


def extract_command(line: str) -> Tuple[str, str]:
    """Return (upper-cased command token, start_time(s) value) of a head; empty strings if absent."""
    s = strip_log_prefix(line).strip()
    start = START_SEC_RE.search(s)
    start_sec = start.group(1) if start else ""

    m = CMD_QUOTED_RE.search(s)
    if m:
        return m.group(1).strip().upper(), start_sec

    idx = s.lower().find("command:")
    if idx >= 0:
        fields = s[idx + len("command:"):].split()
        if fields:
            return fields[0].strip('",').upper(), start_sec

    return "", ""


def is_debug_for_command(line: str, command: str) -> bool:
    """True if the line is a debug trace (cmd: <name>) for the given command."""
    if not command:
        return False
    m = CMD_SHORT_RE.search(line.strip().lower())
    return m is not None and m.group(1).strip().upper() == command


def start_seconds(line: str) -> str:
    m = START_SEC_RE.search(strip_log_prefix(line).strip())
    return m.group(1) if m else ""


class SlowLogStream(LogStream):
    """Record stream over a Pika slow log. Every record has category SLOWLOG."""

    def __init__(self, path, encoding: str = "utf-8"):
        self.current_year: Optional[int] = None
        super().__init__(path, encoding=encoding)

    @property
    def year(self) -> int:
        """Year applied to glog heads right now."""
        return self.current_year if self.current_year is not None else DEFAULT_YEAR

    def _observe(self, line: str) -> None:
        year = parse_created_year(line)
        if year is not None and (self.current_year is None or year > self.current_year):
            logger.debug(f"{self.path}: year set to {year}")
            self.current_year = year

    def _head_time(self, line: str) -> Optional[datetime]:
        return parse_glog_time(line, self.year)

    def _scan_to(self, at: datetime) -> Optional[Record]:
        while True:
            line = self._cursor.next_line()
            if line is None:
                return None

            head_time = self._head_time(line)
            if head_time is None:
                self._observe(line)
                continue
            if head_time < at:
                continue
            if is_command_head(line):
                return self._build(line, head_time)

    def _advance(self) -> Optional[Record]:
        while True:
            line = self._cursor.next_line()
            if line is None:
                return None

            head_time = self._head_time(line)
            if head_time is None:
                self._observe(line)
                continue
            if is_command_head(line):
                return self._build(line, head_time)

    def _build(self, head: str, head_time: datetime) -> Record:
        command, start_sec = extract_command(head)
        lines = [head]

        while True:
            line = self._cursor.next_line()
            if line is None:
                break
            if is_command_head(line):
                self._cursor.unread(line)
                break

            self._observe(line)
            if is_debug_for_command(line, command):
                lines.append(line)
            elif start_sec and start_seconds(line) == start_sec:
                lines.append(line)
            # anything else is unrelated noise

        return Record(start_time=head_time, lines=lines, category=RecordCategory.SLOWLOG)

    def _latest_head_time(self, lines: List[str]) -> Optional[datetime]:
        year = self.current_year
        if year is None:
            year = self._scan_year_from_head()
        if year is None:
            logger.debug(f"{self.path}: year unknown, tail heuristic is inconclusive")
            return None

        latest = None
        for line in lines:
            t = parse_glog_time(line, year)
            if t is not None and (latest is None or t > latest):
                latest = t
        return latest

    def _scan_year_from_head(self) -> Optional[int]:
        """Look for a 'created at' marker in the first HEAD_READ_BYTES of the file."""
        try:
            data = self._read_at(0, HEAD_READ_BYTES)
        except OSError:
            return None
        for line in data.decode("utf-8", errors="replace").splitlines():
            year = parse_created_year(line)
            if year is not None:
                return year
        return None
