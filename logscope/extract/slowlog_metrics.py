"""
Slow Log Metric Extractor
Turns each slow-command record into a Slow_Command_<CMD> count.
"""

import re
from typing import List

from logscope.core.schema import Metric, Record, RecordCategory

SLOW_CMD_QUOTED_RE = re.compile(r'\bcommand\s*:\s*"([^"]+)"', re.IGNORECASE)
SLOW_CMD_SHORT_RE = re.compile(r"\bcmd\s*:\s*([a-z_]+)", re.IGNORECASE)
SLOW_CMD_WORD_RE = re.compile(r"\bcommand\s*:\s*([A-Za-z_]+)\b", re.IGNORECASE)


class SlowLogMetricExtractor:
    """Emits one Slow_Command_<CMD> = 1 metric per SLOWLOG record."""

    def parse(self, record: Record) -> List[Metric]:
        if record.category is not RecordCategory.SLOWLOG:
            return []

        command = self.find_command(record.lines)
        if not command:
            return []

        return [
            Metric(
                source_category=record.category,
                time=record.start_time,
                name=f"Slow_Command_{command}",
                value=1.0,
            )
        ]

    @staticmethod
    def find_command(lines: List[str]) -> str:
        """First command token found in the record, upper-cased."""
        for line in lines:
            s = line.strip()
            for pattern in (SLOW_CMD_QUOTED_RE, SLOW_CMD_SHORT_RE, SLOW_CMD_WORD_RE):
                m = pattern.search(s)
                if m:
                    return m.group(1).strip().upper()
        return ""
