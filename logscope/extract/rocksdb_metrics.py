"""
RocksDB Metric Extractor
Pulls named metrics out of STATISTICS, DUMP and EVENTS records of a RocksDB LOG.
"""

import logging
import re
from typing import Dict, List, Optional, Tuple

from logscope.core.schema import Metric, Record, RecordCategory

logger = logging.getLogger(__name__)


# ===== STATISTICS: cumulative tickers and P99 histograms =====

COUNT_TICKERS: Dict[str, re.Pattern] = {
    "BC_Hit_Cum": re.compile(r"^rocksdb\.block\.cache\.hit\s+COUNT\s*:\s*([0-9]+)"),
    "BC_Miss_Cum": re.compile(r"^rocksdb\.block\.cache\.miss\s+COUNT\s*:\s*([0-9]+)"),
    "Bloom_Useful_Cum": re.compile(r"^rocksdb\.bloom\.filter\.useful\s+COUNT\s*:\s*([0-9]+)"),
    "File_Opens_Cum": re.compile(r"^rocksdb\.no\.file\.opens\s+COUNT\s*:\s*([0-9]+)"),
    "DB_Seek_Cum": re.compile(r"^rocksdb\.number\.db\.seek\s+COUNT\s*:\s*([0-9]+)"),
    "DB_Next_Cum": re.compile(r"^rocksdb\.number\.db\.next\s+COUNT\s*:\s*([0-9]+)"),
}

P99_HISTOGRAMS: List[Tuple[str, str]] = [
    ("rocksdb.table.open.io.micros", "TableOpenIO_P99_us"),
    ("rocksdb.bytes.per.read", "BytesPerRead_P99"),
    ("rocksdb.db.get.micros", "DB_Get_P99_us"),
    ("rocksdb.db.write.micros", "DB_Write_P99_us"),
    ("rocksdb.compaction.times.micros", "Compaction_Times_P99_us"),
    ("rocksdb.table.sync.micros", "Table_Sync_P99_us"),
    ("rocksdb.compaction.outfile.sync.micros", "Compaction_Outfile_Sync_P99_us"),
    ("rocksdb.manifest.file.sync.micros", "Manifest_Sync_P99_us"),
    ("rocksdb.read.block.get.micros", "Read_Block_Get_P99_us"),
    ("rocksdb.sst.read.micros", "SST_Read_P99_us"),
    ("rocksdb.db.seek.micros", "DB_Seek_P99_us"),
]

P99_RE = re.compile(r"P99\s*:\s*([0-9.]+)")

# ===== DUMP: interval/cumulative summaries and per-level lines =====

INTERVAL_WRITES_RE = re.compile(
    r"^Interval writes:.*ingest:\s*([0-9.]+)\s*(KB|MB|GB),\s*([0-9.]+)\s*MB/s"
)
INTERVAL_WAL_RE = re.compile(r"^Interval WAL:.*written:\s*([0-9.]+)\s*(KB|MB|GB),\s*([0-9.]+)\s*MB/s")
UPTIME_RE = re.compile(r"^Uptime\(secs\):\s*([0-9.]+)\s*total,\s*([0-9.]+)\s*interval")
FLUSH_GB_RE = re.compile(r"^Flush\(GB\):\s*cumulative\s*([0-9.]+),\s*interval\s*([0-9.]+)")
ADD_FILE_GB_RE = re.compile(r"^AddFile\(GB\):\s*cumulative\s*([0-9.]+),\s*interval\s*([0-9.]+)")
ADD_TOTAL_FILES_RE = re.compile(
    r"^AddFile\(Total Files\):\s*cumulative\s*([0-9]+),\s*interval\s*([0-9]+)"
)
ADD_L0_FILES_RE = re.compile(r"^AddFile\(L0 Files\):\s*cumulative\s*([0-9]+),\s*interval\s*([0-9]+)")
_COMPACTION_BODY = (
    r"compaction:\s*([0-9.]+)\s*GB write,\s*([0-9.]+)\s*MB/s write,"
    r"\s*([0-9.]+)\s*GB read,\s*([0-9.]+)\s*MB/s read,\s*([0-9.]+)\s*seconds"
)
CUM_COMPACTION_RE = re.compile(r"^Cumulative " + _COMPACTION_BODY)
INT_COMPACTION_RE = re.compile(r"^Interval " + _COMPACTION_BODY)
LEVEL_RE = re.compile(r"^L([0-6])\s+([0-9]+)/([0-9]+)\s+([0-9.]+)\s+(KB|MB|GB)")
COMPACTION_STATS_HDR_RE = re.compile(r"^\*\* Compaction Stats \[([^\]]+)\] \*\*")
HISTOGRAM_HDR_RE = re.compile(r"^\*\* File Read Latency Histogram By Level \[([^\]]+)\] \*\*")

COMPACTION_FIELDS = ["Write_GB", "Write_MBps", "Read_GB", "Read_MBps", "Sec"]

# ===== EVENTS: EVENT_LOG json lines and stall notices =====

EVENT_NAME_RE = re.compile(r'"event"\s*:\s*"([^"]+)"')
CF_NAME_RE = re.compile(r'"cf_name"\s*:\s*"([^"]+)"')
EVENT_NUMERIC_FIELDS: Dict[str, re.Pattern] = {
    name: re.compile(r'"' + name + r'"\s*:\s*([0-9]+)')
    for name in (
        "bytes_written",
        "file_size",
        "bytes",
        "micros",
        "size",
        "data_size",
        "wal_file_bytes",
        "tables",
        "files",
    )
}
PENDING_STALL_RE = re.compile(
    r"(Stalling|Stopping) writes because of estimated pending compaction bytes", re.IGNORECASE
)


def to_number(raw: str) -> Optional[float]:
    """Parse a captured number; None when the capture is not a valid float (e.g. "1.2.3")."""
    try:
        return float(raw)
    except ValueError:
        return None


def to_mb(value: str, unit: str) -> Optional[float]:
    """Normalize a KB/MB/GB quantity to MB."""
    v = to_number(value)
    if v is None:
        return None
    unit = unit.upper()
    if unit == "GB":
        return v * 1024.0
    if unit == "KB":
        return v / 1024.0
    return v


def canonicalize_name(name: str) -> str:
    return name.strip().replace(" ", "_").replace("-", "_")


def pick_p99(line: str) -> Optional[float]:
    m = P99_RE.search(line)
    return to_number(m.group(1)) if m else None


class _MetricBuffer:
    """Collects metrics for one record, keeping the first occurrence of each name."""

    def __init__(self, record: Record):
        self.record = record
        self.metrics: List[Metric] = []
        self._seen = set()

    def add(self, name: str, value: Optional[float], cf: str = "") -> None:
        if value is None:
            return
        if cf:
            name = f"{name}_{cf}"
        if name in self._seen:
            return
        self._seen.add(name)
        self.metrics.append(
            Metric(
                source_category=self.record.category,
                time=self.record.start_time,
                name=name,
                value=float(value),
            )
        )


class RocksDBMetricExtractor:
    """
    Extracts metrics from RocksDB LOG records.
    Records of other categories yield no metrics.
    """

    def parse(self, record: Record) -> List[Metric]:
        """Return all metrics found in the record."""
        if record.category is RecordCategory.STATISTICS:
            return self.parse_statistics(record)
        if record.category is RecordCategory.DUMP:
            return self.parse_dump(record)
        if record.category is RecordCategory.EVENTS:
            return self.parse_events(record)
        return []

    def parse_statistics(self, record: Record) -> List[Metric]:
        out = _MetricBuffer(record)
        for line in record.lines:
            s = line.strip()
            for name, pattern in COUNT_TICKERS.items():
                m = pattern.match(s)
                if m:
                    out.add(name, to_number(m.group(1)))

            for prefix, name in P99_HISTOGRAMS:
                if s.startswith(prefix):
                    value = pick_p99(s)
                    if value is not None:
                        out.add(name, value)
                    break
        return out.metrics

    def parse_dump(self, record: Record) -> List[Metric]:
        out = _MetricBuffer(record)
        current_cf = ""

        for line in record.lines:
            s = line.strip()

            m = COMPACTION_STATS_HDR_RE.match(s)
            if m:
                current_cf = m.group(1).lower()
                continue
            if HISTOGRAM_HDR_RE.match(s):
                # histogram section ends the per-CF summary context
                current_cf = ""
                continue

            m = INTERVAL_WRITES_RE.match(s)
            if m:
                out.add("DB_Ingest_MB", to_mb(m.group(1), m.group(2)))
                out.add("DB_Ingest_MBps", to_number(m.group(3)))
                continue

            m = INTERVAL_WAL_RE.match(s)
            if m:
                out.add("WAL_Written_MB", to_mb(m.group(1), m.group(2)))
                out.add("WAL_MBps", to_number(m.group(3)))
                continue

            m = UPTIME_RE.match(s)
            if m:
                out.add("Uptime_Sec", to_number(m.group(2)), current_cf)
                continue

            matched = False
            for pattern, name in (
                (FLUSH_GB_RE, "Flush_GB"),
                (ADD_FILE_GB_RE, "Add_GB"),
                (ADD_TOTAL_FILES_RE, "Add_TotalFiles"),
                (ADD_L0_FILES_RE, "Add_L0Files"),
            ):
                m = pattern.match(s)
                if m:
                    out.add(name, to_number(m.group(2)), current_cf)
                    matched = True
                    break
            if matched:
                continue

            for pattern, prefix in ((CUM_COMPACTION_RE, "Cum_Compaction"), (INT_COMPACTION_RE, "Compaction")):
                m = pattern.match(s)
                if m:
                    for field_name, raw in zip(COMPACTION_FIELDS, m.groups()):
                        out.add(f"{prefix}_{field_name}", to_number(raw), current_cf)
                    matched = True
                    break
            if matched:
                continue

            m = LEVEL_RE.match(s)
            if m:
                level = m.group(1)
                out.add(f"Level{level}_Files", to_number(m.group(2)), current_cf)
                out.add(f"Level{level}_Size_MB", to_mb(m.group(4), m.group(5)), current_cf)

        return out.metrics

    def parse_events(self, record: Record) -> List[Metric]:
        out = _MetricBuffer(record)

        for line in record.lines:
            s = line.strip()
            cf_match = CF_NAME_RE.search(s)
            cf = cf_match.group(1).lower() if cf_match else ""

            m = EVENT_NAME_RE.search(s)
            if m:
                event = canonicalize_name(m.group(1))
                out.add(f"Event_{event}_Count", 1, cf)
                for field_name, pattern in EVENT_NUMERIC_FIELDS.items():
                    n = pattern.search(s)
                    if n:
                        out.add(f"Event_{event}_{canonicalize_name(field_name)}", to_number(n.group(1)), cf)
                continue

            if PENDING_STALL_RE.search(s):
                out.add("Event_PendingCompactionBytes_Stall_Count", 1, cf)

        return out.metrics
