"""
logscope Test Configuration and Fixtures
========================================
Shared fixtures and configuration for all tests.
"""

from datetime import datetime, timedelta
from pathlib import Path
from typing import List

import pytest


# =============================================================================
# Sample logs
# =============================================================================

ROCKSDB_LOG = """\
2025/11/30-03:00:00.000001 7f3a [db/db_impl/db_impl.cc:1000] RocksDB version: 8.1.1
2025/11/30-03:00:00.000002 7f3a [db/db_impl/db_impl.cc:1001] Options.max_open_files: -1
  Options.max_background_jobs: 4
2025/11/30-03:10:00.000000 7f3b [/db_impl/db_impl.cc:1154] ------- DUMPING STATS -------
2025/11/30-03:10:00.000010 7f3b [/db_impl.cc:670]
** DB Stats **
Uptime(secs): 600.0 total, 600.0 interval
Interval writes: 100 writes, 100 keys, 100 commit groups, 1.0 writes per commit group, ingest: 2.50 MB, 0.01 MB/s
Interval WAL: 100 writes, 0 syncs, 100.00 writes per sync, written: 1.00 MB, 0.00 MB/s

** Compaction Stats [default] **
Level    Files   Size     Score
L0      2/0   64.00 MB   0.5
L1      4/0    1.00 GB   0.9
Uptime(secs): 600.0 total, 600.0 interval
Flush(GB): cumulative 0.100, interval 0.050
AddFile(GB): cumulative 0.000, interval 0.000
AddFile(Total Files): cumulative 0, interval 0
AddFile(L0 Files): cumulative 0, interval 0
Cumulative compaction: 0.50 GB write, 0.85 MB/s write, 0.40 GB read, 0.68 MB/s read, 12.3 seconds
Interval compaction: 0.20 GB write, 0.34 MB/s write, 0.10 GB read, 0.17 MB/s read, 5.0 seconds
2025/11/30-03:10:00.000020 7f3b [/db_impl/db_impl.cc:1160] STATISTICS:
 rocksdb.block.cache.miss COUNT : 100
 rocksdb.block.cache.hit COUNT : 900
 rocksdb.db.get.micros P50 : 10.000000 P95 : 20.000000 P99 : 35.500000 P100 : 100.000000 COUNT : 1000 SUM : 12345
2025/11/30-03:15:00.000000 7f3c EVENT_LOG_v1 {"time_micros": 1764472500000000, "cf_name": "default", "job": 5, "event": "flush_finished", "lsm_state": [2, 4]}
2025/11/30-03:16:00.000000 7f3c EVENT_LOG_v1 {"time_micros": 1764472560000000, "cf_name": "default", "job": 6, "event": "table_file_creation", "file_number": 12, "file_size": 4096}
2025/11/30-03:20:00.000020 7f3b [/db_impl/db_impl.cc:1160] STATISTICS:
 rocksdb.block.cache.miss COUNT : 150
 rocksdb.block.cache.hit COUNT : 1900
2025/11/30-03:30:00.000000 7f3d [db/compaction/compaction_job.cc:100] Compacting 4 files
"""

SLOW_LOG = """\
Log file created at: 2025/11/30 03:00:00
Running on machine: pika-host
Log line format: [IWEF]mmdd hh:mm:ss.uuuuuu threadid file:line] msg
E1130 03:05:00.000100 1234 pika_client_conn.cc:100] ip_port: 127.0.0.1:50000, db: db0, command: "set", command_size: 20, arguments: 3, start_time(s): 1764471900, duration(us): 20000
I1130 03:05:00.000200 1234 pika_client_conn.cc:120] [NET_DEBUG] cmd: set, queue_time(us): 5
I1130 03:05:00.000250 1234 pika_client_conn.cc:130] slow detail start_time(s): 1764471900 process_time(us): 19000
I1130 03:05:00.000300 1234 pika_server.cc:1] unrelated noise
I1130 03:05:00.000400 1234 pika_client_conn.cc:120] [NET_DEBUG] cmd: get, queue_time(us): 2
E1130 03:06:00.000000 1234 pika_client_conn.cc:100] ip_port: 127.0.0.1:50001, db: db0, command: "get", command_size: 10, arguments: 2, start_time(s): 1764471960, duration(us): 15000
W1130 03:07:00.000000 1235 pika_repl_bgworker.cc:200] slow replication command: pkbulkload size: 100
"""

SLOW_LOG_ROLLOVER = """\
Log file created at: 2024/12/31 23:50:00
E1231 23:55:00.000000 1 pika_client_conn.cc:100] command: "set", start_time(s): 1, duration(us): 1
Log file created at: 2025/01/01 00:00:00
E0101 00:05:00.000000 1 pika_client_conn.cc:100] command: "get", start_time(s): 2, duration(us): 1
"""

SLOW_LOG_NO_YEAR = """\
E1130 03:05:00.000000 1 pika_client_conn.cc:100] command: "set", start_time(s): 1, duration(us): 1
E1130 03:06:00.000000 1 pika_client_conn.cc:100] command: "get", start_time(s): 2, duration(us): 1
"""

LOG_START = datetime(2025, 11, 30, 3, 0, 0)
LOG_END = datetime(2025, 11, 30, 4, 0, 0)


def write_large_rocksdb_log(path: Path, records: int = 20000) -> Path:
    """Write a RocksDB LOG well over the tail window: one STATISTICS record per second."""
    base = datetime(2025, 11, 30, 0, 0, 0)
    with open(path, "w", encoding="utf-8") as f:
        for i in range(records):
            t = base + timedelta(seconds=i)
            f.write(f"{t:%Y/%m/%d-%H:%M:%S}.{i % 1000000:06d} 7f00 [/db_impl.cc:1160] STATISTICS:\n")
            f.write(f" rocksdb.block.cache.hit COUNT : {i * 10}\n")
            f.write(f" rocksdb.block.cache.miss COUNT : {i}\n")
    return path


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def rocksdb_log(tmp_path) -> Path:
    """Small RocksDB LOG with OTHER, DUMP, STATISTICS and EVENTS records."""
    path = tmp_path / "LOG"
    path.write_text(ROCKSDB_LOG, encoding="utf-8")
    return path


@pytest.fixture
def slow_log(tmp_path) -> Path:
    """Pika slow log with SET, GET and a replication worker command."""
    path = tmp_path / "pika.slow.log"
    path.write_text(SLOW_LOG, encoding="utf-8")
    return path


@pytest.fixture
def slow_log_rollover(tmp_path) -> Path:
    """Slow log whose year moves from 2024 to 2025 mid-file."""
    path = tmp_path / "pika.rollover.log"
    path.write_text(SLOW_LOG_ROLLOVER, encoding="utf-8")
    return path


@pytest.fixture
def slow_log_no_year(tmp_path) -> Path:
    """Slow log without any "Log file created at" marker."""
    path = tmp_path / "pika.noyear.log"
    path.write_text(SLOW_LOG_NO_YEAR, encoding="utf-8")
    return path


@pytest.fixture
def large_rocksdb_log(tmp_path) -> Path:
    """RocksDB LOG larger than the 1 MiB tail window."""
    return write_large_rocksdb_log(tmp_path / "LOG.large")


@pytest.fixture
def sample_metrics() -> List:
    """A handful of metrics across two categories."""
    from logscope.core.schema import Metric, RecordCategory

    t0 = datetime(2025, 11, 30, 3, 1, 0)
    return [
        Metric(RecordCategory.STATISTICS, t0, "BC_Hit_Cum", 100.0),
        Metric(RecordCategory.STATISTICS, t0 + timedelta(minutes=3), "BC_Hit_Cum", 130.0),
        Metric(RecordCategory.STATISTICS, t0 + timedelta(minutes=11), "BC_Hit_Cum", 180.0),
        Metric(RecordCategory.DUMP, t0, "Flush_GB_default", 0.5),
        Metric(RecordCategory.DUMP, t0 + timedelta(minutes=4), "Flush_GB_default", 1.5),
    ]


# =============================================================================
# Test Markers
# =============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow running")
    config.addinivalue_line("markers", "integration: marks integration tests")
