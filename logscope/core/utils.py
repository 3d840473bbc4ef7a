"""
logscope Utilities
Common helpers for time parsing, duration parsing and logging setup.
"""

import logging
import re
from datetime import datetime, timedelta
from typing import List

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Accepted user-facing time bound layouts, most precise first.
TIME_INPUT_FORMATS: List[str] = [
    "%Y/%m/%d-%H:%M:%S.%f",
    "%Y/%m/%d-%H:%M:%S",
    "%Y/%m/%d-%H:%M",
]

_DURATION_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")

_DURATION_UNITS = {
    "us": timedelta(microseconds=1),
    "µs": timedelta(microseconds=1),
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
}


def setup_logging(verbose: bool = False) -> None:
    """Configure root logging for command-line use."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
    )


def parse_time_flexible(value: str) -> datetime:
    """
    Parse a time bound given on the command line or in a config file.

    Accepts microsecond, second and minute precision layouts
    (2025/11/30-03:16:58.152255, 2025/11/30-03:16:58, 2025/11/30-03:16)
    and ISO-8601 / RFC 3339 strings. Timezone-aware values are converted to
    naive local time, which is how log timestamps are interpreted.

    Raises:
        ValueError: if no layout matches.
    """
    text = value.strip()
    for fmt in TIME_INPUT_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        raise ValueError(f"Unsupported time format: {value!r}") from None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def parse_duration(value: str) -> timedelta:
    """
    Parse a duration string such as "10m", "1h30m", "90s" or "1.5h".

    Raises:
        ValueError: on an empty or malformed duration, or a nanosecond
            amount that is not a whole number of microseconds.
    """
    text = value.strip()
    if not text:
        raise ValueError("Empty duration")

    sign = 1
    if text[0] in "+-":
        sign = -1 if text[0] == "-" else 1
        text = text[1:]

    if text == "0":
        return timedelta(0)

    total = timedelta(0)
    pos = 0
    for match in _DURATION_RE.finditer(text):
        if match.start() != pos:
            break
        amount, unit = float(match.group(1)), match.group(2)
        if unit == "ns":
            # timedelta resolution is one microsecond
            if amount % 1000:
                raise ValueError(f"Duration below microsecond resolution: {value!r}")
            amount, unit = amount / 1000, "us"
        total += amount * _DURATION_UNITS[unit]
        pos = match.end()

    if pos == 0 or pos != len(text):
        raise ValueError(f"Invalid duration: {value!r}")

    return sign * total
