"""Time parsing helpers for backup2surfsara.

Understands duplicity time intervals (``1M``, ``2W3D``) and the
``date -d`` style reference dates used by ``check``.
"""

import re
from datetime import datetime, timedelta
from typing import Optional

# Seconds per duplicity interval unit
INTERVAL_UNITS = {
    "s": 1,
    "m": 60,
    "h": 60 * 60,
    "D": 24 * 60 * 60,
    "W": 7 * 24 * 60 * 60,
    "M": 30 * 24 * 60 * 60,
    "Y": 365 * 24 * 60 * 60,
}

INTERVAL_PATTERN = re.compile(r"^(\d+[smhDWMY])+$")
INTERVAL_PART_PATTERN = re.compile(r"(\d+)([smhDWMY])")

# Reference date units, singular and plural
RELATIVE_UNITS = {
    "second": timedelta(seconds=1),
    "sec": timedelta(seconds=1),
    "minute": timedelta(minutes=1),
    "min": timedelta(minutes=1),
    "hour": timedelta(hours=1),
    "day": timedelta(days=1),
    "week": timedelta(weeks=1),
    "fortnight": timedelta(weeks=2),
    "month": timedelta(days=30),
    "year": timedelta(days=365),
}

RELATIVE_PATTERN = re.compile(
    r"^(\d+)\s+(second|sec|minute|min|hour|day|week|fortnight|month|year)s?\s+ago$",
    re.IGNORECASE,
)
EPOCH_PATTERN = re.compile(r"^@(\d+)$")

ABSOLUTE_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M",
    "%Y-%m-%d",
)

DEFAULT_REF_DATE = "30 hours ago"


def is_interval(text: str) -> bool:
    """True if text is a duplicity interval like '1M' or '1h30m'."""
    return bool(text) and bool(INTERVAL_PATTERN.match(text.strip()))


def parse_interval(text: str) -> timedelta:
    """
    Convert a duplicity interval to a timedelta.

    Args:
        text: Interval such as '1M', '2W' or '1D12h'

    Returns:
        Equivalent timedelta (a month is 30 days, a year 365 days)

    Raises:
        ValueError: If text is not a valid interval
    """
    text = (text or "").strip()
    if not INTERVAL_PATTERN.match(text):
        raise ValueError(f"Invalid interval: {text!r}")
    seconds = sum(
        int(amount) * INTERVAL_UNITS[unit]
        for amount, unit in INTERVAL_PART_PATTERN.findall(text)
    )
    return timedelta(seconds=seconds)


def parse_reference_date(text: str, now: Optional[datetime] = None) -> datetime:
    """
    Parse a reference date in the forms `date -d` commonly gets.

    Args:
        text: 'now', 'today', 'yesterday', 'N units ago', '@epoch' or an
            ISO date with optional time
        now: Current time (defaults to datetime.now())

    Returns:
        The referenced point in time

    Raises:
        ValueError: If the text is not understood
    """
    now = now or datetime.now()
    value = (text or "").strip()
    lowered = value.lower()

    # date -d today is the current time, like now
    if lowered in ("now", "today"):
        return now
    if lowered == "yesterday":
        return now - timedelta(days=1)

    try:
        match = RELATIVE_PATTERN.match(value)
        if match:
            amount, unit = match.groups()
            return now - int(amount) * RELATIVE_UNITS[unit.lower()]

        match = EPOCH_PATTERN.match(value)
        if match:
            return datetime.fromtimestamp(int(match.group(1)))
    except (OverflowError, OSError) as e:
        raise ValueError(f"Date out of range: {text!r}") from e

    for fmt in ABSOLUTE_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue

    raise ValueError(f"Unrecognised date: {text!r}")
