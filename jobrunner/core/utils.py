"""
Utility functions for the application.
"""
import re
from datetime import datetime, timezone
from typing import Any, Optional

MAX_ERROR_LENGTH = 2000

# e.g., "20s", "5m", "1h30m", "2d3h", "90m", "  2h  "
DELAY_RE = re.compile(r"(?i)^\s*(?:(\d+)\s*d)?\s*(?:(\d+)\s*h)?\s*(?:(\d+)\s*m)?\s*(?:(\d+)\s*s)?\s*$")


def utc_now() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalise a datetime to aware UTC.

    Naive values are taken to already be UTC (SQLite hands timestamps back
    without tzinfo).
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_delay_to_seconds(s: str) -> int:
    """
    Parse delay strings like '20s', '5m', '1h30m', '2d3h', '90m'.
    Returns total seconds (int). Raises ValueError on bad input or zero.
    """
    if not s:
        raise ValueError("delay string is empty")
    m = DELAY_RE.match(s)
    if not m:
        raise ValueError(f"Invalid delay format: {s!r}")
    d, h, m_, s_ = m.groups()
    total = 0
    if d:
        total += int(d) * 86400
    if h:
        total += int(h) * 3600
    if m_:
        total += int(m_) * 60
    if s_:
        total += int(s_)
    if total <= 0:
        raise ValueError("delay must be > 0 seconds")
    return total


def describe_error(exc: BaseException) -> str:
    """Human readable, length-capped description of an exception."""
    message = str(exc).strip() or type(exc).__name__
    return message[:MAX_ERROR_LENGTH]


def to_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default
