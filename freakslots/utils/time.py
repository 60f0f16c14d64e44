"""Time utilities for sync watermarks and timestamp shadows."""
import math
from datetime import date, datetime, timezone
from typing import Any, Optional


def utc_today(now: Optional[datetime] = None) -> date:
    """
    Get the current UTC calendar date.

    Args:
        now: Reference time (defaults to the current time)

    Returns:
        UTC date
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc).date()


def to_date_string(value: date) -> str:
    """Format a date as YYYY-MM-DD."""
    return value.strftime("%Y-%m-%d")


def parse_timestamp_ms(value: Any) -> int:
    """
    Convert an upstream timestamp to epoch milliseconds.

    Accepts finite numbers (already epoch millis), ISO-8601 strings and
    ``YYYY-MM-DD HH:MM:SS`` strings (read as UTC). Anything unparseable
    sorts as 0.
    """
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value) if math.isfinite(value) else 0
    if not value:
        return 0

    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return 0

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)


def epoch_millis(now: Optional[datetime] = None) -> int:
    """Current time as epoch milliseconds."""
    if now is None:
        now = datetime.now(timezone.utc)
    return int(now.timestamp() * 1000)
