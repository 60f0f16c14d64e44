"""Utilities package initialization."""
from freakslots.utils.time import utc_today, to_date_string, parse_timestamp_ms, epoch_millis
from freakslots.utils.text import key_name, names_match

__all__ = [
    "utc_today",
    "to_date_string",
    "parse_timestamp_ms",
    "epoch_millis",
    "key_name",
    "names_match"
]
