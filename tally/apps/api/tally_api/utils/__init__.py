"""Utility functions and helpers."""

from tally_api.utils.logging import JSONFormatter, configure_json_logging
from tally_api.utils.timeutil import as_utc, local_day_end, local_day_start, local_today, utcnow

__all__ = [
    "JSONFormatter",
    "configure_json_logging",
    "as_utc",
    "local_day_end",
    "local_day_start",
    "local_today",
    "utcnow",
]
