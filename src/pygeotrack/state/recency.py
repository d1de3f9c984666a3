"""Recency labels for replaced location records."""

from __future__ import annotations

from datetime import datetime

from pygeotrack._constants import SECONDS_PER_DAY, SECONDS_PER_HOUR, SECONDS_PER_MINUTE


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'} ago"


def time_since_label(delta_seconds: int) -> str:
    """Describe an age in whole seconds.

    ``<60`` → ``"N seconds ago"``, ``<3600`` → minutes, ``<86400`` → hours,
    otherwise days. Minutes, hours and days are singular at exactly 1.
    Negative ages (clock skew) count as zero.
    """
    seconds = max(0, int(delta_seconds))
    if seconds < SECONDS_PER_MINUTE:
        return f"{seconds} seconds ago"
    if seconds < SECONDS_PER_HOUR:
        return _plural(seconds // SECONDS_PER_MINUTE, "minute")
    if seconds < SECONDS_PER_DAY:
        return _plural(seconds // SECONDS_PER_HOUR, "hour")
    return _plural(seconds // SECONDS_PER_DAY, "day")


def label_between(previous: datetime, now: datetime) -> str:
    return time_since_label(int((now - previous).total_seconds()))
