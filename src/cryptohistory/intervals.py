"""Sampling interval resolution.

Maps an interval token and a date window onto the endpoint's ``time_period``
granularity and the number of points each asset contributes, which drives
batch sizing.
"""

from __future__ import annotations

import logging
import warnings
from datetime import date, datetime, timezone

from cryptohistory.exceptions import AdvisoryWarning, DataValidationError
from cryptohistory.types import DATA_FLOOR, DateWindow, IntervalSpec, TimePeriod

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = "daily"

HOURLY_INTERVALS = frozenset(["hourly", "1h", "2h", "3h", "4h", "6h", "12h"])

DAILY_INTERVALS = frozenset([
    "daily", "weekly", "monthly", "yearly",
    "1d", "2d", "3d", "7d", "14d", "15d", "30d", "60d", "90d", "365d",
])

VALID_INTERVALS = HOURLY_INTERVALS | DAILY_INTERVALS

# Raw points are divided by these to estimate points per asset; others use 1.
INTERVAL_DIVISORS = {
    "2d": 2,
    "2h": 2,
    "3d": 3,
    "3h": 3,
    "4h": 4,
    "6h": 6,
    "7d": 7,
    "weekly": 7,
    "14d": 14,
    "15d": 15,
    "30d": 30,
    "monthly": 30,
    "60d": 60,
    "90d": 90,
    "365d": 365,
    "yearly": 365,
}


def parse_yyyymmdd(value: str | date) -> date:
    """Parse a ``yyyymmdd`` (or ``YYYY-MM-DD``) string into a date.

    :param value: Date string or date object.
    :returns: Parsed date.
    :raises DataValidationError: If the string is not a valid date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    for fmt in ("%Y%m%d", "%Y-%m-%d"):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise DataValidationError(f"Invalid date '{value}', expected yyyymmdd")


def to_unix_seconds(day: date) -> int:
    """UNIX timestamp of midnight UTC on ``day``."""
    return int(datetime(day.year, day.month, day.day, tzinfo=timezone.utc).timestamp())


def time_period_for(interval: str) -> TimePeriod:
    """Raw sampling granularity for a valid interval token."""
    if interval in HOURLY_INTERVALS:
        return TimePeriod.HOURLY
    return TimePeriod.DAILY


def raw_point_count(window: DateWindow, time_period: TimePeriod) -> int:
    """Number of hourly or daily buckets spanning the inclusive window."""
    days = (window.end - window.start).days + 1
    if time_period is TimePeriod.HOURLY:
        return days * 24
    return days


def validate_window(window: DateWindow) -> None:
    """Check a date window against the data floor.

    :raises DataValidationError: If the window ends before the data floor or
        starts after it ends.
    """
    if window.end < DATA_FLOOR:
        raise DataValidationError(
            f"Data is only available after {DATA_FLOOR.isoformat()}, "
            f"got end date {window.end.isoformat()}"
        )
    if window.start > window.end:
        raise DataValidationError(
            f"Start date {window.start.isoformat()} is after "
            f"end date {window.end.isoformat()}"
        )
    if window.start < DATA_FLOOR:
        warnings.warn(
            f"Start date {window.start.isoformat()} precedes the data floor; "
            f"data starts after {DATA_FLOOR.isoformat()}",
            AdvisoryWarning,
            stacklevel=3,
        )


def normalize_interval(interval_token: str | None) -> str:
    """Return a valid interval token, substituting ``daily`` for unknown ones."""
    if interval_token is None:
        return DEFAULT_INTERVAL
    if interval_token not in VALID_INTERVALS:
        warnings.warn(
            f"Interval '{interval_token}' is not valid, using '{DEFAULT_INTERVAL}'. "
            f"Valid options: {sorted(VALID_INTERVALS)}",
            AdvisoryWarning,
            stacklevel=3,
        )
        return DEFAULT_INTERVAL
    return interval_token


def resolve(interval_token: str | None, window: DateWindow) -> IntervalSpec:
    """Resolve an interval token and date window into an IntervalSpec.

    :param interval_token: Requested interval, ``daily`` if None.
    :param window: Date window to retrieve.
    :returns: Canonical interval specification.
    :raises DataValidationError: If the window ends before the data floor.
    """
    validate_window(window)
    interval = normalize_interval(interval_token)
    time_period = time_period_for(interval)
    raw_points = raw_point_count(window, time_period)
    points = raw_points / INTERVAL_DIVISORS.get(interval, 1)

    logger.debug(
        "Resolved interval %s: time_period=%s raw_points=%d points=%.3f",
        interval,
        time_period.value,
        raw_points,
        points,
    )
    return IntervalSpec(
        interval=interval,
        time_period=time_period,
        raw_points=raw_points,
        points_per_window=points,
    )


__all__ = [
    "DEFAULT_INTERVAL",
    "HOURLY_INTERVALS",
    "DAILY_INTERVALS",
    "VALID_INTERVALS",
    "INTERVAL_DIVISORS",
    "parse_yyyymmdd",
    "to_unix_seconds",
    "time_period_for",
    "raw_point_count",
    "validate_window",
    "normalize_interval",
    "resolve",
]
