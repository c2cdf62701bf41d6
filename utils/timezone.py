# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
UTC time utilities and date windows for remote list queries
"""
import calendar
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional

import pytz

API_DATETIME_FORMAT = '%Y-%m-%dT%H:%M:%SZ'
FILE_TIMESTAMP_FORMAT = '%Y%m%d%H%M%S%f'


def get_utc_time() -> datetime:
    """Get current time in UTC"""
    return datetime.now(pytz.UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Return an aware UTC datetime, treating naive values as UTC"""
    if dt.tzinfo is None:
        return pytz.UTC.localize(dt)
    return dt.astimezone(pytz.UTC)


def add_months(dt: datetime, months: int) -> datetime:
    """Shift by whole months, clamping the day to the end of the target month"""
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def format_api_time(dt: datetime) -> str:
    """Format as ISO 8601 UTC with second precision, e.g. 2025-06-02T00:00:00Z"""
    return ensure_utc(dt).strftime(API_DATETIME_FORMAT)


def file_timestamp(dt: Optional[datetime] = None) -> str:
    return ensure_utc(dt or get_utc_time()).strftime(FILE_TIMESTAMP_FORMAT)


def parse_api_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse an API timestamp into an aware UTC datetime.

    Accepts a trailing 'Z', numeric offsets with or without a colon and
    fractional seconds. Returns None when the value is missing or unparseable.
    """
    if not value or not isinstance(value, str):
        return None

    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'

    try:
        return ensure_utc(datetime.fromisoformat(text))
    except ValueError:
        pass

    for fmt in ('%Y-%m-%dT%H:%M:%S%z', '%Y-%m-%dT%H:%M:%S.%f%z'):
        try:
            return ensure_utc(datetime.strptime(text, fmt))
        except ValueError:
            continue
    return None


@dataclass(frozen=True)
class DateWindow:
    """Inclusive [from_time, to_time] range used to scope a remote list query"""
    from_time: datetime
    to_time: datetime

    @classmethod
    def from_offsets(cls, now: datetime, months_backward: int, months_forward: int) -> 'DateWindow':
        """Build a window relative to now.

        months_backward is a signed offset (negative reaches into the past).
        The start is floored to the beginning of its day, the end is the last
        second of its day.
        """
        now = ensure_utc(now)
        from_time = start_of_day(add_months(now, months_backward))
        to_time = start_of_day(add_months(now, months_forward)) + timedelta(days=1) - timedelta(seconds=1)
        return cls(from_time=from_time, to_time=to_time)

    def as_params(self) -> Dict[str, str]:
        return {
            'fromTime': format_api_time(self.from_time),
            'toTime': format_api_time(self.to_time),
        }

    def __str__(self) -> str:
        return f"{format_api_time(self.from_time)} .. {format_api_time(self.to_time)}"
