"""Wall-clock time and calendar date helpers.

Times are minute-precision "HH:MM" strings with no time zone; dates are
ISO "YYYY-MM-DD". Internally times are handled as minutes after midnight.
"""

import re
from datetime import date, datetime, time

from marketplace.core import errors

TIME_PATTERN = re.compile(r'^([01]?[0-9]|2[0-3]):([0-5][0-9])$')
DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')
MINUTES_PER_DAY = 24 * 60


def parse_time(value: str | time) -> int:
    """Return minutes after midnight for an "HH:MM" string or a ``time``."""
    if isinstance(value, time):
        return value.hour * 60 + value.minute

    if not isinstance(value, str):
        raise errors.ValidationError('Invalid time (use HH:MM).')

    match = TIME_PATTERN.match(value.strip())
    if match is None:
        raise errors.ValidationError('Invalid time (use HH:MM).')

    return int(match.group(1)) * 60 + int(match.group(2))


def format_minutes(minutes: int) -> str:
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise errors.ValidationError(f'{minutes} minutes is outside a single day.')
    return f'{minutes // 60:02d}:{minutes % 60:02d}'


def normalize_time(value: str | time) -> str:
    """Zero-pad a time value, e.g. "9:00" becomes "09:00"."""
    return format_minutes(parse_time(value))


def parse_date(value: str | date) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    if not isinstance(value, str) or not DATE_PATTERN.match(value.strip()):
        raise errors.ValidationError('Invalid date (use YYYY-MM-DD).')

    try:
        return date.fromisoformat(value.strip())
    except ValueError as exc:
        raise errors.ValidationError(f'Invalid date: {value.strip()}.') from exc


def weekday_index(day: date) -> int:
    """Day of week with 0 = Sunday through 6 = Saturday."""
    return (day.weekday() + 1) % 7


def validate_day_of_week(value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 6:
        raise errors.ValidationError('Invalid day of week (0 = Sunday through 6 = Saturday).')
    return value
