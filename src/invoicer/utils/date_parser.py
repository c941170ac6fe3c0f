"""Date parsing utilities."""

from datetime import date, datetime, timedelta, UTC

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta


def parse_date(date_str: str) -> date:
    """Parse a date string into a date object.

    Supports various formats including relative dates:
    - Absolute dates: "2024-01-15", "January 15, 2024", etc.
    - Relative dates: "today", "yesterday", "tomorrow", "last month",
      "this month", "next month", "in 30 days", "30 days ago"

    Args:
        date_str: Date string in various formats

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    date_str = date_str.strip().lower()
    today = date.today()

    relative_dates = {
        "today": today,
        "yesterday": today - timedelta(days=1),
        "tomorrow": today + timedelta(days=1),
    }

    if date_str in relative_dates:
        return relative_dates[date_str]

    # Payment terms are usually expressed in days: "in 30 days", "15 days ago"
    if date_str.startswith("in ") and date_str.endswith((" days", " day")):
        return today + timedelta(days=_parse_day_count(date_str[3:]))
    if date_str.endswith((" days ago", " day ago")):
        return today - timedelta(days=_parse_day_count(date_str.rsplit(" ", 1)[0]))

    month_offsets = {"last month": -1, "this month": 0, "next month": 1}
    if date_str in month_offsets:
        return (today + relativedelta(months=month_offsets[date_str])).replace(day=1)

    try:
        dt = date_parser.parse(date_str)
        return dt.date()
    except (ValueError, TypeError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}") from e


def _parse_day_count(text: str) -> int:
    count = text.strip().split(" ", 1)[0]
    try:
        return int(count)
    except ValueError as e:
        raise ValueError(f"Could not parse day count '{text}'") from e


def parse_datetime(value: str) -> datetime:
    """Parse an ISO 8601 timestamp into an aware datetime.

    Naive timestamps are taken to be UTC.

    Raises:
        ValueError: If the timestamp cannot be parsed
    """
    try:
        dt = date_parser.isoparse(value)
    except (ValueError, TypeError, OverflowError) as e:
        raise ValueError(f"Could not parse timestamp '{value}': {e}") from e
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def parse_iso_date(value: str) -> date:
    """Parse an ISO 8601 date, or the date part of an ISO 8601 timestamp.

    Raises:
        ValueError: If the value cannot be parsed
    """
    try:
        return date_parser.isoparse(value).date()
    except (ValueError, TypeError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{value}': {e}") from e


def to_datetime(value: date | datetime) -> datetime:
    """Return an aware datetime for a date (midnight UTC) or datetime."""
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    return datetime(value.year, value.month, value.day, tzinfo=UTC)
