"""Timezone-aware date/time helpers for the resort booking application."""

from datetime import date, datetime
from zoneinfo import ZoneInfo

from flask import current_app


def get_timezone() -> ZoneInfo:
    """Get the configured timezone."""
    tz_name = current_app.config.get('TIMEZONE', 'Asia/Manila')
    return ZoneInfo(tz_name)


def get_today() -> date:
    """Get today's date in the configured timezone."""
    return datetime.now(get_timezone()).date()


def get_now() -> datetime:
    """Get current datetime in the configured timezone, without tzinfo for storage."""
    return datetime.now(get_timezone()).replace(tzinfo=None, microsecond=0)


def parse_date(value) -> date:
    """
    Parse a YYYY-MM-DD string (or pass a date through).

    Raises:
        ValueError: If the value is not a valid ISO date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(str(value).strip(), '%Y-%m-%d').date()


def format_date(value) -> str | None:
    """Serialize a date as YYYY-MM-DD, passing None through."""
    if value is None:
        return None
    if isinstance(value, (date, datetime)):
        return value.strftime('%Y-%m-%d')
    return str(value)
