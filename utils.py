from datetime import datetime, date, time, timedelta, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

from flask import current_app


def parse_timestamp(value):
    """Parse a Supabase timestamp (ISO string, date or datetime)"""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    return datetime.fromisoformat(str(value).replace('Z', '+00:00'))


def to_decimal(value):
    if value is None:
        return Decimal('0')
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def app_timezone():
    return ZoneInfo(current_app.config.get('APP_TIMEZONE', 'UTC'))


def local_date(value, tz=None):
    """Calendar day of a timestamp in the given zone.

    Naive datetimes are taken as already local.
    """
    if value is None:
        return None
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    value = parse_timestamp(value)
    if tz is not None and value.tzinfo is not None:
        value = value.astimezone(tz)
    return value.date()


def local_day_bounds(day, tz):
    """[start, end) of a calendar day as aware UTC datetimes"""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = start + timedelta(days=1)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def utcnow():
    return datetime.now(timezone.utc)


def format_naira(amount):
    return f"₦{to_decimal(amount):,.2f}"
