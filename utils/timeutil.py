"""Date and timestamp parsing shared by records, models and the database."""
from datetime import date, datetime, time, timezone


def parse_datetime(value):
    """Parse an ISO string, date or datetime into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime.combine(value, time.min)
    else:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_date(value):
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value)
    if len(text) > 10:
        return parse_datetime(text).date()
    return date.fromisoformat(text)


def start_of_day(d):
    """Midnight UTC of the given date."""
    return datetime.combine(d, time.min, tzinfo=timezone.utc)


def isoformat_or_none(value):
    return value.isoformat() if value is not None else None
