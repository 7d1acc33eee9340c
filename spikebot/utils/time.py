"""Time utilities for timestamps and timezone handling."""
from datetime import datetime, timezone
from typing import Optional
import pytz


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_timezone(moment: datetime, timezone_str: str = "UTC") -> datetime:
    """
    Convert a datetime into the given timezone.
    
    Naive datetimes are taken to be UTC, which is how SQLite hands back
    stored timestamps.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(pytz.timezone(timezone_str))


def format_timestamp(moment: Optional[datetime] = None, timezone_str: str = "UTC") -> str:
    """
    Format a datetime for display, e.g. ``2025-01-17 14:03:05 UTC``.
    
    Args:
        moment: Datetime to format (defaults to now)
        timezone_str: Display timezone
        
    Returns:
        Formatted string with the zone abbreviation
    """
    local = to_timezone(moment or utcnow(), timezone_str)
    return f"{local.strftime('%Y-%m-%d %H:%M:%S')} {local.tzname()}"
