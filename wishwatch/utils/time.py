"""Time utilities for the polling window."""
from datetime import datetime
from typing import Optional
import pytz


def is_within_active_hours(
    start_hour: int,
    end_hour: int,
    timezone_str: str = "UTC",
    now: Optional[datetime] = None
) -> bool:
    """
    Check if the current hour falls inside the daily polling window.

    The window starts at start_hour and ends before end_hour, wrapping
    past midnight when start_hour > end_hour (e.g. 4 -> 1 is active from
    04:00 through 00:59).

    Args:
        start_hour: First active hour (0-23)
        end_hour: First inactive hour (0-23)
        timezone_str: Timezone the hours are expressed in
        now: Reference time (defaults to current time)

    Returns:
        True if polling may enqueue work now
    """
    tz = pytz.timezone(timezone_str)
    if now is None:
        now = datetime.now(tz)
    elif now.tzinfo is None:
        now = pytz.utc.localize(now).astimezone(tz)
    else:
        now = now.astimezone(tz)

    hour = now.hour

    if start_hour == end_hour:
        return True
    if start_hour > end_hour:
        return hour >= start_hour or hour < end_hour
    return start_hour <= hour < end_hour
