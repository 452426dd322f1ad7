from datetime import datetime, timezone
from typing import Optional, Union

from dateutil import parser


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """ISO string or datetime -> aware UTC datetime (naive values are treated as UTC)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = parser.isoparse(value)
        except (ValueError, OverflowError):
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'s' if count > 1 else ''} ago"


def format_time_ago(timestamp: Union[str, datetime, None], now: Optional[datetime] = None) -> str:
    past = parse_timestamp(timestamp)
    if past is None:
        return "some time ago"

    now = now or utcnow()
    diff_mins = int((now - past).total_seconds() // 60)

    if diff_mins < 1:
        return "just now"
    if diff_mins < 60:
        return _plural(diff_mins, "minute")

    diff_hours = diff_mins // 60
    if diff_hours < 24:
        return _plural(diff_hours, "hour")

    diff_days = diff_hours // 24
    if diff_days < 7:
        return _plural(diff_days, "day")

    diff_weeks = diff_days // 7
    if diff_weeks < 4:
        return _plural(diff_weeks, "week")

    return _plural(max(diff_days // 30, 1), "month")
