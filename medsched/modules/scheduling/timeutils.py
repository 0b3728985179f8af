"""
Time & interval helpers.

Every time-of-day in medsched is an ``"HH:MM"`` string on a single implicit
timezone. Comparisons are always done on minutes since midnight so that
unpadded input such as ``"9:00"`` orders correctly against ``"10:00"``.
All intervals are half-open: ``[start, end)``.
"""

import re
from datetime import date, datetime, timedelta
from typing import Union

from medsched.core.errors import InvalidFormat

_TIME_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")

TimeLike = Union[str, int]
DateLike = Union[str, date, datetime]

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


def time_to_minutes(hhmm: TimeLike) -> int:
    """
    Converts ``"HH:MM"`` to minutes since midnight.

    Hours must be within 0-23 and minutes within 0-59; out of range values
    are rejected rather than clamped. Integers are taken as already converted.
    """
    if isinstance(hhmm, bool):
        raise InvalidFormat(f"invalid time {hhmm!r}")
    if isinstance(hhmm, int):
        if 0 <= hhmm < 24 * 60:
            return hhmm
        raise InvalidFormat(f"minutes out of range: {hhmm}")
    if not isinstance(hhmm, str):
        raise InvalidFormat(f"invalid time {hhmm!r}, expected 'HH:MM'")
    m = _TIME_RE.match(hhmm)
    if not m:
        raise InvalidFormat(f"invalid time {hhmm!r}, expected 'HH:MM'")
    hours, minutes = int(m.group(1)), int(m.group(2))
    if hours > 23 or minutes > 59:
        raise InvalidFormat(f"time out of range: {hhmm!r}")
    return hours * 60 + minutes


def minutes_to_time(minutes: int) -> str:
    if not 0 <= minutes < 24 * 60:
        raise InvalidFormat(f"minutes out of range: {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def normalize_time(hhmm: TimeLike) -> str:
    """``"9:00"`` -> ``"09:00"``; raises InvalidFormat on bad input."""
    return minutes_to_time(time_to_minutes(hhmm))


def parse_date(value: DateLike) -> date:
    """Day-granularity date from a ``date``, ``datetime`` or ``"YYYY-MM-DD"``."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise InvalidFormat(f"invalid date {value!r}, expected 'YYYY-MM-DD'")
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError:
        raise InvalidFormat(f"invalid date {value!r}, expected 'YYYY-MM-DD'") from None


def intervals_overlap(a_start: TimeLike, a_end: TimeLike, b_start: TimeLike, b_end: TimeLike) -> bool:
    """True iff ``[a_start, a_end)`` and ``[b_start, b_end)`` intersect.

    Touching intervals (``a_end == b_start``) do not overlap.
    """
    return time_to_minutes(a_start) < time_to_minutes(b_end) and time_to_minutes(b_start) < time_to_minutes(a_end)


def time_in_range(slot: TimeLike, start: TimeLike, end: TimeLike) -> bool:
    s = time_to_minutes(slot)
    return time_to_minutes(start) <= s < time_to_minutes(end)


def weekday_name(day: DateLike) -> str:
    return WEEKDAYS[parse_date(day).weekday()]


def generate_time_slots(start_hour: int, num_hours: int, interval: int = 30) -> list[str]:
    """
    Calendar grid rows, e.g. ``generate_time_slots(6, 18)`` gives
    06:00, 06:30 ... 23:30.
    """
    if interval <= 0 or 60 % interval:
        raise ValueError("interval must divide an hour")
    last = min(start_hour + num_hours, 24)
    return [
        minutes_to_time(h * 60 + m)
        for h in range(start_hour, last)
        for m in range(0, 60, interval)
    ]


def week_days(day: DateLike) -> list[date]:
    """The Monday-to-Sunday week containing ``day``."""
    d = parse_date(day)
    monday = d - timedelta(days=d.weekday())
    return [monday + timedelta(days=i) for i in range(7)]
