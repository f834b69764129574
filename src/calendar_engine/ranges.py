"""
Stateless calendar-day interval helpers.

All comparisons are by local calendar date; a datetime is truncated to its
date before it is compared, so time-of-day never splits a day.
"""

from collections.abc import Iterator
from datetime import date
from datetime import datetime
from datetime import timedelta

from calendar_engine.models import DateRange
from calendar_engine.models import VisibleWindow

DAY = timedelta(days=1)
_MS_PER_DAY = 24 * 60 * 60 * 1000


def as_date(value: date | datetime) -> date:
    """Truncate a datetime to its calendar date; dates pass through."""
    if isinstance(value, datetime):
        return value.date()
    return value


def overlaps(a: DateRange, b: DateRange) -> bool:
    """Return True when the two inclusive ranges share at least one day."""
    return a.start <= b.end and b.start <= a.end


def contains_day(rng: DateRange, day: date | datetime) -> bool:
    day = as_date(day)
    return as_date(rng.start) <= day <= as_date(rng.end)


def shift_days(rng: DateRange, n: int) -> DateRange:
    delta = timedelta(days=n)
    return DateRange(rng.start + delta, rng.end + delta)


def clamp_start_before_end(rng: DateRange) -> DateRange | None:
    """Return the range when it is well ordered, None when an edge crossed the other."""
    if rng.start > rng.end:
        return None
    return rng


def day_delta(anchor: date | datetime, pointer: date | datetime) -> int:
    """Whole days from anchor to pointer, truncated toward zero.

    Plain dates always differ by whole days.  With datetimes the millisecond
    delta is divided by the day length and the fraction dropped, so a pointer
    must travel a full day before it registers, in either direction.
    """
    if not isinstance(anchor, datetime) and not isinstance(pointer, datetime):
        return (pointer - anchor).days
    if not isinstance(anchor, datetime):
        anchor = datetime.combine(anchor, datetime.min.time())
    if not isinstance(pointer, datetime):
        pointer = datetime.combine(pointer, datetime.min.time())
    delta_ms = (pointer - anchor) // timedelta(milliseconds=1)
    return int(delta_ms / _MS_PER_DAY)


def span_days(rng: DateRange) -> int:
    """Number of calendar days covered by an inclusive range."""
    return (rng.end - rng.start).days + 1


def iter_days(rng: DateRange) -> Iterator[date]:
    day = rng.start
    while day <= rng.end:
        yield day
        day += DAY


def clip_to_window(rng: DateRange, window: VisibleWindow | DateRange) -> DateRange | None:
    """Return the part of rng inside the window, or None when they do not meet."""
    bounds = window.range if isinstance(window, VisibleWindow) else window
    if not overlaps(rng, bounds):
        return None
    return DateRange(max(rng.start, bounds.start), min(rng.end, bounds.end))
