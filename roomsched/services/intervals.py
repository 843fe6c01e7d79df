"""Time-of-day interval helpers shared by conflict detection and status resolution."""

from __future__ import annotations

import datetime as dt

from roomsched.domain.models import Weekday

_WEEKDAYS = list(Weekday)  # Monday first, matching date.weekday()


def overlaps(
    a_start: dt.time | dt.datetime,
    a_end: dt.time | dt.datetime,
    b_start: dt.time | dt.datetime,
    b_end: dt.time | dt.datetime,
) -> bool:
    """Return True if half-open intervals [a_start, a_end) and [b_start, b_end) overlap.

    Exact boundary touches (one ends where the other starts) are NOT overlaps,
    so back-to-back bookings are legal.
    """
    return a_start < b_end and b_start < a_end


def weekday_of(on_date: dt.date) -> Weekday:
    return _WEEKDAYS[on_date.weekday()]


def at(on_date: dt.date, time_of_day: dt.time) -> dt.datetime:
    """Combine a date and time-of-day into a naive datetime at minute precision."""
    return dt.datetime.combine(on_date, time_of_day.replace(second=0, microsecond=0))


def format_time_range(start: dt.time, end: dt.time) -> str:
    return f"{start.strftime('%H:%M')} - {end.strftime('%H:%M')}"
