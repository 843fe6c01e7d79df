"""Aggregated schedule views: standing classes expanded into dated occurrences
merged with one-time reservations."""

from __future__ import annotations

import datetime as dt

from dateutil.rrule import FR, MO, SA, SU, TH, TU, WE, WEEKLY, rrule

from roomsched.domain.models import (
    ClassSchedule,
    ConflictKind,
    EffectiveStatus,
    Reservation,
    Room,
    ScheduleEntry,
    User,
    Weekday,
)
from roomsched.services.status import resolve_status

_DAY_MAP = {
    Weekday.MONDAY: MO,
    Weekday.TUESDAY: TU,
    Weekday.WEDNESDAY: WE,
    Weekday.THURSDAY: TH,
    Weekday.FRIDAY: FR,
    Weekday.SATURDAY: SA,
    Weekday.SUNDAY: SU,
}

# Effective statuses that still belong on a forward-looking calendar.
_VISIBLE = frozenset({EffectiveStatus.PENDING, EffectiveStatus.APPROVED, EffectiveStatus.ACTIVE})


def occurrences(schedule: ClassSchedule, start: dt.date, end: dt.date) -> list[dt.date]:
    """Return the dates in [start, end] on which a standing class meets."""
    if end < start:
        return []
    rule = rrule(
        WEEKLY,
        byweekday=_DAY_MAP[schedule.day],
        dtstart=dt.datetime.combine(start, dt.time.min),
        until=dt.datetime.combine(end, dt.time.min),
    )
    return [occurrence.date() for occurrence in rule]


def build_schedule(
    classes: list[ClassSchedule],
    reservations: list[Reservation],
    start: dt.date,
    end: dt.date,
    now: dt.datetime,
    rooms: dict[str, Room],
    users: dict[str, User],
) -> list[ScheduleEntry]:
    """Merge class occurrences and reservations in [start, end] into one calendar.

    Reservations are shown with their effective status; those already
    completed, cancelled or rejected are left off.
    """
    entries: list[ScheduleEntry] = []

    for schedule in classes:
        room = rooms.get(schedule.room_id)
        instructor = users.get(schedule.instructor_id)
        for day in occurrences(schedule, start, end):
            entries.append(
                ScheduleEntry(
                    kind=ConflictKind.CLASS,
                    title=f"{schedule.course_code} - {schedule.course_name}",
                    date=day,
                    start_time=schedule.start_time,
                    end_time=schedule.end_time,
                    room_id=schedule.room_id,
                    room_number=room.room_number if room else None,
                    building=room.building if room else None,
                    owner=instructor.name if instructor else None,
                )
            )

    for reservation in reservations:
        if not start <= reservation.date <= end:
            continue
        status = resolve_status(reservation, now)
        if status not in _VISIBLE:
            continue
        room = rooms.get(reservation.room_id)
        requester = users.get(reservation.user_id)
        entries.append(
            ScheduleEntry(
                kind=ConflictKind.RESERVATION,
                title=reservation.purpose,
                date=reservation.date,
                start_time=reservation.start_time,
                end_time=reservation.end_time,
                room_id=reservation.room_id,
                room_number=room.room_number if room else None,
                building=room.building if room else None,
                owner=requester.name if requester else None,
                status=status,
                reservation_id=reservation.id,
            )
        )

    return sorted(entries, key=lambda e: (e.date, e.start_time))
