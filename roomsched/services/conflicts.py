"""Service for detecting booking conflicts for a candidate reservation."""

from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Iterable
from typing import Protocol, TypeVar

from roomsched.core.errors import ValidationError
from roomsched.domain.models import (
    ClassSchedule,
    Conflict,
    ConflictCheckRequest,
    ConflictKind,
    Reservation,
)
from roomsched.repos.memory import (
    ClassScheduleRepository,
    ReservationRepository,
    RoomRepository,
    UserRepository,
)
from roomsched.services.intervals import format_time_range, overlaps, weekday_of
from roomsched.services.status import BLOCKING_STATUSES, TERMINAL_STATUSES

logger = logging.getLogger(__name__)


class ConflictLookupError(LookupError):
    """Room unknown or a store query failed; safety of the slot cannot be confirmed."""


class _Timed(Protocol):
    start_time: dt.time
    end_time: dt.time


T = TypeVar("T", bound=_Timed)


def find_conflicts(
    new_start: dt.time,
    new_end: dt.time,
    existing: Iterable[T],
) -> list[T]:
    """Return the existing bookings whose time range overlaps [new_start, new_end).

    Exact boundary touches (end == start) are NOT considered conflicts.
    """
    return [
        item for item in existing if overlaps(new_start, new_end, item.start_time, item.end_time)
    ]


class ConflictDetector:
    """Reports every class or open reservation colliding with a candidate slot.

    Read-only: it never writes to any store. Callers holding the per-room lock
    can run it and the subsequent write as one step.
    """

    def __init__(
        self,
        rooms: RoomRepository,
        schedules: ClassScheduleRepository,
        reservations: ReservationRepository,
        users: UserRepository,
    ) -> None:
        self.rooms = rooms
        self.schedules = schedules
        self.reservations = reservations
        self.users = users

    def detect(self, candidate: ConflictCheckRequest) -> list[Conflict]:
        if candidate.start_time >= candidate.end_time:
            raise ValidationError("end_time must be after start_time")

        try:
            room = self.rooms.get(candidate.room_id)
            if room is None:
                raise ConflictLookupError(f"Room {candidate.room_id} not found")
            classes = self.schedules.list_for(candidate.room_id, weekday_of(candidate.date))
            bookings = self.reservations.list_for(
                candidate.room_id, candidate.date, excluding_statuses=TERMINAL_STATUSES
            )
        except ConflictLookupError:
            raise
        except Exception as exc:
            logger.exception("Conflict lookup failed for room %s", candidate.room_id)
            raise ConflictLookupError(
                f"Could not load bookings for room {candidate.room_id}"
            ) from exc

        bookings = [
            r
            for r in bookings
            if r.status in BLOCKING_STATUSES and r.id != candidate.exclude_reservation_id
        ]

        conflicts = [
            self._class_conflict(c)
            for c in find_conflicts(candidate.start_time, candidate.end_time, classes)
        ]
        conflicts.extend(
            self._reservation_conflict(r)
            for r in find_conflicts(candidate.start_time, candidate.end_time, bookings)
        )
        return conflicts

    def _display_name(self, user_id: str) -> str:
        user = self.users.get(user_id)
        return user.name if user else "Unknown"

    def _class_conflict(self, schedule: ClassSchedule) -> Conflict:
        return Conflict(
            kind=ConflictKind.CLASS,
            title=f"{schedule.course_code} - {schedule.course_name}",
            time=format_time_range(schedule.start_time, schedule.end_time),
            owner=self._display_name(schedule.instructor_id),
        )

    def _reservation_conflict(self, reservation: Reservation) -> Conflict:
        return Conflict(
            kind=ConflictKind.RESERVATION,
            title=reservation.purpose,
            time=format_time_range(reservation.start_time, reservation.end_time),
            owner=self._display_name(reservation.user_id),
            reservation_id=reservation.id,
            status=reservation.status,
        )
