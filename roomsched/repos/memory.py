"""In-memory repositories for rooms, schedules, reservations and notifications."""

from __future__ import annotations

import datetime as dt
from collections.abc import Iterable

from roomsched.domain.models import (
    ClassSchedule,
    Notification,
    Reservation,
    ReservationStatus,
    Room,
    User,
    UserRole,
    Weekday,
)


class UserRepository:
    """Dict-backed store for User instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, User] = {}

    def add(self, user: User) -> None:
        self._store[user.id] = user

    def get(self, user_id: str) -> User | None:
        return self._store.get(user_id)

    def list_by_role(self, role: UserRole) -> list[User]:
        return [u for u in self._store.values() if u.role == role]


class RoomRepository:
    """Dict-backed store for Room instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, Room] = {}

    def add(self, room: Room) -> None:
        self._store[room.id] = room

    def get(self, room_id: str) -> Room | None:
        return self._store.get(room_id)

    def find(self, room_number: str, building: str) -> Room | None:
        """Look a room up by its natural key."""
        for room in self._store.values():
            if room.room_number == room_number and room.building == building:
                return room
        return None

    def list_all(self) -> list[Room]:
        return sorted(self._store.values(), key=lambda r: (r.building, r.room_number))


class ClassScheduleRepository:
    """List-backed store for standing weekly ClassSchedule rows."""

    def __init__(self) -> None:
        self._items: list[ClassSchedule] = []

    def add(self, schedule: ClassSchedule) -> None:
        self._items.append(schedule)

    def list_for(self, room_id: str, day: Weekday) -> list[ClassSchedule]:
        return [s for s in self._items if s.room_id == room_id and s.day == day]

    def list_all(self, room_id: str | None = None) -> list[ClassSchedule]:
        if room_id is None:
            return list(self._items)
        return [s for s in self._items if s.room_id == room_id]

    def list_for_section(self, course: str, year: str, block: str) -> list[ClassSchedule]:
        return [
            s
            for s in self._items
            if s.course == course and s.year == year and s.block == block
        ]


class ReservationRepository:
    """Dict-backed store for Reservation instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, Reservation] = {}

    def add(self, reservation: Reservation) -> None:
        self._store[reservation.id] = reservation

    def get(self, reservation_id: str) -> Reservation | None:
        return self._store.get(reservation_id)

    def update(self, reservation: Reservation) -> None:
        if reservation.id not in self._store:
            raise KeyError(reservation.id)
        self._store[reservation.id] = reservation

    def delete(self, reservation_id: str) -> None:
        self._store.pop(reservation_id, None)

    def list_all(self) -> list[Reservation]:
        return self._sorted(self._store.values())

    def list_for_user(self, user_id: str) -> list[Reservation]:
        return self._sorted(r for r in self._store.values() if r.user_id == user_id)

    def list_for(
        self,
        room_id: str,
        on_date: dt.date,
        excluding_statuses: Iterable[ReservationStatus] = (),
    ) -> list[Reservation]:
        """Return reservations for a room on one date, minus the given statuses."""
        excluded = set(excluding_statuses)
        return [
            r
            for r in self._store.values()
            if r.room_id == room_id and r.date == on_date and r.status not in excluded
        ]

    def list_for_section(
        self, course: str, year: str, block: str, status: ReservationStatus
    ) -> list[Reservation]:
        return self._sorted(
            r
            for r in self._store.values()
            if r.course == course
            and r.year == year
            and r.block == block
            and r.status == status
        )

    @staticmethod
    def _sorted(reservations: Iterable[Reservation]) -> list[Reservation]:
        # Newest date first, then by start time within a day.
        by_time = sorted(reservations, key=lambda r: r.start_time)
        return sorted(by_time, key=lambda r: r.date, reverse=True)


class NotificationRepository:
    """List-backed store for Notification instances."""

    def __init__(self) -> None:
        self._items: list[Notification] = []

    def add(self, notification: Notification) -> None:
        self._items.append(notification)

    def list_for_user(self, user_id: str) -> list[Notification]:
        return sorted(
            (n for n in self._items if n.user_id == user_id),
            key=lambda n: n.created_at,
            reverse=True,
        )

    def list_for_reservation(self, reservation_id: str) -> list[Notification]:
        return [n for n in self._items if n.reservation_id == reservation_id]

    def get(self, notification_id: str) -> Notification | None:
        return next((n for n in self._items if n.id == notification_id), None)

    def update(self, notification: Notification) -> None:
        for i, existing in enumerate(self._items):
            if existing.id == notification.id:
                self._items[i] = notification
                return
        raise KeyError(notification.id)

    def unread_count(self, user_id: str) -> int:
        return sum(1 for n in self._items if n.user_id == user_id and not n.is_read)

    def mark_all_read(self, user_id: str, at: dt.datetime) -> int:
        """Mark every unread notification for *user_id* as read; return how many changed."""
        changed = 0
        for i, n in enumerate(self._items):
            if n.user_id == user_id and not n.is_read:
                self._items[i] = n.model_copy(update={"is_read": True, "read_at": at})
                changed += 1
        return changed


# ---------------------------------------------------------------------------
# Seed data – a small department useful for trying the API by hand
# ---------------------------------------------------------------------------


def seed_demo_data(
    users: UserRepository,
    rooms: RoomRepository,
    schedules: ClassScheduleRepository,
) -> None:
    admin = User(name="Department Admin", email="admin@example.edu", role=UserRole.ADMIN)
    instructor = User(
        name="Maria Santos",
        email="msantos@example.edu",
        role=UserRole.INSTRUCTOR,
        department="BSIT",
    )
    student = User(
        name="Juan Dela Cruz",
        email="jdelacruz@example.edu",
        role=UserRole.STUDENT,
        department="BSIT",
        course="BSIT",
        year="1",
        block="A",
    )
    for user in (admin, instructor, student):
        users.add(user)

    lecture = Room(room_number="101", building="IT Building", capacity=40)
    lab = Room(
        room_number="201",
        building="IT Building",
        capacity=30,
        type="lab",
        equipment="30 workstations, projector",
    )
    rooms.add(lecture)
    rooms.add(lab)

    schedules.add(
        ClassSchedule(
            room_id=lecture.id,
            instructor_id=instructor.id,
            course_code="IT101",
            course_name="Introduction to Computing",
            day=Weekday.MONDAY,
            start_time=dt.time(8, 0),
            end_time=dt.time(10, 0),
            course="BSIT",
            year="1",
            block="A",
        )
    )
    schedules.add(
        ClassSchedule(
            room_id=lab.id,
            instructor_id=instructor.id,
            course_code="IT102",
            course_name="Computer Programming 1",
            day=Weekday.WEDNESDAY,
            start_time=dt.time(13, 0),
            end_time=dt.time(16, 0),
            course="BSIT",
            year="1",
            block="A",
        )
    )
