"""Domain models for the room reservation system."""

from __future__ import annotations

import datetime as dt
import uuid
from enum import StrEnum

from pydantic import BaseModel, Field, model_validator


class UserRole(StrEnum):
    ADMIN = "admin"
    INSTRUCTOR = "instructor"
    STUDENT = "student"


class RoomType(StrEnum):
    CLASSROOM = "classroom"
    LAB = "lab"
    CONFERENCE = "conference"


class Weekday(StrEnum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"


class ReservationStatus(StrEnum):
    """Status as persisted in the reservation store."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class EffectiveStatus(StrEnum):
    """Status shown to users, derived from the stored status and the clock."""

    PENDING = "pending"
    APPROVED = "approved"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


class ConflictKind(StrEnum):
    CLASS = "class"
    RESERVATION = "reservation"


class NotificationKind(StrEnum):
    CREATED = "created"
    UPDATED = "updated"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


def _new_id() -> str:
    return str(uuid.uuid4())


def _check_time_order(start_time: dt.time, end_time: dt.time) -> None:
    if start_time >= end_time:
        raise ValueError("end_time must be after start_time")


# ---------------------------------------------------------------------------
# Core domain models
# ---------------------------------------------------------------------------


class User(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    email: str
    role: UserRole
    department: str | None = None
    course: str | None = None
    year: str | None = None
    block: str | None = None


class Room(BaseModel):
    id: str = Field(default_factory=_new_id)
    room_number: str
    building: str
    capacity: int = Field(gt=0)
    type: RoomType = RoomType.CLASSROOM
    equipment: str = ""
    is_available: bool = True


class ClassSchedule(BaseModel):
    """A standing weekly class held in a room."""

    id: str = Field(default_factory=_new_id)
    room_id: str
    instructor_id: str
    course_code: str
    course_name: str
    day: Weekday
    start_time: dt.time
    end_time: dt.time
    course: str | None = None
    year: str | None = None
    block: str | None = None

    @model_validator(mode="after")
    def _end_after_start(self) -> ClassSchedule:
        _check_time_order(self.start_time, self.end_time)
        return self


class Reservation(BaseModel):
    """A one-time booking of a room for a time window on a single date."""

    id: str = Field(default_factory=_new_id)
    room_id: str
    user_id: str
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    purpose: str
    status: ReservationStatus = ReservationStatus.PENDING
    admin_notes: str | None = None
    course: str | None = None
    year: str | None = None
    block: str | None = None
    created_at: dt.datetime = Field(default_factory=dt.datetime.now)
    updated_at: dt.datetime | None = None

    @model_validator(mode="after")
    def _end_after_start(self) -> Reservation:
        _check_time_order(self.start_time, self.end_time)
        return self


class Conflict(BaseModel):
    """One booking that collides with a candidate reservation."""

    kind: ConflictKind
    title: str
    time: str
    owner: str
    reservation_id: str | None = None
    status: ReservationStatus | None = None


class Notification(BaseModel):
    id: str = Field(default_factory=_new_id)
    user_id: str
    reservation_id: str
    kind: NotificationKind
    title: str
    message: str
    created_at: dt.datetime = Field(default_factory=dt.datetime.now)
    is_read: bool = False
    read_at: dt.datetime | None = None


# ---------------------------------------------------------------------------
# Request / Response DTOs
# ---------------------------------------------------------------------------


class ConflictCheckRequest(BaseModel):
    room_id: str
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    exclude_reservation_id: str | None = None

    @model_validator(mode="after")
    def _end_after_start(self) -> ConflictCheckRequest:
        _check_time_order(self.start_time, self.end_time)
        return self


class ConflictCheckResponse(BaseModel):
    conflicts: list[Conflict] = Field(default_factory=list)


class ReservationCreate(BaseModel):
    room_id: str
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    purpose: str = Field(min_length=1)
    course: str | None = None
    year: str | None = None
    block: str | None = None

    @model_validator(mode="after")
    def _end_after_start(self) -> ReservationCreate:
        _check_time_order(self.start_time, self.end_time)
        return self


class ReservationUpdate(BaseModel):
    """Partial edit; omitted fields keep their stored values."""

    room_id: str | None = None
    date: dt.date | None = None
    start_time: dt.time | None = None
    end_time: dt.time | None = None
    purpose: str | None = Field(default=None, min_length=1)
    course: str | None = None
    year: str | None = None
    block: str | None = None
    admin_notes: str | None = None


class StatusUpdate(BaseModel):
    status: ReservationStatus
    admin_notes: str | None = None


class ReservationView(BaseModel):
    """A reservation as returned to clients, carrying its effective status."""

    id: str
    room_id: str
    room_number: str | None = None
    building: str | None = None
    user_id: str
    requester_name: str | None = None
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    purpose: str
    status: EffectiveStatus
    admin_notes: str | None = None
    course: str | None = None
    year: str | None = None
    block: str | None = None
    can_edit: bool = False
    can_cancel: bool = False
    can_delete: bool = False


class RoomCreate(BaseModel):
    room_number: str = Field(min_length=1)
    building: str = Field(min_length=1)
    capacity: int = Field(gt=0)
    type: RoomType = RoomType.CLASSROOM
    equipment: str = ""
    is_available: bool = True


class RoomUpdate(BaseModel):
    capacity: int | None = Field(default=None, gt=0)
    type: RoomType | None = None
    equipment: str | None = None
    is_available: bool | None = None


class ClassScheduleCreate(BaseModel):
    room_id: str
    instructor_id: str
    course_code: str
    course_name: str
    day: Weekday
    start_time: dt.time
    end_time: dt.time
    course: str | None = None
    year: str | None = None
    block: str | None = None

    @model_validator(mode="after")
    def _end_after_start(self) -> ClassScheduleCreate:
        _check_time_order(self.start_time, self.end_time)
        return self


class ScheduleEntry(BaseModel):
    """One dated occurrence in an aggregated schedule view."""

    kind: ConflictKind
    title: str
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    room_id: str
    room_number: str | None = None
    building: str | None = None
    owner: str | None = None
    status: EffectiveStatus | None = None
    reservation_id: str | None = None


class HistoryDeleteResponse(BaseModel):
    deleted_count: int


class NotificationUpdate(BaseModel):
    is_read: bool


class UnreadCount(BaseModel):
    count: int


class MarkAllReadResponse(BaseModel):
    updated_count: int
