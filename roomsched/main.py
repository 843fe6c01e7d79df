"""FastAPI application: entry point for the room reservation service."""

from __future__ import annotations

import datetime as dt
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from roomsched.core.config import get_settings
from roomsched.core.errors import (
    AppError,
    NotAllowedError,
    NotFoundError,
    PermissionDeniedError,
    TimeConflictError,
    UnauthenticatedError,
    ValidationError,
)
from roomsched.domain.bus import EventBus
from roomsched.domain.events import (
    ReservationCreated,
    ReservationStatusChanged,
    ReservationUpdated,
)
from roomsched.domain.handlers import HandlerRegistry
from roomsched.domain.models import (
    ClassSchedule,
    ClassScheduleCreate,
    Conflict,
    ConflictCheckRequest,
    ConflictCheckResponse,
    HistoryDeleteResponse,
    MarkAllReadResponse,
    Notification,
    NotificationUpdate,
    Reservation,
    ReservationCreate,
    ReservationStatus,
    ReservationUpdate,
    ReservationView,
    Room,
    RoomCreate,
    RoomUpdate,
    ScheduleEntry,
    StatusUpdate,
    UnreadCount,
    User,
    UserRole,
)
from roomsched.repos.memory import (
    ClassScheduleRepository,
    NotificationRepository,
    ReservationRepository,
    RoomRepository,
    UserRepository,
    seed_demo_data,
)
from roomsched.services.clock import Clock, SystemClock
from roomsched.services.conflicts import ConflictDetector, ConflictLookupError, find_conflicts
from roomsched.services.intervals import weekday_of
from roomsched.services.locks import ReservationLocks, RoomDateLocks
from roomsched.services.schedule import build_schedule
from roomsched.services.status import (
    TERMINAL_STATUSES,
    can_cancel,
    can_delete,
    can_edit,
    can_transition,
    is_terminal,
    is_upcoming,
    resolve_status,
)

settings = get_settings()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# ── Singletons (created at import time for simplicity) ────────────────
event_bus = EventBus()
user_repo = UserRepository()
room_repo = RoomRepository()
class_schedule_repo = ClassScheduleRepository()
reservation_repo = ReservationRepository()
notification_repo = NotificationRepository()
room_locks = RoomDateLocks()
reservation_locks = ReservationLocks()
clock: Clock = SystemClock(settings.timezone)

conflict_detector = ConflictDetector(
    rooms=room_repo,
    schedules=class_schedule_repo,
    reservations=reservation_repo,
    users=user_repo,
)
handler_registry = HandlerRegistry(
    bus=event_bus,
    users=user_repo,
    rooms=room_repo,
    reservations=reservation_repo,
    notifications=notification_repo,
)


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.seed_demo_data:
        seed_demo_data(user_repo, room_repo, class_schedule_repo)
        logger.info("Loaded demo rooms, users and class schedules")
    yield


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message, "details": exc.details},
    )


app = FastAPI(title=settings.project_name, lifespan=lifespan)
app.add_exception_handler(AppError, app_error_handler)


# ── Helpers ───────────────────────────────────────────────────────────


def current_user(x_user_id: str | None = Header(default=None)) -> User:
    """Resolve the acting user from the ``X-User-Id`` header."""
    user = user_repo.get(x_user_id) if x_user_id else None
    if user is None:
        raise UnauthenticatedError()
    return user


def _require_admin(actor: User) -> None:
    if actor.role != UserRole.ADMIN:
        raise PermissionDeniedError("Administrator access required")


def _require_owner_or_admin(reservation: Reservation, actor: User, action: str) -> None:
    if reservation.user_id != actor.id and actor.role != UserRole.ADMIN:
        raise PermissionDeniedError(f"You can only {action} your own reservations")


def _get_reservation(reservation_id: str) -> Reservation:
    reservation = reservation_repo.get(reservation_id)
    if reservation is None:
        raise NotFoundError("Reservation", reservation_id)
    return reservation


def _directory(user_ids: set[str]) -> dict[str, User]:
    return {u.id: u for u in map(user_repo.get, user_ids) if u}


def _require_bookable_room(room_id: str) -> Room:
    room = room_repo.get(room_id)
    if room is None:
        raise ValidationError(f"Room {room_id} does not exist")
    if not room.is_available:
        raise ValidationError(f"Room {room.room_number} is not available for reservations")
    return room


def _detect(candidate: ConflictCheckRequest) -> list[Conflict]:
    """Run conflict detection, failing closed if the stores cannot be read."""
    try:
        return conflict_detector.detect(candidate)
    except ConflictLookupError as exc:
        logger.error("Refusing write, conflict check failed: %s", exc)
        raise AppError("Unable to verify room availability", status_code=503) from exc


def _ensure_no_conflicts(reservation: Reservation, exclude_id: str | None = None) -> None:
    conflicts = _detect(
        ConflictCheckRequest(
            room_id=reservation.room_id,
            date=reservation.date,
            start_time=reservation.start_time,
            end_time=reservation.end_time,
            exclude_reservation_id=exclude_id,
        )
    )
    if conflicts:
        logger.info(
            "Refused slot %s %s %s-%s: %d conflict(s)",
            reservation.room_id,
            reservation.date,
            reservation.start_time,
            reservation.end_time,
            len(conflicts),
        )
        raise TimeConflictError([c.model_dump(mode="json") for c in conflicts])


def _view(reservation: Reservation, actor: User, now: dt.datetime) -> ReservationView:
    room = room_repo.get(reservation.room_id)
    requester = user_repo.get(reservation.user_id)
    is_admin = actor.role == UserRole.ADMIN
    is_owner = reservation.user_id == actor.id
    editable = (
        not is_terminal(reservation, now) if is_admin else is_owner and can_edit(reservation, now)
    )
    return ReservationView(
        **reservation.model_dump(exclude={"status", "created_at", "updated_at"}),
        status=resolve_status(reservation, now),
        room_number=room.room_number if room else None,
        building=room.building if room else None,
        requester_name=requester.name if requester else None,
        can_edit=editable,
        can_cancel=(is_owner or is_admin) and can_cancel(reservation, now),
        can_delete=(is_owner or is_admin) and can_delete(reservation, actor.role, now),
    )


# ── Rooms & class schedules ──────────────────────────────────────────


@app.get("/rooms", response_model=list[Room])
def list_rooms() -> list[Room]:
    return room_repo.list_all()


@app.post("/rooms", response_model=Room, status_code=201)
def create_room(payload: RoomCreate, actor: User = Depends(current_user)) -> Room:
    _require_admin(actor)
    if room_repo.find(payload.room_number, payload.building) is not None:
        raise ValidationError(
            f"Room {payload.room_number} already exists in {payload.building}"
        )
    room = Room(**payload.model_dump())
    room_repo.add(room)
    return room


@app.patch("/rooms/{room_id}", response_model=Room)
def update_room(room_id: str, payload: RoomUpdate, actor: User = Depends(current_user)) -> Room:
    _require_admin(actor)
    room = room_repo.get(room_id)
    if room is None:
        raise NotFoundError("Room", room_id)
    updated = room.model_copy(update=payload.model_dump(exclude_unset=True, exclude_none=True))
    room_repo.add(updated)
    return updated


@app.get("/rooms/{room_id}/schedule", response_model=list[ScheduleEntry])
def room_schedule(room_id: str, on: dt.date) -> list[ScheduleEntry]:
    """Return the classes and open reservations occupying a room on one date."""
    room = room_repo.get(room_id)
    if room is None:
        raise NotFoundError("Room", room_id)
    classes = class_schedule_repo.list_for(room_id, weekday_of(on))
    reservations = reservation_repo.list_for(room_id, on, excluding_statuses=TERMINAL_STATUSES)
    people = {c.instructor_id for c in classes} | {r.user_id for r in reservations}
    return build_schedule(
        classes=classes,
        reservations=reservations,
        start=on,
        end=on,
        now=clock.now(),
        rooms={room.id: room},
        users=_directory(people),
    )


@app.get("/class-schedules", response_model=list[ClassSchedule])
def list_class_schedules(room_id: str | None = None) -> list[ClassSchedule]:
    return class_schedule_repo.list_all(room_id)


@app.post("/class-schedules", response_model=ClassSchedule, status_code=201)
def create_class_schedule(
    payload: ClassScheduleCreate, actor: User = Depends(current_user)
) -> ClassSchedule:
    _require_admin(actor)
    if room_repo.get(payload.room_id) is None:
        raise ValidationError(f"Room {payload.room_id} does not exist")
    instructor = user_repo.get(payload.instructor_id)
    if instructor is None or instructor.role != UserRole.INSTRUCTOR:
        raise ValidationError(f"Instructor {payload.instructor_id} does not exist")

    clashes = find_conflicts(
        payload.start_time,
        payload.end_time,
        class_schedule_repo.list_for(payload.room_id, payload.day),
    )
    if clashes:
        raise ValidationError(
            "Class overlaps an existing class in this room",
            details={"class_ids": [c.id for c in clashes]},
        )

    schedule = ClassSchedule(**payload.model_dump())
    class_schedule_repo.add(schedule)
    return schedule


# ── Reservations ──────────────────────────────────────────────────────


@app.post("/reservations/check-conflict", response_model=ConflictCheckResponse)
def check_conflict(
    payload: ConflictCheckRequest, actor: User = Depends(current_user)
) -> ConflictCheckResponse:
    """Report collisions for a proposed slot without writing anything."""
    if room_repo.get(payload.room_id) is None:
        raise ValidationError(f"Room {payload.room_id} does not exist")
    return ConflictCheckResponse(conflicts=_detect(payload))


@app.post("/reservations", response_model=ReservationView, status_code=201)
def create_reservation(
    payload: ReservationCreate, actor: User = Depends(current_user)
) -> ReservationView:
    if actor.role == UserRole.STUDENT:
        raise PermissionDeniedError("Students cannot request rooms")
    if actor.role == UserRole.INSTRUCTOR and not (
        payload.course and payload.year and payload.block
    ):
        raise ValidationError("Course, year, and block are required for instructor reservations")
    _require_bookable_room(payload.room_id)

    reservation = Reservation(user_id=actor.id, **payload.model_dump())
    with room_locks.hold(reservation.room_id, reservation.date):
        _ensure_no_conflicts(reservation)
        reservation_repo.add(reservation)

    logger.info("Reservation %s requested by %s", reservation.id, actor.id)
    event_bus.dispatch(ReservationCreated(reservation_id=reservation.id, actor_id=actor.id))
    return _view(reservation, actor, clock.now())


@app.get("/reservations", response_model=list[ReservationView])
def list_reservations(actor: User = Depends(current_user)) -> list[ReservationView]:
    """Admins see every reservation; everyone else sees their own."""
    if actor.role == UserRole.ADMIN:
        reservations = reservation_repo.list_all()
    else:
        reservations = reservation_repo.list_for_user(actor.id)
    now = clock.now()
    return [_view(r, actor, now) for r in reservations]


@app.delete("/reservations/history", response_model=HistoryDeleteResponse)
def delete_history(actor: User = Depends(current_user)) -> HistoryDeleteResponse:
    """Delete the actor's own completed, cancelled and rejected reservations."""
    if actor.role == UserRole.STUDENT:
        raise PermissionDeniedError("Only instructors can delete their history")
    now = clock.now()
    deleted = 0
    for candidate in reservation_repo.list_for_user(actor.id):
        with reservation_locks.hold(candidate.id):
            reservation = reservation_repo.get(candidate.id)
            if reservation is not None and is_terminal(reservation, now):
                reservation_repo.delete(reservation.id)
                deleted += 1
    logger.info("Deleted %d history reservation(s) for %s", deleted, actor.id)
    return HistoryDeleteResponse(deleted_count=deleted)


@app.get("/reservations/{reservation_id}", response_model=ReservationView)
def get_reservation(reservation_id: str, actor: User = Depends(current_user)) -> ReservationView:
    reservation = _get_reservation(reservation_id)
    _require_owner_or_admin(reservation, actor, "view")
    return _view(reservation, actor, clock.now())


@app.patch("/reservations/{reservation_id}", response_model=ReservationView)
def update_reservation(
    reservation_id: str, payload: ReservationUpdate, actor: User = Depends(current_user)
) -> ReservationView:
    is_admin = actor.role == UserRole.ADMIN
    changes = payload.model_dump(exclude_unset=True)
    if not is_admin:
        changes.pop("admin_notes", None)

    with reservation_locks.hold(reservation_id):
        reservation = _get_reservation(reservation_id)
        _require_owner_or_admin(reservation, actor, "edit")
        now = clock.now()

        if is_admin:
            if is_terminal(reservation, now):
                raise NotAllowedError("Finished reservations cannot be edited")
        elif not can_edit(reservation, now):
            raise NotAllowedError("Only pending reservations can be edited")
        if not changes:
            raise ValidationError("No valid fields to update")

        try:
            updated = Reservation(**{**reservation.model_dump(), **changes, "updated_at": now})
        except PydanticValidationError as exc:
            raise ValidationError(
                "Invalid reservation update",
                details={
                    "errors": exc.errors(
                        include_url=False, include_context=False, include_input=False
                    )
                },
            ) from exc

        if "room_id" in changes:
            _require_bookable_room(updated.room_id)

        if changes.keys() & {"room_id", "date", "start_time", "end_time"}:
            with room_locks.hold(updated.room_id, updated.date):
                _ensure_no_conflicts(updated, exclude_id=reservation.id)
                reservation_repo.update(updated)
        else:
            reservation_repo.update(updated)

    logger.info("Reservation %s updated by %s", reservation.id, actor.id)
    event_bus.dispatch(ReservationUpdated(reservation_id=reservation.id, actor_id=actor.id))
    return _view(updated, actor, now)


@app.patch("/reservations/{reservation_id}/status", response_model=ReservationView)
def update_reservation_status(
    reservation_id: str, payload: StatusUpdate, actor: User = Depends(current_user)
) -> ReservationView:
    """Approve, reject or cancel a reservation."""
    target = payload.status
    is_admin = actor.role == UserRole.ADMIN

    # Guards run against the stored record as it stands once no other write
    # on this reservation is in flight.
    with reservation_locks.hold(reservation_id):
        reservation = _get_reservation(reservation_id)
        now = clock.now()

        if target == ReservationStatus.CANCELLED:
            _require_owner_or_admin(reservation, actor, "cancel")
            if not can_cancel(reservation, now):
                raise NotAllowedError("Only pending or approved reservations can be cancelled")
        elif target in (ReservationStatus.APPROVED, ReservationStatus.REJECTED) and not is_admin:
            raise PermissionDeniedError("Only administrators can approve or reject reservations")

        if not can_transition(reservation.status, target):
            raise NotAllowedError(
                f"Cannot change a {reservation.status} reservation to {target}"
            )

        changes: dict = {"status": target, "updated_at": now}
        if is_admin and payload.admin_notes is not None:
            changes["admin_notes"] = payload.admin_notes
        updated = reservation.model_copy(update=changes)

        if target == ReservationStatus.APPROVED:
            with room_locks.hold(updated.room_id, updated.date):
                _ensure_no_conflicts(updated, exclude_id=reservation.id)
                reservation_repo.update(updated)
        else:
            reservation_repo.update(updated)

    logger.info(
        "Reservation %s %s -> %s by %s", reservation.id, reservation.status, target, actor.id
    )
    event_bus.dispatch(
        ReservationStatusChanged(
            reservation_id=reservation.id,
            actor_id=actor.id,
            previous=reservation.status,
            current=target,
        )
    )
    return _view(updated, actor, now)


@app.delete("/reservations/{reservation_id}")
def delete_reservation(reservation_id: str, actor: User = Depends(current_user)) -> dict:
    with reservation_locks.hold(reservation_id):
        reservation = _get_reservation(reservation_id)
        _require_owner_or_admin(reservation, actor, "delete")
        now = clock.now()
        if not can_delete(reservation, actor.role, now):
            if reservation.status == ReservationStatus.PENDING:
                raise NotAllowedError(
                    "Pending reservations cannot be deleted. Please cancel them first."
                )
            if is_upcoming(reservation, now):
                raise NotAllowedError(
                    "Upcoming approved reservations cannot be deleted. Please cancel them first."
                )
            raise NotAllowedError("Reservations in progress cannot be deleted")
        reservation_repo.delete(reservation_id)
    logger.info("Reservation %s deleted by %s", reservation_id, actor.id)
    return {"message": "Reservation deleted successfully"}


# ── Schedules & notifications ─────────────────────────────────────────


@app.get("/student-schedule", response_model=list[ScheduleEntry])
def student_schedule(actor: User = Depends(current_user)) -> list[ScheduleEntry]:
    """Classes and approved reservations for the actor's course, year and block."""
    if not (actor.course and actor.year and actor.block):
        raise ValidationError("Your profile has no course, year and block")
    now = clock.now()
    start = now.date()
    end = start + dt.timedelta(days=settings.schedule_horizon_days - 1)

    classes = class_schedule_repo.list_for_section(actor.course, actor.year, actor.block)
    reservations = reservation_repo.list_for_section(
        actor.course, actor.year, actor.block, ReservationStatus.APPROVED
    )
    people = {c.instructor_id for c in classes} | {r.user_id for r in reservations}
    places = {c.room_id for c in classes} | {r.room_id for r in reservations}
    return build_schedule(
        classes=classes,
        reservations=reservations,
        start=start,
        end=end,
        now=now,
        rooms={r.id: r for r in map(room_repo.get, places) if r},
        users=_directory(people),
    )


@app.get("/notifications", response_model=list[Notification])
def list_notifications(actor: User = Depends(current_user)) -> list[Notification]:
    return notification_repo.list_for_user(actor.id)


@app.get("/notifications/unread-count", response_model=UnreadCount)
def unread_notification_count(actor: User = Depends(current_user)) -> UnreadCount:
    return UnreadCount(count=notification_repo.unread_count(actor.id))


@app.post("/notifications/read-all", response_model=MarkAllReadResponse)
def mark_all_notifications_read(actor: User = Depends(current_user)) -> MarkAllReadResponse:
    updated = notification_repo.mark_all_read(actor.id, clock.now())
    return MarkAllReadResponse(updated_count=updated)


@app.patch("/notifications/{notification_id}", response_model=Notification)
def update_notification(
    notification_id: str, payload: NotificationUpdate, actor: User = Depends(current_user)
) -> Notification:
    """Mark one of the actor's notifications as read or unread."""
    notification = notification_repo.get(notification_id)
    # Other users' notifications are reported as missing.
    if notification is None or notification.user_id != actor.id:
        raise NotFoundError("Notification", notification_id)
    updated = notification.model_copy(
        update={
            "is_read": payload.is_read,
            "read_at": clock.now() if payload.is_read else None,
        }
    )
    notification_repo.update(updated)
    return updated
