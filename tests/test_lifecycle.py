"""Tests for the event bus and the notification handlers."""

from __future__ import annotations

from datetime import date, time

import pytest

from roomsched.domain.bus import EventBus
from roomsched.domain.events import (
    ReservationCreated,
    ReservationStatusChanged,
    ReservationUpdated,
)
from roomsched.domain.handlers import HandlerRegistry
from roomsched.domain.models import (
    NotificationKind,
    Reservation,
    ReservationStatus,
    Room,
    User,
    UserRole,
)
from roomsched.repos.memory import (
    NotificationRepository,
    ReservationRepository,
    RoomRepository,
    UserRepository,
)


@pytest.fixture()
def env():
    """Fresh bus + repos + registry for each test."""
    bus = EventBus()
    users = UserRepository()
    rooms = RoomRepository()
    reservations = ReservationRepository()
    notifications = NotificationRepository()
    registry = HandlerRegistry(
        bus=bus,
        users=users,
        rooms=rooms,
        reservations=reservations,
        notifications=notifications,
    )

    admin = User(name="Dept Admin", email="admin@example.edu", role=UserRole.ADMIN)
    second_admin = User(name="Registrar", email="reg@example.edu", role=UserRole.ADMIN)
    owner = User(name="Ana Reyes", email="ana@example.edu", role=UserRole.INSTRUCTOR)
    for user in (admin, second_admin, owner):
        users.add(user)
    room = Room(room_number="IT-101", building="IT Building", capacity=40)
    rooms.add(room)
    reservation = Reservation(
        room_id=room.id,
        user_id=owner.id,
        date=date(2026, 6, 2),
        start_time=time(13, 0),
        end_time=time(14, 0),
        purpose="Thesis defense",
    )
    reservations.add(reservation)

    class Env:
        pass

    e = Env()
    e.bus = bus
    e.notifications = notifications
    e.registry = registry
    e.admin = admin
    e.second_admin = second_admin
    e.owner = owner
    e.reservation = reservation
    return e


def test_created_notifies_every_admin(env):
    env.bus.publish(ReservationCreated(reservation_id=env.reservation.id, actor_id=env.owner.id))

    for admin in (env.admin, env.second_admin):
        [note] = env.notifications.list_for_user(admin.id)
        assert note.kind == NotificationKind.CREATED
        assert note.title == "New Reservation Request: IT-101"
        assert "Ana Reyes" in note.message
        assert "13:00 - 14:00" in note.message
    assert env.notifications.list_for_user(env.owner.id) == []


def test_approval_notifies_owner(env):
    env.bus.publish(
        ReservationStatusChanged(
            reservation_id=env.reservation.id,
            actor_id=env.admin.id,
            previous=ReservationStatus.PENDING,
            current=ReservationStatus.APPROVED,
        )
    )

    [note] = env.notifications.list_for_user(env.owner.id)
    assert note.kind == NotificationKind.APPROVED
    assert note.title == "Reservation Approved: IT-101"
    assert note.message.endswith("was approved by Dept Admin.")


def test_owner_cancellation_notifies_admins(env):
    env.bus.publish(
        ReservationStatusChanged(
            reservation_id=env.reservation.id,
            actor_id=env.owner.id,
            previous=ReservationStatus.PENDING,
            current=ReservationStatus.CANCELLED,
        )
    )

    assert env.notifications.list_for_user(env.owner.id) == []
    [note] = env.notifications.list_for_user(env.admin.id)
    assert note.kind == NotificationKind.CANCELLED
    assert "cancelled their reservation" in note.message


def test_admin_cancellation_notifies_owner(env):
    env.bus.publish(
        ReservationStatusChanged(
            reservation_id=env.reservation.id,
            actor_id=env.admin.id,
            previous=ReservationStatus.APPROVED,
            current=ReservationStatus.CANCELLED,
        )
    )

    [note] = env.notifications.list_for_user(env.owner.id)
    assert note.kind == NotificationKind.CANCELLED
    assert env.notifications.list_for_user(env.admin.id) == []


def test_admin_edit_notifies_owner_but_self_edit_does_not(env):
    env.bus.publish(ReservationUpdated(reservation_id=env.reservation.id, actor_id=env.owner.id))
    assert env.notifications.list_for_reservation(env.reservation.id) == []

    env.bus.publish(ReservationUpdated(reservation_id=env.reservation.id, actor_id=env.admin.id))
    [note] = env.notifications.list_for_user(env.owner.id)
    assert note.kind == NotificationKind.UPDATED


def test_unknown_reservation_is_ignored(env):
    env.bus.publish(ReservationCreated(reservation_id="missing", actor_id=env.owner.id))
    assert env.notifications.list_for_user(env.admin.id) == []


def test_dispatch_swallows_handler_failures(env):
    def explode(event):
        raise RuntimeError("mail server down")

    env.bus.subscribe(ReservationCreated, explode)
    event = ReservationCreated(reservation_id=env.reservation.id, actor_id=env.owner.id)

    with pytest.raises(RuntimeError):
        env.bus.publish(event)
    env.bus.dispatch(event)  # does not raise
