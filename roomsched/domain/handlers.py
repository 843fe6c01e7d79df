"""Notification handlers, wired to the bus at application startup."""

from __future__ import annotations

import logging

from roomsched.domain.bus import EventBus
from roomsched.domain.events import (
    ReservationCreated,
    ReservationStatusChanged,
    ReservationUpdated,
)
from roomsched.domain.models import (
    Notification,
    NotificationKind,
    Reservation,
    ReservationStatus,
    UserRole,
)
from roomsched.repos.memory import (
    NotificationRepository,
    ReservationRepository,
    RoomRepository,
    UserRepository,
)
from roomsched.services.intervals import format_time_range

logger = logging.getLogger(__name__)

_STATUS_KINDS = {
    ReservationStatus.APPROVED: NotificationKind.APPROVED,
    ReservationStatus.REJECTED: NotificationKind.REJECTED,
    ReservationStatus.CANCELLED: NotificationKind.CANCELLED,
}


class HandlerRegistry:
    """Turns reservation domain events into stored notifications."""

    def __init__(
        self,
        bus: EventBus,
        users: UserRepository,
        rooms: RoomRepository,
        reservations: ReservationRepository,
        notifications: NotificationRepository,
    ) -> None:
        self.bus = bus
        self.users = users
        self.rooms = rooms
        self.reservations = reservations
        self.notifications = notifications
        self._register()

    def _register(self) -> None:
        self.bus.subscribe(ReservationCreated, self.on_reservation_created)
        self.bus.subscribe(ReservationUpdated, self.on_reservation_updated)
        self.bus.subscribe(ReservationStatusChanged, self.on_status_changed)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def on_reservation_created(self, event: ReservationCreated) -> None:
        reservation = self.reservations.get(event.reservation_id)
        if reservation is None:
            return
        requester = self._name(reservation.user_id)
        self._notify_admins(
            reservation,
            NotificationKind.CREATED,
            title=f"New Reservation Request: {self._room_label(reservation)}",
            message=f"{requester} requested {self._slot(reservation)} for: {reservation.purpose}",
        )

    def on_reservation_updated(self, event: ReservationUpdated) -> None:
        reservation = self.reservations.get(event.reservation_id)
        if reservation is None:
            return
        # Owners editing their own request need no notice.
        if event.actor_id == reservation.user_id:
            return
        self._notify(
            reservation.user_id,
            reservation,
            NotificationKind.UPDATED,
            title=f"Reservation Updated: {self._room_label(reservation)}",
            message=f"Your reservation for {self._slot(reservation)} has been updated.",
        )

    def on_status_changed(self, event: ReservationStatusChanged) -> None:
        reservation = self.reservations.get(event.reservation_id)
        if reservation is None:
            return
        kind = _STATUS_KINDS.get(event.current)
        if kind is None:
            return
        title = f"Reservation {event.current.capitalize()}: {self._room_label(reservation)}"

        if kind == NotificationKind.CANCELLED and event.actor_id == reservation.user_id:
            requester = self._name(reservation.user_id)
            self._notify_admins(
                reservation,
                kind,
                title=title,
                message=f"{requester} cancelled their reservation for {self._slot(reservation)}",
            )
            return

        actor = self._name(event.actor_id)
        self._notify(
            reservation.user_id,
            reservation,
            kind,
            title=title,
            message=f"Your reservation for {self._slot(reservation)} was {event.current} by {actor}.",
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _notify(
        self,
        user_id: str,
        reservation: Reservation,
        kind: NotificationKind,
        title: str,
        message: str,
    ) -> None:
        self.notifications.add(
            Notification(
                user_id=user_id,
                reservation_id=reservation.id,
                kind=kind,
                title=title,
                message=message,
            )
        )
        logger.debug("Queued %s notification for user %s", kind, user_id)

    def _notify_admins(
        self, reservation: Reservation, kind: NotificationKind, title: str, message: str
    ) -> None:
        for admin in self.users.list_by_role(UserRole.ADMIN):
            self._notify(admin.id, reservation, kind, title=title, message=message)

    def _name(self, user_id: str) -> str:
        user = self.users.get(user_id)
        return user.name if user else "Unknown user"

    def _room_label(self, reservation: Reservation) -> str:
        room = self.rooms.get(reservation.room_id)
        return room.room_number if room else reservation.room_id

    def _slot(self, reservation: Reservation) -> str:
        when = format_time_range(reservation.start_time, reservation.end_time)
        return f"{self._room_label(reservation)} on {reservation.date.isoformat()} ({when})"
