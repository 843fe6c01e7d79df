"""Effective status resolution and the action guards built on top of it.

Stored statuses only change through explicit transitions (approve, reject,
cancel). ``active`` and ``completed`` for approved reservations are derived
from the clock on every read and are never written back.

Boundary rule: an approved reservation is active on ``[start, end)`` and
completed from ``end`` onwards, both compared at minute precision.
"""

from __future__ import annotations

import datetime as dt

from roomsched.domain.models import (
    EffectiveStatus,
    Reservation,
    ReservationStatus,
    UserRole,
)
from roomsched.services.intervals import at

TERMINAL_STATUSES = frozenset(
    {ReservationStatus.CANCELLED, ReservationStatus.REJECTED, ReservationStatus.COMPLETED}
)

# Stored statuses that still claim the room.
BLOCKING_STATUSES = frozenset({ReservationStatus.PENDING, ReservationStatus.APPROVED})

HISTORY_STATUSES = frozenset(
    {EffectiveStatus.COMPLETED, EffectiveStatus.CANCELLED, EffectiveStatus.REJECTED}
)

_TRANSITIONS: dict[ReservationStatus, frozenset[ReservationStatus]] = {
    ReservationStatus.PENDING: frozenset(
        {ReservationStatus.APPROVED, ReservationStatus.REJECTED, ReservationStatus.CANCELLED}
    ),
    ReservationStatus.APPROVED: frozenset({ReservationStatus.CANCELLED}),
}


def is_active(reservation: Reservation, now: dt.datetime) -> bool:
    if reservation.date != now.date():
        return False
    start = at(reservation.date, reservation.start_time)
    end = at(reservation.date, reservation.end_time)
    return start <= now < end


def is_completed(reservation: Reservation, now: dt.datetime) -> bool:
    today = now.date()
    if reservation.date < today:
        return True
    if reservation.date == today:
        return now >= at(reservation.date, reservation.end_time)
    return False


def resolve_status(reservation: Reservation, now: dt.datetime) -> EffectiveStatus:
    """Derive the status users should see for *reservation* at *now*."""
    stored = reservation.status
    if stored in TERMINAL_STATUSES:
        return EffectiveStatus(stored)
    if stored == ReservationStatus.APPROVED:
        if is_active(reservation, now):
            return EffectiveStatus.ACTIVE
        if is_completed(reservation, now):
            return EffectiveStatus.COMPLETED
        return EffectiveStatus.APPROVED
    # Pending requests have no claim on the room yet, so time never promotes them.
    return EffectiveStatus.PENDING


def is_upcoming(reservation: Reservation, now: dt.datetime) -> bool:
    """Approved and not yet started."""
    return resolve_status(reservation, now) == EffectiveStatus.APPROVED


def can_edit(reservation: Reservation, now: dt.datetime) -> bool:
    return resolve_status(reservation, now) == EffectiveStatus.PENDING


def can_cancel(reservation: Reservation, now: dt.datetime) -> bool:
    return resolve_status(reservation, now) in (
        EffectiveStatus.PENDING,
        EffectiveStatus.APPROVED,
    )


def can_delete(reservation: Reservation, role: UserRole, now: dt.datetime) -> bool:
    """Admins may delete anything; everyone else only cleans up history.

    The time check is re-run here from the stored record, so an approved
    booking only becomes deletable once its window has fully elapsed.
    """
    if role == UserRole.ADMIN:
        return True
    return resolve_status(reservation, now) in HISTORY_STATUSES


def is_terminal(reservation: Reservation, now: dt.datetime) -> bool:
    return resolve_status(reservation, now) in HISTORY_STATUSES


def can_transition(current: ReservationStatus, target: ReservationStatus) -> bool:
    return target in _TRANSITIONS.get(current, frozenset())
