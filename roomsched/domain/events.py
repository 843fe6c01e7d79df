"""Domain events emitted during the reservation lifecycle."""

from __future__ import annotations

from pydantic import BaseModel

from roomsched.domain.models import ReservationStatus


class ReservationCreated(BaseModel):
    """Fired when a new reservation request is persisted."""

    reservation_id: str
    actor_id: str


class ReservationUpdated(BaseModel):
    """Fired when a reservation's fields are edited."""

    reservation_id: str
    actor_id: str


class ReservationStatusChanged(BaseModel):
    """Fired after an approve, reject or cancel transition."""

    reservation_id: str
    actor_id: str
    previous: ReservationStatus
    current: ReservationStatus
