"""Tests for effective status resolution and the edit/cancel/delete guards."""

from __future__ import annotations

from datetime import date, datetime, time

import pytest

from roomsched.domain.models import (
    EffectiveStatus,
    Reservation,
    ReservationStatus,
    UserRole,
)
from roomsched.services.status import (
    can_cancel,
    can_delete,
    can_edit,
    can_transition,
    is_upcoming,
    resolve_status,
)

_TODAY = date(2026, 6, 1)


def _reservation(status=ReservationStatus.APPROVED, **overrides) -> Reservation:
    defaults = dict(
        room_id="room-1",
        user_id="user-1",
        date=_TODAY,
        start_time=time(9, 0),
        end_time=time(10, 0),
        purpose="Review session",
        status=status,
    )
    defaults.update(overrides)
    return Reservation(**defaults)


def _at(hour: int, minute: int, day: date = _TODAY) -> datetime:
    return datetime.combine(day, time(hour, minute))


# ---------------------------------------------------------------------------
# resolve_status
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "status",
    [ReservationStatus.CANCELLED, ReservationStatus.REJECTED, ReservationStatus.COMPLETED],
)
@pytest.mark.parametrize("now", [_at(8, 0), _at(9, 30), _at(23, 0), _at(9, 0, date(2030, 1, 1))])
def test_terminal_statuses_are_sticky(status, now):
    assert resolve_status(_reservation(status), now) == EffectiveStatus(status)


def test_active_window():
    r = _reservation()
    assert resolve_status(r, _at(9, 30)) == EffectiveStatus.ACTIVE
    assert resolve_status(r, _at(8, 59)) == EffectiveStatus.APPROVED
    assert resolve_status(r, _at(10, 1)) == EffectiveStatus.COMPLETED


def test_start_boundary_is_active():
    assert resolve_status(_reservation(), _at(9, 0)) == EffectiveStatus.ACTIVE


def test_end_boundary_is_completed():
    assert resolve_status(_reservation(), _at(10, 0)) == EffectiveStatus.COMPLETED


def test_seconds_in_stored_times_are_ignored():
    r = _reservation(start_time=time(9, 0, 45), end_time=time(10, 0, 30))
    assert resolve_status(r, _at(9, 0)) == EffectiveStatus.ACTIVE
    assert resolve_status(r, _at(10, 0)) == EffectiveStatus.COMPLETED


def test_past_date_is_completed_at_any_time_of_day():
    r = _reservation(date=date(2026, 5, 31), start_time=time(20, 0), end_time=time(22, 0))
    assert resolve_status(r, _at(0, 1)) == EffectiveStatus.COMPLETED
    assert resolve_status(r, _at(8, 0)) == EffectiveStatus.COMPLETED


def test_future_date_stays_approved():
    r = _reservation(date=date(2026, 6, 2))
    assert resolve_status(r, _at(9, 30)) == EffectiveStatus.APPROVED


def test_pending_is_never_promoted():
    r = _reservation(ReservationStatus.PENDING)
    assert resolve_status(r, _at(9, 30)) == EffectiveStatus.PENDING
    assert resolve_status(r, _at(9, 30, date(2027, 1, 1))) == EffectiveStatus.PENDING


def test_resolution_does_not_mutate_record():
    r = _reservation()
    resolve_status(r, _at(11, 0))
    assert r.status == ReservationStatus.APPROVED


def test_is_upcoming():
    r = _reservation()
    assert is_upcoming(r, _at(8, 0))
    assert not is_upcoming(r, _at(9, 30))
    assert not is_upcoming(_reservation(ReservationStatus.PENDING), _at(8, 0))


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------


def test_only_pending_is_editable():
    assert can_edit(_reservation(ReservationStatus.PENDING), _at(8, 0))
    assert not can_edit(_reservation(), _at(8, 0))
    assert not can_edit(_reservation(ReservationStatus.CANCELLED), _at(8, 0))


def test_cancel_allowed_for_pending_and_upcoming_approved():
    assert can_cancel(_reservation(ReservationStatus.PENDING), _at(8, 0))
    assert can_cancel(_reservation(), _at(8, 0))
    assert not can_cancel(_reservation(), _at(9, 30))  # active
    assert not can_cancel(_reservation(), _at(11, 0))  # completed
    assert not can_cancel(_reservation(ReservationStatus.REJECTED), _at(8, 0))


@pytest.mark.parametrize(
    "status, now, expected",
    [
        (ReservationStatus.PENDING, _at(8, 0), False),
        (ReservationStatus.APPROVED, _at(8, 0), False),
        (ReservationStatus.APPROVED, _at(9, 30), False),
        (ReservationStatus.APPROVED, _at(10, 0), True),
        (ReservationStatus.CANCELLED, _at(8, 0), True),
        (ReservationStatus.REJECTED, _at(8, 0), True),
        (ReservationStatus.COMPLETED, _at(8, 0), True),
    ],
)
def test_non_admin_delete_limited_to_history(status, now, expected):
    assert can_delete(_reservation(status), UserRole.INSTRUCTOR, now) is expected


@pytest.mark.parametrize("status", list(ReservationStatus))
def test_admin_may_delete_anything(status):
    assert can_delete(_reservation(status), UserRole.ADMIN, _at(8, 0))


def test_stored_transitions():
    assert can_transition(ReservationStatus.PENDING, ReservationStatus.APPROVED)
    assert can_transition(ReservationStatus.PENDING, ReservationStatus.REJECTED)
    assert can_transition(ReservationStatus.PENDING, ReservationStatus.CANCELLED)
    assert can_transition(ReservationStatus.APPROVED, ReservationStatus.CANCELLED)
    assert not can_transition(ReservationStatus.APPROVED, ReservationStatus.REJECTED)
    assert not can_transition(ReservationStatus.REJECTED, ReservationStatus.APPROVED)
    assert not can_transition(ReservationStatus.CANCELLED, ReservationStatus.PENDING)
