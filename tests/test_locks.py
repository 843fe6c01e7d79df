"""Tests for keyed write serialization."""

from __future__ import annotations

import threading
from datetime import date

from roomsched.services.locks import ReservationLocks, RoomDateLocks


def _blocked_while_held(locks, hold_args, contend_args) -> bool:
    """Return True if a second thread could not enter *contend_args* while
    *hold_args* was held.
    """
    entered = threading.Event()
    got_in = threading.Event()

    def contender():
        entered.wait()
        with locks.hold(*contend_args):
            got_in.set()

    worker = threading.Thread(target=contender)
    worker.start()
    with locks.hold(*hold_args):
        entered.set()
        blocked = not got_in.wait(timeout=0.2)
    worker.join(timeout=5)
    return blocked


def test_hold_excludes_concurrent_writer_for_same_slot():
    locks = RoomDateLocks()
    slot = ("r1", date(2025, 1, 10))
    assert _blocked_while_held(locks, slot, slot)


def test_different_rooms_do_not_block():
    locks = RoomDateLocks()
    assert not _blocked_while_held(locks, ("r1", date(2025, 1, 10)), ("r2", date(2025, 1, 10)))
    assert not _blocked_while_held(locks, ("r1", date(2025, 1, 10)), ("r1", date(2025, 1, 11)))


def test_reservation_lock_is_per_reservation():
    locks = ReservationLocks()
    assert _blocked_while_held(locks, ("res-1",), ("res-1",))
    assert not _blocked_while_held(locks, ("res-1",), ("res-2",))


def test_idle_keys_are_dropped():
    locks = RoomDateLocks()
    for day in range(1, 29):
        with locks.hold("r1", date(2025, 2, day)):
            assert len(locks) == 1
    assert len(locks) == 0


def test_key_kept_while_a_waiter_remains():
    locks = ReservationLocks()
    done = []

    def waiter():
        with locks.hold("res-1"):
            done.append(len(locks))

    with locks.hold("res-1"):
        worker = threading.Thread(target=waiter)
        worker.start()
        worker.join(timeout=0.2)
        assert worker.is_alive()
        assert locks._entries["res-1"].holders == 2
    worker.join(timeout=5)

    # The waiter still found the key after the first holder released it.
    assert done == [1]
    assert len(locks) == 0


def test_clear_while_held_does_not_break_release():
    locks = RoomDateLocks()
    with locks.hold("r1", date(2025, 1, 10)):
        locks.clear()
    assert len(locks) == 0
