"""Keyed write serialization for reservations."""

from __future__ import annotations

import datetime as dt
from collections.abc import Hashable, Iterator
from contextlib import contextmanager
from threading import Lock


class _Entry:
    __slots__ = ("lock", "holders")

    def __init__(self) -> None:
        self.lock = Lock()
        self.holders = 0


class KeyedLocks:
    """One lock per key, created on first use and dropped once nobody holds
    or waits on it.
    """

    def __init__(self) -> None:
        self._entries: dict[Hashable, _Entry] = {}
        self._guard = Lock()

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    @contextmanager
    def _hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.holders += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.holders -= 1
                if entry.holders == 0 and self._entries.get(key) is entry:
                    del self._entries[key]

    def clear(self) -> None:
        with self._guard:
            self._entries.clear()


class RoomDateLocks(KeyedLocks):
    """Serializes a conflict check and the write that depends on it against
    other writers for the same room and date.
    """

    def hold(self, room_id: str, on_date: dt.date):
        return self._hold((room_id, on_date))


class ReservationLocks(KeyedLocks):
    """Serializes read-check-write cycles on a single reservation.

    Always taken before the room/date lock, never while holding one.
    """

    def hold(self, reservation_id: str):
        return self._hold(reservation_id)
