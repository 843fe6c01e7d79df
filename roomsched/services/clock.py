"""Wall-clock sources used for status derivation."""

from __future__ import annotations

import datetime as dt
from typing import Protocol
from zoneinfo import ZoneInfo


class Clock(Protocol):
    def now(self) -> dt.datetime: ...


class SystemClock:
    """Naive local wall-clock time, optionally pinned to an IANA zone."""

    def __init__(self, timezone: str | None = None) -> None:
        self._zone = ZoneInfo(timezone) if timezone else None

    def now(self) -> dt.datetime:
        if self._zone is None:
            return dt.datetime.now()
        return dt.datetime.now(self._zone).replace(tzinfo=None)


class FixedClock:
    """Clock frozen at a given instant; handy for tests and previews."""

    def __init__(self, instant: dt.datetime) -> None:
        self.instant = instant

    def now(self) -> dt.datetime:
        return self.instant
