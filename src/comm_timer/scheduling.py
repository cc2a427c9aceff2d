from __future__ import annotations

"""Named interval/single-shot timers advanced by an external clock.

A ``NamedTimer`` never schedules anything on its own: the owner calls
``poll(now)`` from its tick and acts when it returns True. Missed intervals
(host suspended, late ticks) are coalesced into a single firing.
"""

from datetime import datetime, timedelta
from typing import Optional


class NamedTimer:
    def __init__(self, name: str) -> None:
        self.name = name
        self._interval: Optional[timedelta] = None
        self._next_due: Optional[datetime] = None
        self._repeating = False

    def __repr__(self) -> str:
        state = f"due={self._next_due.isoformat()}" if self._next_due else "idle"
        return f"NamedTimer({self.name!r}, {state})"

    @property
    def active(self) -> bool:
        return self._next_due is not None

    @property
    def next_due(self) -> Optional[datetime]:
        return self._next_due

    def start(self, now: datetime, interval_ms: int, *, repeating: bool = True) -> None:
        self._interval = timedelta(milliseconds=max(1, interval_ms))
        self._repeating = repeating
        self._next_due = now + self._interval

    def cancel(self) -> None:
        self._next_due = None
        self._interval = None

    def poll(self, now: datetime) -> bool:
        if self._next_due is None or now < self._next_due:
            return False
        if not self._repeating or self._interval is None:
            self.cancel()
            return True
        while self._next_due <= now:
            self._next_due += self._interval
        return True


__all__ = ["NamedTimer"]
