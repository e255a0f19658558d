from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Default wall-clock implementation (UTC)."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FrozenClock:
    """Clock pinned to a fixed instant; moves only when told to."""

    def __init__(self, at: datetime | None = None) -> None:
        self._now = at or datetime.now(timezone.utc)

    def now(self) -> datetime:
        return self._now

    def advance(self, **delta: float) -> datetime:
        self._now += timedelta(**delta)
        return self._now
