"""Clock – injected time source.

SRP: the only place that asks the OS for the time.
"""
from __future__ import annotations

from datetime import datetime, timezone


class Clock:
    """ISP: one method, now()."""

    def now(self) -> datetime:  # pragma: no cover - interface only
        raise NotImplementedError


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """Returns the same instant forever. Used by tests and replays."""

    def __init__(self, at: datetime) -> None:
        if at.tzinfo is None:
            at = at.replace(tzinfo=timezone.utc)
        self._at = at

    def now(self) -> datetime:
        return self._at
