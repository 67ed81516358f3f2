"""Time source for due-date and expiry comparisons.

Services never read the wall clock; routers resolve a ``Clock`` through
``deps.get_clock`` and pass ``now`` into each command. Tests inject a
``FixedClock`` to pin or advance time.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        """Return the current instant as a timezone-aware UTC datetime."""
        ...


class SystemClock:
    """Production clock backed by the system UTC time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Controllable clock for deterministic tests.

    Example:
        clock = FixedClock(datetime(2024, 2, 5, tzinfo=timezone.utc))
        clock.advance(days=30)
    """

    def __init__(self, current: datetime) -> None:
        self._current = _ensure_aware(current)

    def now(self) -> datetime:
        return self._current

    def advance(self, **delta: float) -> None:
        step = timedelta(**delta)
        if step < timedelta(0):
            raise ValueError(f"Cannot advance time by negative amount: {step}")
        self._current += step

    def set(self, value: datetime) -> None:
        self._current = _ensure_aware(value)


def _ensure_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


DEFAULT_CLOCK: Clock = SystemClock()
