"""
Clock -- injectable source of "now".

Responsibility:
    The lifecycle controller reads the current instant exactly once per
    clock-in or clock-out from an injected Clock, and every timestamp that
    call writes (clock_in_at, clock_out_at, JobLog.created_at) derives from
    that one reading.  Tests inject a DeterministicClock to pin the time
    gate to the second.

Architecture position:
    Kernel > Domain -- pure.  SystemClock is the only place the kernel
    reads wall-clock time.

Failure modes:
    - ValueError if a DeterministicClock is given a naive datetime.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


def _require_aware(value: datetime) -> datetime:
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"Clock times must be timezone-aware, got {value!r}")
    return value


class Clock(ABC):
    """
    Abstract clock.

    Contract:
        ``now()`` returns a timezone-aware ``datetime``; ``now_utc()`` the
        same instant normalized to UTC.
    """

    @abstractmethod
    def now(self) -> datetime:
        ...

    def now_utc(self) -> datetime:
        return self.now().astimezone(timezone.utc)


class SystemClock(Clock):
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock that only moves when told to.

    ``now()`` keeps returning the same instant until ``advance()``,
    ``tick()`` or ``set_time()`` is called.
    """

    DEFAULT_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __init__(self, fixed_time: datetime | None = None):
        self._current = _require_aware(fixed_time or self.DEFAULT_TIME)

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = _require_aware(time)

    def advance(self, seconds: float = 0, minutes: float = 0) -> datetime:
        """Move forward and return the new time."""
        self._current += timedelta(seconds=seconds, minutes=minutes)
        return self._current

    def tick(self) -> datetime:
        """Advance by one second."""
        return self.advance(seconds=1)
