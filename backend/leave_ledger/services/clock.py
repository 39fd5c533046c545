from __future__ import annotations

from datetime import UTC, date, datetime
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Current-time source used by the ledger."""

    def now(self) -> datetime:
        """Return the current timezone-aware UTC datetime."""
        ...

    def today(self) -> date:
        """Return the current calendar date."""
        ...


class SystemClock:
    """Wall-clock implementation."""

    def now(self) -> datetime:
        return datetime.now(UTC)

    def today(self) -> date:
        return self.now().date()


class FixedClock:
    """Clock pinned to a given instant, for tests and backfills."""

    def __init__(self, instant: datetime | date) -> None:
        self.set(instant)

    def set(self, instant: datetime | date) -> None:
        if not isinstance(instant, datetime):
            instant = datetime(instant.year, instant.month, instant.day, 12, 0, tzinfo=UTC)
        elif instant.tzinfo is None:
            instant = instant.replace(tzinfo=UTC)
        self._instant = instant

    def now(self) -> datetime:
        return self._instant

    def today(self) -> date:
        return self._instant.date()


_clock: Clock = SystemClock()


def get_clock() -> Clock:
    """Return the active clock."""
    return _clock


def set_clock(clock: Clock) -> None:
    """Override the clock (for testing or backfills)."""
    global _clock
    _clock = clock
