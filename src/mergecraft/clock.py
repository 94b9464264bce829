from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    def now(self) -> float: ...


class MonotonicClock:
    """Wall-clock seconds from time.monotonic()."""

    def now(self) -> float:
        return time.monotonic()


class ManualClock:
    """A clock advanced explicitly by the caller (scheduler loops, tests)."""

    def __init__(self, start: float = 0.0) -> None:
        self._now = float(start)

    def now(self) -> float:
        return self._now

    def advance(self, dt: float) -> float:
        if dt < 0:
            raise ValueError("Cannot advance a clock backwards")
        self._now += dt
        return self._now

    def set(self, t: float) -> None:
        if t < self._now:
            raise ValueError(f"Clock is monotonic: {t} < {self._now}")
        self._now = float(t)


__all__ = ["Clock", "ManualClock", "MonotonicClock"]
