"""
Execution context clocks.

Governance never reads the wall-clock directly: every component that needs
"now" receives a Clock. Production uses SystemClock; tests drive a
VirtualClock forward instead of sleeping.
"""

import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Source of the current timestamp (seconds since the epoch)."""

    def now(self) -> float:
        ...


class SystemClock:
    """Wall-clock time."""

    def now(self) -> float:
        return time.time()

    def __repr__(self) -> str:
        return "<SystemClock>"


class VirtualClock:
    """
    Manually advanced clock.

    Time only moves when advance() or set() is called, so a voting window
    can be closed deterministically.
    """

    def __init__(self, start: float = 1_700_000_000.0):
        self._now = float(start)

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> float:
        if seconds < 0:
            raise ValueError("Cannot move a clock backwards")
        self._now += seconds
        return self._now

    def set(self, timestamp: float) -> None:
        if timestamp < self._now:
            raise ValueError("Cannot move a clock backwards")
        self._now = float(timestamp)

    def __repr__(self) -> str:
        return f"<VirtualClock now={self._now}>"
