"""Settle detection shared by the motion commands."""

from enum import Enum
from typing import Optional


class MotionStatus(Enum):
    """Lifecycle of one motion command."""

    IDLE = "idle"
    RUNNING = "running"
    SETTLING = "settling"
    DONE = "done"
    TIMED_OUT = "timed_out"

    @property
    def finished(self) -> bool:
        return self in (MotionStatus.DONE, MotionStatus.TIMED_OUT)


class SettleTimer:
    """Debounced "inside tolerance" detector.

    The error must stay inside tolerance continuously for `settle_time`
    seconds. Leaving tolerance restarts the dwell from zero; a single pass
    through the tolerance band never counts as settled.
    """

    def __init__(self, tolerance: float, settle_time: float):
        self.tolerance = tolerance
        self.settle_time = settle_time
        self.settle_start: Optional[float] = None

    @property
    def settling(self) -> bool:
        return self.settle_start is not None

    def reset(self) -> None:
        self.settle_start = None

    def update(self, error: float, now: float) -> bool:
        """Feed one sample; return True once the dwell time has been reached."""
        if abs(error) >= self.tolerance:
            self.settle_start = None
            return False
        if self.settle_start is None:
            self.settle_start = now
            return False
        return now - self.settle_start >= self.settle_time
