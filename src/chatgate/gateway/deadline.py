"""Caller deadlines propagated into cascades."""

import time
from dataclasses import dataclass


@dataclass(frozen=True)
class Deadline:
    """Absolute point on the monotonic clock after which a cascade stops."""

    at: float

    @classmethod
    def after(cls, seconds: float) -> "Deadline":
        return cls(at=time.monotonic() + seconds)

    def remaining(self) -> float:
        return max(self.at - time.monotonic(), 0.0)

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self.at

    def cap(self, timeout: float) -> float:
        """Shrink a per-attempt timeout so it ends no later than the deadline."""
        return min(timeout, self.remaining())
