"""
Rate window model for image provider calls.

Implements a coarse resetting window: calls are counted from the
start of the current window, and the count is cleared once the
window interval has elapsed.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass
class RateWindow:
    """
    Counts provider calls within the current window.

    The window resets as a whole once ``interval_seconds`` have passed
    since it started, so a burst straddling the boundary may briefly
    exceed ``limit`` calls within one interval.

    Attributes:
        limit: Maximum calls granted per window
        interval_seconds: Window length in seconds
        window_start: Monotonic time the current window started
        call_timestamps: Times of calls granted in the current window
    """

    limit: int
    interval_seconds: float
    window_start: Optional[float] = None
    call_timestamps: List[float] = field(default_factory=list)

    def __post_init__(self):
        """Validate fields after initialization."""
        if self.limit < 1:
            raise ValueError("limit must be at least 1")
        if self.interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

    def _maybe_reset(self, now: float) -> None:
        """Start a fresh window once the current one has expired."""
        if self.window_start is None or now - self.window_start > self.interval_seconds:
            self.window_start = now
            self.call_timestamps.clear()

    def try_acquire(self, now: float) -> Tuple[bool, float]:
        """
        Try to record a call at ``now``.

        Returns:
            Tuple of (granted, seconds_until_reset)
            - granted: True if the call was recorded
            - seconds_until_reset: Time left in the window (0 if granted)
        """
        self._maybe_reset(now)

        if len(self.call_timestamps) < self.limit:
            self.call_timestamps.append(now)
            return (True, 0.0)

        seconds_until_reset = self.interval_seconds - (now - self.window_start)
        return (False, max(0.0, seconds_until_reset))

    def reset(self) -> None:
        """Clear the window (for testing or admin override)."""
        self.window_start = None
        self.call_timestamps.clear()

    @property
    def current_count(self) -> int:
        return len(self.call_timestamps)

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.current_count)

    def to_dict(self) -> dict:
        """Convert to dictionary for logging/debugging."""
        return {
            "current_count": self.current_count,
            "limit": self.limit,
            "remaining": self.remaining,
            "interval_seconds": self.interval_seconds,
        }
