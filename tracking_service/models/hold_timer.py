"""
REPSENSE Tracking Service - Hold Timer

Accumulates wall-clock time only while a hold stays valid.
"""

import math
from typing import Optional


class HoldTimer:
    """Pausable accumulator for isometric holds."""

    def __init__(self):
        self.accumulated_ms = 0.0
        self.running = False
        self.start_ms: Optional[float] = None

    def update(self, valid: bool, now_ms: float) -> Optional[int]:
        """
        Advance the timer with one frame's validity.

        Args:
            valid: Whether the hold is currently valid
            now_ms: Frame timestamp

        Returns:
            Whole elapsed seconds to report, or None when nothing changed
            (an invalid frame while already paused)
        """
        if valid:
            if not self.running:
                self.running = True
                self.start_ms = now_ms
            return self.elapsed_seconds(now_ms)

        if self.running:
            return self.pause(now_ms)
        return None

    def pause(self, now_ms: float) -> int:
        """Fold the running interval into the total and stop."""
        if self.running and self.start_ms is not None:
            self.accumulated_ms += max(0.0, now_ms - self.start_ms)
        self.running = False
        self.start_ms = None
        return self.elapsed_seconds(now_ms)

    def elapsed_ms(self, now_ms: float) -> float:
        if self.running and self.start_ms is not None:
            return self.accumulated_ms + max(0.0, now_ms - self.start_ms)
        return self.accumulated_ms

    def elapsed_seconds(self, now_ms: float) -> int:
        return int(math.floor(self.elapsed_ms(now_ms) / 1000.0))

    def reset(self):
        self.accumulated_ms = 0.0
        self.running = False
        self.start_ms = None
