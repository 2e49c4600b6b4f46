"""
REPSENSE Tracking Service - Cadence Guard

Flags physiologically implausible rep timing so the counter can
throttle likely false positives.
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional

logger = logging.getLogger(__name__)

TOO_FAST = "too-fast"
SUDDEN_ACCELERATION = "sudden-acceleration"


@dataclass(frozen=True)
class CadenceAnomaly:
    """A rejected rep interval."""
    kind: str
    interval_ms: float
    average_ms: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "interval_ms": round(self.interval_ms, 1),
            "average_ms": round(self.average_ms, 1) if self.average_ms is not None else None,
        }


class CadenceGuard:
    """
    Rolling check of inter-rep intervals.

    Every candidate interval is recorded, but the reference timestamp only
    advances on accepted reps, so a burst of rapid candidates keeps being
    measured from the last real rep.
    """

    def __init__(
        self,
        floor_ms: float = 200.0,
        ratio: float = 0.3,
        window: int = 10,
        min_samples: int = 3,
    ):
        self.floor_ms = floor_ms
        self.ratio = ratio
        self.min_samples = min_samples
        self.intervals: Deque[float] = deque(maxlen=window)
        self.last_accepted_ms: Optional[float] = None

    def check(self, timestamp_ms: float) -> Optional[CadenceAnomaly]:
        """
        Judge a candidate rep at ``timestamp_ms``.

        Returns:
            CadenceAnomaly if the rep should be suppressed, else None
        """
        if self.last_accepted_ms is None:
            self.last_accepted_ms = timestamp_ms
            return None

        interval = timestamp_ms - self.last_accepted_ms
        prior = list(self.intervals)
        self.intervals.append(interval)

        if interval < self.floor_ms:
            logger.warning(f"⚠️ Cadence anomaly: rep {interval:.0f}ms after the last one")
            return CadenceAnomaly(TOO_FAST, interval)

        if len(prior) >= self.min_samples:
            average = sum(prior) / len(prior)
            if interval < self.ratio * average:
                logger.warning(
                    f"⚠️ Cadence anomaly: {interval:.0f}ms against a {average:.0f}ms average"
                )
                return CadenceAnomaly(SUDDEN_ACCELERATION, interval, average)

        self.last_accepted_ms = timestamp_ms
        return None

    @property
    def average_ms(self) -> Optional[float]:
        if not self.intervals:
            return None
        return sum(self.intervals) / len(self.intervals)

    def reset(self):
        self.intervals.clear()
        self.last_accepted_ms = None
