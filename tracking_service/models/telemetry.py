"""
REPSENSE Tracking Service - Telemetry

Optional structured diagnostic stream for offline validation. Disabled
unless explicitly turned on.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)


class TelemetryType(str, Enum):
    """Telemetry event types."""
    POSE = "pose-telemetry"
    FRAME_PROCESSED = "pose-frame-processed"
    FRAME_SKIPPED = "pose-frame-skipped"
    ANOMALY = "pose-anomaly-detected"
    CALIBRATION_COMPLETE = "calibration-complete"


@dataclass
class TelemetryEvent:
    """One diagnostic record."""
    type: TelemetryType
    timestamp_ms: float
    exercise_mode: str
    frame_number: int
    posture: Optional[Dict[str, Any]] = None
    visibility: Dict[int, float] = field(default_factory=dict)
    angles: Dict[str, float] = field(default_factory=dict)
    state: Dict[str, Any] = field(default_factory=dict)
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "timestamp_ms": self.timestamp_ms,
            "exercise_mode": self.exercise_mode,
            "frame_number": self.frame_number,
            "posture": self.posture,
            "visibility": {str(k): v for k, v in self.visibility.items()},
            "angles": self.angles,
            "state": self.state,
            "details": self.details,
        }


class TelemetryEmitter:
    """
    Builds telemetry events and hands them to a sink.

    Keeps the most recent events in a bounded buffer so they can be
    inspected after the fact.
    """

    def __init__(
        self,
        enabled: bool = False,
        buffer_size: int = 500,
        sink: Optional[Callable[[TelemetryEvent], None]] = None,
    ):
        self.enabled = enabled
        self.sink = sink
        self._buffer: Deque[TelemetryEvent] = deque(maxlen=buffer_size)
        self.emitted_count = 0

    def emit(self, event_type: TelemetryType, **fields) -> Optional[TelemetryEvent]:
        if not self.enabled:
            return None

        event = TelemetryEvent(type=event_type, **fields)
        self._buffer.append(event)
        self.emitted_count += 1
        logger.debug(f"📡 {event.type.value} #{event.frame_number} ({event.exercise_mode})")

        if self.sink is not None:
            self.sink(event)
        return event

    def recent(self, limit: int = 50) -> List[TelemetryEvent]:
        if limit <= 0:
            return []
        return list(self._buffer)[-limit:]

    def clear(self):
        self._buffer.clear()
