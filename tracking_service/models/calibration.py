"""
REPSENSE Tracking Service - Calibration

Samples the user's body proportions over a short window so that
proportion-based thresholds (e.g. jumping-jack foot spacing) can be
normalized to the person in front of the camera.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

from shared.utils import monotonic_ms

from . import geometry as geo
from .landmarks import Frame

logger = logging.getLogger(__name__)

DEFAULT_SHOULDER_WIDTH = 0.2
DEFAULT_ANKLE_SPACING = 0.12
DEFAULT_TORSO_LENGTH = 0.3


@dataclass
class CalibrationData:
    """Baseline body proportions in normalized image units."""
    shoulder_width: float = DEFAULT_SHOULDER_WIDTH
    neutral_ankle_spacing: float = DEFAULT_ANKLE_SPACING
    torso_length: float = DEFAULT_TORSO_LENGTH
    frame_count: int = 0
    is_default: bool = True
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict:
        return {
            "shoulder_width": round(self.shoulder_width, 4),
            "neutral_ankle_spacing": round(self.neutral_ankle_spacing, 4),
            "torso_length": round(self.torso_length, 4),
            "frame_count": self.frame_count,
            "is_default": self.is_default,
            "timestamp": self.timestamp,
        }


class Calibrator:
    """
    Multi-frame proportion sampler.

    A frame qualifies when both shoulders and both hips are at least
    ``min_visibility``; ankle spacing is only sampled when both ankles are.
    """

    def __init__(
        self,
        duration_ms: float = 3000.0,
        min_frames: int = 30,
        fps: float = 30.0,
        min_visibility: float = 0.5,
    ):
        self.duration_ms = duration_ms
        self.min_frames = min_frames
        self.fps = fps
        self.min_visibility = min_visibility
        self._shoulder_widths: List[float] = []
        self._ankle_spacings: List[float] = []
        self._torso_lengths: List[float] = []

    @property
    def sample_count(self) -> int:
        return len(self._shoulder_widths)

    def reset(self):
        self._shoulder_widths.clear()
        self._ankle_spacings.clear()
        self._torso_lengths.clear()

    def add_sample(self, frame: Frame) -> bool:
        """Record one frame's proportions. Returns False if the frame did not qualify."""
        if not all(frame[j].visibility >= self.min_visibility for j in (11, 12, 23, 24)):
            return False

        self._shoulder_widths.append(geo.distance(frame[11], frame[12]))
        self._torso_lengths.append(geo.distance(geo.shoulder_center(frame), geo.hip_center(frame)))
        if frame[27].visibility >= self.min_visibility and frame[28].visibility >= self.min_visibility:
            self._ankle_spacings.append(geo.distance(frame[27], frame[28]))
        return True

    def result(self) -> CalibrationData:
        """Averaged proportions, or documented defaults when too few frames qualified."""
        count = self.sample_count
        if count < self.min_frames:
            logger.warning(
                f"⚠️ Calibration collected {count}/{self.min_frames} stable frames, using defaults"
            )
            return CalibrationData(frame_count=count, is_default=True)

        ankle = (
            sum(self._ankle_spacings) / len(self._ankle_spacings)
            if self._ankle_spacings else DEFAULT_ANKLE_SPACING
        )
        return CalibrationData(
            shoulder_width=sum(self._shoulder_widths) / count,
            neutral_ankle_spacing=ankle,
            torso_length=sum(self._torso_lengths) / count,
            frame_count=count,
            is_default=False,
        )

    async def run(
        self,
        frame_source: Callable[[], Optional[Frame]],
        duration_ms: Optional[float] = None,
        clock: Callable[[], float] = monotonic_ms,
        sleep: Callable[[float], Awaitable] = asyncio.sleep,
    ) -> CalibrationData:
        """
        Sample the newest frame at roughly ``fps`` until the window closes.

        Args:
            frame_source: Returns the latest frame seen by the tracker (or None)
            duration_ms: Sampling window, defaults to the configured duration
            clock: Millisecond clock
            sleep: Awaitable sleep taking seconds

        Returns:
            CalibrationData
        """
        window = self.duration_ms if duration_ms is None else duration_ms
        interval_s = 1.0 / self.fps
        self.reset()

        started = clock()
        last_timestamp: Optional[float] = None
        while clock() - started < window:
            frame = frame_source()
            if frame is not None and frame.timestamp_ms != last_timestamp:
                last_timestamp = frame.timestamp_ms
                self.add_sample(frame)
            await sleep(interval_s)

        data = self.result()
        logger.info(
            f"📏 Calibration finished: {data.frame_count} frames, "
            f"shoulder width {data.shoulder_width:.3f}, default={data.is_default}"
        )
        return data
