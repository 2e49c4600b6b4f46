"""
REPSENSE Tracking Service - Landmarks

Landmark and frame types, the per-joint history store, and the validator
that backfills unreliable critical joints from recent history.
"""

import logging
import math
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Deque, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import InvalidFrameError

logger = logging.getLogger(__name__)

NUM_LANDMARKS = 33


# ═══════════════════════════════════════════════════════════════════════════════
# ENUMS AND DATA CLASSES
# ═══════════════════════════════════════════════════════════════════════════════

class JointType(Enum):
    """Body joint indices (MediaPipe 33-point topology)."""
    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32


JointRef = Union[JointType, int]


def joint_index(joint: JointRef) -> int:
    return joint.value if isinstance(joint, JointType) else int(joint)


@dataclass(frozen=True)
class Landmark:
    """A single pose landmark with normalized coordinates and visibility."""
    x: float
    y: float
    z: float = 0.0
    visibility: float = 1.0
    backfilled: bool = False

    def to_numpy(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "x": self.x,
            "y": self.y,
            "z": self.z,
            "visibility": self.visibility,
            "backfilled": self.backfilled,
        }


def _coerce_landmark(raw: Any, index: int) -> Landmark:
    """Build a Landmark from a dict, a sequence, or an object with x/y/z/visibility."""
    if isinstance(raw, Landmark):
        return raw
    try:
        if isinstance(raw, Mapping):
            x, y = raw["x"], raw["y"]
            z = raw.get("z", 0.0)
            visibility = raw.get("visibility", 1.0)
        elif isinstance(raw, Sequence) and not isinstance(raw, (str, bytes)):
            x, y = raw[0], raw[1]
            z = raw[2] if len(raw) > 2 else 0.0
            visibility = raw[3] if len(raw) > 3 else 1.0
        else:
            x, y = raw.x, raw.y
            z = getattr(raw, "z", 0.0)
            visibility = getattr(raw, "visibility", 1.0)
        values = [float(x), float(y), float(z or 0.0), float(1.0 if visibility is None else visibility)]
    except (KeyError, IndexError, AttributeError, TypeError, ValueError) as e:
        raise InvalidFrameError(f"Landmark {index} is malformed: {e}") from e

    if not all(math.isfinite(v) for v in values):
        raise InvalidFrameError(f"Landmark {index} has non-finite values")

    x, y, z, visibility = values
    return Landmark(x=x, y=y, z=z, visibility=min(1.0, max(0.0, visibility)))


@dataclass(frozen=True)
class Frame:
    """
    One processing cycle's worth of landmarks.

    Indexed by joint; ``timestamp_ms`` is the arrival time and must increase
    monotonically across a stream.
    """
    landmarks: Tuple[Landmark, ...]
    timestamp_ms: float

    def __post_init__(self):
        if len(self.landmarks) < NUM_LANDMARKS:
            raise InvalidFrameError(
                f"Frame needs at least {NUM_LANDMARKS} landmarks, got {len(self.landmarks)}"
            )

    def __getitem__(self, joint: JointRef) -> Landmark:
        return self.landmarks[joint_index(joint)]

    def __len__(self) -> int:
        return len(self.landmarks)

    def visible(self, *joints: JointRef, threshold: float = 0.5) -> bool:
        """True when every listed joint is strictly above the visibility threshold."""
        return all(self[j].visibility > threshold for j in joints)

    def with_landmarks(self, updates: Dict[int, Landmark]) -> "Frame":
        """Copy of this frame with some joints replaced."""
        points = list(self.landmarks)
        for index, landmark in updates.items():
            points[index] = landmark
        return Frame(landmarks=tuple(points), timestamp_ms=self.timestamp_ms)

    def visibility_map(self, joints: Iterable[int]) -> Dict[int, float]:
        return {j: round(self[j].visibility, 3) for j in joints}

    @classmethod
    def from_list(cls, points: Sequence[Any], timestamp_ms: float) -> "Frame":
        """
        Build a frame from raw landmark records.

        Args:
            points: Sequence of dicts, tuples or landmark-like objects
            timestamp_ms: Arrival time in milliseconds

        Raises:
            InvalidFrameError: If the structure is absent or malformed
        """
        if points is None:
            raise InvalidFrameError("Frame has no landmark list")
        if isinstance(points, (str, bytes)) or not isinstance(points, Sequence):
            raise InvalidFrameError("Landmarks must be a sequence")
        try:
            ts = float(timestamp_ms)
        except (TypeError, ValueError) as e:
            raise InvalidFrameError(f"Invalid frame timestamp: {timestamp_ms!r}") from e
        if not math.isfinite(ts):
            raise InvalidFrameError("Frame timestamp must be finite")
        return cls(
            landmarks=tuple(_coerce_landmark(p, i) for i, p in enumerate(points)),
            timestamp_ms=ts,
        )

    @classmethod
    def from_payload(cls, payload: Any) -> "Frame":
        """Build a frame from ``{"landmarks": [...], "timestamp_ms": ...}``."""
        if not isinstance(payload, Mapping):
            raise InvalidFrameError("Frame payload must be an object")
        if "timestamp_ms" not in payload:
            raise InvalidFrameError("Frame payload is missing timestamp_ms")
        return cls.from_list(payload.get("landmarks"), payload["timestamp_ms"])

    @classmethod
    def from_pose_landmarks(cls, pose_landmarks: Any, timestamp_ms: float) -> "Frame":
        """
        Build a frame from a MediaPipe-style result.

        Accepts either a ``NormalizedLandmarkList`` (with a ``.landmark``
        attribute) or a plain list of landmark objects.
        """
        if pose_landmarks is None:
            raise InvalidFrameError("Pose result has no landmarks")
        points = getattr(pose_landmarks, "landmark", pose_landmarks)
        return cls.from_list(list(points), timestamp_ms)


@dataclass(frozen=True)
class HistoryEntry:
    """A smoothed landmark sample kept for backfilling."""
    x: float
    y: float
    z: float
    visibility: float
    timestamp_ms: float


# ═══════════════════════════════════════════════════════════════════════════════
# LANDMARK STORE
# ═══════════════════════════════════════════════════════════════════════════════

class LandmarkHistory:
    """
    Per-joint bounded FIFO of recent EMA-smoothed landmarks.

    Only validated, confident samples are written here; entries are never
    rolled back.
    """

    def __init__(self, capacity: int = 5, alpha: float = 0.3):
        self.capacity = capacity
        self.alpha = alpha
        self._entries: Dict[int, Deque[HistoryEntry]] = {}

    def update(self, index: int, landmark: Landmark, timestamp_ms: float) -> HistoryEntry:
        """
        Push a confident landmark, smoothing it against the previous entry.

        Returns:
            The entry that was stored
        """
        buffer = self._entries.setdefault(index, deque(maxlen=self.capacity))
        if buffer:
            prev = buffer[-1]
            a = self.alpha
            entry = HistoryEntry(
                x=a * landmark.x + (1 - a) * prev.x,
                y=a * landmark.y + (1 - a) * prev.y,
                z=a * landmark.z + (1 - a) * prev.z,
                visibility=landmark.visibility,
                timestamp_ms=timestamp_ms,
            )
        else:
            entry = HistoryEntry(
                x=landmark.x,
                y=landmark.y,
                z=landmark.z,
                visibility=landmark.visibility,
                timestamp_ms=timestamp_ms,
            )
        buffer.append(entry)
        return entry

    def latest(self, index: int) -> Optional[HistoryEntry]:
        buffer = self._entries.get(index)
        return buffer[-1] if buffer else None

    def entries(self, index: int) -> List[HistoryEntry]:
        return list(self._entries.get(index, ()))

    def has(self, index: int) -> bool:
        return bool(self._entries.get(index))

    def reset(self):
        self._entries.clear()


# ═══════════════════════════════════════════════════════════════════════════════
# LANDMARK VALIDATOR
# ═══════════════════════════════════════════════════════════════════════════════

class LandmarkValidator:
    """
    Checks critical-joint visibility and backfills unreliable points.

    Features:
    - Per-exercise critical joint sets (supplied by the caller)
    - EMA-smoothed history updates for confident joints
    - Reduced-confidence backfill from history
    - All-or-nothing: a rejected frame leaves history untouched
    """

    def __init__(
        self,
        history: Optional[LandmarkHistory] = None,
        min_visibility: float = 0.35,
        backfill_visibility: float = 0.3,
    ):
        self.history = history or LandmarkHistory()
        self.min_visibility = min_visibility
        self.backfill_visibility = backfill_visibility

    def validate(
        self,
        frame: Frame,
        critical: Iterable[int],
        min_visibility: Optional[float] = None,
    ) -> Optional[Frame]:
        """
        Validate a frame against the critical joints of the active exercise.

        Args:
            frame: Raw frame from the pose source
            critical: Joint indices that must be usable
            min_visibility: Override for the confidence threshold

        Returns:
            Validated frame (raw or backfilled points), or None when a
            critical joint is unusable and has no history
        """
        threshold = self.min_visibility if min_visibility is None else min_visibility
        confident: List[int] = []
        backfill: Dict[int, Landmark] = {}

        for index in critical:
            landmark = frame[index]
            if landmark.visibility >= threshold:
                confident.append(index)
                continue

            entry = self.history.latest(index)
            if entry is None:
                logger.debug(
                    f"Joint {index} unusable (visibility {landmark.visibility:.2f}) with no history"
                )
                return None
            backfill[index] = Landmark(
                x=entry.x,
                y=entry.y,
                z=entry.z,
                visibility=self.backfill_visibility,
                backfilled=True,
            )

        for index in confident:
            self.history.update(index, frame[index], frame.timestamp_ms)

        if backfill:
            logger.debug(f"Backfilled joints {sorted(backfill)} at t={frame.timestamp_ms:.0f}")
            return frame.with_landmarks(backfill)
        return frame

    def reset(self):
        self.history.reset()
