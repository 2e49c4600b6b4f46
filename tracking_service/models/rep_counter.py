"""
REPSENSE Tracking Service - Rep Counter

One parameterized two-phase state machine shared by every rep-based
exercise, plus the per-mode counter state it mutates.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from .cadence import CadenceAnomaly, CadenceGuard
from .calibration import CalibrationData
from .exercises import ExerciseMode
from .hold_timer import HoldTimer
from .landmarks import Frame
from .posture import DebouncedFlag

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# STATE
# ═══════════════════════════════════════════════════════════════════════════════

class Phase(str, Enum):
    UP = "up"
    DOWN = "down"

    @property
    def opposite(self) -> "Phase":
        return Phase.DOWN if self is Phase.UP else Phase.UP


@dataclass
class LimbTrack:
    """Phase and timing of one independently counted limb (or the whole body)."""
    phase: Phase
    cadence: CadenceGuard
    count: int = 0
    last_rep_timestamp: Optional[float] = None
    candidate_since: Optional[float] = None


@dataclass
class CounterState:
    """
    Mutable state of one exercise mode.

    ``tracks`` holds a single "main" track for most modes and one track per
    leg for high knees; ``count`` is the sum across tracks.
    """
    mode: ExerciseMode
    tracks: Dict[str, LimbTrack]
    posture: DebouncedFlag
    hold: HoldTimer = field(default_factory=HoldTimer)
    count: int = 0
    baseline_value: Optional[float] = None
    baseline_samples: int = 0
    extras: Dict[str, float] = field(default_factory=dict)
    stable_frame_count: int = 0
    start_pose_ready: bool = False

    @property
    def phase(self) -> str:
        if len(self.tracks) == 1:
            return next(iter(self.tracks.values())).phase.value
        return ",".join(f"{name}:{t.phase.value}" for name, t in self.tracks.items())

    @property
    def last_rep_timestamp(self) -> Optional[float]:
        stamps = [t.last_rep_timestamp for t in self.tracks.values() if t.last_rep_timestamp is not None]
        return max(stamps) if stamps else None

    @property
    def good_frame_count(self) -> int:
        return self.posture.good_count

    @property
    def bad_frame_count(self) -> int:
        return self.posture.bad_count

    @property
    def hold_accumulated_ms(self) -> float:
        return self.hold.accumulated_ms

    @property
    def hold_running(self) -> bool:
        return self.hold.running

    @property
    def hold_start_timestamp(self) -> Optional[float]:
        return self.hold.start_ms

    def snapshot(self) -> Dict[str, Any]:
        return {
            "mode": self.mode.value,
            "phase": self.phase,
            "count": self.count,
            "last_rep_timestamp": self.last_rep_timestamp,
            "baseline_value": self.baseline_value,
            "stable_frame_count": self.stable_frame_count,
            "start_pose_ready": self.start_pose_ready,
            "good_frame_count": self.good_frame_count,
            "bad_frame_count": self.bad_frame_count,
            "hold_accumulated_ms": self.hold_accumulated_ms,
            "hold_running": self.hold_running,
            "hold_start_timestamp": self.hold_start_timestamp,
        }


# ═══════════════════════════════════════════════════════════════════════════════
# PROFILES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class RepContext:
    """What a pose predicate may look at besides the frame."""
    state: CounterState
    calibration: Optional[CalibrationData] = None
    limb: str = "main"


Predicate = Callable[[Frame, RepContext], bool]


@dataclass(frozen=True)
class RepProfile:
    """
    Everything that distinguishes one rep-based exercise from another.

    ``count_on`` is the phase whose entry completes a rep. Push-ups and
    lunges count on reaching the bottom; squats, sit-ups, burpees and each
    high-knees leg count on reaching the top.
    """
    label: str
    is_down: Predicate
    is_up: Predicate
    start_pose: Callable[[Frame], bool]
    count_on: Phase
    initial_phase: Phase
    min_rep_ms: float
    limbs: Tuple[str, ...] = ("main",)
    count_gate: Optional[Predicate] = None
    prepare: Optional[Callable[[Frame, RepContext], Tuple[bool, Optional[str]]]] = None
    up_hold_ms: float = 0.0
    message: Optional[Callable[[int], str]] = None

    def feedback(self, count: int) -> str:
        if self.message is not None:
            return self.message(count)
        return f"{self.label} {count}"


@dataclass(frozen=True)
class HoldProfile:
    """
    A time-based exercise.

    ``secondary_check`` returns a warning message when the frame breaks the
    hold. ``steady_gate`` sees every validated frame, may keep per-state
    tracking in ``CounterState.extras``, and silently withholds time while
    it returns False.
    """
    label: str
    secondary_check: Optional[Callable[[Frame], Optional[str]]] = None
    steady_gate: Optional[Callable[[Frame, "CounterState"], bool]] = None


def new_counter_state(
    mode: ExerciseMode,
    profile: Any,
    cadence_factory: Callable[[], CadenceGuard] = CadenceGuard,
) -> CounterState:
    """Fresh state for a mode, shaped by its profile."""
    spec = mode.spec
    if isinstance(profile, RepProfile):
        tracks = {
            limb: LimbTrack(phase=profile.initial_phase, cadence=cadence_factory())
            for limb in profile.limbs
        }
    else:
        tracks = {"main": LimbTrack(phase=Phase.UP, cadence=cadence_factory())}
    return CounterState(
        mode=mode,
        tracks=tracks,
        posture=DebouncedFlag(spec.good_frames, spec.bad_frames),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# STATE MACHINE
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class RepUpdate:
    """What happened to the counter on one frame."""
    count: int = 0
    counted: int = 0
    messages: List[str] = field(default_factory=list)
    warning: Optional[str] = None
    anomalies: List[CadenceAnomaly] = field(default_factory=list)


class RepStateMachine:
    """
    Two-phase up/down counter.

    Rules:
    - Nothing moves until the start pose has held for ``start_frames``
      consecutive frames (latched until reset)
    - Posture-invalid frames are inert
    - Entering ``count_on`` requires ``min_rep_ms`` since the last counted
      rep; the cadence guard or the profile's count gate may still veto the
      increment while letting the phase change
    """

    def __init__(self, profile: RepProfile, start_frames: int = 6):
        self.profile = profile
        self.start_frames = start_frames

    def update(
        self,
        frame: Frame,
        state: CounterState,
        posture_valid: bool,
        calibration: Optional[CalibrationData] = None,
    ) -> RepUpdate:
        """
        Feed one validated frame.

        Args:
            frame: Validated frame
            state: The mode's counter state (mutated)
            posture_valid: Hysteresis-smoothed posture verdict
            calibration: Current calibration, if any

        Returns:
            RepUpdate describing counts, messages and anomalies
        """
        profile = self.profile
        result = RepUpdate(count=state.count)
        ctx = RepContext(state=state, calibration=calibration)

        if profile.prepare is not None:
            proceed, warning = profile.prepare(frame, ctx)
            result.warning = warning
            if not proceed:
                return result

        if not state.start_pose_ready:
            if profile.start_pose(frame):
                state.stable_frame_count += 1
            else:
                state.stable_frame_count = 0
            if state.stable_frame_count >= self.start_frames:
                state.start_pose_ready = True
                logger.info(f"🟢 {profile.label}: start pose held, counting enabled")

        if not state.start_pose_ready:
            return result
        if not posture_valid:
            return result

        now = frame.timestamp_ms
        for limb, track in state.tracks.items():
            ctx.limb = limb
            target = track.phase.opposite
            predicate = profile.is_down if target is Phase.DOWN else profile.is_up
            if not predicate(frame, ctx):
                track.candidate_since = None
                continue

            if target is Phase.UP and profile.up_hold_ms > 0:
                if track.candidate_since is None:
                    track.candidate_since = now
                if now - track.candidate_since < profile.up_hold_ms:
                    continue

            if target is profile.count_on:
                if (
                    track.last_rep_timestamp is not None
                    and now - track.last_rep_timestamp < profile.min_rep_ms
                ):
                    continue
                self._move(track, target)
                if profile.count_gate is not None and not profile.count_gate(frame, ctx):
                    logger.debug(f"{profile.label}: rep rejected by form gate")
                    continue
                anomaly = track.cadence.check(now)
                if anomaly is not None:
                    result.anomalies.append(anomaly)
                    continue
                track.last_rep_timestamp = now
                track.count += 1
                state.count += 1
                result.counted += 1
                result.messages.append(profile.feedback(state.count))
                logger.info(f"✅ {profile.label} rep {state.count}")
            else:
                self._move(track, target)

        result.count = state.count
        return result

    @staticmethod
    def _move(track: LimbTrack, target: Phase):
        track.phase = target
        track.candidate_since = None
