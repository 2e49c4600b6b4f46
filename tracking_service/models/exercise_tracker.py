"""
REPSENSE Tracking Service - Exercise Tracker

Per-session frame pipeline: validate landmarks, judge posture, drive the
active mode's rep counter or hold timer, and report everything through
host callbacks.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from core.config import TrackerConfig
from shared.utils import monotonic_ms

from .cadence import CadenceGuard
from .calibration import CalibrationData, Calibrator
from .errors import CalibrationInProgressError, InvalidFrameError
from .exercises import ExerciseMode
from .landmarks import Frame, Landmark, LandmarkHistory, LandmarkValidator
from .posture import STATUS_INCORRECT, STATUS_UNKNOWN, PostureEvaluator, PostureVerdict
from .profiles import Profile, default_profiles
from .rep_counter import CounterState, HoldProfile, RepProfile, RepStateMachine, new_counter_state
from .telemetry import TelemetryEmitter, TelemetryEvent, TelemetryType

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# EVENT TYPES
# ═══════════════════════════════════════════════════════════════════════════════

class FrameOutcome(str, Enum):
    """What the pipeline did with a frame."""
    PROCESSED = "processed"
    SKIPPED = "skipped"
    NO_POSE = "no_pose"
    NOT_CALIBRATED = "not_calibrated"


class FeedbackType(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"


@dataclass
class FormFeedback:
    """A message for the user."""
    message: str
    type: FeedbackType
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "type": self.type.value, "timestamp": self.timestamp}


@dataclass
class TrackerCallbacks:
    """
    Host hooks. All optional, all fire-and-forget.

    on_posture_change receives the status ("correct", "incorrect" or
    "unknown") and the landmarks of the frame that caused it (None when no
    person was detected).
    """
    on_rep_count: Optional[Callable[[int], None]] = None
    on_time_update: Optional[Callable[[int], None]] = None
    on_posture_change: Optional[Callable[[str, Optional[List[Landmark]]], None]] = None
    on_form_feedback: Optional[Callable[[FormFeedback], None]] = None
    on_telemetry: Optional[Callable[[TelemetryEvent], None]] = None
    on_audio_cue: Optional[Callable[[str], None]] = None


# ═══════════════════════════════════════════════════════════════════════════════
# TRACKER
# ═══════════════════════════════════════════════════════════════════════════════

class ExerciseTracker:
    """
    Turns a landmark stream into counts, hold times and form feedback.

    Features:
    - Critical-landmark validation with history backfill
    - Hysteresis-smoothed posture verdicts per mode
    - Shared up/down state machine for every rep-based mode
    - Pausable hold timer for isometric modes
    - Calibration of body proportions
    - Optional telemetry stream
    """

    def __init__(
        self,
        mode: ExerciseMode = ExerciseMode.PUSHUPS,
        config: Optional[TrackerConfig] = None,
        callbacks: Optional[TrackerCallbacks] = None,
        profiles: Optional[Dict[ExerciseMode, Profile]] = None,
        clock: Callable[[], float] = monotonic_ms,
        sleep: Callable[[float], Awaitable] = asyncio.sleep,
    ):
        """
        Initialize the tracker.

        Args:
            mode: Initially active exercise
            config: Thresholds (defaults if None)
            callbacks: Host hooks
            profiles: Per-mode profile overrides
            clock: Millisecond clock used for calibration timing
            sleep: Awaitable sleep used between calibration samples
        """
        self.config = config or TrackerConfig()
        self.callbacks = callbacks or TrackerCallbacks()
        self.profiles: Dict[ExerciseMode, Profile] = {**default_profiles(), **(profiles or {})}
        self._clock = clock
        self._sleep = sleep

        cfg = self.config
        self.validator = LandmarkValidator(
            history=LandmarkHistory(capacity=cfg.history_size, alpha=cfg.ema_alpha),
            min_visibility=cfg.min_visibility,
            backfill_visibility=cfg.backfill_visibility,
        )
        self.evaluator = PostureEvaluator()
        self.calibrator = Calibrator(
            duration_ms=cfg.calibration_duration_ms,
            min_frames=cfg.calibration_min_frames,
            fps=cfg.calibration_fps,
        )
        self.telemetry = TelemetryEmitter(
            enabled=cfg.telemetry_enabled,
            buffer_size=cfg.telemetry_buffer_size,
            sink=lambda event: self._fire("on_telemetry", event),
        )

        self.calibration: Optional[CalibrationData] = None
        self.calibrating = False
        self.cardio_bypass = True

        self._states: Dict[ExerciseMode, CounterState] = {}
        self._machines: Dict[ExerciseMode, RepStateMachine] = {}
        self.posture_status = STATUS_UNKNOWN
        self.frame_number = 0
        self.last_frame: Optional[Frame] = None
        self._last_timestamp: Optional[float] = None
        self._last_warning_ms: Optional[float] = None

        self.mode = ExerciseMode.parse(mode)
        self._states[self.mode] = self._new_state(self.mode)
        logger.info(f"🏋️ ExerciseTracker initialized (mode: {self.mode.value})")

    # ========================================
    # Control surface
    # ========================================

    @property
    def state(self) -> CounterState:
        """Counter state of the active mode (created on first use)."""
        if self.mode not in self._states:
            self._states[self.mode] = self._new_state(self.mode)
        return self._states[self.mode]

    def set_exercise_mode(self, mode) -> ExerciseMode:
        """
        Switch the active exercise. The newly active mode starts from zero;
        other modes keep their state.
        """
        self.mode = ExerciseMode.parse(mode)
        self._states[self.mode] = self._new_state(self.mode)
        self.posture_status = STATUS_UNKNOWN
        self._last_warning_ms = None
        logger.info(f"🔄 Exercise mode set to {self.mode.value}")
        return self.mode

    def reset_counter(self):
        """Zero the active mode's counts, phases and hold timer."""
        self._states[self.mode] = self._new_state(self.mode)
        self.posture_status = STATUS_UNKNOWN
        self._last_warning_ms = None
        logger.info(f"🔁 Counter reset for {self.mode.value}")

    def set_cardio_bypass(self, enabled: bool):
        self.cardio_bypass = bool(enabled)

    def enable_telemetry(self, enabled: bool = True):
        self.telemetry.enabled = enabled

    def skip_calibration(self) -> CalibrationData:
        """Use default proportions without sampling."""
        self.calibration = CalibrationData(is_default=True)
        logger.info("📏 Calibration skipped, using defaults")
        return self.calibration

    async def calibrate(self, duration_ms: Optional[float] = None) -> CalibrationData:
        """
        Sample body proportions from incoming frames for ``duration_ms``.

        Frames keep flowing through process_frame meanwhile; modes that need
        calibration report NOT_CALIBRATED until this finishes.

        Raises:
            CalibrationInProgressError: If a calibration is already running
        """
        if self.calibrating:
            raise CalibrationInProgressError("Calibration already in progress")

        self.calibrating = True
        logger.info(f"📏 Calibration started ({duration_ms or self.config.calibration_duration_ms:.0f}ms)")
        try:
            data = await self.calibrator.run(
                lambda: self.last_frame,
                duration_ms=duration_ms,
                clock=self._clock,
                sleep=self._sleep,
            )
        finally:
            self.calibrating = False

        self.calibration = data
        now = self._last_timestamp if self._last_timestamp is not None else self._clock()
        self._fire(
            "on_form_feedback",
            FormFeedback("Calibration complete", FeedbackType.SUCCESS, now),
        )
        self.telemetry.emit(
            TelemetryType.CALIBRATION_COMPLETE,
            timestamp_ms=now,
            exercise_mode=self.mode.value,
            frame_number=self.frame_number,
            details=data.to_dict(),
        )
        return data

    def get_stats(self) -> Dict[str, Any]:
        """Snapshot of the active mode."""
        state = self.state
        now = self._last_timestamp if self._last_timestamp is not None else 0.0
        return {
            "mode": self.mode.value,
            "count": state.count,
            "phase": state.phase,
            "posture": self.posture_status,
            "time_sec": state.hold.elapsed_seconds(now),
            "calibrated": self.calibration is not None and not self.calibration.is_default,
            "calibrating": self.calibrating,
        }

    # ========================================
    # Frame pipeline
    # ========================================

    def process_frame(self, frame: Optional[Frame], timestamp_ms: Optional[float] = None) -> FrameOutcome:
        """
        Run one frame through the pipeline.

        Args:
            frame: Validated-at-boundary frame, or None when no person was found
            timestamp_ms: Time of a None frame (defaults to the last frame time)

        Returns:
            FrameOutcome

        Raises:
            InvalidFrameError: On a non-Frame input or a timestamp going backwards
        """
        if frame is None:
            return self._handle_no_pose(timestamp_ms)
        if not isinstance(frame, Frame):
            raise InvalidFrameError(f"Expected a Frame, got {type(frame).__name__}")
        if self._last_timestamp is not None and frame.timestamp_ms < self._last_timestamp:
            raise InvalidFrameError(
                f"Frame timestamp {frame.timestamp_ms} is older than {self._last_timestamp}"
            )

        self.frame_number += 1
        self._last_timestamp = frame.timestamp_ms
        self.last_frame = frame
        mode = self.mode
        spec = mode.spec

        if self.calibrating and spec.requires_calibration:
            return FrameOutcome.NOT_CALIBRATED

        validated = self.validator.validate(frame, spec.critical)
        if validated is None:
            self.telemetry.emit(
                TelemetryType.FRAME_SKIPPED,
                timestamp_ms=frame.timestamp_ms,
                exercise_mode=mode.value,
                frame_number=self.frame_number,
                visibility=frame.visibility_map(sorted(spec.critical)),
                details={"reason": "critical_landmarks_unavailable"},
            )
            return FrameOutcome.SKIPPED

        state = self.state
        verdict = self.evaluator.evaluate(
            validated, mode, state.posture, cardio_bypass=self.cardio_bypass
        )
        self._update_posture_status(verdict.status, validated)
        if state.posture.state is False and verdict.feedback_message:
            self._warn(verdict.feedback_message, validated.timestamp_ms)

        profile = self.profiles[mode]
        if isinstance(profile, HoldProfile):
            self._update_hold(profile, validated, state, verdict)
        else:
            self._update_reps(mode, profile, validated, state, verdict)

        self.telemetry.emit(
            TelemetryType.FRAME_PROCESSED,
            timestamp_ms=validated.timestamp_ms,
            exercise_mode=mode.value,
            frame_number=self.frame_number,
            posture=verdict.to_dict(),
            visibility=validated.visibility_map(sorted(spec.critical)),
            angles=verdict.angles,
            state=state.snapshot(),
        )
        return FrameOutcome.PROCESSED

    def _update_reps(
        self,
        mode: ExerciseMode,
        profile: RepProfile,
        frame: Frame,
        state: CounterState,
        verdict: PostureVerdict,
    ):
        machine = self._machines.get(mode)
        if machine is None or machine.profile is not profile:
            machine = RepStateMachine(profile, start_frames=self.config.start_pose_frames)
            self._machines[mode] = machine

        update = machine.update(frame, state, verdict.is_valid, self.calibration)
        now = frame.timestamp_ms

        if update.warning:
            self._warn(update.warning, now)

        for anomaly in update.anomalies:
            self.telemetry.emit(
                TelemetryType.ANOMALY,
                timestamp_ms=now,
                exercise_mode=mode.value,
                frame_number=self.frame_number,
                state=state.snapshot(),
                details=anomaly.to_dict(),
            )

        first = update.count - update.counted
        for offset, message in enumerate(update.messages, start=1):
            self._fire("on_rep_count", first + offset)
            self._fire("on_form_feedback", FormFeedback(message, FeedbackType.SUCCESS, now))
            self._fire("on_audio_cue", FeedbackType.SUCCESS.value)

    def _update_hold(self, profile: HoldProfile, frame: Frame, state: CounterState, verdict: PostureVerdict):
        now = frame.timestamp_ms
        valid = verdict.is_valid
        steady = profile.steady_gate is None or profile.steady_gate(frame, state)
        if valid and profile.secondary_check is not None:
            message = profile.secondary_check(frame)
            if message:
                valid = False
                self._warn(message, now)
        if valid and not steady:
            valid = False

        seconds = state.hold.update(valid, now)
        if seconds is not None:
            self._fire("on_time_update", seconds)

    def _handle_no_pose(self, timestamp_ms: Optional[float]) -> FrameOutcome:
        """Nobody in view: posture becomes unknown and a running hold pauses."""
        now = timestamp_ms if timestamp_ms is not None else self._last_timestamp
        if now is None:
            now = self._clock()
        self.frame_number += 1

        state = self.state
        state.posture.reset()
        self._update_posture_status(STATUS_UNKNOWN, None)
        if state.hold.running:
            self._fire("on_time_update", state.hold.pause(now))

        self.telemetry.emit(
            TelemetryType.POSE,
            timestamp_ms=now,
            exercise_mode=self.mode.value,
            frame_number=self.frame_number,
            state=state.snapshot(),
            details={"reason": "no_pose_detected"},
        )
        return FrameOutcome.NO_POSE

    # ========================================
    # Helpers
    # ========================================

    def _new_state(self, mode: ExerciseMode) -> CounterState:
        cfg = self.config
        return new_counter_state(
            mode,
            self.profiles[mode],
            cadence_factory=lambda: CadenceGuard(
                floor_ms=cfg.cadence_floor_ms,
                ratio=cfg.cadence_ratio,
                window=cfg.cadence_window,
                min_samples=cfg.cadence_min_samples,
            ),
        )

    def _update_posture_status(self, status: str, frame: Optional[Frame]):
        if status == self.posture_status:
            return
        self.posture_status = status
        if status == STATUS_INCORRECT:
            logger.debug(f"Posture became incorrect ({self.mode.value})")
        self._fire("on_posture_change", status, list(frame.landmarks) if frame is not None else None)

    def _warn(self, message: str, now: float):
        """Warning feedback, rate-limited by the feedback cooldown."""
        last = self._last_warning_ms
        if last is not None and now - last < self.config.feedback_cooldown_ms:
            return
        self._last_warning_ms = now
        self._fire("on_form_feedback", FormFeedback(message, FeedbackType.WARNING, now))
        self._fire("on_audio_cue", FeedbackType.WARNING.value)

    def _fire(self, name: str, *args):
        callback = getattr(self.callbacks, name)
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception(f"Callback {name} raised; continuing")
