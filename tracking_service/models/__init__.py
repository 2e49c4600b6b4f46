"""
REPSENSE Tracking Service Models

Rule-based rep counting and hold timing over pose landmark streams.
"""

from .errors import (
    TrackingError,
    InvalidFrameError,
    UnknownExerciseModeError,
    CalibrationInProgressError,
    SessionNotFoundError,
)

from .landmarks import (
    JointType,
    Landmark,
    Frame,
    LandmarkHistory,
    LandmarkValidator,
)

from .exercises import (
    ExerciseMode,
    ModeKind,
    PostureFamily,
    ModeSpec,
)

from .posture import (
    DebouncedFlag,
    PostureEvaluator,
    PostureVerdict,
)

from .calibration import CalibrationData, Calibrator
from .cadence import CadenceAnomaly, CadenceGuard
from .hold_timer import HoldTimer
from .telemetry import TelemetryEmitter, TelemetryEvent, TelemetryType

from .rep_counter import (
    Phase,
    CounterState,
    RepProfile,
    HoldProfile,
    RepStateMachine,
)

from .profiles import default_profiles

from .exercise_tracker import (
    ExerciseTracker,
    TrackerCallbacks,
    FormFeedback,
    FeedbackType,
    FrameOutcome,
)

from .exercise_session import (
    ExerciseSessionHandler,
    TrackingSession,
    get_session_handler,
)

__all__ = [
    # Errors
    "TrackingError",
    "InvalidFrameError",
    "UnknownExerciseModeError",
    "CalibrationInProgressError",
    "SessionNotFoundError",
    # Landmarks
    "JointType",
    "Landmark",
    "Frame",
    "LandmarkHistory",
    "LandmarkValidator",
    # Exercises
    "ExerciseMode",
    "ModeKind",
    "PostureFamily",
    "ModeSpec",
    # Posture
    "DebouncedFlag",
    "PostureEvaluator",
    "PostureVerdict",
    # Calibration, cadence, holds, telemetry
    "CalibrationData",
    "Calibrator",
    "CadenceAnomaly",
    "CadenceGuard",
    "HoldTimer",
    "TelemetryEmitter",
    "TelemetryEvent",
    "TelemetryType",
    # Counting
    "Phase",
    "CounterState",
    "RepProfile",
    "HoldProfile",
    "RepStateMachine",
    "default_profiles",
    # Tracker
    "ExerciseTracker",
    "TrackerCallbacks",
    "FormFeedback",
    "FeedbackType",
    "FrameOutcome",
    # Sessions
    "ExerciseSessionHandler",
    "TrackingSession",
    "get_session_handler",
]
