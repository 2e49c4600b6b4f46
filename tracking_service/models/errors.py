"""
REPSENSE Tracking Service - Errors

Hard failures at the tracker boundary. Noisy input inside the pipeline
is never raised; it is skipped or reported through feedback/telemetry.
"""


class TrackingError(ValueError):
    """Base class for tracker boundary errors."""
    http_status = 400


class InvalidFrameError(TrackingError):
    """Malformed or absent landmark data from the pose source."""


class UnknownExerciseModeError(TrackingError):
    """The caller asked for an exercise mode that does not exist."""


class CalibrationInProgressError(TrackingError):
    """A second calibration was requested while one is running."""
    http_status = 409


class SessionNotFoundError(TrackingError):
    http_status = 404
