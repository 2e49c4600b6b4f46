"""
REPSENSE Configuration

Environment variables, application settings, and the immutable
tracker configuration handed to each exercise tracker.
"""

from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "REPSENSE"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8080", "http://10.0.2.2:8000"]

    # Sessions
    MAX_SESSIONS: int = 100
    FRAME_QUEUE_SIZE: int = 1

    # Landmark validation
    MIN_VISIBILITY: float = 0.35
    EMA_ALPHA: float = 0.3
    HISTORY_SIZE: int = 5
    BACKFILL_VISIBILITY: float = 0.3

    # Counting
    START_POSE_FRAMES: int = 6
    FEEDBACK_COOLDOWN_MS: float = 2000.0

    # Calibration
    CALIBRATION_DURATION_MS: float = 3000.0
    CALIBRATION_MIN_FRAMES: int = 30
    CALIBRATION_FPS: float = 30.0

    # Cadence guard
    CADENCE_FLOOR_MS: float = 200.0
    CADENCE_RATIO: float = 0.3
    CADENCE_WINDOW: int = 10
    CADENCE_MIN_SAMPLES: int = 3

    # Telemetry
    TELEMETRY_ENABLED: bool = False
    TELEMETRY_BUFFER_SIZE: int = 500

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


class TrackerConfig(BaseModel):
    """
    Immutable thresholds shared by every component of a tracker.

    Built once (usually from Settings) and passed into the tracker at
    construction.
    """
    model_config = ConfigDict(frozen=True)

    min_visibility: float = 0.35
    ema_alpha: float = 0.3
    history_size: int = 5
    backfill_visibility: float = 0.3

    start_pose_frames: int = 6
    feedback_cooldown_ms: float = 2000.0

    calibration_duration_ms: float = 3000.0
    calibration_min_frames: int = 30
    calibration_fps: float = 30.0

    cadence_floor_ms: float = 200.0
    cadence_ratio: float = 0.3
    cadence_window: int = 10
    cadence_min_samples: int = 3

    telemetry_enabled: bool = False
    telemetry_buffer_size: int = 500

    @classmethod
    def from_settings(cls, source: Optional[Settings] = None) -> "TrackerConfig":
        """Build a tracker config from application settings."""
        s = source or settings
        return cls(
            min_visibility=s.MIN_VISIBILITY,
            ema_alpha=s.EMA_ALPHA,
            history_size=s.HISTORY_SIZE,
            backfill_visibility=s.BACKFILL_VISIBILITY,
            start_pose_frames=s.START_POSE_FRAMES,
            feedback_cooldown_ms=s.FEEDBACK_COOLDOWN_MS,
            calibration_duration_ms=s.CALIBRATION_DURATION_MS,
            calibration_min_frames=s.CALIBRATION_MIN_FRAMES,
            calibration_fps=s.CALIBRATION_FPS,
            cadence_floor_ms=s.CADENCE_FLOOR_MS,
            cadence_ratio=s.CADENCE_RATIO,
            cadence_window=s.CADENCE_WINDOW,
            cadence_min_samples=s.CADENCE_MIN_SAMPLES,
            telemetry_enabled=s.TELEMETRY_ENABLED,
            telemetry_buffer_size=s.TELEMETRY_BUFFER_SIZE,
        )


settings = Settings()
