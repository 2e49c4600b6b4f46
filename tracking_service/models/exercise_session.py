"""
REPSENSE Tracking Service - Exercise Session Handler

Keeps one ExerciseTracker per client session and collects the events each
frame produces so they can be returned over HTTP or WebSocket.
"""

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from core.config import TrackerConfig

from .calibration import CalibrationData
from .errors import SessionNotFoundError, TrackingError
from .exercise_tracker import ExerciseTracker, FormFeedback, TrackerCallbacks
from .exercises import ExerciseMode
from .landmarks import Frame
from .telemetry import TelemetryEvent

logger = logging.getLogger(__name__)


@dataclass
class TrackingSession:
    """A client's tracker plus the events it has produced but not yet delivered."""
    session_id: str
    user_id: str
    tracker: ExerciseTracker
    created_at: float = field(default_factory=time.time)
    frames_processed: int = 0
    pending_events: List[Dict[str, Any]] = field(default_factory=list)
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def drain_events(self) -> List[Dict[str, Any]]:
        with self.lock:
            events, self.pending_events = self.pending_events, []
        return events

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "created_at": self.created_at,
            "frames_processed": self.frames_processed,
            "stats": self.tracker.get_stats(),
        }


class ExerciseSessionHandler:
    """
    Manages tracking sessions.

    Features:
    - One tracker per session, built from a shared TrackerConfig
    - Event buffering per session
    - Serialized access per session (frame processing vs. control calls)
    """

    def __init__(self, config: Optional[TrackerConfig] = None, max_sessions: int = 100):
        """
        Initialize session handler.

        Args:
            config: Tracker thresholds applied to every new session
            max_sessions: Upper bound on concurrently open sessions
        """
        self.config = config or TrackerConfig.from_settings()
        self.max_sessions = max_sessions
        self.active_sessions: Dict[str, TrackingSession] = {}

    def create_session(self, user_id: str, exercise_mode: Any = ExerciseMode.PUSHUPS) -> TrackingSession:
        """
        Create a new tracking session.

        Args:
            user_id: User ID
            exercise_mode: Initial exercise (enum or free text)

        Returns:
            New TrackingSession

        Raises:
            TrackingError: When the session limit is reached
        """
        if len(self.active_sessions) >= self.max_sessions:
            raise TrackingError(f"Session limit reached ({self.max_sessions})")

        mode = ExerciseMode.parse(exercise_mode)
        session_id = str(uuid.uuid4())[:8]
        tracker = ExerciseTracker(mode=mode, config=self.config)
        session = TrackingSession(session_id=session_id, user_id=user_id, tracker=tracker)
        tracker.callbacks = self._collecting_callbacks(session)

        self.active_sessions[session_id] = session
        logger.info(f"🆕 Session {session_id} created for {user_id} ({mode.value})")
        return session

    def get_session(self, session_id: str) -> TrackingSession:
        session = self.active_sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session not found: {session_id}")
        return session

    def process_frame(self, session_id: str, frame: Optional[Frame], timestamp_ms: Optional[float] = None) -> Dict[str, Any]:
        """
        Feed one frame to a session's tracker.

        Returns:
            Dict with the frame outcome, the events it produced and a stats snapshot
        """
        session = self.get_session(session_id)
        with session.lock:
            outcome = session.tracker.process_frame(frame, timestamp_ms)
            session.frames_processed += 1
            stats = session.tracker.get_stats()
        return {
            "session_id": session_id,
            "outcome": outcome.value,
            "events": session.drain_events(),
            "stats": stats,
        }

    def set_mode(self, session_id: str, exercise_mode: Any) -> Dict[str, Any]:
        session = self.get_session(session_id)
        with session.lock:
            mode = session.tracker.set_exercise_mode(exercise_mode)
            return {"session_id": session_id, "mode": mode.value, "stats": session.tracker.get_stats()}

    def reset(self, session_id: str) -> Dict[str, Any]:
        session = self.get_session(session_id)
        with session.lock:
            session.tracker.reset_counter()
            session.pending_events.clear()
            return {"session_id": session_id, "stats": session.tracker.get_stats()}

    def get_stats(self, session_id: str) -> Dict[str, Any]:
        session = self.get_session(session_id)
        with session.lock:
            return session.to_dict()

    async def calibrate(self, session_id: str, duration_ms: Optional[float] = None) -> CalibrationData:
        session = self.get_session(session_id)
        return await session.tracker.calibrate(duration_ms)

    def skip_calibration(self, session_id: str) -> CalibrationData:
        session = self.get_session(session_id)
        with session.lock:
            return session.tracker.skip_calibration()

    def end_session(self, session_id: str) -> Dict[str, Any]:
        """Close a session and return its final snapshot."""
        session = self.get_session(session_id)
        summary = session.to_dict()
        del self.active_sessions[session_id]
        logger.info(f"🏁 Session {session_id} ended ({summary['stats']['count']} reps)")
        return summary

    def get_handler_stats(self) -> Dict[str, Any]:
        return {
            "active_sessions": len(self.active_sessions),
            "max_sessions": self.max_sessions,
        }

    def cleanup(self):
        """Drop all sessions."""
        self.active_sessions.clear()

    @staticmethod
    def _collecting_callbacks(session: TrackingSession) -> TrackerCallbacks:
        def push(event: Dict[str, Any]):
            with session.lock:
                session.pending_events.append(event)

        def on_telemetry(event: TelemetryEvent):
            push({"type": "telemetry", "event": event.to_dict()})

        def on_feedback(feedback: FormFeedback):
            push({"type": "form_feedback", **feedback.to_dict()})

        return TrackerCallbacks(
            on_rep_count=lambda count: push({"type": "rep_count", "count": count}),
            on_time_update=lambda seconds: push({"type": "time_update", "seconds": seconds}),
            on_posture_change=lambda status, _landmarks: push({"type": "posture_change", "status": status}),
            on_form_feedback=on_feedback,
            on_telemetry=on_telemetry,
            on_audio_cue=lambda kind: push({"type": "audio_cue", "cue": kind}),
        )


# Singleton instance
_session_handler: Optional[ExerciseSessionHandler] = None


def get_session_handler() -> ExerciseSessionHandler:
    """Get or create the global session handler."""
    global _session_handler
    if _session_handler is None:
        from core.config import settings
        _session_handler = ExerciseSessionHandler(
            config=TrackerConfig.from_settings(settings),
            max_sessions=settings.MAX_SESSIONS,
        )
    return _session_handler
