"""
Tests for the cadence guard, standalone and inside the rep counter.
"""

from tracking_service.models import (
    CadenceGuard,
    ExerciseMode,
    ExerciseTracker,
    Phase,
    RepProfile,
    TelemetryType,
)
from tracking_service.models.cadence import SUDDEN_ACCELERATION, TOO_FAST
from core.config import TrackerConfig

from poses import build_frame, pushup_points


def test_first_rep_is_always_accepted():
    guard = CadenceGuard()
    assert guard.check(1000) is None
    assert guard.last_accepted_ms == 1000


def test_too_fast_keeps_reference():
    guard = CadenceGuard(floor_ms=200)
    guard.check(0)

    anomaly = guard.check(50)
    assert anomaly.kind == TOO_FAST
    assert anomaly.interval_ms == 50

    # measured from the last accepted rep, not the rejected one
    anomaly = guard.check(150)
    assert anomaly.interval_ms == 150
    assert guard.check(400) is None
    assert guard.last_accepted_ms == 400


def test_sudden_acceleration():
    guard = CadenceGuard(floor_ms=200, ratio=0.3, min_samples=3)
    for t in (0, 1000, 2000, 3000):
        assert guard.check(t) is None

    anomaly = guard.check(3250)
    assert anomaly.kind == SUDDEN_ACCELERATION
    assert anomaly.average_ms == 1000


def test_acceleration_needs_enough_samples():
    guard = CadenceGuard(floor_ms=200, ratio=0.3, min_samples=3)
    guard.check(0)
    guard.check(1000)
    assert guard.check(1250) is None


def test_reset():
    guard = CadenceGuard()
    guard.check(0)
    guard.check(500)
    guard.reset()
    assert guard.average_ms is None
    assert guard.last_accepted_ms is None


# ═══════════════════════════════════════════════════════════════════════════════
# INSIDE THE COUNTER
# ═══════════════════════════════════════════════════════════════════════════════

def nose_profile(min_rep_ms: float) -> RepProfile:
    """Counts a rep each time the nose drops below y=0.6."""
    return RepProfile(
        label="Nose dip",
        is_down=lambda frame, ctx: frame[0].y > 0.6,
        is_up=lambda frame, ctx: frame[0].y < 0.4,
        start_pose=lambda frame: True,
        count_on=Phase.DOWN,
        initial_phase=Phase.UP,
        min_rep_ms=min_rep_ms,
    )


def nose_frame(y: float, t: float):
    points = pushup_points(165)
    points[0] = (0.20, y)
    return build_frame(points, t)


def make_tracker(recorder, min_rep_ms: float) -> ExerciseTracker:
    config = TrackerConfig(start_pose_frames=1, telemetry_enabled=True)
    tracker = ExerciseTracker(
        ExerciseMode.PUSHUPS,
        config=config,
        callbacks=recorder.callbacks(),
        profiles={ExerciseMode.PUSHUPS: nose_profile(min_rep_ms)},
    )
    # settle posture hysteresis
    for t in (0, 25, 50):
        tracker.process_frame(nose_frame(0.3, t))
    return tracker


def test_rapid_reps_only_count_once(recorder):
    tracker = make_tracker(recorder, min_rep_ms=0)

    t = 100
    for _ in range(4):
        tracker.process_frame(nose_frame(0.7, t))
        tracker.process_frame(nose_frame(0.3, t + 25))
        t += 50

    assert tracker.state.count == 1
    assert recorder.rep_counts == [1]
    anomalies = [e for e in recorder.telemetry if e.type == TelemetryType.ANOMALY]
    assert len(anomalies) == 3
    assert all(e.details["kind"] == TOO_FAST for e in anomalies)


def test_reps_just_above_min_rep_time_all_count(recorder):
    tracker = make_tracker(recorder, min_rep_ms=400)

    t = 100
    for _ in range(5):
        tracker.process_frame(nose_frame(0.7, t))
        tracker.process_frame(nose_frame(0.3, t + 100))
        t += 410

    assert recorder.rep_counts == [1, 2, 3, 4, 5]
