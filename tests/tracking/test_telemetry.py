"""
Tests for the optional telemetry stream.
"""

from tracking_service.models import ExerciseMode, ExerciseTracker, TelemetryEmitter, TelemetryType

from poses import build_frame, pushup_points


def test_disabled_emitter_is_silent():
    received = []
    emitter = TelemetryEmitter(enabled=False, sink=received.append)
    assert emitter.emit(TelemetryType.POSE, timestamp_ms=0, exercise_mode="plank", frame_number=1) is None
    assert received == []
    assert emitter.emitted_count == 0


def test_buffer_keeps_most_recent():
    emitter = TelemetryEmitter(enabled=True, buffer_size=3)
    for i in range(5):
        emitter.emit(TelemetryType.POSE, timestamp_ms=i, exercise_mode="plank", frame_number=i)

    assert [e.frame_number for e in emitter.recent(10)] == [2, 3, 4]
    assert emitter.emitted_count == 5


def test_tracker_reports_skipped_and_processed_frames(recorder):
    tracker = ExerciseTracker(ExerciseMode.PUSHUPS, callbacks=recorder.callbacks())
    tracker.enable_telemetry()

    tracker.process_frame(build_frame(pushup_points(165), 0, overrides={13: 0.1}))
    tracker.process_frame(build_frame(pushup_points(165), 33))
    tracker.process_frame(None, 66)

    types = [event.type for event in recorder.telemetry]
    assert types == [TelemetryType.FRAME_SKIPPED, TelemetryType.FRAME_PROCESSED, TelemetryType.POSE]

    skipped = recorder.telemetry[0].to_dict()
    assert skipped["type"] == "pose-frame-skipped"
    assert skipped["visibility"]["13"] == 0.1
    assert skipped["details"]["reason"] == "critical_landmarks_unavailable"

    processed = recorder.telemetry[1]
    assert processed.posture["status"] == "unknown"
    assert processed.state["count"] == 0
