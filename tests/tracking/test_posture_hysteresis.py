"""
Tests for the debounced posture flag and the per-family posture rules.
"""

from tracking_service.models import (
    DebouncedFlag,
    ExerciseMode,
    ExerciseTracker,
    PostureEvaluator,
)

from poses import build_frame, pushup_points, standing_points, wall_sit_points


# ═══════════════════════════════════════════════════════════════════════════════
# DEBOUNCED FLAG
# ═══════════════════════════════════════════════════════════════════════════════

def test_flag_needs_consecutive_good_readings():
    flag = DebouncedFlag(good_frames=3, bad_frames=5)
    flag.update(True)
    flag.update(True)
    flag.update(False)
    flag.update(True)
    flag.update(True)

    assert flag.state is None
    assert flag.status == "unknown"

    flag.update(True)
    assert flag.state is True


def test_flag_needs_consecutive_bad_readings():
    flag = DebouncedFlag(good_frames=3, bad_frames=5)
    for _ in range(3):
        flag.update(True)
    for _ in range(4):
        flag.update(False)
    assert flag.state is True

    flag.update(False)
    assert flag.state is False
    assert flag.status == "incorrect"


def test_flag_reset():
    flag = DebouncedFlag(good_frames=1, bad_frames=1)
    flag.update(True)
    flag.reset()
    assert (flag.state, flag.good_count, flag.bad_count) == (None, 0, 0)


def test_one_short_of_good_frames_never_reports_correct(recorder):
    tracker = ExerciseTracker(ExerciseMode.PUSHUPS, callbacks=recorder.callbacks())
    good = ExerciseMode.PUSHUPS.spec.good_frames

    t = 0
    for _ in range(good - 1):
        tracker.process_frame(build_frame(pushup_points(165), t))
        t += 33
    tracker.process_frame(build_frame(standing_points(), t))

    assert "correct" not in recorder.posture_changes
    assert tracker.posture_status == "unknown"


# ═══════════════════════════════════════════════════════════════════════════════
# RULE FAMILIES
# ═══════════════════════════════════════════════════════════════════════════════

def test_pushup_rules():
    evaluator = PostureEvaluator()
    check, orientation, angles = evaluator.instant_verdict(build_frame(pushup_points(165), 0), ExerciseMode.PUSHUPS)
    assert check.ok
    assert orientation == "horizontal"
    assert angles["straightness"] >= 0.82

    check, _, _ = evaluator.instant_verdict(build_frame(standing_points(), 0), ExerciseMode.PUSHUPS)
    assert not check.ok
    assert check.reason == "standing_position"


def test_missing_torso_is_insufficient_visibility():
    evaluator = PostureEvaluator()
    frame = build_frame(pushup_points(165), 0, overrides={23: 0.1, 24: 0.1})
    check, orientation, _ = evaluator.instant_verdict(frame, ExerciseMode.PUSHUPS)
    assert check.reason == "insufficient_visibility"
    assert orientation == "unknown"


def test_wall_sit_rules():
    evaluator = PostureEvaluator()
    check, _, angles = evaluator.instant_verdict(build_frame(wall_sit_points(90), 0), ExerciseMode.WALL_SIT)
    assert check.ok
    assert angles["left_knee"] == 90.0

    check, _, _ = evaluator.instant_verdict(build_frame(wall_sit_points(170), 0), ExerciseMode.WALL_SIT)
    assert not check.ok
    assert check.feedback == "Sink to 90° knees"


def test_cardio_bypass_forces_validity():
    evaluator = PostureEvaluator()
    frame = build_frame(pushup_points(165), 0)

    verdict = evaluator.evaluate(frame, ExerciseMode.JUMPING_JACKS, DebouncedFlag(1, 3), cardio_bypass=True)
    assert verdict.is_valid
    assert verdict.reason == "posture_warning"
    assert verdict.feedback_message == "Stand upright"

    verdict = evaluator.evaluate(frame, ExerciseMode.JUMPING_JACKS, DebouncedFlag(1, 3), cardio_bypass=False)
    assert not verdict.is_valid
