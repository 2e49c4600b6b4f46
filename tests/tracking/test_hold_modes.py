"""
Time-based modes: wall sit, plank checks and steadiness, pausing on no pose.
"""

import pytest

from tracking_service.models import ExerciseMode, ExerciseTracker, default_profiles

from poses import (
    build_frame,
    knee_plank_points,
    plank_points,
    pushup_points,
    side_plank_points,
    straight_arm_plank_points,
    wall_sit_points,
)


def feed(tracker, points, start_ms, end_ms, step_ms=100):
    """Feed a pose every ``step_ms`` in [start_ms, end_ms)."""
    t = start_ms
    while t < end_ms:
        tracker.process_frame(build_frame(points, t))
        t += step_ms


# ═══════════════════════════════════════════════════════════════════════════════
# WALL SIT
# ═══════════════════════════════════════════════════════════════════════════════

def test_wall_sit_pauses_and_resumes(recorder):
    tracker = ExerciseTracker(ExerciseMode.WALL_SIT, callbacks=recorder.callbacks())
    good, bad = wall_sit_points(90), wall_sit_points(170)

    feed(tracker, good, 0, 5300)
    sitting = list(recorder.time_updates)
    assert sitting[0] == 0
    assert sitting[-1] == 5

    feed(tracker, bad, 5300, 7300)
    standing = recorder.time_updates[len(sitting):]
    # the first straight-legged frame pauses the timer
    assert standing == [5]
    assert not tracker.state.hold_running
    assert tracker.state.hold_accumulated_ms == 5100

    feed(tracker, good, 7300, 10500)
    resumed = recorder.time_updates[len(sitting) + len(standing):]
    assert resumed[0] == 5
    assert resumed[-1] == 8
    assert recorder.time_updates == sorted(recorder.time_updates)

    assert recorder.posture_changes == ["correct", "incorrect", "correct"]
    warnings = recorder.feedback_of("warning")
    assert warnings[0].message == "Sink to 90° knees"
    assert warnings[0].timestamp == 5300
    assert recorder.audio_cues == ["warning"] * len(warnings)
    assert tracker.get_stats()["time_sec"] == 8


def test_no_pose_pauses_hold(recorder):
    tracker = ExerciseTracker(ExerciseMode.WALL_SIT, callbacks=recorder.callbacks())
    feed(tracker, wall_sit_points(90), 0, 2100)
    assert tracker.state.hold_running

    tracker.process_frame(None, 2200)
    assert not tracker.state.hold_running
    assert tracker.state.hold_accumulated_ms == 2000
    assert recorder.time_updates[-1] == 2
    assert recorder.posture_changes[-1] == "unknown"

    # the clock does not advance while nobody is in view
    tracker.process_frame(None, 9000)
    assert tracker.get_stats()["time_sec"] == 2


# ═══════════════════════════════════════════════════════════════════════════════
# PLANK
# ═══════════════════════════════════════════════════════════════════════════════

def test_plank_waits_for_a_steady_body(recorder):
    tracker = ExerciseTracker(ExerciseMode.PLANK, callbacks=recorder.callbacks())
    feed(tracker, plank_points(), 0, 300)
    # posture is already correct but only three still frames have been seen
    assert tracker.posture_status == "correct"
    assert not tracker.state.hold_running

    feed(tracker, plank_points(), 300, 1000)
    assert tracker.state.hold_start_timestamp == 300
    assert recorder.time_updates[0] == 0


def test_plank_hip_sag_pauses_hold(recorder):
    tracker = ExerciseTracker(ExerciseMode.PLANK, callbacks=recorder.callbacks())
    feed(tracker, plank_points(), 0, 2000)
    assert tracker.state.hold_running

    feed(tracker, plank_points(hip_drop=0.075), 2000, 2300)

    assert not tracker.state.hold_running
    assert tracker.state.hold_accumulated_ms == 1700
    assert tracker.posture_status == "correct"
    assert [f.message for f in recorder.feedback_of("warning")] == ["Hip sagging - lift your hips up!"]
    assert recorder.audio_cues == ["warning"]


def test_swaying_plank_earns_no_time(recorder):
    tracker = ExerciseTracker(ExerciseMode.PLANK, callbacks=recorder.callbacks())
    for i in range(20):
        # hips bob 0.03 every 100ms, i.e. 0.3 units/s
        tracker.process_frame(build_frame(plank_points(hip_drop=0.03 * (i % 2)), i * 100))

    assert tracker.posture_status == "correct"
    assert not tracker.state.hold_running
    assert recorder.time_updates == []
    assert recorder.feedback_of("warning") == []


def test_flat_body_is_not_a_plank(recorder):
    tracker = ExerciseTracker(ExerciseMode.PLANK, callbacks=recorder.callbacks())
    # hips and ankles at the same height, as when lying on the floor
    feed(tracker, pushup_points(170), 0, 2000)

    assert tracker.state.extras["steady_frames"] >= 4
    assert recorder.time_updates == []


# ═══════════════════════════════════════════════════════════════════════════════
# SIDE SUPPORT HOLDS
# ═══════════════════════════════════════════════════════════════════════════════

# wrist placed so the forearm stays at 90° to the upper arm
_ELBOW_OUT = (0.39, 0.60)
_WRIST_OUT = (0.493, 0.538)


@pytest.mark.parametrize(
    "mode, points, expected",
    [
        (ExerciseMode.SIDE_PLANK, side_plank_points(), None),
        (ExerciseMode.SIDE_PLANK, side_plank_points(wrist=(0.30, 0.72)), "Adjust your arm position!"),
        (ExerciseMode.SIDE_PLANK, side_plank_points(_ELBOW_OUT, _WRIST_OUT), "Keep elbow under shoulder!"),
        (ExerciseMode.STRAIGHT_ARM_PLANK, straight_arm_plank_points(), None),
        (ExerciseMode.STRAIGHT_ARM_PLANK, side_plank_points(), "Adjust your arm position!"),
        (
            ExerciseMode.STRAIGHT_ARM_PLANK,
            straight_arm_plank_points(elbow=(0.35, 0.55), wrist=(0.40, 0.65)),
            "Keep wrist under shoulder!",
        ),
        (ExerciseMode.REVERSE_STRAIGHT_ARM_PLANK, straight_arm_plank_points(), None),
        (ExerciseMode.KNEE_PLANK, knee_plank_points(), None),
        # knee planks allow more elbow drift and hip drop than side planks
        (ExerciseMode.KNEE_PLANK, knee_plank_points(elbow=_ELBOW_OUT, wrist=_WRIST_OUT), None),
        (ExerciseMode.KNEE_PLANK, knee_plank_points(hip_y=0.605), None),
        (ExerciseMode.KNEE_PLANK, knee_plank_points(hip_y=0.62), "Hip sagging - lift your hips up!"),
        (ExerciseMode.KNEE_PLANK, knee_plank_points(hip_y=0.48), "Hip too high - lower your hips!"),
    ],
)
def test_side_support_checks(mode, points, expected):
    check = default_profiles()[mode].secondary_check
    assert check(build_frame(points, 0)) == expected


def test_side_plank_misaligned_elbow_pauses_hold(recorder):
    tracker = ExerciseTracker(ExerciseMode.SIDE_PLANK, callbacks=recorder.callbacks())
    feed(tracker, side_plank_points(), 0, 1500)
    assert tracker.state.hold_running

    feed(tracker, side_plank_points(_ELBOW_OUT, _WRIST_OUT), 1500, 1700)

    assert not tracker.state.hold_running
    assert tracker.state.hold_accumulated_ms == 1200
    assert recorder.feedback_of("warning")[0].message == "Keep elbow under shoulder!"
