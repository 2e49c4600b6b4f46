"""
Tests for the landmark store and validator.
"""

import pytest

from tracking_service.models import (
    Frame,
    InvalidFrameError,
    Landmark,
    LandmarkHistory,
    LandmarkValidator,
)

from poses import build_frame, standing_points

CRITICAL = (11, 12, 23, 24)


# ═══════════════════════════════════════════════════════════════════════════════
# FRAME CONSTRUCTION
# ═══════════════════════════════════════════════════════════════════════════════

def test_frame_requires_33_landmarks():
    with pytest.raises(InvalidFrameError):
        Frame.from_list([{"x": 0.5, "y": 0.5}] * 10, 0)


def test_frame_rejects_non_finite_coordinates():
    points = [{"x": 0.5, "y": 0.5, "visibility": 0.9}] * 33
    points[11] = {"x": float("nan"), "y": 0.5}
    with pytest.raises(InvalidFrameError):
        Frame.from_list(points, 0)


def test_frame_accepts_dicts_tuples_and_objects():
    class Point:
        x, y, z, visibility = 0.1, 0.2, 0.0, 0.7

    points = [{"x": 0.5, "y": 0.5}] * 31 + [(0.3, 0.4, 0.0, 0.8), Point()]
    frame = Frame.from_list(points, 12.5)

    assert len(frame) == 33
    assert frame[31].visibility == pytest.approx(0.8)
    assert frame[32].x == pytest.approx(0.1)
    assert frame.timestamp_ms == 12.5


def test_visibility_is_clamped():
    points = [{"x": 0.5, "y": 0.5, "visibility": 1.7}] * 33
    frame = Frame.from_list(points, 0)
    assert frame[0].visibility == 1.0


def test_payload_requires_timestamp():
    with pytest.raises(InvalidFrameError):
        Frame.from_payload({"landmarks": [{"x": 0.5, "y": 0.5}] * 33})


def test_frame_from_pose_result():
    class PoseLandmark:
        def __init__(self, i):
            self.x, self.y, self.z, self.visibility = i / 100, 0.5, -0.1, 0.9

    class PoseLandmarkList:
        landmark = [PoseLandmark(i) for i in range(33)]

    frame = Frame.from_pose_landmarks(PoseLandmarkList(), 40)
    assert frame[11].x == pytest.approx(0.11)
    assert frame[11].z == pytest.approx(-0.1)
    assert frame.timestamp_ms == 40

    # a bare list of landmark objects works too
    assert Frame.from_pose_landmarks(PoseLandmarkList.landmark, 41)[32].x == pytest.approx(0.32)

    with pytest.raises(InvalidFrameError):
        Frame.from_pose_landmarks(None, 42)


# ═══════════════════════════════════════════════════════════════════════════════
# HISTORY
# ═══════════════════════════════════════════════════════════════════════════════

def test_history_smooths_with_ema():
    history = LandmarkHistory(capacity=5, alpha=0.3)
    history.update(11, Landmark(x=0.0, y=0.0), 0)
    entry = history.update(11, Landmark(x=1.0, y=1.0), 33)

    assert entry.x == pytest.approx(0.3)
    assert entry.y == pytest.approx(0.3)


def test_history_is_bounded():
    history = LandmarkHistory(capacity=5)
    for i in range(8):
        history.update(11, Landmark(x=0.5, y=0.5), i * 33)

    entries = history.entries(11)
    assert len(entries) == 5
    assert entries[0].timestamp_ms == 3 * 33


# ═══════════════════════════════════════════════════════════════════════════════
# VALIDATOR
# ═══════════════════════════════════════════════════════════════════════════════

def test_confident_joints_pass_through_unchanged():
    validator = LandmarkValidator()
    validator.validate(build_frame(standing_points(), 0), CRITICAL)

    points = standing_points()
    points[11] = (0.40, 0.31)
    frame = build_frame(points, 33)
    validated = validator.validate(frame, CRITICAL)

    # raw coordinates go downstream; only history is smoothed
    assert validated[11].x == pytest.approx(0.40)
    assert validated[11].y == pytest.approx(0.31)
    assert validator.history.latest(11).x == pytest.approx(0.3 * 0.40 + 0.7 * 0.42)


def test_unreliable_joint_is_backfilled_from_history():
    validator = LandmarkValidator(min_visibility=0.35, backfill_visibility=0.3)
    validator.validate(build_frame(standing_points(), 0), CRITICAL)

    frame = build_frame(standing_points(), 33, overrides={11: 0.1})
    validated = validator.validate(frame, CRITICAL)

    assert validated is not None
    assert validated[11].backfilled is True
    assert validated[11].visibility == pytest.approx(0.3)
    assert validated[11].x == pytest.approx(0.42)
    assert frame[11].visibility == pytest.approx(0.1)


def test_unreliable_joint_without_history_rejects_frame():
    validator = LandmarkValidator()
    frame = build_frame(standing_points(), 0, overrides={12: 0.1})

    assert validator.validate(frame, CRITICAL) is None
    # confident joints of a rejected frame are not written either
    assert not validator.history.has(11)
    assert not validator.history.has(23)


def test_non_critical_joints_are_ignored():
    validator = LandmarkValidator()
    frame = build_frame(standing_points(), 0, overrides={0: 0.0, 27: 0.0})
    assert validator.validate(frame, CRITICAL) is frame


def test_reset_clears_history():
    validator = LandmarkValidator()
    validator.validate(build_frame(standing_points(), 0), CRITICAL)
    validator.reset()
    assert validator.validate(build_frame(standing_points(), 33, overrides={11: 0.1}), CRITICAL) is None
