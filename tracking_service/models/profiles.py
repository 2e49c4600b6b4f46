"""
REPSENSE Tracking Service - Exercise Profiles

Geometric predicates and thresholds for every exercise, expressed as
RepProfile / HoldProfile values consumed by the shared state machine.
All thresholds are in normalized image units or degrees.
"""

from typing import Dict, Optional, Tuple, Union

from . import geometry as geo
from .exercises import ExerciseMode
from .landmarks import Frame
from .posture import check_seated_hold
from .rep_counter import CounterState, HoldProfile, Phase, RepContext, RepProfile

VISIBLE = 0.5

Profile = Union[RepProfile, HoldProfile]


def _avg(*values: float) -> float:
    return sum(values) / len(values)


def _shoulder_y(frame: Frame) -> float:
    return _avg(frame[11].y, frame[12].y)


def _hip_y(frame: Frame) -> float:
    return _avg(frame[23].y, frame[24].y)


def _knee_y(frame: Frame) -> float:
    return _avg(frame[25].y, frame[26].y)


def _ankle_y(frame: Frame) -> float:
    return _avg(frame[27].y, frame[28].y)


def is_standing(frame: Frame) -> bool:
    """Upright: shoulders above hips, hips above knees, torso within 30° of vertical."""
    if _shoulder_y(frame) >= _hip_y(frame) - 0.05:
        return False
    if _knee_y(frame) - _hip_y(frame) < 0.01:
        return False
    return geo.torso_tilt_deg(geo.shoulder_center(frame), geo.hip_center(frame)) <= 30.0


def _hands_on_ground(frame: Frame) -> bool:
    if not frame.visible(15, 16, 27, 28, threshold=VISIBLE):
        return False
    return _avg(frame[15].y, frame[16].y) >= _ankle_y(frame) - 0.07


# ═══════════════════════════════════════════════════════════════════════════════
# PUSH-UP FAMILY
# ═══════════════════════════════════════════════════════════════════════════════

PUSHUP_DOWN_ELBOW = 110.0
PUSHUP_UP_ELBOW = 140.0
PUSHUP_SHOULDER_DROP = 0.06
PUSHUP_BASELINE_BAND = 0.12
PUSHUP_FLOOR_MARGIN = 0.05


def _elbow_angle(frame: Frame) -> float:
    return _avg(
        geo.angle(frame[11], frame[13], frame[15]),
        geo.angle(frame[12], frame[14], frame[16]),
    )


def _pushup_prepare(frame: Frame, ctx: RepContext) -> Tuple[bool, Optional[str]]:
    """Track the resting shoulder height while the body is level."""
    state = ctx.state
    shoulder_y = _shoulder_y(frame)
    if state.baseline_value is None:
        state.baseline_value = shoulder_y
    elif abs(shoulder_y - _hip_y(frame)) < PUSHUP_BASELINE_BAND:
        state.baseline_value = 0.95 * state.baseline_value + 0.05 * shoulder_y
    return True, None


def _pushup_down(frame: Frame, ctx: RepContext) -> bool:
    if _elbow_angle(frame) <= PUSHUP_DOWN_ELBOW:
        return True
    # shoulders at the bottom edge of the image
    if _shoulder_y(frame) >= 1.0 - PUSHUP_FLOOR_MARGIN:
        return True
    baseline = ctx.state.baseline_value
    return baseline is not None and _shoulder_y(frame) - baseline >= PUSHUP_SHOULDER_DROP


def _pushup_up(frame: Frame, ctx: RepContext) -> bool:
    return _elbow_angle(frame) >= PUSHUP_UP_ELBOW and not _pushup_down(frame, ctx)


def _support_start_pose(end_joints: Tuple[int, int]):
    def start_pose(frame: Frame) -> bool:
        if not frame.visible(11, 12, 23, 24, *end_joints, threshold=VISIBLE):
            return False
        if abs(_shoulder_y(frame) - _hip_y(frame)) > 0.08:
            return False
        end_y = _avg(frame[end_joints[0]].y, frame[end_joints[1]].y)
        return end_y >= _hip_y(frame) - 0.02
    return start_pose


def _pushup_profile(label: str, end_joints: Tuple[int, int] = (27, 28)) -> RepProfile:
    return RepProfile(
        label=label,
        is_down=_pushup_down,
        is_up=_pushup_up,
        start_pose=_support_start_pose(end_joints),
        count_on=Phase.DOWN,
        initial_phase=Phase.UP,
        min_rep_ms=400.0,
        prepare=_pushup_prepare,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# SQUATS AND LUNGES
# ═══════════════════════════════════════════════════════════════════════════════

def _squat_prepare(frame: Frame, ctx: RepContext) -> Tuple[bool, Optional[str]]:
    torso_dy = abs(_shoulder_y(frame) - _hip_y(frame))
    head_hip_dy = abs(frame[0].y - _hip_y(frame))
    if torso_dy <= 0.08 and head_hip_dy <= 0.10:
        return False, "Stand up to start squatting"
    if _hands_on_ground(frame):
        return False, "Keep your hands off the ground"
    return True, None


def _squat_down(frame: Frame, ctx: RepContext) -> bool:
    return _hip_y(frame) - _knee_y(frame) > 0.01


def _squat_up(frame: Frame, ctx: RepContext) -> bool:
    return _hip_y(frame) - _knee_y(frame) <= -0.01


def _torso_upright(frame: Frame, ctx: RepContext) -> bool:
    return geo.torso_tilt_deg(geo.shoulder_center(frame), geo.hip_center(frame)) <= 25.0


def _lunge_knees(frame: Frame) -> Tuple[float, float, int]:
    """(front knee angle, back knee angle, front side hip index); front is the more bent knee."""
    left = geo.angle(frame[23], frame[25], frame[27])
    right = geo.angle(frame[24], frame[26], frame[28])
    if left < right:
        return left, right, 23
    return right, left, 24


def _lunge_prepare(frame: Frame, ctx: RepContext) -> Tuple[bool, Optional[str]]:
    if _hands_on_ground(frame):
        return False, "Keep your hands off the ground"
    return True, None


def _lunge_down(frame: Frame, ctx: RepContext) -> bool:
    if abs(frame[25].y - frame[26].y) <= 0.06:
        return False
    front, back, hip = _lunge_knees(frame)
    ankle = 27 if hip == 23 else 28
    return back < 120.0 and front < 100.0 and abs(frame[hip].x - frame[ankle].x) < 0.08


def _lunge_up(frame: Frame, ctx: RepContext) -> bool:
    front, back, _ = _lunge_knees(frame)
    return front >= 150.0 and back >= 150.0 and max(front, back) >= 160.0


# ═══════════════════════════════════════════════════════════════════════════════
# SIT-UPS
# ═══════════════════════════════════════════════════════════════════════════════

SITUP_BASELINE_FRAMES = 30
_UP_VECTOR = (0.0, -1.0)


def _torso_up_cos(frame: Frame) -> float:
    cos = geo.cosine_similarity(
        geo.vector(geo.hip_center(frame), geo.shoulder_center(frame)), _UP_VECTOR
    )
    return 0.0 if cos is None else cos


def _situp_prepare(frame: Frame, ctx: RepContext) -> Tuple[bool, Optional[str]]:
    """Average lying-down distances over the first frames before counting."""
    state = ctx.state
    if state.baseline_samples >= SITUP_BASELINE_FRAMES:
        return True, None

    knees = geo.knee_center(frame)
    shoulder_knee = geo.distance(geo.shoulder_center(frame), knees)
    head_knee = geo.distance(frame[0], knees)
    n = state.baseline_samples
    state.baseline_value = ((state.baseline_value or 0.0) * n + shoulder_knee) / (n + 1)
    state.extras["head_knee"] = (state.extras.get("head_knee", 0.0) * n + head_knee) / (n + 1)
    state.baseline_samples = n + 1
    return False, None


def _situp_ratios(frame: Frame, ctx: RepContext) -> Tuple[float, float]:
    knees = geo.knee_center(frame)
    base = ctx.state.baseline_value or 1.0
    head_base = ctx.state.extras.get("head_knee") or 1.0
    shoulder_ratio = geo.distance(geo.shoulder_center(frame), knees) / base
    head_ratio = geo.distance(frame[0], knees) / head_base
    return shoulder_ratio, head_ratio


def _situp_down(frame: Frame, ctx: RepContext) -> bool:
    shoulder_ratio, head_ratio = _situp_ratios(frame, ctx)
    votes = sum((shoulder_ratio > 0.88, head_ratio > 0.90, _torso_up_cos(frame) < 0.35))
    hip_angle = _avg(
        geo.angle(frame[11], frame[23], frame[25]),
        geo.angle(frame[12], frame[24], frame[26]),
    )
    return votes >= 1 and hip_angle <= 160.0


def _situp_up(frame: Frame, ctx: RepContext) -> bool:
    shoulder_ratio, head_ratio = _situp_ratios(frame, ctx)
    votes = sum((shoulder_ratio < 0.62, head_ratio < 0.55, _torso_up_cos(frame) > 0.70))
    return votes >= 2


def _lying_start_pose(frame: Frame) -> bool:
    return _torso_up_cos(frame) < 0.35


# ═══════════════════════════════════════════════════════════════════════════════
# CARDIO
# ═══════════════════════════════════════════════════════════════════════════════

def _hand_y(frame: Frame, index: int, wrist: int) -> float:
    return frame[index].y if frame[index].visibility > VISIBLE else frame[wrist].y


def _burpee_up(frame: Frame, ctx: RepContext) -> bool:
    nose_y = frame[0].y
    return _hand_y(frame, 19, 15) < nose_y and _hand_y(frame, 20, 16) < nose_y


def _burpee_down(frame: Frame, ctx: RepContext) -> bool:
    hands = _avg(_hand_y(frame, 19, 15), _hand_y(frame, 20, 16))
    return hands > _shoulder_y(frame)


def _shoulder_width(frame: Frame, ctx: RepContext) -> float:
    calibration = ctx.calibration
    if calibration is not None and not calibration.is_default:
        return calibration.shoulder_width
    return abs(frame[11].x - frame[12].x)


def _ankle_spread(frame: Frame, width: float) -> float:
    if not frame.visible(27, 28, threshold=VISIBLE):
        # Neither open nor closed
        return width * 1.5
    return abs(frame[27].x - frame[28].x)


def _arms_overhead(frame: Frame) -> bool:
    left = frame[15].y < frame[11].y
    right = frame[16].y < frame[12].y
    if frame[15].visibility < VISIBLE:
        left = right
    elif frame[16].visibility < VISIBLE:
        right = left
    return left and right


def _jack_open(frame: Frame, ctx: RepContext) -> bool:
    width = _shoulder_width(frame, ctx)
    return _arms_overhead(frame) and _ankle_spread(frame, width) > 1.5 * width


def _jack_closed(frame: Frame, ctx: RepContext) -> bool:
    width = _shoulder_width(frame, ctx)
    wrists_low = _avg(frame[15].y, frame[16].y) > _hip_y(frame)
    return wrists_low and _ankle_spread(frame, width) < 0.9 * width


_LEGS = {
    "left": (11, 23, 25, 27),
    "right": (12, 24, 26, 28),
}


def _leg_angles(frame: Frame, limb: str) -> Tuple[float, float, float]:
    """(knee angle, hip angle, knee height relative to torso length)."""
    shoulder, hip, knee, ankle = _LEGS[limb]
    knee_angle = geo.angle(frame[hip], frame[knee], frame[ankle])
    hip_angle = geo.angle(frame[shoulder], frame[hip], frame[knee])
    torso = geo.distance(geo.shoulder_center(frame), geo.hip_center(frame)) or 1.0
    height = (frame[hip].y - frame[knee].y) / torso
    return knee_angle, hip_angle, height


def _knee_up(frame: Frame, ctx: RepContext) -> bool:
    if _shoulder_y(frame) >= _hip_y(frame):
        return False
    knee_angle, hip_angle, height = _leg_angles(frame, ctx.limb)
    return (knee_angle <= 110.0 or height >= 0.08) and hip_angle <= 100.0


def _knee_down(frame: Frame, ctx: RepContext) -> bool:
    knee_angle, hip_angle, _ = _leg_angles(frame, ctx.limb)
    return knee_angle >= 150.0 and hip_angle >= 160.0


# ═══════════════════════════════════════════════════════════════════════════════
# HOLDS
# ═══════════════════════════════════════════════════════════════════════════════

_SUPPORT_SIDES = (
    (11, 13, 15, 23, 25, 27),
    (12, 14, 16, 24, 26, 28),
)


def _support_side(frame: Frame, end_is_knee: bool):
    """The lower (weight-bearing) side whose shoulder, elbow, hip and line end are visible."""
    usable = []
    for side in _SUPPORT_SIDES:
        shoulder, elbow, _, hip, knee, ankle = side
        end = knee if end_is_knee else ankle
        if frame.visible(shoulder, elbow, hip, end, threshold=VISIBLE):
            usable.append(side)
    if not usable:
        return None
    return max(usable, key=lambda s: frame[s[1]].y)


def _hip_line_message(frame: Frame, shoulder: int, hip: int, end: int, tolerance: float) -> Optional[str]:
    expected = _avg(frame[shoulder].y, frame[end].y)
    offset = frame[hip].y - expected
    if offset > tolerance:
        return "Hip sagging - lift your hips up!"
    if offset < -tolerance:
        return "Hip too high - lower your hips!"
    return None


def _plank_check(frame: Frame) -> Optional[str]:
    side = _support_side(frame, end_is_knee=False)
    if side is None:
        return None
    shoulder, _, _, hip, _, ankle = side
    return _hip_line_message(frame, shoulder, hip, ankle, 0.05)


PLANK_MAX_MOTION_PER_SEC = 0.25
PLANK_STEADY_FRAMES = 4
PLANK_MIN_HIP_ANKLE_DY = 0.06


def _plank_steady(frame: Frame, state: CounterState) -> bool:
    """
    Hips, shoulders and ankles moving at most 0.25 units/s for 4 frames in a
    row, with the hips clear of the ankle line.
    """
    extras = state.extras
    now = frame.timestamp_ms
    hip_y = _hip_y(frame)
    ankle_y = _ankle_y(frame) if frame.visible(27, 28, threshold=VISIBLE) else None
    dt = max(1.0, now - extras.get("steady_last_ms", now))

    moving = False
    for key, value in (("steady_hip_y", hip_y), ("steady_shoulder_y", _shoulder_y(frame)),
                       ("steady_ankle_y", ankle_y)):
        if value is None:
            continue
        last = extras.get(key)
        if last is not None and abs(value - last) * 1000.0 / dt > PLANK_MAX_MOTION_PER_SEC:
            moving = True
        extras[key] = value
    extras["steady_last_ms"] = now
    extras["steady_frames"] = 0 if moving else extras.get("steady_frames", 0) + 1

    if ankle_y is not None and abs(hip_y - ankle_y) < PLANK_MIN_HIP_ANKLE_DY:
        return False
    return extras["steady_frames"] >= PLANK_STEADY_FRAMES


def _wall_sit_check(frame: Frame) -> Optional[str]:
    check = check_seated_hold(frame)
    return None if check.ok else check.feedback


def _side_support_check(
    arm_range: Tuple[float, float],
    alignment_joint: str,
    alignment_tolerance: float,
    hip_tolerance: float,
    end_is_knee: bool = False,
):
    """Side-plank style check: supporting arm, its alignment, and hip line."""
    def check(frame: Frame) -> Optional[str]:
        side = _support_side(frame, end_is_knee)
        if side is None:
            return None
        shoulder, elbow, wrist, hip, knee, ankle = side

        if frame[wrist].visibility > VISIBLE:
            arm = geo.angle(frame[shoulder], frame[elbow], frame[wrist])
            if not arm_range[0] <= arm <= arm_range[1]:
                return "Adjust your arm position!"

        anchor = elbow if alignment_joint == "elbow" else wrist
        if frame[anchor].visibility > VISIBLE:
            if abs(frame[anchor].x - frame[shoulder].x) > alignment_tolerance:
                if anchor == elbow:
                    return "Keep elbow under shoulder!"
                return "Keep wrist under shoulder!"

        end = knee if end_is_knee else ankle
        return _hip_line_message(frame, shoulder, hip, end, hip_tolerance)
    return check


# ═══════════════════════════════════════════════════════════════════════════════
# REGISTRY
# ═══════════════════════════════════════════════════════════════════════════════

def default_profiles() -> Dict[ExerciseMode, Profile]:
    """Build the profile for every supported mode."""
    # count_on differs per mode: push-ups, lunges and jumping jacks count on
    # reaching DOWN; squats, sit-ups, burpees and high knees count on UP.
    return {
        ExerciseMode.PUSHUPS: _pushup_profile("Push-up"),
        ExerciseMode.WIDE_PUSHUPS: _pushup_profile("Wide Push-up"),
        ExerciseMode.NARROW_PUSHUPS: _pushup_profile("Narrow Push-up"),
        ExerciseMode.DIAMOND_PUSHUPS: _pushup_profile("Diamond Push-up"),
        ExerciseMode.KNEE_PUSHUPS: _pushup_profile("Knee Push-up", end_joints=(25, 26)),
        ExerciseMode.SQUATS: RepProfile(
            label="Squat",
            is_down=_squat_down,
            is_up=_squat_up,
            start_pose=is_standing,
            count_on=Phase.UP,
            initial_phase=Phase.UP,
            min_rep_ms=550.0,
            count_gate=_torso_upright,
            prepare=_squat_prepare,
        ),
        ExerciseMode.LUNGES: RepProfile(
            label="Lunge",
            is_down=_lunge_down,
            is_up=_lunge_up,
            start_pose=is_standing,
            count_on=Phase.DOWN,
            initial_phase=Phase.UP,
            min_rep_ms=500.0,
            prepare=_lunge_prepare,
        ),
        ExerciseMode.SITUPS: RepProfile(
            label="Sit-up",
            is_down=_situp_down,
            is_up=_situp_up,
            start_pose=_lying_start_pose,
            count_on=Phase.UP,
            initial_phase=Phase.DOWN,
            min_rep_ms=600.0,
            prepare=_situp_prepare,
        ),
        ExerciseMode.BURPEES: RepProfile(
            label="Burpee",
            is_down=_burpee_down,
            is_up=_burpee_up,
            start_pose=is_standing,
            count_on=Phase.UP,
            initial_phase=Phase.DOWN,
            min_rep_ms=800.0,
            message=lambda n: f"Burpee {n} - Hands above head!",
        ),
        ExerciseMode.JUMPING_JACKS: RepProfile(
            label="Jumping Jack",
            is_down=_jack_closed,
            is_up=_jack_open,
            start_pose=is_standing,
            count_on=Phase.DOWN,
            initial_phase=Phase.DOWN,
            min_rep_ms=500.0,
            up_hold_ms=200.0,
        ),
        ExerciseMode.HIGH_KNEES: RepProfile(
            label="High Knees",
            is_down=_knee_down,
            is_up=_knee_up,
            start_pose=is_standing,
            count_on=Phase.UP,
            initial_phase=Phase.DOWN,
            min_rep_ms=200.0,
            limbs=("left", "right"),
        ),
        ExerciseMode.PLANK: HoldProfile("Plank", _plank_check, steady_gate=_plank_steady),
        ExerciseMode.SIDE_PLANK: HoldProfile(
            "Side Plank",
            _side_support_check((80.0, 100.0), "elbow", 0.08, 0.05),
            steady_gate=_plank_steady,
        ),
        ExerciseMode.STRAIGHT_ARM_PLANK: HoldProfile(
            "Straight-Arm Plank", _side_support_check((150.0, 180.0), "wrist", 0.08, 0.05)
        ),
        ExerciseMode.REVERSE_STRAIGHT_ARM_PLANK: HoldProfile(
            "Reverse Straight-Arm Plank", _side_support_check((150.0, 180.0), "wrist", 0.08, 0.05)
        ),
        ExerciseMode.KNEE_PLANK: HoldProfile(
            "Knee Plank", _side_support_check((80.0, 100.0), "elbow", 0.10, 0.06, end_is_knee=True)
        ),
        ExerciseMode.WALL_SIT: HoldProfile("Wall Sit", _wall_sit_check),
    }
