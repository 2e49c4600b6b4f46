"""
REPSENSE Tracking Service - Posture Evaluator

Rule-based posture checks per exercise family, smoothed through a
debounced flag so single-frame jitter never flips the verdict.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from . import geometry as geo
from .exercises import ExerciseMode, ModeSpec, PostureFamily
from .landmarks import Frame, JointType

logger = logging.getLogger(__name__)

VISIBLE = 0.5

STATUS_CORRECT = "correct"
STATUS_INCORRECT = "incorrect"
STATUS_UNKNOWN = "unknown"


# ═══════════════════════════════════════════════════════════════════════════════
# HYSTERESIS
# ═══════════════════════════════════════════════════════════════════════════════

class DebouncedFlag:
    """
    Boolean that only flips after N consecutive agreeing readings.

    Starts unknown (None). Becomes True after ``good_frames`` consecutive
    True readings and False after ``bad_frames`` consecutive False readings.
    """

    def __init__(self, good_frames: int = 3, bad_frames: int = 5):
        self.good_frames = good_frames
        self.bad_frames = bad_frames
        self.state: Optional[bool] = None
        self.good_count = 0
        self.bad_count = 0

    def update(self, reading: bool) -> Optional[bool]:
        if reading:
            self.good_count += 1
            self.bad_count = 0
            if self.good_count >= self.good_frames:
                self.state = True
        else:
            self.bad_count += 1
            self.good_count = 0
            if self.bad_count >= self.bad_frames:
                self.state = False
        return self.state

    @property
    def status(self) -> str:
        if self.state is None:
            return STATUS_UNKNOWN
        return STATUS_CORRECT if self.state else STATUS_INCORRECT

    def reset(self):
        self.state = None
        self.good_count = 0
        self.bad_count = 0


# ═══════════════════════════════════════════════════════════════════════════════
# VERDICT
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class PostureVerdict:
    """Result of judging one frame's posture."""
    is_valid: bool
    reason: str
    orientation: str
    feedback_message: Optional[str] = None
    status: str = STATUS_UNKNOWN
    instant_valid: bool = False
    angles: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            "is_valid": self.is_valid,
            "reason": self.reason,
            "orientation": self.orientation,
            "feedback_message": self.feedback_message,
            "status": self.status,
        }


@dataclass
class _Check:
    ok: bool
    reason: str = "posture_correct"
    feedback: Optional[str] = None


_INSUFFICIENT = _Check(False, "insufficient_visibility", "Position yourself so your full body is visible")

_SIDES = (
    ("left", JointType.LEFT_SHOULDER, JointType.LEFT_ELBOW, JointType.LEFT_HIP,
     JointType.LEFT_KNEE, JointType.LEFT_ANKLE),
    ("right", JointType.RIGHT_SHOULDER, JointType.RIGHT_ELBOW, JointType.RIGHT_HIP,
     JointType.RIGHT_KNEE, JointType.RIGHT_ANKLE),
)

SEATED_MIN_DEG = 60.0
SEATED_MAX_DEG = 150.0


def check_seated_hold(frame: Frame, angles: Optional[Dict[str, float]] = None) -> _Check:
    """
    Wall-sit geometry: knee and hip both within 60-150° on one fully visible side.

    Args:
        frame: Frame to judge
        angles: Optional dict that receives the per-side angles

    Returns:
        _Check; the first failing side decides the message
    """
    if angles is None:
        angles = {}
    seen = False
    failure = None
    for name, shoulder, _, hip, knee, ankle in _SIDES:
        if not frame.visible(shoulder, hip, knee, ankle, threshold=VISIBLE):
            continue
        seen = True
        knee_angle = geo.angle_3d(frame[hip], frame[knee], frame[ankle])
        hip_angle = geo.angle_3d(frame[shoulder], frame[hip], frame[knee])
        if knee_angle is None or hip_angle is None:
            continue
        angles[f"{name}_knee"] = round(knee_angle, 1)
        angles[f"{name}_hip"] = round(hip_angle, 1)
        knee_ok = SEATED_MIN_DEG <= knee_angle <= SEATED_MAX_DEG
        hip_ok = SEATED_MIN_DEG <= hip_angle <= SEATED_MAX_DEG
        if knee_ok and hip_ok:
            return _Check(True)
        if failure is None:
            if not knee_ok:
                failure = _Check(False, "not_seated", "Sink to 90° knees")
            else:
                failure = _Check(False, "torso_not_upright", "Keep torso upright")
    if not seen:
        return _INSUFFICIENT
    return failure or _Check(False, "not_seated", "Sink to 90° knees")


# ═══════════════════════════════════════════════════════════════════════════════
# EVALUATOR
# ═══════════════════════════════════════════════════════════════════════════════

class PostureEvaluator:
    """
    Turns landmark geometry into a posture verdict.

    Rule families:
    - Horizontal support (push-ups): shoulder-hip-ankle line
    - Plank holds: side-view straight line, front-view fallback
    - Squats/lunges: lenient, flags only back collapse and heavy lean
    - Cardio: upright torso, optionally bypassed
    - Wall sit: knee and hip angles on one visible side
    """

    HORIZONTAL_TOLERANCE_DEG = 35.0
    VERTICAL_TOLERANCE_DEG = 20.0
    KNEE_EXTENDED_MIN = 150.0

    def instant_verdict(self, frame: Frame, mode: ExerciseMode) -> Tuple[_Check, str, Dict[str, float]]:
        """
        Judge a single frame without hysteresis.

        Returns:
            (check result, orientation, computed angles)
        """
        spec = mode.spec
        angles: Dict[str, float] = {}
        orientation = "unknown"
        if frame.visible(11, 12, 23, 24, threshold=VISIBLE):
            orientation = geo.torso_orientation(geo.shoulder_center(frame), geo.hip_center(frame))

        handlers = {
            PostureFamily.HORIZONTAL_SUPPORT: self._check_horizontal_support,
            PostureFamily.PLANK: self._check_plank,
            PostureFamily.SQUAT: self._check_squat,
            PostureFamily.CARDIO: self._check_cardio,
            PostureFamily.SEATED_HOLD: self._check_seated_hold,
            PostureFamily.FLOOR: self._check_floor,
            PostureFamily.PRESENCE: self._check_presence,
        }
        check = handlers[spec.family](frame, spec, orientation, angles)
        return check, orientation, angles

    def evaluate(
        self,
        frame: Frame,
        mode: ExerciseMode,
        flag: DebouncedFlag,
        cardio_bypass: bool = False,
    ) -> PostureVerdict:
        """
        Judge a frame and push the result through the mode's hysteresis flag.

        Args:
            frame: Validated frame
            mode: Active exercise mode
            flag: Per-mode debounced flag (mutated)
            cardio_bypass: Force validity for cardio modes

        Returns:
            PostureVerdict with the smoothed validity
        """
        check, orientation, angles = self.instant_verdict(frame, mode)
        smoothed = flag.update(check.ok)
        is_valid = smoothed is True

        if cardio_bypass and mode.spec.cardio:
            is_valid = True

        if is_valid:
            reason = check.reason if check.ok else "posture_warning"
            feedback = None if check.ok else (check.feedback or "Try to maintain better form")
        else:
            reason = check.reason if not check.ok else "posture_incorrect"
            feedback = check.feedback or "Adjust your posture"

        return PostureVerdict(
            is_valid=is_valid,
            reason=reason,
            orientation=orientation,
            feedback_message=feedback,
            status=flag.status,
            instant_valid=check.ok,
            angles=angles,
        )

    # ========================================
    # Rule families
    # ========================================

    def _check_horizontal_support(self, frame: Frame, spec: ModeSpec, orientation: str, angles) -> _Check:
        if not frame.visible(11, 12, 23, 24, threshold=VISIBLE):
            return _INSUFFICIENT

        shoulders = geo.shoulder_center(frame)
        hips = geo.hip_center(frame)
        if geo.is_near_vertical(shoulders, hips, self.VERTICAL_TOLERANCE_DEG):
            return _Check(False, "standing_position", "Get into push-up position")

        end_joints = (25, 26) if spec.line_end == "knee" else (27, 28)
        if frame.visible(*end_joints, threshold=VISIBLE):
            end = geo.midpoint(frame[end_joints[0]], frame[end_joints[1]])
            cos = geo.cosine_similarity(geo.vector(hips, shoulders), geo.vector(hips, end))
            if cos is None:
                return _INSUFFICIENT
            angles["straightness"] = round(abs(cos), 3)
            if abs(cos) >= spec.straightness_min:
                return _Check(True)
            return _Check(False, "body_not_straight", "Keep your body in a straight line")

        if geo.is_near_horizontal(shoulders, hips, self.HORIZONTAL_TOLERANCE_DEG):
            return _Check(True)
        return _Check(False, "body_not_horizontal", "Align your body horizontally")

    def _check_plank(self, frame: Frame, spec: ModeSpec, orientation: str, angles) -> _Check:
        use_knee = spec.line_end == "knee"
        side = self._best_side(frame, use_knee)

        if side is not None:
            _, shoulder, _, hip, knee, ankle = side
            end = knee if use_knee else ankle
            line = geo.angle(frame[shoulder], frame[hip], frame[end])
            angles["body_line"] = round(line, 1)
            if line < spec.straight_line_min_deg:
                return _Check(False, "body_not_straight", "Keep your body in a straight line")
            return self._check_knees(frame, spec, angles)

        if not frame.visible(11, 12, 23, 24, threshold=VISIBLE):
            return _INSUFFICIENT
        end_joints = (25, 26) if use_knee else (27, 28)
        if not frame.visible(*end_joints, threshold=VISIBLE):
            return _INSUFFICIENT

        shoulders = geo.shoulder_center(frame)
        hips = geo.hip_center(frame)
        end = geo.midpoint(frame[end_joints[0]], frame[end_joints[1]])
        cos = geo.cosine_similarity(geo.vector(hips, shoulders), geo.vector(hips, end))
        if cos is None or abs(cos) < spec.straightness_min:
            return _Check(False, "body_not_straight", "Keep your body in a straight line")
        if not geo.is_near_horizontal(shoulders, hips, self.HORIZONTAL_TOLERANCE_DEG):
            return _Check(False, "body_not_horizontal", "Align your body horizontally")
        return self._check_knees(frame, spec, angles)

    def _check_knees(self, frame: Frame, spec: ModeSpec, angles) -> _Check:
        if not spec.require_straight_knees or not frame.visible(27, 28, threshold=VISIBLE):
            return _Check(True)
        left = geo.angle(frame[23], frame[25], frame[27])
        right = geo.angle(frame[24], frame[26], frame[28])
        angles["left_knee"] = round(left, 1)
        angles["right_knee"] = round(right, 1)
        if left < self.KNEE_EXTENDED_MIN or right < self.KNEE_EXTENDED_MIN:
            return _Check(False, "knees_bent", "Keep your knees straight")
        return _Check(True)

    def _check_squat(self, frame: Frame, spec: ModeSpec, orientation: str, angles) -> _Check:
        if not frame.visible(11, 12, 23, 24, 25, 26, threshold=VISIBLE):
            return _INSUFFICIENT

        hip_angle = (
            geo.angle(frame[11], frame[23], frame[25]) + geo.angle(frame[12], frame[24], frame[26])
        ) / 2
        tilt = geo.torso_tilt_deg(geo.shoulder_center(frame), geo.hip_center(frame))
        angles["hip"] = round(hip_angle, 1)
        angles["torso_tilt"] = round(tilt, 1)

        if hip_angle < 60 and tilt > 70:
            return _Check(False, "back_collapsed", "Keep your back straight - avoid rounding")

        # Below parallel is a normal descent
        if geo.hip_center(frame).y > geo.knee_center(frame).y:
            return _Check(True)

        if hip_angle < 120:
            return _Check(False, "hip_angle_low", "Keep your chest up")
        if tilt > 60:
            return _Check(False, "excessive_forward_lean", "Avoid leaning too far forward")
        return _Check(True)

    def _check_cardio(self, frame: Frame, spec: ModeSpec, orientation: str, angles) -> _Check:
        if orientation == "unknown":
            return _INSUFFICIENT
        if orientation == "vertical":
            return _Check(True)
        return _Check(False, "not_upright", "Stand upright")

    def _check_seated_hold(self, frame: Frame, spec: ModeSpec, orientation: str, angles) -> _Check:
        return check_seated_hold(frame, angles)

    def _check_floor(self, frame: Frame, spec: ModeSpec, orientation: str, angles) -> _Check:
        if frame.visible(11, 12, 23, 24, 25, 26, threshold=VISIBLE):
            return _Check(True)
        return _INSUFFICIENT

    def _check_presence(self, frame: Frame, spec: ModeSpec, orientation: str, angles) -> _Check:
        if frame.visible(11, 12, 23, 24, threshold=VISIBLE):
            return _Check(True)
        return _INSUFFICIENT

    @staticmethod
    def _best_side(frame: Frame, use_knee: bool):
        """The more visible side whose shoulder, hip and line end are all visible."""
        candidates = []
        for side in _SIDES:
            _, shoulder, _, hip, knee, ankle = side
            end = knee if use_knee else ankle
            if frame.visible(shoulder, hip, end, threshold=VISIBLE):
                score = frame[shoulder].visibility + frame[hip].visibility + frame[end].visibility
                candidates.append((score, side))
        if not candidates:
            return None
        return max(candidates, key=lambda c: c[0])[1]
