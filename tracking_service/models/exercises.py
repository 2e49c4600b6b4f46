"""
REPSENSE Tracking Service - Exercise Modes

The closed set of supported exercises and the static per-mode settings
(critical joints, posture rule family, hysteresis, labels).
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Tuple

from .errors import UnknownExerciseModeError


class ExerciseMode(Enum):
    """Supported exercise variants."""
    # Rep-based, push-up family
    PUSHUPS = "pushups"
    WIDE_PUSHUPS = "wide_pushups"
    NARROW_PUSHUPS = "narrow_pushups"
    DIAMOND_PUSHUPS = "diamond_pushups"
    KNEE_PUSHUPS = "knee_pushups"
    # Rep-based
    SQUATS = "squats"
    LUNGES = "lunges"
    SITUPS = "situps"
    BURPEES = "burpees"
    JUMPING_JACKS = "jumping_jacks"
    HIGH_KNEES = "high_knees"
    # Time-based
    PLANK = "plank"
    SIDE_PLANK = "side_plank"
    STRAIGHT_ARM_PLANK = "straight_arm_plank"
    REVERSE_STRAIGHT_ARM_PLANK = "reverse_straight_arm_plank"
    KNEE_PLANK = "knee_plank"
    WALL_SIT = "wall_sit"

    @classmethod
    def parse(cls, value) -> "ExerciseMode":
        """
        Resolve a mode from free text such as "Jumping-Jacks" or "pushup".

        Raises:
            UnknownExerciseModeError: If nothing matches
        """
        if isinstance(value, cls):
            return value
        key = re.sub(r"[^a-z0-9]", "", str(value).lower())
        mode = _MODE_LOOKUP.get(key)
        if mode is None:
            raise UnknownExerciseModeError(
                f"Unknown exercise mode '{value}'. Valid modes: {[m.value for m in cls]}"
            )
        return mode

    @property
    def spec(self) -> "ModeSpec":
        return MODE_SPECS[self]


class ModeKind(Enum):
    REPS = "reps"
    HOLD = "hold"


class PostureFamily(Enum):
    """Which posture rule set judges a mode."""
    HORIZONTAL_SUPPORT = "horizontal_support"
    PLANK = "plank"
    SQUAT = "squat"
    CARDIO = "cardio"
    SEATED_HOLD = "seated_hold"
    FLOOR = "floor"
    PRESENCE = "presence"


@dataclass(frozen=True)
class ModeSpec:
    """Static settings for one exercise mode."""
    kind: ModeKind
    family: PostureFamily
    critical: FrozenSet[int]
    label: str
    good_frames: int = 3
    bad_frames: int = 5
    cardio: bool = False
    requires_calibration: bool = False
    # Horizontal-support / plank line checks
    straightness_min: float = 0.82
    line_end: str = "ankle"
    straight_line_min_deg: float = 155.0
    require_straight_knees: bool = True


def _joints(*ranges: Tuple[int, int]) -> FrozenSet[int]:
    out = set()
    for start, end in ranges:
        out.update(range(start, end + 1))
    return frozenset(out)


PUSHUP_CRITICAL = _joints((11, 16), (23, 26))
LOWER_BODY_CRITICAL = _joints((11, 12), (23, 28))
PLANK_CRITICAL = _joints((11, 16), (23, 28))


def _pushup_spec(label: str, **overrides) -> ModeSpec:
    return ModeSpec(
        kind=ModeKind.REPS,
        family=PostureFamily.HORIZONTAL_SUPPORT,
        critical=PUSHUP_CRITICAL,
        label=label,
        good_frames=3,
        bad_frames=5,
        **overrides,
    )


def _side_plank_spec(label: str, critical: FrozenSet[int], **overrides) -> ModeSpec:
    return ModeSpec(
        kind=ModeKind.HOLD,
        family=PostureFamily.PLANK,
        critical=critical,
        label=label,
        good_frames=3,
        bad_frames=4,
        **overrides,
    )


MODE_SPECS: Dict[ExerciseMode, ModeSpec] = {
    ExerciseMode.PUSHUPS: _pushup_spec("Push-up"),
    ExerciseMode.WIDE_PUSHUPS: _pushup_spec("Wide Push-up"),
    ExerciseMode.NARROW_PUSHUPS: _pushup_spec("Narrow Push-up"),
    ExerciseMode.DIAMOND_PUSHUPS: _pushup_spec("Diamond Push-up"),
    ExerciseMode.KNEE_PUSHUPS: _pushup_spec("Knee Push-up", straightness_min=0.85, line_end="knee"),
    ExerciseMode.SQUATS: ModeSpec(
        kind=ModeKind.REPS,
        family=PostureFamily.SQUAT,
        critical=LOWER_BODY_CRITICAL,
        label="Squat",
        good_frames=2,
        bad_frames=4,
    ),
    ExerciseMode.LUNGES: ModeSpec(
        kind=ModeKind.REPS,
        family=PostureFamily.SQUAT,
        critical=LOWER_BODY_CRITICAL,
        label="Lunge",
        good_frames=2,
        bad_frames=4,
    ),
    ExerciseMode.SITUPS: ModeSpec(
        kind=ModeKind.REPS,
        family=PostureFamily.FLOOR,
        critical=_joints((11, 12), (23, 26)),
        label="Sit-up",
        good_frames=2,
        bad_frames=4,
    ),
    ExerciseMode.BURPEES: ModeSpec(
        kind=ModeKind.REPS,
        family=PostureFamily.PRESENCE,
        critical=frozenset({0, 11, 12, 15, 16, 23, 24}),
        label="Burpee",
        good_frames=2,
        bad_frames=4,
    ),
    ExerciseMode.JUMPING_JACKS: ModeSpec(
        kind=ModeKind.REPS,
        family=PostureFamily.CARDIO,
        critical=frozenset({11, 12, 15, 16, 23, 24, 27, 28}),
        label="Jumping Jack",
        good_frames=1,
        bad_frames=3,
        cardio=True,
        requires_calibration=True,
    ),
    ExerciseMode.HIGH_KNEES: ModeSpec(
        kind=ModeKind.REPS,
        family=PostureFamily.CARDIO,
        critical=_joints((23, 28)),
        label="High Knees",
        good_frames=1,
        bad_frames=3,
        cardio=True,
    ),
    ExerciseMode.PLANK: ModeSpec(
        kind=ModeKind.HOLD,
        family=PostureFamily.PLANK,
        critical=PLANK_CRITICAL,
        label="Plank",
        good_frames=3,
        bad_frames=5,
        straightness_min=0.90,
    ),
    ExerciseMode.SIDE_PLANK: _side_plank_spec(
        "Side Plank", _joints((11, 14), (23, 28)), straightness_min=0.90
    ),
    ExerciseMode.STRAIGHT_ARM_PLANK: _side_plank_spec(
        "Straight-Arm Plank", PLANK_CRITICAL, straightness_min=0.90
    ),
    ExerciseMode.REVERSE_STRAIGHT_ARM_PLANK: _side_plank_spec(
        "Reverse Straight-Arm Plank", PLANK_CRITICAL, straightness_min=0.90
    ),
    ExerciseMode.KNEE_PLANK: _side_plank_spec(
        "Knee Plank",
        _joints((11, 14), (23, 26)),
        straightness_min=0.85,
        line_end="knee",
        straight_line_min_deg=140.0,
        require_straight_knees=False,
    ),
    ExerciseMode.WALL_SIT: ModeSpec(
        kind=ModeKind.HOLD,
        family=PostureFamily.SEATED_HOLD,
        critical=LOWER_BODY_CRITICAL,
        label="Wall Sit",
        good_frames=3,
        bad_frames=5,
    ),
}


_ALIASES = {
    "pushup": ExerciseMode.PUSHUPS,
    "widepushup": ExerciseMode.WIDE_PUSHUPS,
    "narrowpushup": ExerciseMode.NARROW_PUSHUPS,
    "diamondpushup": ExerciseMode.DIAMOND_PUSHUPS,
    "kneepushup": ExerciseMode.KNEE_PUSHUPS,
    "squat": ExerciseMode.SQUATS,
    "lunge": ExerciseMode.LUNGES,
    "situp": ExerciseMode.SITUPS,
    "burpee": ExerciseMode.BURPEES,
    "jumpingjack": ExerciseMode.JUMPING_JACKS,
    "highknee": ExerciseMode.HIGH_KNEES,
    "planks": ExerciseMode.PLANK,
    "sideplanks": ExerciseMode.SIDE_PLANK,
    "wallsits": ExerciseMode.WALL_SIT,
}

_MODE_LOOKUP: Dict[str, ExerciseMode] = {
    **{m.value.replace("_", ""): m for m in ExerciseMode},
    **_ALIASES,
}
