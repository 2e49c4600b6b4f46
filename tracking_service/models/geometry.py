"""
REPSENSE Tracking Service - Geometry

Stateless angle and vector helpers over normalized landmarks.
Image coordinates: x grows to the right, y grows downward.
"""

import math
from typing import Optional, Tuple

import numpy as np

from .landmarks import Landmark


def angle(a: Landmark, b: Landmark, c: Landmark) -> float:
    """
    Interior angle at vertex b in the 2D image plane.

    Args:
        a: First point
        b: Vertex point
        c: Third point

    Returns:
        Angle in degrees, in [0, 180]
    """
    radians = np.arctan2(c.y - b.y, c.x - b.x) - np.arctan2(a.y - b.y, a.x - b.x)
    degrees = abs(float(np.degrees(radians)))
    if degrees > 180.0:
        degrees = 360.0 - degrees
    return degrees


def angle_3d(a: Landmark, b: Landmark, c: Landmark) -> Optional[float]:
    """
    Interior angle at vertex b using x/y/z.

    Returns:
        Angle in degrees, or None if either arm has zero length
    """
    ba = a.to_numpy() - b.to_numpy()
    bc = c.to_numpy() - b.to_numpy()
    norm_ba = np.linalg.norm(ba)
    norm_bc = np.linalg.norm(bc)
    if norm_ba == 0 or norm_bc == 0:
        return None

    cosine = np.clip(np.dot(ba, bc) / (norm_ba * norm_bc), -1.0, 1.0)
    return float(np.degrees(np.arccos(cosine)))


def midpoint(a: Landmark, b: Landmark) -> Landmark:
    return Landmark(
        x=(a.x + b.x) / 2,
        y=(a.y + b.y) / 2,
        z=(a.z + b.z) / 2,
        visibility=min(a.visibility, b.visibility),
    )


def distance(a: Landmark, b: Landmark) -> float:
    """Euclidean distance in the image plane."""
    return math.hypot(a.x - b.x, a.y - b.y)


def vector(origin: Landmark, target: Landmark) -> Tuple[float, float]:
    return (target.x - origin.x, target.y - origin.y)


def cosine_similarity(v1: Tuple[float, ...], v2: Tuple[float, ...]) -> Optional[float]:
    """Cosine of the angle between two vectors, None for a zero vector."""
    a = np.asarray(v1, dtype=float)
    b = np.asarray(v2, dtype=float)
    norm = np.linalg.norm(a) * np.linalg.norm(b)
    if norm == 0:
        return None
    return float(np.clip(np.dot(a, b) / norm, -1.0, 1.0))


def line_angle_deg(start: Landmark, end: Landmark) -> float:
    """Signed angle of start->end relative to the +x axis, in degrees."""
    return math.degrees(math.atan2(end.y - start.y, end.x - start.x))


def is_near_horizontal(start: Landmark, end: Landmark, tolerance_deg: float) -> bool:
    deg = abs(line_angle_deg(start, end))
    return deg <= tolerance_deg or deg >= 180.0 - tolerance_deg


def is_near_vertical(start: Landmark, end: Landmark, tolerance_deg: float) -> bool:
    return abs(abs(line_angle_deg(start, end)) - 90.0) <= tolerance_deg


def torso_orientation(shoulder_center: Landmark, hip_center: Landmark) -> str:
    """
    Classify the torso as "horizontal" or "vertical".

    The shoulder->hip vector within 45 degrees of the x axis counts as
    horizontal.
    """
    deg = abs(line_angle_deg(shoulder_center, hip_center))
    return "horizontal" if deg < 45.0 or deg > 135.0 else "vertical"


def torso_tilt_deg(shoulder_center: Landmark, hip_center: Landmark) -> float:
    """Forward/backward lean of the torso away from upright, in degrees."""
    dx = shoulder_center.x - hip_center.x
    dy = shoulder_center.y - hip_center.y
    return abs(math.degrees(math.atan2(dx, -dy)))


def shoulder_center(frame) -> Landmark:
    return midpoint(frame[11], frame[12])


def hip_center(frame) -> Landmark:
    return midpoint(frame[23], frame[24])


def knee_center(frame) -> Landmark:
    return midpoint(frame[25], frame[26])
