"""
POSTURA Posture Service - Geometry

Pure helpers over keypoints in normalized image coordinates.
Distances are planar (x, y); z is depth-relative and not metric.
"""

import math

from .keypoints import Keypoint


def distance(a: Keypoint, b: Keypoint) -> float:
    """Euclidean distance in the image plane."""
    return math.hypot(a.x - b.x, a.y - b.y)


def midpoint(a: Keypoint, b: Keypoint) -> Keypoint:
    """
    Average of two keypoints.

    Visibility is the weaker of the two parents.
    """
    return Keypoint(
        x=(a.x + b.x) / 2,
        y=(a.y + b.y) / 2,
        z=((a.z or 0.0) + (b.z or 0.0)) / 2,
        visibility=min(a.confidence, b.confidence),
    )


def angle(a: Keypoint, b: Keypoint, c: Keypoint) -> float:
    """
    Unsigned angle at vertex ``b`` formed by rays b->a and b->c.

    Returns:
        Angle in degrees (0-180)
    """
    radians = math.atan2(c.y - b.y, c.x - b.x) - math.atan2(a.y - b.y, a.x - b.x)
    degrees = abs(math.degrees(radians))
    if degrees > 180.0:
        degrees = 360.0 - degrees
    return degrees


def horizontal_deviation(a: Keypoint, b: Keypoint) -> float:
    """Raw bearing of segment a->b against the horizontal axis, in (-180, 180]."""
    return math.degrees(math.atan2(b.y - a.y, b.x - a.x))


def relative_x(point: Keypoint, center: Keypoint) -> float:
    """Horizontal offset of ``point`` from ``center`` (usually the hip midpoint)."""
    return point.x - center.x
