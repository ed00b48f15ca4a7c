"""Plane geometry helpers shared by the normalizer, metrics and alignment."""

import math
from typing import Sequence, Tuple

from ..errors import UndefinedMetric


def distance(p1, p2) -> float:
    """
    Euclidean distance between two points in the image plane.

    Args:
        p1, p2: objects with `x` and `y` attributes

    Returns:
        float: distance in the points' own units
    """
    return math.hypot(p2.x - p1.x, p2.y - p1.y)


def bearing(p1, p2) -> float:
    """Angle in degrees of the vector p1 -> p2 against the +x axis (-180 ~ 180)."""
    if p1.x == p2.x and p1.y == p2.y:
        raise UndefinedMetric("Bearing between coincident points.")
    return math.degrees(math.atan2(p2.y - p1.y, p2.x - p1.x))


def bearing_difference(vertex, a, b) -> float:
    """Absolute difference between the bearings vertex->a and vertex->b, folded into 0 ~ 180 degrees."""
    diff = abs(bearing(vertex, a) - bearing(vertex, b)) % 360.0
    return 360.0 - diff if diff > 180.0 else diff


def included_angle(vertex, a, b) -> float:
    """
    Interior angle at `vertex` of the triangle (a, vertex, b) via the law of cosines.

    Raises:
        UndefinedMetric: if any two of the three points coincide
    """
    side_a = distance(vertex, a)
    side_b = distance(vertex, b)
    opposite = distance(a, b)
    if side_a == 0 or side_b == 0 or opposite == 0:
        raise UndefinedMetric("Triangle has a zero-length side.")

    cos_value = (side_a ** 2 + side_b ** 2 - opposite ** 2) / (2 * side_a * side_b)
    # Clamp rounding noise outside [-1, 1]
    cos_value = max(-1.0, min(1.0, cos_value))
    return math.degrees(math.acos(cos_value))


def safe_ratio(numerator: float, denominator: float) -> float:
    if denominator == 0:
        raise UndefinedMetric("Ratio denominator is zero.")
    return numerator / denominator


def polygon_area(points: Sequence) -> float:
    """Shoelace area of a simple polygon given in order."""
    area = 0.0
    for i, p in enumerate(points):
        q = points[(i + 1) % len(points)]
        area += p.x * q.y - q.x * p.y
    return abs(area / 2.0)


def midpoint(p1, p2) -> Tuple[float, float]:
    return ((p1.x + p2.x) / 2.0, (p1.y + p2.y) / 2.0)
