"""Pose canonicalization of landmark sets."""

import math

import numpy as np

from . import config
from .errors import DegenerateReference, MissingReferenceLandmarks
from .landmarks import REFERENCE_LANDMARKS, LandmarkSet, Point


def normalize_landmarks(landmarks: LandmarkSet, epsilon: float = None, image: str = None) -> LandmarkSet:
    """
    Move a landmark set into the eye-aligned frame.

    The left eye becomes the origin, the left->right eye axis becomes +x and the
    inter-eye distance becomes 1. Absent landmarks stay absent.

    Args:
        landmarks: pixel-space LandmarkSet of one face
        epsilon: smallest usable inter-eye distance (config.NORMALIZATION_EPSILON)
        image: label ("before"/"after") attached to raised errors

    Returns:
        LandmarkSet: normalized copy with the same keys

    Raises:
        MissingReferenceLandmarks: LEFT_EYE or RIGHT_EYE absent
        DegenerateReference: eyes coincide (distance below epsilon)
    """
    eps = config.NORMALIZATION_EPSILON if epsilon is None else epsilon
    try:
        left, right = landmarks.require(*REFERENCE_LANDMARKS)
    except MissingReferenceLandmarks as e:
        raise MissingReferenceLandmarks(e.missing, image=image) from None

    d = math.hypot(right.x - left.x, right.y - left.y)
    if d < eps:
        raise DegenerateReference(d, image=image)

    theta = math.atan2(right.y - left.y, right.x - left.x)
    cos_t, sin_t = math.cos(theta), math.sin(theta)
    # Rotation by -theta
    rotation = np.array([[cos_t, sin_t], [-sin_t, cos_t]])

    names = list(landmarks.keys())
    coords = np.array([[landmarks[n].x - left.x, landmarks[n].y - left.y] for n in names], dtype=float)
    rotated = coords @ rotation.T / d

    normalized = {}
    for name, (x, y) in zip(names, rotated):
        z = (landmarks[name].z - left.z) / d
        normalized[name] = Point(float(x), float(y), float(z))
    return LandmarkSet(normalized, normalized=True)
