"""Similarity transform that maps the "before" face onto the "after" face."""

import io
import math
from typing import NamedTuple, Optional, Tuple

from PIL import Image

from . import config
from .errors import ComparisonError
from .landmarks import DetectedFace, LandmarkName, Point
from .utils.geometry import bearing, distance, midpoint


class AlignmentTransform(NamedTuple):
    offset_x: float
    offset_y: float
    rotation_deg: float
    scale: float
    before_center: Tuple[float, float]
    after_center: Tuple[float, float]

    def to_dict(self, digits: int = 4):
        return {
            "offset_x": round(self.offset_x, digits),
            "offset_y": round(self.offset_y, digits),
            "rotation_deg": round(self.rotation_deg, digits),
            "scale": round(self.scale, digits),
            "before_center": [round(v, digits) for v in self.before_center],
            "after_center": [round(v, digits) for v in self.after_center],
        }


ALIGNMENT_LANDMARKS = (LandmarkName.LEFT_EYE, LandmarkName.RIGHT_EYE, LandmarkName.NOSE_TIP, LandmarkName.CHIN_GNATHION)


def _anchor(face: DetectedFace):
    """Face centre (eye centre / nose tip midpoint), eye-line bearing and eye-to-chin size."""
    left, right, nose, chin = face.landmarks.require(*ALIGNMENT_LANDMARKS)
    eye_center = Point(*midpoint(left, right))
    center = midpoint(eye_center, nose)
    return center, bearing(left, right), distance(eye_center, chin)


def compute_alignment(before: DetectedFace, after: DetectedFace) -> Optional[AlignmentTransform]:
    """
    Translation, rotation and uniform scale taking the before face to the after face.

    Returns:
        AlignmentTransform, or None when a reference landmark is missing or the
        face size is zero.
    """
    try:
        before_center, before_angle, before_size = _anchor(before)
        after_center, after_angle, after_size = _anchor(after)
    except ComparisonError:
        return None
    if before_size == 0 or after_size == 0:
        return None

    return AlignmentTransform(
        offset_x=after_center[0] - before_center[0],
        offset_y=after_center[1] - before_center[1],
        rotation_deg=after_angle - before_angle,
        scale=after_size / before_size,
        before_center=before_center,
        after_center=after_center,
    )


def map_point(transform: AlignmentTransform, x: float, y: float) -> Tuple[float, float]:
    """Where a before-image pixel lands in the aligned image."""
    theta = math.radians(transform.rotation_deg)
    cos_t, sin_t = math.cos(theta), math.sin(theta)
    bx, by = transform.before_center
    ax, ay = transform.after_center
    dx, dy = x - bx, y - by
    return (
        transform.scale * (cos_t * dx - sin_t * dy) + ax,
        transform.scale * (sin_t * dx + cos_t * dy) + ay,
    )


def _inverse_coefficients(transform: AlignmentTransform):
    # PIL's affine transform maps output pixels back to input pixels
    theta = math.radians(transform.rotation_deg)
    cos_t, sin_t = math.cos(theta), math.sin(theta)
    s = transform.scale
    bx, by = transform.before_center
    ax, ay = transform.after_center
    a, b = cos_t / s, sin_t / s
    d, e = -sin_t / s, cos_t / s
    c = bx - (a * ax + b * ay)
    f = by - (d * ax + e * ay)
    return (a, b, c, d, e, f)


def apply_alignment(image_bytes: bytes, transform: AlignmentTransform, size: Tuple[int, int] = None) -> bytes:
    """
    Warp the before image with `transform`.

    Args:
        image_bytes (bytes): encoded before image
        transform (AlignmentTransform): from compute_alignment
        size (tuple): (width, height) of the output, normally the after image size;
            the before image size if None

    Returns:
        bytes: JPEG-encoded aligned image
    """
    image = Image.open(io.BytesIO(image_bytes)).convert("RGB")
    out_size = tuple(size) if size else image.size
    aligned = image.transform(
        out_size,
        Image.Transform.AFFINE,
        _inverse_coefficients(transform),
        resample=Image.Resampling.BICUBIC,
    )
    buf = io.BytesIO()
    aligned.save(buf, format="JPEG", quality=config.ALIGNED_JPEG_QUALITY)
    return buf.getvalue()


def image_size(image_bytes: bytes) -> Tuple[int, int]:
    with Image.open(io.BytesIO(image_bytes)) as image:
        return image.size
