"""Landmark vocabulary and detector output data model."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, NamedTuple, Optional

from .errors import MissingReferenceLandmarks
from .utils.logging_utils import get_logger

logger = get_logger(__name__)


class LandmarkName(str, Enum):
    """Face landmark types reported by the Cloud Vision face detector."""
    LEFT_EYE = "LEFT_EYE"
    RIGHT_EYE = "RIGHT_EYE"
    LEFT_OF_LEFT_EYEBROW = "LEFT_OF_LEFT_EYEBROW"
    RIGHT_OF_LEFT_EYEBROW = "RIGHT_OF_LEFT_EYEBROW"
    LEFT_OF_RIGHT_EYEBROW = "LEFT_OF_RIGHT_EYEBROW"
    RIGHT_OF_RIGHT_EYEBROW = "RIGHT_OF_RIGHT_EYEBROW"
    MIDPOINT_BETWEEN_EYES = "MIDPOINT_BETWEEN_EYES"
    NOSE_TIP = "NOSE_TIP"
    UPPER_LIP = "UPPER_LIP"
    LOWER_LIP = "LOWER_LIP"
    MOUTH_LEFT = "MOUTH_LEFT"
    MOUTH_RIGHT = "MOUTH_RIGHT"
    MOUTH_CENTER = "MOUTH_CENTER"
    NOSE_BOTTOM_RIGHT = "NOSE_BOTTOM_RIGHT"
    NOSE_BOTTOM_LEFT = "NOSE_BOTTOM_LEFT"
    NOSE_BOTTOM_CENTER = "NOSE_BOTTOM_CENTER"
    LEFT_EYE_TOP_BOUNDARY = "LEFT_EYE_TOP_BOUNDARY"
    LEFT_EYE_RIGHT_CORNER = "LEFT_EYE_RIGHT_CORNER"
    LEFT_EYE_BOTTOM_BOUNDARY = "LEFT_EYE_BOTTOM_BOUNDARY"
    LEFT_EYE_LEFT_CORNER = "LEFT_EYE_LEFT_CORNER"
    RIGHT_EYE_TOP_BOUNDARY = "RIGHT_EYE_TOP_BOUNDARY"
    RIGHT_EYE_RIGHT_CORNER = "RIGHT_EYE_RIGHT_CORNER"
    RIGHT_EYE_BOTTOM_BOUNDARY = "RIGHT_EYE_BOTTOM_BOUNDARY"
    RIGHT_EYE_LEFT_CORNER = "RIGHT_EYE_LEFT_CORNER"
    LEFT_EYEBROW_UPPER_MIDPOINT = "LEFT_EYEBROW_UPPER_MIDPOINT"
    RIGHT_EYEBROW_UPPER_MIDPOINT = "RIGHT_EYEBROW_UPPER_MIDPOINT"
    LEFT_EAR_TRAGION = "LEFT_EAR_TRAGION"
    RIGHT_EAR_TRAGION = "RIGHT_EAR_TRAGION"
    LEFT_EYE_PUPIL = "LEFT_EYE_PUPIL"
    RIGHT_EYE_PUPIL = "RIGHT_EYE_PUPIL"
    FOREHEAD_GLABELLA = "FOREHEAD_GLABELLA"
    CHIN_GNATHION = "CHIN_GNATHION"
    CHIN_LEFT_GONION = "CHIN_LEFT_GONION"
    CHIN_RIGHT_GONION = "CHIN_RIGHT_GONION"
    LEFT_CHEEK_CENTER = "LEFT_CHEEK_CENTER"
    RIGHT_CHEEK_CENTER = "RIGHT_CHEEK_CENTER"

    @classmethod
    def parse(cls, name) -> Optional["LandmarkName"]:
        """Return the member for `name`, or None if it is outside the vocabulary."""
        if isinstance(name, cls):
            return name
        try:
            return cls(str(name).upper())
        except ValueError:
            return None


# Normalization reference points (origin and x-axis)
REFERENCE_LANDMARKS = (LandmarkName.LEFT_EYE, LandmarkName.RIGHT_EYE)


class Point(NamedTuple):
    x: float
    y: float
    z: float = 0.0


class LandmarkSet(Mapping):
    """
    Immutable mapping LandmarkName -> Point for one detected face.

    Absent landmarks are simply not keys; nothing is ever defaulted to the origin.
    `normalized` marks sets that live in the eye-aligned, unitless frame.
    """

    __slots__ = ("_points", "_normalized")

    def __init__(self, points=None, normalized: bool = False):
        parsed = {}
        for name, point in (points or {}).items():
            key = LandmarkName.parse(name)
            if key is None:
                logger.debug(f"Ignoring landmark outside vocabulary: {name}")
                continue
            parsed[key] = point if isinstance(point, Point) else Point(*point)
        self._points = parsed
        self._normalized = normalized

    @classmethod
    def from_dict(cls, data: Dict[str, Dict[str, float]], normalized: bool = False) -> "LandmarkSet":
        """Build from the JSON shape `{"LEFT_EYE": {"x": 1.0, "y": 2.0}, ...}`."""
        points = {}
        for name, pos in (data or {}).items():
            if pos is None or pos.get("x") is None or pos.get("y") is None:
                continue
            points[name] = Point(float(pos["x"]), float(pos["y"]), float(pos.get("z") or 0.0))
        return cls(points, normalized=normalized)

    @property
    def normalized(self) -> bool:
        return self._normalized

    def __getitem__(self, key):
        name = LandmarkName.parse(key)
        if name is None:
            raise KeyError(key)
        return self._points[name]

    def __iter__(self):
        return iter(self._points)

    def __len__(self):
        return len(self._points)

    def __repr__(self):
        kind = "normalized" if self._normalized else "pixel"
        return f"LandmarkSet({len(self)} points, {kind})"

    def missing(self, *names) -> List[LandmarkName]:
        parsed = [LandmarkName.parse(name) for name in names]
        return [name for name in parsed if name not in self._points]

    def require(self, *names) -> List[Point]:
        """Return the points for `names` in order; raise if any is absent."""
        absent = self.missing(*names)
        if absent:
            raise MissingReferenceLandmarks(absent)
        return [self._points[LandmarkName.parse(name)] for name in names]

    def without(self, *names) -> "LandmarkSet":
        """Copy of this set with `names` removed."""
        drop = {LandmarkName.parse(n) for n in names}
        return LandmarkSet({k: v for k, v in self._points.items() if k not in drop}, normalized=self._normalized)

    def to_dict(self, digits: Optional[int] = None) -> Dict[str, Dict[str, float]]:
        def r(v):
            return round(v, digits) if digits is not None else v
        return {name.value: {"x": r(p.x), "y": r(p.y)} for name, p in self._points.items()}


class HeadPose(NamedTuple):
    roll: float = 0.0
    pan: float = 0.0
    tilt: float = 0.0


class BoundingBox(NamedTuple):
    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def width(self) -> float:
        return abs(self.x2 - self.x1)

    @property
    def height(self) -> float:
        return abs(self.y2 - self.y1)


class ColorSample(NamedTuple):
    red: float
    green: float
    blue: float
    score: float = 0.0
    pixel_fraction: float = 0.0


@dataclass(frozen=True)
class DetectedFace:
    landmarks: LandmarkSet
    pose: Optional[HeadPose] = None
    confidence: float = 0.0
    bounding_box: Optional[BoundingBox] = None
    expressions: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class DetectionResult:
    """Detector output for one image."""
    faces: List[DetectedFace] = field(default_factory=list)
    dominant_colors: List[ColorSample] = field(default_factory=list)

    @property
    def face_count(self) -> int:
        return len(self.faces)

    @property
    def primary_face(self) -> Optional[DetectedFace]:
        # Detector order decides which face is "first"
        return self.faces[0] if self.faces else None
