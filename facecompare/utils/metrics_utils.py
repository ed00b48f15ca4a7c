from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, NamedTuple, Optional

from .. import config
from ..errors import ComparisonError, MissingReferenceLandmarks, UndefinedMetric
from ..landmarks import DetectedFace, LandmarkName as L, LandmarkSet
from ..normalizer import normalize_landmarks
from .geometry import bearing, bearing_difference, distance, included_angle, polygon_area, safe_ratio
from .logging_utils import get_logger
from .skin_utils import skin_brightness, skin_saturation

logger = get_logger(__name__)


class MetricFamily(str, Enum):
    MEASUREMENT = "measurement"  # raw pixels scaled to approximate millimetres
    LIFT = "lift"
    SAGGING = "sagging"
    SLIMMING = "slimming"
    SKIN = "skin"


class Direction(str, Enum):
    """Which way a change counts as an improvement."""
    INCREASE = "increase"
    DECREASE = "decrease"
    NONE = "none"
    BALANCED = "balanced"  # closer to config.SKIN_SATURATION_TARGET


class MetricSpec(NamedTuple):
    family: MetricFamily
    unit: str
    direction: Direction
    label: str


class MetricName(str, Enum):
    FACE_WIDTH = "face_width"
    FACE_HEIGHT = "face_height"
    EYE_DISTANCE = "eye_distance"
    EYEBROW_TO_EYE_DISTANCE = "eyebrow_to_eye_distance"
    FACE_ANGLE = "face_angle"
    FACE_LIFT_ANGLE = "face_lift_angle"
    LOWER_FACE_RATIO = "lower_face_ratio"
    JAW_LINE_ANGLE = "jaw_line_angle"
    MOUTH_CORNER_DROOP = "mouth_corner_droop"
    CHEEK_DROOP_INDEX = "cheek_droop_index"
    CHEEK_DROOP_LEFT = "cheek_droop_left"
    CHEEK_DROOP_RIGHT = "cheek_droop_right"
    JAW_WIDTH_RATIO = "jaw_width_ratio"
    CHEEK_WIDTH = "cheek_width"
    JAW_WIDTH = "jaw_width"
    FACE_AREA = "face_area"
    SKIN_BRIGHTNESS = "skin_brightness"
    SKIN_SATURATION = "skin_saturation"

    @property
    def spec(self) -> MetricSpec:
        return METRIC_SPECS[self]


M, F, D = MetricName, MetricFamily, Direction

# Directionality table: the only place "improved" is defined
METRIC_SPECS: Dict[MetricName, MetricSpec] = {
    M.FACE_WIDTH: MetricSpec(F.MEASUREMENT, "mm", D.DECREASE, "Face width"),
    M.FACE_HEIGHT: MetricSpec(F.MEASUREMENT, "mm", D.DECREASE, "Face height"),
    M.EYE_DISTANCE: MetricSpec(F.MEASUREMENT, "mm", D.NONE, "Eye distance"),
    M.EYEBROW_TO_EYE_DISTANCE: MetricSpec(F.MEASUREMENT, "mm", D.DECREASE, "Eyebrow-to-eye distance"),
    M.FACE_ANGLE: MetricSpec(F.MEASUREMENT, "deg", D.NONE, "Face roll angle"),
    M.FACE_LIFT_ANGLE: MetricSpec(F.LIFT, "deg", D.INCREASE, "Face-lift angle"),
    M.LOWER_FACE_RATIO: MetricSpec(F.LIFT, "ratio", D.DECREASE, "Lower-face ratio"),
    M.JAW_LINE_ANGLE: MetricSpec(F.SAGGING, "deg", D.DECREASE, "Jaw-line angle (JLA)"),
    M.MOUTH_CORNER_DROOP: MetricSpec(F.SAGGING, "deg", D.DECREASE, "Mouth-corner droop (MCD)"),
    M.CHEEK_DROOP_INDEX: MetricSpec(F.SAGGING, "ratio", D.DECREASE, "Cheek-droop index (CDI)"),
    M.CHEEK_DROOP_LEFT: MetricSpec(F.SAGGING, "ratio", D.DECREASE, "Cheek droop, left"),
    M.CHEEK_DROOP_RIGHT: MetricSpec(F.SAGGING, "ratio", D.DECREASE, "Cheek droop, right"),
    M.JAW_WIDTH_RATIO: MetricSpec(F.SAGGING, "ratio", D.DECREASE, "Jaw-width ratio (JWR)"),
    M.CHEEK_WIDTH: MetricSpec(F.SLIMMING, "ratio", D.DECREASE, "Cheek width"),
    M.JAW_WIDTH: MetricSpec(F.SLIMMING, "ratio", D.DECREASE, "Jaw width"),
    M.FACE_AREA: MetricSpec(F.SLIMMING, "ratio", D.DECREASE, "Face area"),
    M.SKIN_BRIGHTNESS: MetricSpec(F.SKIN, "0-255", D.INCREASE, "Skin brightness"),
    M.SKIN_SATURATION: MetricSpec(F.SKIN, "0-255", D.BALANCED, "Skin saturation"),
}

NORMALIZED_FAMILIES = frozenset({F.LIFT, F.SAGGING, F.SLIMMING})


@dataclass(frozen=True)
class MetricVector:
    """Named scalar metrics of one face. Undefined metrics are absent, never zero."""
    values: Dict[MetricName, float] = field(default_factory=dict)
    normalization_error: Optional[ComparisonError] = None
    pixel_to_mm: Optional[float] = None

    def __contains__(self, name):
        return MetricName(name) in self.values

    def __getitem__(self, name):
        return self.values[MetricName(name)]

    def get(self, name, default=None):
        return self.values.get(MetricName(name), default)

    def names(self):
        return list(self.values)

    def to_dict(self, digits=None):
        return {
            name.value: (round(value, digits) if digits is not None else value)
            for name, value in self.values.items()
        }


# --- Pixel-space measurements (face passed in, pixels returned) ---

def face_width_px(face: DetectedFace) -> float:
    """Bounding-box width; falls back to the ear-to-ear distance."""
    box = face.bounding_box
    if box is not None and box.width > 0:
        return box.width
    left, right = face.landmarks.require(L.LEFT_EAR_TRAGION, L.RIGHT_EAR_TRAGION)
    return distance(left, right)


def face_height_px(face: DetectedFace) -> float:
    """Bounding-box height; falls back to the glabella-to-chin distance."""
    box = face.bounding_box
    if box is not None and box.height > 0:
        return box.height
    top, chin = face.landmarks.require(L.FOREHEAD_GLABELLA, L.CHIN_GNATHION)
    return distance(top, chin)


def eye_distance_px(face: DetectedFace) -> float:
    return distance(*face.landmarks.require(L.LEFT_EYE, L.RIGHT_EYE))


def eyebrow_to_eye_distance_px(face: DetectedFace) -> float:
    return distance(*face.landmarks.require(L.LEFT_OF_LEFT_EYEBROW, L.LEFT_EYE))


def face_angle(face: DetectedFace) -> float:
    if face.pose is None:
        raise UndefinedMetric("Head pose not reported.")
    return abs(face.pose.roll)


# --- Normalized-frame metrics (NormalizedLandmarkSet passed in) ---

def face_lift_angle(lm: LandmarkSet) -> float:
    """
    Angle at the mouth corner of the triangle (outer eye corner, mouth corner, chin),
    averaged over both sides.
    """
    chin = lm.require(L.CHIN_GNATHION)[0]
    eye_l, mouth_l = lm.require(L.LEFT_EYE_LEFT_CORNER, L.MOUTH_LEFT)
    eye_r, mouth_r = lm.require(L.RIGHT_EYE_RIGHT_CORNER, L.MOUTH_RIGHT)
    left = included_angle(mouth_l, eye_l, chin)
    right = included_angle(mouth_r, eye_r, chin)
    return (left + right) / 2.0


def lower_face_ratio(lm: LandmarkSet) -> float:
    nose, mouth, chin = lm.require(L.NOSE_BOTTOM_CENTER, L.MOUTH_CENTER, L.CHIN_GNATHION)
    return safe_ratio(distance(nose, mouth), distance(nose, chin))


def jaw_line_angle(lm: LandmarkSet) -> float:
    """Mean over both sides of the angle at the gonion between ear tragion and chin."""
    gonion_l, tragion_l, chin = lm.require(L.CHIN_LEFT_GONION, L.LEFT_EAR_TRAGION, L.CHIN_GNATHION)
    gonion_r, tragion_r = lm.require(L.CHIN_RIGHT_GONION, L.RIGHT_EAR_TRAGION)
    left = bearing_difference(gonion_l, tragion_l, chin)
    right = bearing_difference(gonion_r, tragion_r, chin)
    return (left + right) / 2.0


def mouth_corner_droop(lm: LandmarkSet) -> float:
    return abs(bearing(*lm.require(L.MOUTH_LEFT, L.MOUTH_RIGHT)))


def cheek_droop_left(lm: LandmarkSet) -> float:
    eye, mouth, cheek = lm.require(L.LEFT_EYE_LEFT_CORNER, L.MOUTH_LEFT, L.LEFT_CHEEK_CENTER)
    # y grows downward: positive droop means the cheek sits below the eye/mouth line
    return cheek.y - (eye.y + mouth.y) / 2.0


def cheek_droop_right(lm: LandmarkSet) -> float:
    eye, mouth, cheek = lm.require(L.RIGHT_EYE_RIGHT_CORNER, L.MOUTH_RIGHT, L.RIGHT_CHEEK_CENTER)
    return cheek.y - (eye.y + mouth.y) / 2.0


def cheek_droop_index(lm: LandmarkSet) -> float:
    return (cheek_droop_left(lm) + cheek_droop_right(lm)) / 2.0


def jaw_width_ratio(lm: LandmarkSet) -> float:
    gonion_l, gonion_r, ear_l, ear_r = lm.require(
        L.CHIN_LEFT_GONION, L.CHIN_RIGHT_GONION, L.LEFT_EAR_TRAGION, L.RIGHT_EAR_TRAGION
    )
    # Horizontal widths in the eye-aligned frame
    return safe_ratio(abs(gonion_r.x - gonion_l.x), abs(ear_r.x - ear_l.x))


def cheek_width(lm: LandmarkSet) -> float:
    return distance(*lm.require(L.LEFT_CHEEK_CENTER, L.RIGHT_CHEEK_CENTER))


def jaw_width(lm: LandmarkSet) -> float:
    return distance(*lm.require(L.CHIN_LEFT_GONION, L.CHIN_RIGHT_GONION))


def face_area(lm: LandmarkSet) -> float:
    """Area of the eyes-midpoint / ears / chin quadrilateral."""
    return polygon_area(lm.require(
        L.MIDPOINT_BETWEEN_EYES, L.RIGHT_EAR_TRAGION, L.CHIN_GNATHION, L.LEFT_EAR_TRAGION
    ))


PIXEL_METRICS: Dict[MetricName, Callable[[DetectedFace], float]] = {
    M.FACE_WIDTH: face_width_px,
    M.FACE_HEIGHT: face_height_px,
    M.EYE_DISTANCE: eye_distance_px,
    M.EYEBROW_TO_EYE_DISTANCE: eyebrow_to_eye_distance_px,
}

NORMALIZED_METRICS: Dict[MetricName, Callable[[LandmarkSet], float]] = {
    M.FACE_LIFT_ANGLE: face_lift_angle,
    M.LOWER_FACE_RATIO: lower_face_ratio,
    M.JAW_LINE_ANGLE: jaw_line_angle,
    M.MOUTH_CORNER_DROOP: mouth_corner_droop,
    M.CHEEK_DROOP_INDEX: cheek_droop_index,
    M.CHEEK_DROOP_LEFT: cheek_droop_left,
    M.CHEEK_DROOP_RIGHT: cheek_droop_right,
    M.JAW_WIDTH_RATIO: jaw_width_ratio,
    M.CHEEK_WIDTH: cheek_width,
    M.JAW_WIDTH: jaw_width,
    M.FACE_AREA: face_area,
}

SKIN_METRICS = {
    M.SKIN_BRIGHTNESS: skin_brightness,
    M.SKIN_SATURATION: skin_saturation,
}


class MetricExtractor:
    """
    Computes the MetricVector of one face.

    The same instance (same pixel scale, same normalization procedure) must be
    used for both images of a comparison so their metrics share one regime.
    """

    def __init__(self, pixel_to_mm: float = None, epsilon: float = None, color_count: int = None):
        self.pixel_to_mm = config.PIXEL_TO_MM if pixel_to_mm is None else pixel_to_mm
        self.epsilon = epsilon
        self.color_count = color_count

    def _collect(self, values, name, fn, *args):
        try:
            values[name] = float(fn(*args))
        except (MissingReferenceLandmarks, UndefinedMetric) as e:
            logger.debug(f"Metric {name.value} undefined: {e}")

    def extract(self, face: DetectedFace, colors=None, image: str = None) -> MetricVector:
        """
        Compute every metric the face supports.

        Args:
            face (DetectedFace): detector output for one face (pixel coordinates)
            colors (list): dominant ColorSample list of the image, if reported
            image (str): "before"/"after" label used in errors and logs

        Returns:
            MetricVector: defined metrics only; if normalization fails the
            normalized families are absent and the error is kept on the vector.
        """
        values = {}

        for name, fn in PIXEL_METRICS.items():
            self._collect(values, name, lambda f: fn(f) * self.pixel_to_mm, face)
        self._collect(values, M.FACE_ANGLE, face_angle, face)

        normalization_error = None
        try:
            normalized = normalize_landmarks(face.landmarks, epsilon=self.epsilon, image=image)
        except ComparisonError as e:
            logger.warning(f"Normalization failed for {image or 'image'}: {e}")
            normalization_error = e
        else:
            for name, fn in NORMALIZED_METRICS.items():
                self._collect(values, name, fn, normalized)

        if colors:
            for name, fn in SKIN_METRICS.items():
                self._collect(values, name, fn, colors, self.color_count)

        # Keep declaration order regardless of which families succeeded
        ordered = {name: values[name] for name in MetricName if name in values}
        return MetricVector(values=ordered, normalization_error=normalization_error, pixel_to_mm=self.pixel_to_mm)

    def extract_from_landmarks(self, landmarks: LandmarkSet, image: str = None) -> MetricVector:
        """Landmark-only entry point (no bounding box, pose or colours)."""
        return self.extract(DetectedFace(landmarks=landmarks), image=image)
