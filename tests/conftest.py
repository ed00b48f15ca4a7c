import io
import math

import pytest
from PIL import Image

from facecompare.errors import ExternalServiceError
from facecompare.landmarks import BoundingBox, ColorSample, DetectedFace, DetectionResult, HeadPose, LandmarkSet, Point

# Frontal face in pixel coordinates, eyes level, y growing downward
FACE_POINTS = {
    "LEFT_EYE": (100.0, 200.0),
    "RIGHT_EYE": (160.0, 200.0),
    "LEFT_EYE_LEFT_CORNER": (85.0, 200.0),
    "RIGHT_EYE_RIGHT_CORNER": (175.0, 200.0),
    "LEFT_OF_LEFT_EYEBROW": (85.0, 180.0),
    "MIDPOINT_BETWEEN_EYES": (130.0, 200.0),
    "FOREHEAD_GLABELLA": (130.0, 185.0),
    "NOSE_TIP": (130.0, 240.0),
    "NOSE_BOTTOM_CENTER": (130.0, 250.0),
    "MOUTH_LEFT": (110.0, 280.0),
    "MOUTH_RIGHT": (150.0, 280.0),
    "MOUTH_CENTER": (130.0, 280.0),
    "CHIN_GNATHION": (130.0, 330.0),
    "LEFT_EAR_TRAGION": (60.0, 220.0),
    "RIGHT_EAR_TRAGION": (200.0, 220.0),
    "CHIN_LEFT_GONION": (75.0, 290.0),
    "CHIN_RIGHT_GONION": (185.0, 290.0),
    "LEFT_CHEEK_CENTER": (95.0, 250.0),
    "RIGHT_CHEEK_CENTER": (165.0, 250.0),
}


def similarity(points, angle_deg=0.0, scale=1.0, dx=0.0, dy=0.0):
    """Rotate about the origin, scale, then translate every point."""
    t = math.radians(angle_deg)
    c, s = math.cos(t), math.sin(t)
    return {
        name: (scale * (c * x - s * y) + dx, scale * (s * x + c * y) + dy)
        for name, (x, y) in points.items()
    }


def build_face(points=None, pose=None, box=None, expressions=None):
    points = FACE_POINTS if points is None else points
    return DetectedFace(
        landmarks=LandmarkSet({name: Point(x, y) for name, (x, y) in points.items()}),
        pose=pose,
        confidence=0.98,
        bounding_box=box,
        expressions=expressions or {},
    )


class FakeDetector:
    """Returns canned DetectionResults keyed by image bytes; `default` for anything else."""

    def __init__(self, responses=None, default=None, error=None):
        self.responses = responses or {}
        self.default = default
        self.error = error
        self.calls = []

    def detect(self, image_bytes):
        self.calls.append(image_bytes)
        if self.error is not None:
            raise self.error
        if image_bytes in self.responses:
            return self.responses[image_bytes]
        if self.default is None:
            raise ExternalServiceError("vision", "unexpected image")
        return self.default


class FakeTextGenerator:
    def __init__(self, text="Visible lift around the jaw line.", error=None):
        self.text = text
        self.error = error
        self.prompts = []

    def generate(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.text


def image_bytes(color, size=(320, 400), fmt="PNG"):
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def face_points():
    return dict(FACE_POINTS)


@pytest.fixture
def make_face():
    return build_face


@pytest.fixture
def transform_points():
    return similarity


@pytest.fixture
def full_face():
    """Face with pose, bounding box and expressions, as the detector reports it."""
    return build_face(
        pose=HeadPose(roll=2.0, pan=-5.0, tilt=1.0),
        box=BoundingBox(50.0, 150.0, 210.0, 350.0),
        expressions={"joy": "UNLIKELY", "sorrow": "VERY_UNLIKELY", "anger": "VERY_UNLIKELY", "surprise": "UNLIKELY"},
    )


@pytest.fixture
def skin_colors():
    return [
        ColorSample(200.0, 160.0, 140.0, score=0.6, pixel_fraction=0.3),
        ColorSample(180.0, 140.0, 120.0, score=0.3, pixel_fraction=0.2),
        ColorSample(40.0, 30.0, 30.0, score=0.1, pixel_fraction=0.1),
    ]


@pytest.fixture
def detection(full_face, skin_colors):
    return DetectionResult(faces=[full_face], dominant_colors=skin_colors)


@pytest.fixture
def before_image():
    return image_bytes((200, 160, 140))


@pytest.fixture
def after_image():
    return image_bytes((190, 150, 130))


@pytest.fixture
def fake_detector_cls():
    return FakeDetector


@pytest.fixture
def fake_text_generator_cls():
    return FakeTextGenerator
