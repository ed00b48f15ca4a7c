import threading
from typing import NamedTuple, Optional, Protocol

from google.api_core import exceptions as google_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import vision
from google.oauth2 import service_account
from openai import OpenAI, OpenAIError

from .. import config
from ..errors import ExternalServiceError
from ..landmarks import BoundingBox, ColorSample, DetectedFace, DetectionResult, HeadPose, LandmarkSet, Point
from .logging_utils import get_logger

logger = get_logger(__name__)

VISION_SERVICE = "vision"
OPENAI_SERVICE = "openai"


class LandmarkDetector(Protocol):
    def detect(self, image_bytes: bytes) -> DetectionResult:
        ...


class TextGenerator(Protocol):
    def generate(self, prompt: str) -> Optional[str]:
        ...


# --- Cloud Vision response parsing ---

def _likelihood_name(value) -> str:
    return getattr(value, "name", str(value))


def face_from_annotation(annotation) -> DetectedFace:
    """Convert one Vision FaceAnnotation into a DetectedFace (pixel coordinates)."""
    points = {}
    for landmark in annotation.landmarks:
        name = getattr(landmark.type_, "name", landmark.type_)
        pos = landmark.position
        points[name] = Point(pos.x, pos.y, pos.z)

    box = None
    vertices = list(annotation.bounding_poly.vertices)
    if vertices:
        xs = [v.x for v in vertices]
        ys = [v.y for v in vertices]
        box = BoundingBox(min(xs), min(ys), max(xs), max(ys))

    return DetectedFace(
        landmarks=LandmarkSet(points),
        pose=HeadPose(annotation.roll_angle, annotation.pan_angle, annotation.tilt_angle),
        confidence=annotation.detection_confidence,
        bounding_box=box,
        expressions={
            "joy": _likelihood_name(annotation.joy_likelihood),
            "sorrow": _likelihood_name(annotation.sorrow_likelihood),
            "anger": _likelihood_name(annotation.anger_likelihood),
            "surprise": _likelihood_name(annotation.surprise_likelihood),
        },
    )


def detection_from_response(response) -> DetectionResult:
    faces = [face_from_annotation(a) for a in response.face_annotations]
    colors = [
        ColorSample(c.color.red, c.color.green, c.color.blue, c.score, c.pixel_fraction)
        for c in response.image_properties_annotation.dominant_colors.colors
    ]
    return DetectionResult(faces=faces, dominant_colors=colors)


class VisionLandmarkDetector:
    """
    Google Cloud Vision face detection plus dominant image colours.

    The annotator client is created on first use, so a missing credential only
    fails the request that needs it.
    """

    def __init__(self, client=None, max_results: int = None):
        self._client = client
        self._lock = threading.Lock()
        self.max_results = max_results or config.FACE_DETECTION_MAX_RESULTS

    @staticmethod
    def _credentials():
        if not (config.GOOGLE_CLIENT_EMAIL and config.GOOGLE_PRIVATE_KEY):
            # Application-default credentials
            return None
        return service_account.Credentials.from_service_account_info({
            "type": "service_account",
            "client_email": config.GOOGLE_CLIENT_EMAIL,
            "private_key": config.GOOGLE_PRIVATE_KEY,
            "project_id": config.GOOGLE_PROJECT_ID,
            "token_uri": config.GOOGLE_TOKEN_URI,
        })

    @property
    def client(self):
        # One client per detector, even when first used from several worker threads
        with self._lock:
            if self._client is None:
                try:
                    self._client = vision.ImageAnnotatorClient(credentials=self._credentials())
                except (auth_exceptions.GoogleAuthError, ValueError) as e:
                    logger.error(f"Vision client could not be created: {e}")
                    raise ExternalServiceError(VISION_SERVICE, str(e)) from e
        return self._client

    def detect(self, image_bytes: bytes) -> DetectionResult:
        request = {
            "image": {"content": image_bytes},
            "features": [
                {"type_": vision.Feature.Type.FACE_DETECTION, "max_results": self.max_results},
                {"type_": vision.Feature.Type.IMAGE_PROPERTIES},
            ],
        }
        try:
            response = self.client.annotate_image(request)
        except (google_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError) as e:
            logger.error(f"Vision request failed: {e}")
            raise ExternalServiceError(VISION_SERVICE, str(e)) from e

        if response.error.message:
            logger.error(f"Vision returned an error: {response.error.message}")
            raise ExternalServiceError(VISION_SERVICE, response.error.message)

        result = detection_from_response(response)
        logger.info(f"Vision detected {result.face_count} face(s)")
        return result


class OpenAITextGenerator:
    """Single-turn chat completion."""

    def __init__(self, client=None, model: str = None, max_tokens: int = None, temperature: float = None):
        self._client = client
        self._lock = threading.Lock()
        self.model = model or config.OPENAI_MODEL
        self.max_tokens = max_tokens or config.OPENAI_MAX_TOKENS
        self.temperature = config.OPENAI_TEMPERATURE if temperature is None else temperature

    @property
    def client(self):
        with self._lock:
            if self._client is None:
                try:
                    self._client = OpenAI(api_key=config.OPENAI_API_KEY)
                except OpenAIError as e:
                    logger.error(f"OpenAI client could not be created: {e}")
                    raise ExternalServiceError(OPENAI_SERVICE, str(e)) from e
        return self._client

    def generate(self, prompt: str) -> Optional[str]:
        client = self.client
        try:
            resp = client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except OpenAIError as e:
            logger.error(f"OpenAI request failed: {e}")
            raise ExternalServiceError(OPENAI_SERVICE, str(e)) from e

        if not resp.choices:
            return None
        return resp.choices[0].message.content


class Services(NamedTuple):
    detector: LandmarkDetector
    text_generator: TextGenerator


def load_services() -> Services:
    """Production collaborators; network clients are created lazily."""
    logger.info("Creating external service clients...")
    return Services(detector=VisionLandmarkDetector(), text_generator=OpenAITextGenerator())


def services_configured():
    """Which external services have credentials in the environment (booleans only)."""
    return {
        "landmark_detector": bool(config.GOOGLE_CLIENT_EMAIL and config.GOOGLE_PRIVATE_KEY),
        "text_generator": bool(config.OPENAI_API_KEY),
    }
