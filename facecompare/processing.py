import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from PIL import Image

from . import config
from .alignment import apply_alignment, compute_alignment, image_size
from .commentary import build_prompt, expression_changes
from .composites import CompositeName, CompositeWeights, compute_composites, interpret_composites
from .errors import ComparisonError, NoFaceDetected
from .landmarks import DetectedFace, DetectionResult, LandmarkName, LandmarkSet
from .scoring import DeltaRecord, score_deltas
from .utils.logging_utils import get_logger
from .utils.metrics_utils import MetricExtractor, MetricName, MetricVector

logger = get_logger(__name__)


class ComparisonStage(str, Enum):
    AWAITING_IMAGES = "awaiting_images"
    LANDMARKS_REQUESTED = "landmarks_requested"
    REALIGNMENT_REQUESTED = "realignment_requested"
    METRICS_COMPUTED = "metrics_computed"
    COMMENTARY_REQUESTED = "commentary_requested"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass(frozen=True)
class ComparisonResult:
    before: MetricVector
    after: MetricVector
    deltas: Dict[MetricName, DeltaRecord]
    composites: Dict[CompositeName, float]
    commentary: Optional[str] = None
    interpretation: Dict[str, str] = field(default_factory=dict)
    face_counts: Dict[str, int] = field(default_factory=dict)
    pose_change: Dict[str, float] = field(default_factory=dict)
    expression_changes: Dict[str, str] = field(default_factory=dict)
    realigned: bool = False
    diagnostics: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self, digits: int = 4) -> Dict[str, Any]:
        return {
            "success": True,
            "metrics": {
                "before": self.before.to_dict(digits),
                "after": self.after.to_dict(digits),
            },
            "deltas": {name.value: record.to_dict(digits) for name, record in self.deltas.items()},
            "composites": {name.value: round(value, digits) for name, value in self.composites.items()},
            "interpretation": dict(self.interpretation),
            "commentary": self.commentary,
            "face_counts": dict(self.face_counts),
            "pose_change": {k: round(v, digits) for k, v in self.pose_change.items()},
            "expression_changes": dict(self.expression_changes),
            "realigned": self.realigned,
            "diagnostics": self.diagnostics,
        }


def pose_change(before: DetectedFace, after: DetectedFace) -> Dict[str, float]:
    if before.pose is None or after.pose is None:
        return {}
    return {
        "roll": after.pose.roll - before.pose.roll,
        "pan": after.pose.pan - before.pose.pan,
        "tilt": after.pose.tilt - before.pose.tilt,
    }


def face_diagnostics(face: DetectedFace) -> Dict[str, Any]:
    """Which vocabulary landmarks the detector did not report for this face."""
    return {
        "confidence": face.confidence,
        "missing_landmarks": [name.value for name in LandmarkName if name not in face.landmarks],
    }


def _raise_on_normalization_error(*vectors: MetricVector):
    for vector in vectors:
        if vector.normalization_error is not None:
            raise vector.normalization_error


def compare_landmark_sets(before: LandmarkSet, after: LandmarkSet,
                          extractor: MetricExtractor = None, weights: CompositeWeights = None) -> ComparisonResult:
    """
    Landmark-only comparison: metrics, deltas and composites, no detector or LLM.

    Raises:
        MissingReferenceLandmarks / DegenerateReference: either set cannot be normalized
    """
    extractor = extractor or MetricExtractor()
    before_vector = extractor.extract_from_landmarks(before, image="before")
    after_vector = extractor.extract_from_landmarks(after, image="after")
    _raise_on_normalization_error(before_vector, after_vector)

    deltas = score_deltas(before_vector, after_vector)
    composites = compute_composites(deltas, weights)
    return ComparisonResult(
        before=before_vector,
        after=after_vector,
        deltas=deltas,
        composites=composites,
        interpretation=interpret_composites(composites, weights),
    )


class ComparisonPipeline:
    """
    One before/after comparison.

    Holds only the state of its own request (`stage`, `failure`); build a new
    pipeline per request. The detector and text generator are injected so tests
    can substitute in-memory fakes.
    """

    def __init__(self, detector, text_generator=None, extractor: MetricExtractor = None,
                 weights: CompositeWeights = None, realign: bool = None):
        self.detector = detector
        self.text_generator = text_generator
        self.extractor = extractor or MetricExtractor()
        self.weights = weights or CompositeWeights()
        self.realign = config.ENABLE_REALIGNMENT if realign is None else realign
        self.stage = ComparisonStage.AWAITING_IMAGES
        self.history: List[ComparisonStage] = [self.stage]
        self.failure: Optional[Exception] = None

    def _advance(self, stage: ComparisonStage):
        logger.debug(f"Comparison stage: {self.stage.value} -> {stage.value}")
        self.stage = stage
        self.history.append(stage)

    async def run(self, before_bytes: bytes, after_bytes: bytes) -> ComparisonResult:
        """
        Run the full comparison.

        Raises:
            NoFaceDetected: zero faces in either image
            MissingReferenceLandmarks / DegenerateReference: a face cannot be normalized
            ExternalServiceError: detector or text generator failure
        """
        try:
            return await self._run(before_bytes, after_bytes)
        except Exception as e:
            self.failure = e
            self._advance(ComparisonStage.FAILED)
            if isinstance(e, ComparisonError):
                logger.warning(f"Comparison failed: {e.reason}: {e.message}")
            else:
                logger.exception("Comparison failed unexpectedly")
            raise

    async def _run(self, before_bytes: bytes, after_bytes: bytes) -> ComparisonResult:
        # Step 1: detect both images concurrently
        self._advance(ComparisonStage.LANDMARKS_REQUESTED)
        before_det, after_det = await asyncio.gather(
            asyncio.to_thread(self.detector.detect, before_bytes),
            asyncio.to_thread(self.detector.detect, after_bytes),
        )
        face_counts = {"before": before_det.face_count, "after": after_det.face_count}
        logger.info(f"Faces detected: before={face_counts['before']}, after={face_counts['after']}")
        if not before_det.faces or not after_det.faces:
            raise NoFaceDetected(face_counts)

        before_face = before_det.primary_face
        after_face = after_det.primary_face

        # Step 2 (optional): realign the before image onto the after pose
        realigned = False
        if self.realign:
            self._advance(ComparisonStage.REALIGNMENT_REQUESTED)
            aligned = await self._realign(before_bytes, after_bytes, before_face, after_face)
            if aligned is not None:
                before_face = aligned.primary_face
                realigned = True

        # Step 3: metrics, deltas, composites
        before_vector = self.extractor.extract(before_face, before_det.dominant_colors, image="before")
        after_vector = self.extractor.extract(after_face, after_det.dominant_colors, image="after")
        _raise_on_normalization_error(before_vector, after_vector)

        deltas = score_deltas(before_vector, after_vector)
        composites = compute_composites(deltas, self.weights)
        self._advance(ComparisonStage.METRICS_COMPUTED)

        # Step 4: commentary from the metrics that changed
        expressions = expression_changes(before_face, after_face)
        self._advance(ComparisonStage.COMMENTARY_REQUESTED)
        commentary = await self._commentary(build_prompt(deltas, expressions))

        result = ComparisonResult(
            before=before_vector,
            after=after_vector,
            deltas=deltas,
            composites=composites,
            commentary=commentary,
            interpretation=interpret_composites(composites, self.weights),
            face_counts=face_counts,
            pose_change=pose_change(before_face, after_face),
            expression_changes=expressions,
            realigned=realigned,
            diagnostics={"before": face_diagnostics(before_face), "after": face_diagnostics(after_face)},
        )
        self._advance(ComparisonStage.COMPLETE)
        return result

    async def _realign(self, before_bytes, after_bytes, before_face, after_face) -> Optional[DetectionResult]:
        """Warp and re-detect the before image; None means keep the original detection."""
        transform = compute_alignment(before_face, after_face)
        if transform is None:
            logger.warning("Realignment skipped: reference landmarks missing")
            return None
        try:
            size = await asyncio.to_thread(image_size, after_bytes)
            aligned_bytes = await asyncio.to_thread(apply_alignment, before_bytes, transform, size)
            detection = await asyncio.to_thread(self.detector.detect, aligned_bytes)
        except (ComparisonError, OSError, ValueError, Image.DecompressionBombError) as e:
            logger.warning(f"Realignment failed, using original landmarks: {e}")
            return None
        if not detection.faces:
            logger.warning("Realignment failed, no face in the aligned image; using original landmarks")
            return None
        return detection

    async def _commentary(self, prompt: str) -> str:
        if self.text_generator is None:
            logger.warning("No text generator configured; using fallback commentary")
            return config.COMMENTARY_FALLBACK
        text = await asyncio.to_thread(self.text_generator.generate, prompt)
        if not text or not text.strip():
            return config.COMMENTARY_FALLBACK
        return text
