from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

from . import config
from .scoring import DeltaRecord
from .utils.metrics_utils import MetricName


class CompositeName(str, Enum):
    FACE_LIFT_INDEX = "face_lift_index"
    OVERALL_SCORE = "overall_score"
    FACE_SLIM_INDEX = "face_slim_index"


def _weights(source: Dict[str, float]) -> Dict[MetricName, float]:
    return {MetricName(k): float(v) for k, v in source.items()}


@dataclass(frozen=True)
class CompositeWeights:
    lift: Dict[MetricName, float] = field(default_factory=lambda: _weights(config.LIFT_INDEX_WEIGHTS))
    overall: Dict[MetricName, float] = field(default_factory=lambda: _weights(config.OVERALL_SCORE_WEIGHTS))
    overall_baseline: float = config.OVERALL_SCORE_BASELINE
    slim: Dict[MetricName, float] = field(default_factory=lambda: _weights(config.SLIM_INDEX_WEIGHTS))
    slim_threshold: float = config.SLIM_INDEX_THRESHOLD


def face_lift_index(deltas: Dict[MetricName, DeltaRecord], weights: CompositeWeights) -> Optional[float]:
    """
    Positive means more lift: the lift angle opening up and the lower-face ratio
    shrinking both push the index up.
    """
    angle = deltas.get(MetricName.FACE_LIFT_ANGLE)
    ratio = deltas.get(MetricName.LOWER_FACE_RATIO)
    if angle is None or ratio is None:
        return None
    return (weights.lift[MetricName.FACE_LIFT_ANGLE] * angle.change
            + weights.lift[MetricName.LOWER_FACE_RATIO] * (-100.0 * ratio.change))


def overall_score(deltas: Dict[MetricName, DeltaRecord], weights: CompositeWeights) -> Optional[int]:
    """0-100 sagging score; 50 means no change."""
    score = weights.overall_baseline
    for name, weight in weights.overall.items():
        record = deltas.get(name)
        if record is None or record.improvement_percent is None:
            return None
        score += weight * record.improvement_percent
    return int(round(max(0.0, min(100.0, score))))


def face_slim_index(deltas: Dict[MetricName, DeltaRecord], weights: CompositeWeights) -> Optional[float]:
    """Weighted change percent of the width/area metrics; negative means slimmer."""
    index = 0.0
    for name, weight in weights.slim.items():
        record = deltas.get(name)
        if record is None or record.change_percent is None:
            return None
        index += weight * record.change_percent
    return index


COMPOSITES = {
    CompositeName.FACE_LIFT_INDEX: face_lift_index,
    CompositeName.OVERALL_SCORE: overall_score,
    CompositeName.FACE_SLIM_INDEX: face_slim_index,
}


def compute_composites(deltas: Dict[MetricName, DeltaRecord], weights: CompositeWeights = None) -> Dict[CompositeName, float]:
    """
    Compute every composite whose inputs are all present.

    Args:
        deltas (dict): MetricName -> DeltaRecord from score_deltas
        weights (CompositeWeights): policy weights, configuration defaults if None

    Returns:
        dict: CompositeName -> value; composites with an absent input are omitted
    """
    weights = weights or CompositeWeights()
    composites = {}
    for name, fn in COMPOSITES.items():
        value = fn(deltas, weights)
        if value is not None:
            composites[name] = value
    return composites


def interpret_composites(composites: Dict[CompositeName, float], weights: CompositeWeights = None) -> Dict[str, str]:
    """Short human-readable labels for the composites present."""
    weights = weights or CompositeWeights()
    labels = {}

    lift = composites.get(CompositeName.FACE_LIFT_INDEX)
    if lift is not None:
        labels[CompositeName.FACE_LIFT_INDEX.value] = "lift-up trend" if lift > 0 else "sagging trend"

    slim = composites.get(CompositeName.FACE_SLIM_INDEX)
    if slim is not None:
        if slim < -weights.slim_threshold:
            labels[CompositeName.FACE_SLIM_INDEX.value] = "slimmer"
        elif slim > weights.slim_threshold:
            labels[CompositeName.FACE_SLIM_INDEX.value] = "fuller"
        else:
            labels[CompositeName.FACE_SLIM_INDEX.value] = "stable"

    score = composites.get(CompositeName.OVERALL_SCORE)
    if score is not None:
        if score > weights.overall_baseline:
            labels[CompositeName.OVERALL_SCORE.value] = "improved"
        elif score < weights.overall_baseline:
            labels[CompositeName.OVERALL_SCORE.value] = "worsened"
        else:
            labels[CompositeName.OVERALL_SCORE.value] = "unchanged"
    return labels
