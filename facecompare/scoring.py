"""Per-metric before/after deltas and improvement flags."""

from dataclasses import asdict, dataclass
from typing import Dict, Optional

from . import config
from .utils.metrics_utils import Direction, MetricName, MetricVector


@dataclass(frozen=True)
class DeltaRecord:
    metric: MetricName
    before: float
    after: float
    change: float
    change_percent: Optional[float]
    improved: bool
    direction: Direction
    unit: str
    improvement_percent: Optional[float] = None

    def to_dict(self, digits: Optional[int] = None):
        data = asdict(self)
        data["metric"] = self.metric.value
        data["direction"] = self.direction.value
        data["label"] = self.metric.spec.label
        if digits is not None:
            for key in ("before", "after", "change", "change_percent", "improvement_percent"):
                if data[key] is not None:
                    data[key] = round(data[key], digits)
        return data


def _is_improved(direction: Direction, before: float, after: float, change: float, target: float) -> bool:
    if change == 0:
        return False
    if direction is Direction.DECREASE:
        return change < 0
    if direction is Direction.INCREASE:
        return change > 0
    if direction is Direction.BALANCED:
        return abs(after - target) < abs(before - target)
    return False


def _improvement_percent(direction: Direction, before: float, change: float) -> Optional[float]:
    if before == 0:
        return None
    if direction is Direction.DECREASE:
        return -change / abs(before) * 100.0
    if direction is Direction.INCREASE:
        return change / abs(before) * 100.0
    return None


def score_deltas(before: MetricVector, after: MetricVector, saturation_target: float = None) -> Dict[MetricName, DeltaRecord]:
    """
    Compare two MetricVectors metric by metric.

    Only metrics present in both vectors are scored. Both vectors must come from
    the same extractor configuration; vectors measured with different pixel
    scales raise ValueError.

    Args:
        before (MetricVector): metrics of the "before" photo
        after (MetricVector): metrics of the "after" photo
        saturation_target (float): reference for the balanced skin-saturation rule

    Returns:
        dict: MetricName -> DeltaRecord, in MetricName declaration order
    """
    target = config.SKIN_SATURATION_TARGET if saturation_target is None else saturation_target
    if before.pixel_to_mm is not None and after.pixel_to_mm is not None and before.pixel_to_mm != after.pixel_to_mm:
        raise ValueError(
            f"Metric vectors use different pixel scales ({before.pixel_to_mm} vs {after.pixel_to_mm})"
        )

    deltas = {}
    for name in MetricName:
        if name not in before.values or name not in after.values:
            continue
        spec = name.spec
        b, a = before.values[name], after.values[name]
        change = a - b
        change_percent = None if b == 0 else change / b * 100.0
        deltas[name] = DeltaRecord(
            metric=name,
            before=b,
            after=a,
            change=change,
            change_percent=change_percent,
            improved=_is_improved(spec.direction, b, a, change, target),
            direction=spec.direction,
            unit=spec.unit,
            improvement_percent=_improvement_percent(spec.direction, b, change),
        )
    return deltas

