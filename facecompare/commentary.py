"""Prompt assembly for the before/after commentary."""

from typing import Dict

from . import config
from .landmarks import DetectedFace
from .scoring import DeltaRecord
from .utils.metrics_utils import MetricName

EXPRESSIONS = ("joy", "sorrow", "anger", "surprise")

PROMPT_TEMPLATE = """You are a counsellor specialised in beauty and esthetic treatments.
Using the change data below, analyse the effect of the treatment in {language}, citing the concrete numbers.

[Detected changes]
{changes}
{expressions}
[Rules]
- Discuss only the items listed above; do not mention unchanged items
- Always include the concrete values with their units
- Focus on physical changes caused by beauty treatments (massage, oils, packs and similar)
- Professional but easy to understand, with a positive and encouraging tone
- At most {max_chars} characters, ending with a complete sentence
- Break lines where it helps readability
"""


def expression_changes(before: DetectedFace, after: DetectedFace) -> Dict[str, str]:
    """Likelihood transitions ("UNLIKELY -> LIKELY") for the expressions that changed."""
    changes = {}
    for name in EXPRESSIONS:
        b = before.expressions.get(name)
        a = after.expressions.get(name)
        if b is None or a is None or a == b:
            continue
        changes[name] = f"{b} -> {a}"
    return changes


def describe_delta(record: DeltaRecord) -> str:
    label = record.metric.spec.label
    trend = "increase" if record.change > 0 else "decrease"
    text = f"{label}: {record.change:+.3f} {record.unit} ({trend}"
    if record.change_percent is not None:
        text += f", {record.change_percent:+.1f}%"
    return text + ")"


def build_prompt(deltas: Dict[MetricName, DeltaRecord], expressions: Dict[str, str] = None,
                 language: str = None, max_chars: int = None) -> str:
    """
    Render the commentary prompt.

    Metrics with zero change are left out so the generated text stays on what
    actually moved.
    """
    lines = [f"- {describe_delta(r)}" for r in deltas.values() if r.change != 0]
    changes = "\n".join(lines) if lines else "- No numerical change was detected"

    expression_block = ""
    if expressions:
        expression_block = "\n[Expression changes]\n" + "\n".join(
            f"- {name}: {change}" for name, change in expressions.items()
        ) + "\n"

    return PROMPT_TEMPLATE.format(
        language=language or config.COMMENTARY_LANGUAGE,
        changes=changes,
        expressions=expression_block,
        max_chars=max_chars or config.COMMENTARY_MAX_CHARS,
    )
