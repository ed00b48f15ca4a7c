import colorsys

import numpy as np

from .. import config
from ..errors import UndefinedMetric


def _top_colors(colors, count):
    """Highest-scoring dominant colours, as the detector ranks them."""
    ranked = sorted(colors, key=lambda c: c.score, reverse=True)
    return ranked[:count]


def _weights(samples):
    weights = np.array([max(c.score, 0.0) for c in samples], dtype=float)
    if weights.sum() <= 0:
        # Unscored samples count equally
        weights = np.ones(len(samples), dtype=float)
    return weights / weights.sum()


def skin_brightness(colors, count=None):
    """
    Score-weighted luma (ITU-R BT.601) of the top dominant colours.

    Args:
        colors (list): ColorSample list from the detector
        count (int): how many top colours to use (config.DOMINANT_COLOR_COUNT)

    Returns:
        float: brightness on the 0-255 scale
    """
    samples = _top_colors(colors or [], count or config.DOMINANT_COLOR_COUNT)
    if not samples:
        raise UndefinedMetric("No dominant colours available.")
    rgb = np.array([[c.red, c.green, c.blue] for c in samples], dtype=float)
    luma = rgb @ np.array([0.299, 0.587, 0.114])
    return float(np.dot(_weights(samples), luma))


def skin_saturation(colors, count=None):
    """Score-weighted HSV saturation of the top dominant colours, on the 0-255 scale."""
    samples = _top_colors(colors or [], count or config.DOMINANT_COLOR_COUNT)
    if not samples:
        raise UndefinedMetric("No dominant colours available.")
    saturation = np.array([
        colorsys.rgb_to_hsv(c.red / 255.0, c.green / 255.0, c.blue / 255.0)[1] * 255.0
        for c in samples
    ])
    return float(np.dot(_weights(samples), saturation))
