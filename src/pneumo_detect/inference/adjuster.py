"""
Rule-based confidence adjustment from pixel statistics.

Only the feature-extractor heuristic backend uses this. It is a corrective
heuristic over an untrained head, not a calibrated model.
"""

from ..data_preprocessing.statistics import PixelStatistics
from .types import ProbabilityVector


HIGH_CONTRAST = 60.0
DARK_RATIO_RANGE = (0.35, 0.65)
LOW_BRIGHTNESS = 100.0
HIGH_BRIGHTNESS = 180.0

CONTRAST_FACTOR = 1.3
DARK_RATIO_FACTOR = 1.2
LOW_BRIGHTNESS_FACTOR = 1.4
HIGH_BRIGHTNESS_FACTOR = 1.2

DECISIVENESS_BOOST = 0.15
MAX_CONFIDENCE = 0.95


def reweight(probabilities: ProbabilityVector, stats: PixelStatistics) -> ProbabilityVector:
    """Scale the class weights by the brightness rules and renormalize."""
    normal, pneumonia = probabilities.as_tuple()

    if stats.contrast > HIGH_CONTRAST:
        pneumonia *= CONTRAST_FACTOR

    low, high = DARK_RATIO_RANGE
    if low < stats.dark_pixel_ratio < high:
        pneumonia *= DARK_RATIO_FACTOR

    if stats.avg_brightness < LOW_BRIGHTNESS:
        pneumonia *= LOW_BRIGHTNESS_FACTOR
    elif stats.avg_brightness > HIGH_BRIGHTNESS:
        normal *= HIGH_BRIGHTNESS_FACTOR

    total = normal + pneumonia
    return ProbabilityVector(normal=normal / total, pneumonia=pneumonia / total)


def sharpen(probabilities: ProbabilityVector) -> ProbabilityVector:
    """
    Push the winning class up by a fixed boost, capped at 0.95.

    The loser is set to ``1 - winner`` so the pair sums to exactly one.
    """
    normal, pneumonia = probabilities.as_tuple()

    if pneumonia > normal:
        winner = min(MAX_CONFIDENCE, pneumonia + DECISIVENESS_BOOST)
        return ProbabilityVector(normal=1.0 - winner, pneumonia=winner)

    winner = min(MAX_CONFIDENCE, normal + DECISIVENESS_BOOST)
    return ProbabilityVector(normal=winner, pneumonia=1.0 - winner)


def adjust_confidence(probabilities: ProbabilityVector, stats: PixelStatistics) -> ProbabilityVector:
    """Apply ``reweight`` then ``sharpen``."""
    return sharpen(reweight(probabilities, stats))
