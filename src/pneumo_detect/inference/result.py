"""
Conversion of backend outputs into classification results.
"""

import time
from typing import Optional

from .types import ClassificationResult, ModelDescriptor, ProbabilityVector, Status


CONFIDENCE_DECIMALS = 4


def elapsed_ms(started_at: float) -> int:
    """Milliseconds since a ``time.perf_counter()`` reading."""
    return max(0, int(round((time.perf_counter() - started_at) * 1000)))


def normalize_confidence(value: float) -> float:
    """
    Bring a confidence onto the [0, 1] scale.

    Values above 1 are read as percentages.
    """
    value = float(value)
    if value > 1.0:
        value = value / 100.0
    return round(min(1.0, max(0.0, value)), CONFIDENCE_DECIMALS)


def probabilities_for(status: Status, confidence: float) -> ProbabilityVector:
    """Probability pair implied by a categorical status and its confidence."""
    if status == Status.PNEUMONIA:
        return ProbabilityVector(normal=1.0 - confidence, pneumonia=confidence)
    if status == Status.NORMAL:
        return ProbabilityVector(normal=confidence, pneumonia=1.0 - confidence)
    return ProbabilityVector(normal=0.5, pneumonia=0.5)


def synthesize_result(
    probabilities: ProbabilityVector,
    started_at: float,
    descriptor: ModelDescriptor,
    notes: Optional[str] = None
) -> ClassificationResult:
    """
    Build the result for a probability pair.

    Args:
        probabilities: Final class probabilities
        started_at: ``time.perf_counter()`` reading taken when the request began
        descriptor: Descriptor of the backend that produced the probabilities
        notes: Optional free-text notes

    Returns:
        ClassificationResult with the winning class and its probability
    """
    status = probabilities.winner
    confidence = probabilities.pneumonia if status == Status.PNEUMONIA else probabilities.normal

    return ClassificationResult(
        status=status,
        confidence=round(confidence, CONFIDENCE_DECIMALS),
        processing_time_ms=elapsed_ms(started_at),
        model_version=descriptor.version,
        notes=notes,
        probabilities=probabilities
    )
