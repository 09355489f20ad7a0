"""
Value types passed between the pipeline stages.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Sequence

import torch

from ..exceptions import InferenceError


PROBABILITY_TOLERANCE = 1e-3


class Status(str, Enum):
    """Categorical outcome reported to collaborators."""

    NORMAL = "Normal"
    PNEUMONIA = "Pneumonia"
    INCONCLUSIVE = "Inconclusive"


class ArchitectureKind(str, Enum):
    """Configuration tag selecting a scoring backend."""

    COMPACT_CNN = "compact_cnn"
    SEPARABLE_CNN = "separable_cnn"
    FEATURE_HEURISTIC = "feature_heuristic"
    MOCK = "mock"
    REMOTE = "remote"


class ServiceState(str, Enum):
    """Lifecycle states of a scoring backend."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"
    DISPOSED = "disposed"


@dataclass(frozen=True)
class ModelDescriptor:
    """Identity of a backend, constant for its lifetime."""

    version: str
    architecture: ArchitectureKind
    diagnostic: bool = True


@dataclass(frozen=True)
class ProbabilityVector:
    """
    Two-class probability pair ``(normal, pneumonia)``.

    Construction validates that both components are finite, lie in ``[0, 1]``
    and sum to one within ``PROBABILITY_TOLERANCE``.
    """

    normal: float
    pneumonia: float

    def __post_init__(self):
        for name, value in (("normal", self.normal), ("pneumonia", self.pneumonia)):
            if not math.isfinite(value) or value < 0.0 or value > 1.0:
                raise InferenceError(f"Probability '{name}' out of range: {value}")
        total = self.normal + self.pneumonia
        if abs(total - 1.0) > PROBABILITY_TOLERANCE:
            raise InferenceError(f"Probabilities do not sum to 1: {total:.6f}")

    @classmethod
    def from_values(cls, values: Sequence[float]) -> "ProbabilityVector":
        if len(values) != 2:
            raise InferenceError(f"Expected 2 class scores, got {len(values)}")
        return cls(normal=float(values[0]), pneumonia=float(values[1]))

    @classmethod
    def from_tensor(cls, tensor: torch.Tensor) -> "ProbabilityVector":
        """Build from a ``(1, 2)`` or ``(2,)`` softmax output."""
        values = tensor.detach().reshape(-1).to("cpu", torch.float64).tolist()
        return cls.from_values(values)

    @property
    def winner(self) -> Status:
        # Ties resolve to Normal
        return Status.PNEUMONIA if self.pneumonia > self.normal else Status.NORMAL

    def as_tuple(self):
        return (self.normal, self.pneumonia)


@dataclass(frozen=True)
class ClassificationResult:
    """Immutable outcome of one classification request."""

    status: Status
    confidence: float
    processing_time_ms: int
    model_version: str
    notes: Optional[str] = None
    probabilities: Optional[ProbabilityVector] = field(default=None, compare=False)

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise InferenceError(f"Confidence out of range: {self.confidence}")
        if self.processing_time_ms < 0:
            raise InferenceError(f"Negative processing time: {self.processing_time_ms}")

    @property
    def prediction(self) -> Status:
        return self.status

    def to_dict(self) -> Dict[str, Any]:
        """Shape consumed by persistence and display collaborators."""
        payload = {
            'status': self.status.value,
            'confidence': self.confidence,
            'processingTimeMs': self.processing_time_ms,
            'modelVersion': self.model_version,
        }
        if self.notes is not None:
            payload['notes'] = self.notes
        return payload
