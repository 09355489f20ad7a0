"""
Randomized reference backend that needs no model.
"""

import asyncio
import random
import time
from dataclasses import dataclass
from typing import Optional, Tuple

import torch
from loguru import logger

from .backend import ScoringBackend
from .result import elapsed_ms, normalize_confidence, probabilities_for
from .types import ArchitectureKind, ClassificationResult, ModelDescriptor, ProbabilityVector, Status


POSITIVE_RATE = 0.30
NEGATIVE_UPPER = 0.85

POSITIVE_NOTES = (
    "Findings consistent with pneumonia: areas of increased opacity detected "
    "in the lung fields. Clinical correlation recommended."
)
NEGATIVE_NOTES = "No significant abnormalities detected in the lung fields."
INCONCLUSIVE_NOTES = (
    "Image findings are insufficient for a confident assessment. "
    "Review by a radiologist is recommended."
)


@dataclass(frozen=True)
class MockDraw:
    status: Status
    confidence: float
    notes: str


class MockGeneratorBackend(ScoringBackend):
    """
    Produces results from uniform random draws after a simulated delay.

    ``r < 0.30`` gives Pneumonia, ``0.30 <= r < 0.85`` Normal and the rest
    Inconclusive; the confidence comes from an independent second draw.
    """

    def __init__(
        self,
        version: str = 'mock-v1.0',
        latency_ms: Tuple[float, float] = (2000, 4000),
        rng: Optional[random.Random] = None
    ):
        super().__init__(ModelDescriptor(version, ArchitectureKind.MOCK, diagnostic=False))
        low, high = latency_ms
        if low < 0 or high < low:
            raise ValueError(f"Invalid latency range: {latency_ms}")
        self.latency_ms = (float(low), float(high))
        self.rng = rng or random.Random()

    def draw(self) -> MockDraw:
        r = self.rng.random()
        spread = self.rng.random()

        if r < POSITIVE_RATE:
            return MockDraw(Status.PNEUMONIA, normalize_confidence(65 + spread * 30), POSITIVE_NOTES)
        if r < NEGATIVE_UPPER:
            return MockDraw(Status.NORMAL, normalize_confidence(70 + spread * 25), NEGATIVE_NOTES)
        return MockDraw(Status.INCONCLUSIVE, normalize_confidence(45 + spread * 20), INCONCLUSIVE_NOTES)

    def _delay_seconds(self) -> float:
        low, high = self.latency_ms
        return (low + self.rng.random() * (high - low)) / 1000.0

    async def _build(self):
        logger.info(f"{self.descriptor.version}: simulated latency {self.latency_ms} ms")

    async def _release(self):
        pass

    async def _classify(self, tensor: torch.Tensor) -> ProbabilityVector:
        outcome = self.draw()
        return probabilities_for(outcome.status, outcome.confidence)

    async def _analyze(self, data: bytes) -> ClassificationResult:
        started_at = time.perf_counter()
        await asyncio.sleep(self._delay_seconds())

        outcome = self.draw()
        result = ClassificationResult(
            status=outcome.status,
            confidence=outcome.confidence,
            processing_time_ms=elapsed_ms(started_at),
            model_version=self.descriptor.version,
            notes=outcome.notes,
            probabilities=probabilities_for(outcome.status, outcome.confidence)
        )
        logger.info(f"{self.descriptor.version}: {result.status.value} "
                    f"(confidence={result.confidence:.4f})")
        return result
