"""
Scoring backend contract shared by every classifier variant.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Optional, Tuple

import numpy as np
import torch
from loguru import logger

from ..data_preprocessing import ImagePreprocessor, PreprocessConfig
from ..exceptions import DetectionError, InferenceError
from .lifecycle import LifecycleManager, TensorArena
from .result import synthesize_result
from .types import ClassificationResult, ModelDescriptor, ProbabilityVector, ServiceState


class ScoringBackend(ABC):
    """
    Base class for the five scoring strategies.

    Public operations go through the LifecycleManager: ``classify`` and
    ``analyze`` raise NotReadyError unless the backend is Ready, and all
    operations on one backend are serialized.
    """

    def __init__(self, descriptor: ModelDescriptor):
        self.descriptor = descriptor
        self.lifecycle = LifecycleManager(descriptor.version)

    @property
    def state(self) -> ServiceState:
        return self.lifecycle.state

    def is_ready(self) -> bool:
        return self.lifecycle.is_ready()

    def version(self) -> ModelDescriptor:
        return self.descriptor

    async def initialize(self):
        """Construct backend resources. Idempotent while Ready."""
        await self.lifecycle.initialize(self._build, self._release)

    async def dispose(self):
        """Release backend resources; the backend cannot be used afterwards."""
        await self.lifecycle.dispose(self._release)

    async def classify(self, tensor: torch.Tensor) -> ProbabilityVector:
        """
        Score a preprocessed image tensor.

        Args:
            tensor: Image tensor (1, S, S, 3); not modified

        Returns:
            ProbabilityVector (normal, pneumonia)
        """
        async with self.lifecycle.serving():
            return await self._classify(tensor)

    async def analyze(self, data: bytes) -> ClassificationResult:
        """
        Run the full pipeline of this backend on raw image bytes.

        Args:
            data: JPEG or PNG bytes

        Returns:
            ClassificationResult
        """
        async with self.lifecycle.serving():
            return await self._analyze(data)

    @abstractmethod
    async def _build(self):
        pass

    @abstractmethod
    async def _release(self):
        pass

    @abstractmethod
    async def _classify(self, tensor: torch.Tensor) -> ProbabilityVector:
        pass

    @abstractmethod
    async def _analyze(self, data: bytes) -> ClassificationResult:
        pass


class TensorBackend(ScoringBackend):
    """
    Backend that runs a torch module on the preprocessed tensor.

    Subclasses provide ``_create_model``; they may override ``_postprocess``
    to adjust the raw probabilities using the resized pixels.
    """

    def __init__(
        self,
        descriptor: ModelDescriptor,
        preprocess_config: Optional[PreprocessConfig] = None,
        device: str = 'cpu'
    ):
        super().__init__(descriptor)
        self.preprocessor = ImagePreprocessor(preprocess_config)
        self.device = device
        self.model: Optional[torch.nn.Module] = None

    @property
    def input_shape(self) -> Tuple[int, int, int, int]:
        size = self.preprocessor.config.image_size
        return (1, size, size, 3)

    @abstractmethod
    def _create_model(self) -> torch.nn.Module:
        pass

    async def _build(self):
        model = await asyncio.to_thread(self._create_model)
        self.model = model.to(self.device).eval()
        num_params = sum(p.numel() for p in self.model.parameters())
        logger.info(f"{self.descriptor.version}: {num_params:,} parameters on {self.device}")

    async def _release(self):
        self.model = None
        if str(self.device).startswith('cuda'):
            torch.cuda.empty_cache()

    def _forward(self, tensor: torch.Tensor, arena: TensorArena) -> ProbabilityVector:
        with torch.inference_mode():
            batch = arena.track(tensor.to(self.device, torch.float32))
            output = arena.track(self.model(batch))
            return ProbabilityVector.from_tensor(output)

    async def _classify(self, tensor: torch.Tensor) -> ProbabilityVector:
        if tuple(tensor.shape) != self.input_shape:
            raise InferenceError(
                f"Expected input shape {self.input_shape}, got {tuple(tensor.shape)}"
            )

        with TensorArena(self.descriptor.version) as arena:
            try:
                return await asyncio.to_thread(self._forward, tensor, arena)
            except DetectionError:
                raise
            except Exception as e:
                logger.error(f"Forward pass failed in {self.descriptor.version}: {e}")
                raise InferenceError(f"Failed to analyze image: {e}") from e

    def _postprocess(
        self,
        probabilities: ProbabilityVector,
        pixels: np.ndarray
    ) -> Tuple[ProbabilityVector, Optional[str]]:
        return probabilities, None

    async def _analyze(self, data: bytes) -> ClassificationResult:
        started_at = time.perf_counter()

        pixels = await asyncio.to_thread(
            lambda: self.preprocessor.prepare(self.preprocessor.decode(data))
        )

        with TensorArena(f"{self.descriptor.version}:analyze") as arena:
            tensor = arena.track(self.preprocessor.to_tensor(pixels))
            probabilities = await self._classify(tensor)

        probabilities, notes = self._postprocess(probabilities, pixels)
        result = synthesize_result(probabilities, started_at, self.descriptor, notes)

        logger.info(f"{self.descriptor.version}: {result.status.value} "
                    f"(confidence={result.confidence:.4f}, {result.processing_time_ms} ms)")
        return result
