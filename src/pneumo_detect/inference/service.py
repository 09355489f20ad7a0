"""
Explicitly owned detection service handle.
"""

from typing import Optional

import torch
from loguru import logger

from ..data_preprocessing import validate_upload, DEFAULT_MAX_UPLOAD_BYTES
from ..exceptions import ConfigurationError
from ..utils import Config, get_device
from .backend import ScoringBackend
from .mock import MockGeneratorBackend
from .network_backends import CompactCNNBackend, DeepSeparableCNNBackend, FeatureHeuristicBackend
from .remote import RemoteDelegateBackend
from .types import ArchitectureKind, ClassificationResult, ModelDescriptor, ProbabilityVector, ServiceState


def create_backend(config: Config, device: Optional[str] = None) -> ScoringBackend:
    """
    Factory function to create the backend selected by ``model.backend``.

    Args:
        config: Configuration object
        device: Torch device for network backends; resolved from config if None

    Returns:
        Uninitialized ScoringBackend
    """
    name = config.get('model.backend', ArchitectureKind.COMPACT_CNN.value)
    try:
        kind = ArchitectureKind(name)
    except ValueError as e:
        choices = ', '.join(k.value for k in ArchitectureKind)
        raise ConfigurationError(f"Unknown backend '{name}'; expected one of: {choices}") from e

    image_size = config.get('data.image_size', 224)
    seed = config.get('model.seed', 42)

    if kind == ArchitectureKind.MOCK:
        mock = config.get('inference.mock', {})
        return MockGeneratorBackend(
            version=mock.get('version', 'mock-v1.0'),
            latency_ms=tuple(mock.get('latency_ms', (2000, 4000)))
        )

    if kind == ArchitectureKind.REMOTE:
        remote = config.remote
        return RemoteDelegateBackend(
            endpoint=remote.get('endpoint'),
            api_key=remote.get('api_key'),
            timeout_seconds=float(remote.get('timeout_seconds', 30.0)),
            version=remote.get('version', 'remote-delegate')
        )

    device = device or get_device(config)

    if kind == ArchitectureKind.COMPACT_CNN:
        params = config.get('model.compact_cnn', {})
        return CompactCNNBackend(
            version=params.get('version', 'compact-cnn-v1.0'),
            image_size=image_size,
            interpolation=params.get('interpolation', 'nearest'),
            seed=seed,
            device=device
        )

    if kind == ArchitectureKind.SEPARABLE_CNN:
        params = config.get('model.separable_cnn', {})
        return DeepSeparableCNNBackend(
            version=params.get('version', 'separable-cnn-v1.0'),
            image_size=image_size,
            interpolation=params.get('interpolation', 'bilinear'),
            dropout_rate=params.get('dropout_rate', 0.2),
            seed=seed,
            device=device
        )

    params = config.get('model.feature_heuristic', {})
    return FeatureHeuristicBackend(
        version=params.get('version', 'feature-heuristic-v1.0'),
        image_size=image_size,
        interpolation=params.get('interpolation', 'bilinear'),
        backbone=params.get('backbone', 'mobilenetv2_100'),
        pretrained=params.get('pretrained', True),
        hidden_units=params.get('hidden_units', (256, 128)),
        dropout_rates=params.get('dropout_rates', (0.5, 0.3)),
        seed=seed,
        device=device
    )


class PneumoniaDetectionService:
    """
    Handle owning exactly one scoring backend.

    Construct it, ``await initialize()``, pass it to callers, and
    ``await dispose()`` when done; it is also an async context manager::

        async with PneumoniaDetectionService(config) as service:
            result = await service.analyze_upload(data, "image/png")
    """

    def __init__(self, config: Optional[Config] = None, backend: Optional[ScoringBackend] = None):
        self.config = config or Config()
        self.backend = backend or create_backend(self.config)
        self.max_upload_bytes = self.config.get('data.max_upload_bytes', DEFAULT_MAX_UPLOAD_BYTES)

        logger.info(f"Detection service created with backend {self.backend.descriptor.version}")

    @property
    def state(self) -> ServiceState:
        return self.backend.state

    @property
    def descriptor(self) -> ModelDescriptor:
        return self.backend.version()

    @property
    def model_version(self) -> str:
        return self.backend.version().version

    def is_ready(self) -> bool:
        return self.backend.is_ready()

    async def initialize(self):
        await self.backend.initialize()

    async def dispose(self):
        await self.backend.dispose()

    async def classify(self, tensor: torch.Tensor) -> ProbabilityVector:
        return await self.backend.classify(tensor)

    async def analyze(self, data: bytes) -> ClassificationResult:
        """Classify raw image bytes with the active backend."""
        return await self.backend.analyze(data)

    async def analyze_upload(self, data: bytes, content_type: Optional[str] = None) -> ClassificationResult:
        """Validate an upload (JPEG/PNG, size limit) and classify it."""
        validate_upload(data, content_type=content_type, max_bytes=self.max_upload_bytes)
        return await self.analyze(data)

    async def __aenter__(self) -> "PneumoniaDetectionService":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.dispose()
        return False
