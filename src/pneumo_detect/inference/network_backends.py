"""
Backends that run a locally constructed torch network.
"""

from typing import Optional, Sequence, Tuple

import numpy as np
import torch
from loguru import logger

from ..data_preprocessing import PreprocessConfig, compute_pixel_statistics
from ..models import create_compact_cnn, create_feature_classifier, create_separable_cnn
from .adjuster import adjust_confidence
from .backend import TensorBackend
from .types import ArchitectureKind, ModelDescriptor, ProbabilityVector


NON_DIAGNOSTIC_NOTE = (
    "Heuristic baseline: untrained classifier head with rule-based adjustment. "
    "Not a diagnostic result."
)


class CompactCNNBackend(TensorBackend):
    """Three-stage CNN on nearest-neighbour resized RGB input in [0, 1]."""

    def __init__(
        self,
        version: str = 'compact-cnn-v1.0',
        image_size: int = 224,
        interpolation: str = 'nearest',
        seed: int = 42,
        device: str = 'cpu'
    ):
        super().__init__(
            ModelDescriptor(version, ArchitectureKind.COMPACT_CNN),
            PreprocessConfig(image_size=image_size, interpolation=interpolation),
            device=device
        )
        self.seed = seed

    def _create_model(self) -> torch.nn.Module:
        return create_compact_cnn(image_size=self.preprocessor.config.image_size, seed=self.seed)


class DeepSeparableCNNBackend(TensorBackend):
    """Sixteen-block separable CNN on bilinear resized RGB input in [0, 1]."""

    def __init__(
        self,
        version: str = 'separable-cnn-v1.0',
        image_size: int = 224,
        interpolation: str = 'bilinear',
        dropout_rate: float = 0.2,
        seed: int = 42,
        device: str = 'cpu'
    ):
        super().__init__(
            ModelDescriptor(version, ArchitectureKind.SEPARABLE_CNN),
            PreprocessConfig(image_size=image_size, interpolation=interpolation),
            device=device
        )
        self.dropout_rate = dropout_rate
        self.seed = seed

    def _create_model(self) -> torch.nn.Module:
        return create_separable_cnn(dropout_rate=self.dropout_rate, seed=self.seed)


class FeatureHeuristicBackend(TensorBackend):
    """
    Pretrained embedding, untrained head, then the confidence adjuster.

    Input is collapsed to luminance and replicated to three channels, since
    the feature extractor was trained on natural RGB imagery. The results are
    labelled non-diagnostic.
    """

    def __init__(
        self,
        version: str = 'feature-heuristic-v1.0',
        image_size: int = 224,
        interpolation: str = 'bilinear',
        backbone: str = 'mobilenetv2_100',
        pretrained: bool = True,
        hidden_units: Sequence[int] = (256, 128),
        dropout_rates: Sequence[float] = (0.5, 0.3),
        seed: int = 42,
        device: str = 'cpu'
    ):
        super().__init__(
            ModelDescriptor(version, ArchitectureKind.FEATURE_HEURISTIC, diagnostic=False),
            PreprocessConfig(image_size=image_size, interpolation=interpolation, grayscale=True),
            device=device
        )
        self.backbone = backbone
        self.pretrained = pretrained
        self.hidden_units = tuple(hidden_units)
        self.dropout_rates = tuple(dropout_rates)
        self.seed = seed

    def _create_model(self) -> torch.nn.Module:
        logger.warning(f"{self.descriptor.version} is a non-diagnostic heuristic baseline; "
                       f"its classifier head is not trained")
        return create_feature_classifier(
            backbone=self.backbone,
            pretrained=self.pretrained,
            hidden_units=self.hidden_units,
            dropout_rates=self.dropout_rates,
            seed=self.seed
        )

    def _postprocess(
        self,
        probabilities: ProbabilityVector,
        pixels: np.ndarray
    ) -> Tuple[ProbabilityVector, Optional[str]]:
        stats = compute_pixel_statistics(pixels)
        adjusted = adjust_confidence(probabilities, stats)
        logger.debug(f"Adjusted {probabilities.as_tuple()} -> {adjusted.as_tuple()} "
                     f"(brightness={stats.avg_brightness:.1f}, contrast={stats.contrast:.1f}, "
                     f"dark={stats.dark_pixel_ratio:.2f})")
        return adjusted, NON_DIAGNOSTIC_NOTE
