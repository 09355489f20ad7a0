"""Models package."""

from .compact_cnn import CompactCNN, create_compact_cnn
from .separable_cnn import BLOCK_SPECS, BlockSpec, DeepSeparableCNN, InvertedResidualBlock, create_separable_cnn
from .feature_head import FeatureExtractorClassifier, create_feature_classifier

__all__ = [
    'CompactCNN',
    'create_compact_cnn',
    'BLOCK_SPECS',
    'BlockSpec',
    'DeepSeparableCNN',
    'InvertedResidualBlock',
    'create_separable_cnn',
    'FeatureExtractorClassifier',
    'create_feature_classifier'
]
