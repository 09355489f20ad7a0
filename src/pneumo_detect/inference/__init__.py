"""Inference package."""

from .types import (
    ArchitectureKind,
    ClassificationResult,
    ModelDescriptor,
    ProbabilityVector,
    ServiceState,
    Status
)
from .lifecycle import LifecycleManager, TensorArena
from .adjuster import adjust_confidence, reweight, sharpen
from .result import synthesize_result
from .backend import ScoringBackend, TensorBackend
from .network_backends import CompactCNNBackend, DeepSeparableCNNBackend, FeatureHeuristicBackend
from .mock import MockGeneratorBackend
from .remote import RemoteDelegateBackend
from .service import PneumoniaDetectionService, create_backend

__all__ = [
    'ArchitectureKind',
    'ClassificationResult',
    'ModelDescriptor',
    'ProbabilityVector',
    'ServiceState',
    'Status',
    'LifecycleManager',
    'TensorArena',
    'adjust_confidence',
    'reweight',
    'sharpen',
    'synthesize_result',
    'ScoringBackend',
    'TensorBackend',
    'CompactCNNBackend',
    'DeepSeparableCNNBackend',
    'FeatureHeuristicBackend',
    'MockGeneratorBackend',
    'RemoteDelegateBackend',
    'PneumoniaDetectionService',
    'create_backend'
]
