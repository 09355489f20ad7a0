"""
Pretrained feature extractor with an untrained two-way head.
"""

from typing import Sequence, Tuple, Union

import timm
import torch
import torch.nn as nn
import torch.nn.functional as F
from loguru import logger


IMAGENET_MEAN = (0.485, 0.456, 0.406)
IMAGENET_STD = (0.229, 0.224, 0.225)

HEAD_BIAS = 0.01
# Added to the weights of every head layer after the first
HEAD_WEIGHT_OFFSET = 0.01


class FeatureExtractorClassifier(nn.Module):
    """
    General-purpose image embedding followed by a dense head.

    The backbone comes from timm (ImageNet weights, not trained on chest
    X-rays). The head is never fitted to data: it is Glorot-initialized from
    a fixed seed, so its outputs are plausible-looking but arbitrary.
    """

    def __init__(
        self,
        backbone: str = 'mobilenetv2_100',
        pretrained: bool = True,
        num_classes: int = 2,
        hidden_units: Sequence[int] = (256, 128),
        dropout_rates: Sequence[float] = (0.5, 0.3)
    ):
        """
        Initialize the classifier.

        Args:
            backbone: timm model name used as feature extractor
            pretrained: Whether to load ImageNet pretrained weights
            num_classes: Number of output classes
            hidden_units: Widths of the two dense hidden layers
            dropout_rates: Dropout after each hidden layer
        """
        super().__init__()

        self.backbone = timm.create_model(
            backbone,
            pretrained=pretrained,
            num_classes=0,  # Remove classifier
            global_pool='avg'
        )

        if pretrained:
            logger.info(f"Loaded {backbone} with ImageNet pretrained weights")
        else:
            logger.info(f"Initialized {backbone} without pretrained weights")

        self.register_buffer('mean', torch.tensor(IMAGENET_MEAN).view(1, 3, 1, 1))
        self.register_buffer('std', torch.tensor(IMAGENET_STD).view(1, 3, 1, 1))

        num_features = self.backbone.num_features

        self.classifier = nn.Sequential(
            nn.Linear(num_features, hidden_units[0]),
            nn.ReLU(inplace=True),
            nn.Dropout(p=dropout_rates[0]),

            nn.Linear(hidden_units[0], hidden_units[1]),
            nn.ReLU(inplace=True),
            nn.Dropout(p=dropout_rates[1]),

            nn.Linear(hidden_units[1], num_classes)
        )

        self._initialize_weights()

        # Backbone is inference-only
        for param in self.backbone.parameters():
            param.requires_grad = False

        logger.info(f"Feature classifier initialized: embedding={num_features}, "
                    f"head={list(hidden_units)} -> {num_classes}")

    def _initialize_weights(self):
        """Initialize classifier weights."""
        linear_layers = [m for m in self.classifier.modules() if isinstance(m, nn.Linear)]
        with torch.no_grad():
            for index, m in enumerate(linear_layers):
                nn.init.xavier_uniform_(m.weight)
                if index > 0:
                    m.weight.add_(HEAD_WEIGHT_OFFSET)
                nn.init.constant_(m.bias, HEAD_BIAS)

    def get_features(self, x: torch.Tensor) -> torch.Tensor:
        """
        Extract the embedding.

        Args:
            x: Input tensor (B, H, W, 3) in [0, 1]

        Returns:
            Features tensor (B, num_features)
        """
        x = x.permute(0, 3, 1, 2)
        x = (x - self.mean) / self.std
        return self.backbone(x)

    def forward(
        self,
        x: torch.Tensor,
        return_features: bool = False
    ) -> Union[torch.Tensor, Tuple[torch.Tensor, torch.Tensor]]:
        """
        Forward pass.

        Args:
            x: Input tensor (B, H, W, 3) in [0, 1]
            return_features: Whether to return the embedding too

        Returns:
            Class probabilities (B, num_classes) or tuple of (probabilities, features)
        """
        features = self.get_features(x)
        probabilities = F.softmax(self.classifier(features), dim=1)

        if return_features:
            return probabilities, features
        return probabilities


def create_feature_classifier(
    backbone: str = 'mobilenetv2_100',
    pretrained: bool = True,
    hidden_units: Sequence[int] = (256, 128),
    dropout_rates: Sequence[float] = (0.5, 0.3),
    seed: int = 42
) -> FeatureExtractorClassifier:
    """
    Factory function to create the feature classifier.

    Args:
        backbone: timm model name
        pretrained: Whether to use ImageNet pretrained weights
        hidden_units: Head hidden layer widths
        dropout_rates: Head dropout probabilities
        seed: Seed for head initialization

    Returns:
        FeatureExtractorClassifier instance in eval mode
    """
    with torch.random.fork_rng(devices=[]):
        torch.manual_seed(seed)
        model = FeatureExtractorClassifier(
            backbone=backbone,
            pretrained=pretrained,
            hidden_units=tuple(hidden_units),
            dropout_rates=tuple(dropout_rates)
        )
    return model.eval()
