"""
Compact three-stage CNN for pneumonia classification.
"""

import torch
import torch.nn as nn
import torch.nn.functional as F
from loguru import logger


class CompactCNN(nn.Module):
    """
    Small convolutional classifier.

    Three conv(3x3) -> ReLU -> maxpool(2) stages followed by a dense head
    ending in a two-way softmax. Weights are randomly initialized; there is
    no training step in this package.
    """

    def __init__(
        self,
        image_size: int = 224,
        num_classes: int = 2,
        channels: tuple = (32, 64, 128),
        hidden_units: int = 128,
        dropout_rates: tuple = (0.5, 0.3)
    ):
        """
        Initialize the compact CNN.

        Args:
            image_size: Square input resolution
            num_classes: Number of output classes
            channels: Output channels of the three conv stages
            hidden_units: Width of the dense hidden layer
            dropout_rates: Dropout before and after the hidden layer
        """
        super().__init__()

        layers = []
        in_channels = 3
        for out_channels in channels:
            layers.extend([
                nn.Conv2d(in_channels, out_channels, kernel_size=3),
                nn.ReLU(inplace=True),
                nn.MaxPool2d(kernel_size=2),
            ])
            in_channels = out_channels
        self.features = nn.Sequential(*layers)

        spatial = self._feature_size(image_size, len(channels))

        self.classifier = nn.Sequential(
            nn.Flatten(),
            nn.Dropout(p=dropout_rates[0]),
            nn.Linear(in_channels * spatial * spatial, hidden_units),
            nn.ReLU(inplace=True),
            nn.Dropout(p=dropout_rates[1]),
            nn.Linear(hidden_units, num_classes)
        )

        logger.info(f"CompactCNN initialized: input={image_size}, channels={channels}, "
                    f"flattened={in_channels * spatial * spatial}")

    @staticmethod
    def _feature_size(image_size: int, num_stages: int) -> int:
        size = image_size
        for _ in range(num_stages):
            # valid 3x3 convolution, then 2x2 pooling
            size = (size - 2) // 2
        if size <= 0:
            raise ValueError(f"Input size {image_size} too small for {num_stages} stages")
        return size

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        """
        Forward pass.

        Args:
            x: Input tensor (B, H, W, 3)

        Returns:
            Class probabilities (B, num_classes)
        """
        x = x.permute(0, 3, 1, 2)
        logits = self.classifier(self.features(x))
        return F.softmax(logits, dim=1)


def create_compact_cnn(image_size: int = 224, seed: int = 42) -> CompactCNN:
    """
    Factory function to create a deterministically initialized CompactCNN.

    Args:
        image_size: Square input resolution
        seed: Seed for parameter initialization

    Returns:
        CompactCNN instance in eval mode
    """
    with torch.random.fork_rng(devices=[]):
        torch.manual_seed(seed)
        model = CompactCNN(image_size=image_size)
    return model.eval()
