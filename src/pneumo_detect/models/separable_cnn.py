"""
Deep separable-convolution network (inverted residual blocks with squeeze-and-excite).
"""

from dataclasses import dataclass
from typing import Tuple

import torch
import torch.nn as nn
import torch.nn.functional as F
from torchvision.ops import Conv2dNormActivation, SqueezeExcitation
from loguru import logger


STEM_CHANNELS = 32
SQUEEZE_RATIO = 0.25


@dataclass(frozen=True)
class BlockSpec:
    out_channels: int
    kernel_size: int
    stride: int
    expand_ratio: int


def _block_table() -> Tuple[BlockSpec, ...]:
    widths = (16, 24, 24, 40, 40, 80, 80, 80, 112, 112, 112, 192, 192, 192, 192, 320)
    kernels = (3, 3, 3, 5, 5, 3, 3, 3, 5, 5, 5, 5, 5, 5, 5, 3)
    strides = (1, 2, 1, 2, 1, 2, 1, 1, 1, 1, 1, 2, 1, 1, 1, 1)
    return tuple(
        BlockSpec(w, k, s, 1 if i == 0 else 6)
        for i, (w, k, s) in enumerate(zip(widths, kernels, strides))
    )


BLOCK_SPECS = _block_table()


class InvertedResidualBlock(nn.Module):
    """
    Expand -> depthwise -> squeeze-and-excite -> project.

    The input is added back when the block keeps both resolution and width.
    """

    def __init__(self, in_channels: int, spec: BlockSpec, squeeze_ratio: float = SQUEEZE_RATIO):
        super().__init__()

        self.use_residual = spec.stride == 1 and in_channels == spec.out_channels
        hidden = in_channels * spec.expand_ratio

        layers = []
        if spec.expand_ratio != 1:
            layers.append(Conv2dNormActivation(
                in_channels, hidden, kernel_size=1, activation_layer=nn.SiLU
            ))

        layers.append(Conv2dNormActivation(
            hidden, hidden,
            kernel_size=spec.kernel_size,
            stride=spec.stride,
            groups=hidden,
            activation_layer=nn.SiLU
        ))

        # global-average-pool -> reduce -> SiLU -> expand -> sigmoid -> gate
        squeeze_channels = max(1, int(in_channels * squeeze_ratio))
        layers.append(SqueezeExcitation(hidden, squeeze_channels, activation=nn.SiLU))

        layers.append(Conv2dNormActivation(
            hidden, spec.out_channels, kernel_size=1, activation_layer=None
        ))

        self.block = nn.Sequential(*layers)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        out = self.block(x)
        if self.use_residual:
            out = out + x
        return out


class DeepSeparableCNN(nn.Module):
    """
    Sixteen-block separable-convolution classifier.

    Features:
    - Strided 3x3 stem
    - Inverted residual blocks with squeeze-and-excite gating
    - Global-average-pool head with dropout and a two-way softmax
    """

    def __init__(
        self,
        num_classes: int = 2,
        dropout_rate: float = 0.2,
        block_specs: Tuple[BlockSpec, ...] = BLOCK_SPECS
    ):
        """
        Initialize the network.

        Args:
            num_classes: Number of output classes
            dropout_rate: Dropout before the output layer (inactive in eval mode)
            block_specs: Block configuration table
        """
        super().__init__()

        self.stem = Conv2dNormActivation(
            3, STEM_CHANNELS, kernel_size=3, stride=2, activation_layer=nn.SiLU
        )

        blocks = []
        in_channels = STEM_CHANNELS
        for spec in block_specs:
            blocks.append(InvertedResidualBlock(in_channels, spec))
            in_channels = spec.out_channels
        self.blocks = nn.Sequential(*blocks)

        self.pool = nn.AdaptiveAvgPool2d(1)
        self.dropout = nn.Dropout(p=dropout_rate)
        self.classifier = nn.Linear(in_channels, num_classes)

        self._initialize_weights()

        logger.info(f"DeepSeparableCNN initialized: {len(block_specs)} blocks, "
                    f"head width={in_channels}")

    def _initialize_weights(self):
        """Initialize convolution and linear weights."""
        for m in self.modules():
            if isinstance(m, nn.Conv2d):
                nn.init.kaiming_normal_(m.weight, mode='fan_out')
                if m.bias is not None:
                    nn.init.zeros_(m.bias)
            elif isinstance(m, nn.BatchNorm2d):
                nn.init.ones_(m.weight)
                nn.init.zeros_(m.bias)
            elif isinstance(m, nn.Linear):
                nn.init.uniform_(m.weight, -0.01, 0.01)
                nn.init.zeros_(m.bias)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        """
        Forward pass.

        Args:
            x: Input tensor (B, H, W, 3)

        Returns:
            Class probabilities (B, num_classes)
        """
        x = x.permute(0, 3, 1, 2)
        x = self.blocks(self.stem(x))
        x = torch.flatten(self.pool(x), 1)
        logits = self.classifier(self.dropout(x))
        return F.softmax(logits, dim=1)


def create_separable_cnn(dropout_rate: float = 0.2, seed: int = 42) -> DeepSeparableCNN:
    """
    Factory function to create a deterministically initialized DeepSeparableCNN.

    Args:
        dropout_rate: Dropout probability of the head
        seed: Seed for parameter initialization

    Returns:
        DeepSeparableCNN instance in eval mode
    """
    with torch.random.fork_rng(devices=[]):
        torch.manual_seed(seed)
        model = DeepSeparableCNN(dropout_rate=dropout_rate)
    return model.eval()
