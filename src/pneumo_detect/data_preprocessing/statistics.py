"""
Pixel statistics used by the heuristic confidence adjustment.
"""

from dataclasses import dataclass

import cv2
import numpy as np


# Luminance below this value counts as a dark pixel
DARK_PIXEL_THRESHOLD = 100


@dataclass(frozen=True)
class PixelStatistics:
    """Brightness summary of an image at the model resolution."""

    avg_brightness: float
    contrast: float
    dark_pixel_ratio: float


def compute_pixel_statistics(image: np.ndarray) -> PixelStatistics:
    """
    Compute brightness, contrast and dark-pixel ratio.

    Args:
        image: RGB (H, W, 3) or grayscale (H, W) uint8 image, already resized

    Returns:
        PixelStatistics on the 0-255 luminance scale
    """
    if image.ndim == 3:
        gray = cv2.cvtColor(image, cv2.COLOR_RGB2GRAY)
    else:
        gray = image

    luminance = gray.astype(np.float64)

    return PixelStatistics(
        avg_brightness=float(luminance.mean()),
        contrast=float(luminance.std()),
        dark_pixel_ratio=float(np.mean(luminance < DARK_PIXEL_THRESHOLD)),
    )
