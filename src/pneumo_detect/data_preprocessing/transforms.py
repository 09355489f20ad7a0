"""
Image decoding and tensor preparation for chest X-rays.
"""

import io
from dataclasses import dataclass
from typing import Callable

import albumentations as A
import cv2
import numpy as np
import torch
from loguru import logger
from PIL import Image, UnidentifiedImageError

from ..exceptions import DecodeError
from .intake import detect_format


INTERPOLATIONS = {
    'nearest': cv2.INTER_NEAREST,
    'bilinear': cv2.INTER_LINEAR,
}

VALUE_RANGES = ('unit', 'byte')


@dataclass(frozen=True)
class PreprocessConfig:
    """
    Per-backend preprocessing convention.

    Nearest-neighbour and bilinear resampling give different pixels, so each
    backend fixes one and keeps it.
    """

    image_size: int = 224
    interpolation: str = 'nearest'
    grayscale: bool = False
    value_range: str = 'unit'

    def __post_init__(self):
        if self.interpolation not in INTERPOLATIONS:
            raise ValueError(f"Unknown interpolation: {self.interpolation}")
        if self.value_range not in VALUE_RANGES:
            raise ValueError(f"Unknown value range: {self.value_range}")
        if self.image_size <= 0:
            raise ValueError(f"Image size must be positive: {self.image_size}")


def get_resize_transform(image_size: int = 224, interpolation: str = 'nearest') -> Callable:
    """
    Get the deterministic resize transform.

    Args:
        image_size: Target square size
        interpolation: 'nearest' or 'bilinear'

    Returns:
        Albumentations transform pipeline
    """
    return A.Compose([
        A.Resize(image_size, image_size, interpolation=INTERPOLATIONS[interpolation])
    ])


class ImagePreprocessor:
    """Turns raw JPEG/PNG bytes into a ``[1, S, S, 3]`` float tensor."""

    def __init__(self, config: PreprocessConfig = None):
        self.config = config or PreprocessConfig()
        self.resize = get_resize_transform(self.config.image_size, self.config.interpolation)

    def decode(self, data: bytes) -> np.ndarray:
        """
        Decode image bytes to an RGB uint8 array.

        Raises:
            DecodeError: If the bytes are not a decodable JPEG or PNG image
        """
        if not data or detect_format(data) is None:
            raise DecodeError("Unsupported image encoding: expected JPEG or PNG")

        buffer = np.frombuffer(data, dtype=np.uint8)
        image = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
        if image is not None:
            return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)

        try:
            with Image.open(io.BytesIO(data)) as pil_image:
                return np.array(pil_image.convert('RGB'))
        except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
            logger.warning(f"Image decode failed: {e}")
            raise DecodeError(f"Malformed image data: {e}") from e

    def prepare(self, image: np.ndarray) -> np.ndarray:
        """Resize to ``S x S`` and, if configured, collapse to replicated luminance."""
        if image.ndim == 2:
            image = cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)

        resized = self.resize(image=image)['image']

        if self.config.grayscale:
            gray = cv2.cvtColor(resized, cv2.COLOR_RGB2GRAY)
            resized = cv2.cvtColor(gray, cv2.COLOR_GRAY2RGB)

        return np.ascontiguousarray(resized, dtype=np.uint8)

    def to_tensor(self, pixels: np.ndarray) -> torch.Tensor:
        """Scale into the backend's value range and add the batch dimension."""
        tensor = torch.from_numpy(pixels.astype(np.float32))
        if self.config.value_range == 'unit':
            tensor = tensor / 255.0
        return tensor.unsqueeze(0)

    def preprocess(self, data: bytes) -> torch.Tensor:
        """
        Full preprocessing of raw image bytes.

        Args:
            data: JPEG or PNG bytes

        Returns:
            Tensor of shape (1, S, S, 3); the caller owns it
        """
        return self.to_tensor(self.prepare(self.decode(data)))
