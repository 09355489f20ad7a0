"""
Shared pytest fixtures: encoded test images and a CPU-only configuration.
"""

import sys
from pathlib import Path

import cv2
import numpy as np
import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from pneumo_detect.utils import Config


def encode_image(rgb: np.ndarray, extension: str = '.png') -> bytes:
    """Encode an RGB (H, W, 3) or grayscale (H, W) uint8 array."""
    if rgb.ndim == 3:
        rgb = cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR)
    ok, encoded = cv2.imencode(extension, rgb)
    assert ok
    return encoded.tobytes()


@pytest.fixture
def white_png() -> bytes:
    """All-white 300x400 PNG."""
    return encode_image(np.full((300, 400, 3), 255, dtype=np.uint8))


@pytest.fixture
def black_png() -> bytes:
    """All-black 256x256 PNG."""
    return encode_image(np.zeros((256, 256, 3), dtype=np.uint8))


@pytest.fixture
def xray_like_jpeg() -> bytes:
    """Synthetic chest-film-like JPEG: bright body, two darker lung fields, noise."""
    rng = np.random.default_rng(7)
    image = np.full((512, 420), 190, dtype=np.float64)
    yy, xx = np.mgrid[0:512, 0:420]
    for cx in (130, 290):
        lung = ((xx - cx) / 70.0) ** 2 + ((yy - 250) / 160.0) ** 2 < 1.0
        image[lung] = 70
    image += rng.normal(0, 12, image.shape)
    gray = np.clip(image, 0, 255).astype(np.uint8)
    return encode_image(gray, '.jpg')


@pytest.fixture
def test_config() -> Config:
    """CPU configuration with no downloads, no simulated latency and no log files."""
    return Config.from_dict({
        'model': {
            'backend': 'mock',
            'feature_heuristic': {'pretrained': False},
        },
        'inference': {
            'device': 'cpu',
            'mock': {'latency_ms': [0, 0]},
        },
        'logging': {'log_dir': None},
    })
