"""Data preprocessing package."""

from .intake import ImageFormat, detect_format, validate_upload, DEFAULT_MAX_UPLOAD_BYTES
from .transforms import PreprocessConfig, ImagePreprocessor, get_resize_transform
from .statistics import PixelStatistics, compute_pixel_statistics

__all__ = [
    'ImageFormat',
    'detect_format',
    'validate_upload',
    'DEFAULT_MAX_UPLOAD_BYTES',
    'PreprocessConfig',
    'ImagePreprocessor',
    'get_resize_transform',
    'PixelStatistics',
    'compute_pixel_statistics'
]
