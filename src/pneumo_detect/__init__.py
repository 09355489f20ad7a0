"""Pneumonia Detection Service - Source Package."""

__version__ = "2.0.0"
__author__ = "Medical AI Team"
__description__ = "Chest X-ray pneumonia screening with interchangeable scoring backends"

from . import exceptions
from . import utils
from . import data_preprocessing
from . import models
from . import inference

__all__ = [
    'exceptions',
    'utils',
    'data_preprocessing',
    'models',
    'inference'
]
