"""Utility package for the pneumonia detection service."""

from .config import Config, setup_logging, get_device

__all__ = ['Config', 'setup_logging', 'get_device']
