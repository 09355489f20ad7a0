"""
Utility functions for configuration management.
"""

import copy
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import find_dotenv, load_dotenv
from loguru import logger


DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "configs" / "config.yaml"

# Environment variables that override configuration keys
ENV_OVERRIDES = {
    'PNEUMO_BACKEND': 'model.backend',
    'PNEUMO_DEVICE': 'inference.device',
    'PNEUMO_REMOTE_ENDPOINT': 'remote.endpoint',
    'PNEUMO_REMOTE_API_KEY': 'remote.api_key',
}


class Config:
    """Configuration manager for the pneumonia detection service."""

    REQUIRED_SECTIONS = ('data', 'model', 'inference', 'remote', 'logging')

    def __init__(
        self,
        config_path: Optional[str] = None,
        config_dict: Optional[Dict[str, Any]] = None,
        use_env: bool = True
    ):
        """
        Initialize configuration.

        Args:
            config_path: Path to YAML configuration file. If None, uses the bundled default.
            config_dict: Already-parsed configuration; takes precedence over config_path.
            use_env: Whether to apply PNEUMO_* environment overrides (and load .env).
        """
        if config_dict is not None:
            self.config_path = None
            self.config = copy.deepcopy(config_dict)
        else:
            self.config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
            self.config = self._load_config()

        if use_env:
            self._apply_env_overrides()
        self._validate_config()

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any], use_env: bool = False) -> "Config":
        """Build a configuration from a dict, merged over the bundled defaults."""
        base = cls._read_yaml(DEFAULT_CONFIG_PATH)
        merged = _deep_merge(base, config_dict)
        return cls(config_dict=merged, use_env=use_env)

    @staticmethod
    def _read_yaml(path: Path) -> Dict[str, Any]:
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        try:
            config = self._read_yaml(self.config_path)
            logger.info(f"Configuration loaded from {self.config_path}")
            return config
        except FileNotFoundError:
            logger.error(f"Configuration file not found: {self.config_path}")
            raise
        except yaml.YAMLError as e:
            logger.error(f"Error parsing YAML configuration: {e}")
            raise

    def _apply_env_overrides(self):
        """Apply PNEUMO_* environment variables, reading a local .env first."""
        load_dotenv(find_dotenv(usecwd=True))
        for env_name, key in ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value:
                self.set(key, value)
                logger.debug(f"Configuration override from {env_name}: {key}")

    def _validate_config(self):
        """Validate configuration structure."""
        for section in self.REQUIRED_SECTIONS:
            if section not in self.config:
                raise ValueError(f"Missing required configuration section: {section}")
        logger.debug("Configuration validation passed")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key: Configuration key (e.g., 'model.backend')
            default: Default value if key not found

        Returns:
            Configuration value
        """
        keys = key.split('.')
        value = self.config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def set(self, key: str, value: Any):
        """
        Set configuration value using dot notation.

        Args:
            key: Configuration key (e.g., 'model.backend')
            value: Value to set
        """
        keys = key.split('.')
        config = self.config

        for k in keys[:-1]:
            if not isinstance(config.get(k), dict):
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value
        logger.debug(f"Configuration updated: {key}")

    def save(self, path: Optional[str] = None):
        """
        Save configuration to YAML file.

        Args:
            path: Path to save configuration. If None, overwrites original.
        """
        save_path = Path(path) if path else self.config_path
        if save_path is None:
            raise ValueError("No path given for an in-memory configuration")

        with open(save_path, 'w', encoding='utf-8') as f:
            yaml.dump(self.config, f, default_flow_style=False, sort_keys=False)

        logger.info(f"Configuration saved to {save_path}")

    @property
    def data(self) -> Dict[str, Any]:
        """Get data configuration."""
        return self.config['data']

    @property
    def model(self) -> Dict[str, Any]:
        """Get model configuration."""
        return self.config['model']

    @property
    def inference(self) -> Dict[str, Any]:
        """Get inference configuration."""
        return self.config['inference']

    @property
    def remote(self) -> Dict[str, Any]:
        """Get remote backend configuration."""
        return self.config['remote']

    @property
    def logging_config(self) -> Dict[str, Any]:
        """Get logging configuration."""
        return self.config.get('logging', {})


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def setup_logging(config: Config):
    """
    Setup logging based on configuration.

    Args:
        config: Configuration object
    """
    log_config = config.logging_config
    log_format = log_config.get('format', '{time} | {level} | {message}')
    level = log_config.get('level', 'INFO')

    # Remove default logger
    logger.remove()

    # Add console logger
    logger.add(
        sink=sys.stderr,
        format=log_format,
        level=level,
        colorize=True
    )

    # Add file logger
    log_dir = log_config.get('log_dir')
    if log_dir:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            sink=log_dir / "pneumo_detect.log",
            format=log_format,
            level=level,
            rotation=log_config.get('rotation', '500 MB'),
            retention=log_config.get('retention', '30 days'),
            compression="zip"
        )

    logger.info("Logging configured successfully")


def get_device(config: Config) -> str:
    """
    Get device for model inference.

    Args:
        config: Configuration object

    Returns:
        Device string ('cuda' or 'cpu')
    """
    import torch

    device_config = config.get('inference.device', 'auto')

    if device_config == 'auto':
        device = 'cuda' if torch.cuda.is_available() else 'cpu'
    else:
        device = device_config

    if device == 'cuda' and not torch.cuda.is_available():
        logger.warning("CUDA requested but not available. Falling back to CPU.")
        device = 'cpu'

    logger.info(f"Using device: {device}")
    return device
