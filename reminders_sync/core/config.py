"""
Configuration management for reminders-sync.
"""

import os
from pathlib import Path
from typing import Optional

from .models import SyncConfig
from .paths import PathManager


def get_default_config_path(paths: Optional[PathManager] = None) -> Path:
    """Get the default configuration file path."""
    return (paths or PathManager()).config_path


def load_config(config_path: Optional[str] = None, paths: Optional[PathManager] = None) -> SyncConfig:
    """
    Load configuration from file or return defaults.

    Args:
        config_path: Optional path to config file. Uses default if not provided.
        paths: PathManager used to resolve the default location.

    Returns:
        SyncConfig object

    Raises:
        ConfigurationError: If the file exists but cannot be parsed.
    """
    if config_path is None:
        config_path = str(get_default_config_path(paths))
    return SyncConfig.load_from_file(config_path)


def save_config(config: SyncConfig, config_path: Optional[str] = None,
                paths: Optional[PathManager] = None) -> None:
    """
    Save configuration to file.

    Args:
        config: SyncConfig object to save
        config_path: Optional path to save to. Uses default if not provided.
        paths: PathManager used to resolve the default location.
    """
    if config_path is None:
        manager = paths or PathManager()
        manager.ensure_directories()
        config_path = str(manager.config_path)

    config_dir = os.path.dirname(os.path.abspath(config_path))
    os.makedirs(config_dir, exist_ok=True)

    config.save_to_file(config_path)
