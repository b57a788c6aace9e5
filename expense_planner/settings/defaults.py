"""Configuration loader for engine settings."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

# Configuration directory
CONFIG_DIR = Path(__file__).parent


def load_config(config_name: str) -> Dict[str, Any]:
    """Load a configuration file by name.

    Args:
        config_name: Name of the config file (without .json extension)

    Returns:
        Dictionary containing the configuration

    Raises:
        FileNotFoundError: If the configuration file doesn't exist
        json.JSONDecodeError: If the configuration file is invalid JSON

    Example:
        >>> config = load_config('engine')
        >>> config['funding']['almost_ready_ratio']
        0.8
    """
    config_path = CONFIG_DIR / f"{config_name}.json"

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        return json.load(f)


@lru_cache()
def get_engine_config() -> Dict[str, Any]:
    """Get the calculation engine configuration.

    The result is cached for the life of the process; call
    ``get_engine_config.cache_clear()`` after editing the file.
    """
    return load_config('engine')


def get_config_value(*keys: str, default: Any = None) -> Any:
    """Get a nested engine configuration value by key path.

    Example:
        >>> get_config_value('forecast', 'history_months')
        12
    """
    try:
        value: Any = get_engine_config()
        for key in keys:
            value = value[key]
        return value
    except (KeyError, TypeError, FileNotFoundError):
        return default
