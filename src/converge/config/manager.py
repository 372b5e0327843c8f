"""Layered configuration manager (defaults, user, project, explicit file)."""

import yaml
from pathlib import Path
from typing import Any, Dict, List, Optional
from .paths import get_default_config_path, get_project_config_path, get_user_config_path
from ..utils.errors import ConfigError
from ..utils.logging import get_logger

logger = get_logger("config.manager")


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load full config tree, later layers overriding earlier ones.

    Order: packaged defaults, user config, project config, explicit config_path.

    Args:
        config_path: Optional explicit config file (must exist)

    Returns:
        Merged configuration dictionary

    Raises:
        ConfigError: If a config file is missing (explicit only), unreadable or invalid
    """
    layers: List[Path] = [get_default_config_path()]

    user_config_path = get_user_config_path()
    if user_config_path.exists():
        layers.append(user_config_path)

    project_config_path = get_project_config_path()
    if project_config_path:
        layers.append(project_config_path)

    if config_path is not None:
        explicit = Path(config_path)
        if not explicit.exists():
            raise ConfigError(f"Config file not found: {config_path}")
        layers.append(explicit)

    config: Dict[str, Any] = {}
    for path in layers:
        _deep_merge(config, _read_yaml(path))
        logger.debug(f"Loaded config layer from {path}")

    return config


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file {path}: {e}")
    except OSError as e:
        raise ConfigError(f"Error reading config file {path}: {e}")

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a dictionary")
    return data


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    """Deep merge override into base (mutates base)."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
