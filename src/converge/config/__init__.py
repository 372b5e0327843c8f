"""Configuration module: load and validate engine settings."""

from typing import Any, Dict, Optional
from pydantic import ValidationError
from ..utils.errors import ConfigError
from ..utils.logging import get_logger
from .manager import _deep_merge, load_config
from .models import EngineConfig, ExecutionSettings, PlanningSettings, StateSettings
from .paths import get_default_config_path, get_project_config_path, get_user_config_path

logger = get_logger("config")


def load_engine_config(config_path: Optional[str] = None,
                       overrides: Optional[Dict[str, Any]] = None) -> EngineConfig:
    """
    Load layered YAML configuration and validate it.

    Args:
        config_path: Optional explicit config file, applied last
        overrides: Nested values applied on top (e.g. from CLI flags)

    Returns:
        Validated EngineConfig

    Raises:
        ConfigError: If any layer is invalid
    """
    data = load_config(config_path)
    if overrides:
        _deep_merge(data, overrides)

    try:
        config = EngineConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}")

    logger.info(
        f"Configuration: state={config.state.path}, parallelism={config.execution.parallelism}, "
        f"refresh={config.planning.refresh}"
    )
    return config


__all__ = [
    "EngineConfig",
    "ExecutionSettings",
    "PlanningSettings",
    "StateSettings",
    "load_config",
    "load_engine_config",
    "get_default_config_path",
    "get_user_config_path",
    "get_project_config_path",
]
