"""Layered configuration manager (defaults + user + project + explicit + env)."""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
from .paths import get_defaults_path, get_user_config_path, get_project_config_path
from ..utils.errors import ConfigError
from ..utils.logging import get_logger

logger = get_logger("config.manager")

# Environment variable -> (section, key, caster)
ENV_OVERRIDES = {
    "CONVERGE_PROVIDER": ("provider", "name", str),
    "CONVERGE_REGION": ("provider", "region", str),
    "CONVERGE_STATE_PATH": ("state", "path", str),
    "CONVERGE_MAX_WORKERS": ("executor", "max_workers", int),
    "CONVERGE_LOG_LEVEL": ("logging", "level", str),
}


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load the full config tree.

    Later layers override earlier ones: packaged defaults, user config,
    project config, the explicit config file, then environment variables.

    Args:
        config_path: Optional explicit config file (e.g. from --config)

    Returns:
        Merged configuration dictionary

    Raises:
        ConfigError: If the explicit file is missing or any layer is invalid YAML
    """
    config = _read_yaml(get_defaults_path(), required=True)

    user_config_path = get_user_config_path()
    if user_config_path.exists():
        deep_merge(config, _read_yaml(user_config_path))
        logger.debug(f"Loaded user config from {user_config_path}")

    project_config_path = get_project_config_path()
    if project_config_path:
        deep_merge(config, _read_yaml(project_config_path))
        logger.info(f"Loaded project config from {project_config_path}")

    if config_path:
        explicit = Path(config_path)
        if not explicit.exists():
            raise ConfigError(f"Config file not found: {config_path}")
        deep_merge(config, _read_yaml(explicit))
        logger.info(f"Loaded config from {config_path}")

    _apply_env_overrides(config)
    return config


def _read_yaml(path: Path, required: bool = False) -> Dict[str, Any]:
    """Read one YAML layer; an empty file is an empty layer."""
    if required and not path.exists():
        raise ConfigError(f"Config file not found: {path}")
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


def _apply_env_overrides(config: Dict[str, Any]) -> None:
    """Apply CONVERGE_* environment variables (mutates config)."""
    for var, (section, key, caster) in ENV_OVERRIDES.items():
        raw = os.getenv(var)
        if raw is None or raw == "":
            continue
        try:
            value = caster(raw)
        except ValueError:
            raise ConfigError(f"Invalid value for {var}: {raw!r}")
        config.setdefault(section, {})[key] = value
        logger.debug(f"Config override from {var}: {section}.{key}")


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    """Deep merge override into base (mutates base)."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            deep_merge(base[key], value)
        else:
            base[key] = value
