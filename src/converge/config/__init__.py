"""Configuration module: load and validate engine settings."""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError
from ..utils.errors import ConfigError
from ..utils.logging import get_logger
from .manager import load_config, deep_merge
from .paths import get_user_config_path, get_project_config_path

logger = get_logger("config")


class StateConfig(BaseModel):
    """Where the state document lives."""
    path: str = Field(default=".converge/state.json", description="State document path")
    backup: bool = Field(default=True, description="Keep <path>.backup of the pre-run document")


class FaultConfig(BaseModel):
    """Fault injection for the local (simulated) provider, keyed by address."""
    fail: bool = Field(default=False, description="Every mutating call fails permanently")
    transient: int = Field(default=0, ge=0, description="Number of transient failures before success")
    not_ready_cycles: int = Field(default=0, ge=0, description="Wait cycles reporting not ready")


class ProviderConfig(BaseModel):
    """Provider selection and connection settings."""
    name: str = Field(default="aws", description="Provider backend: aws or local")
    region: str = Field(default="us-east-1", description="Cloud region")
    profile: Optional[str] = Field(default=None, description="Named credentials profile")
    local_path: str = Field(default=".converge/cloud.json", description="Simulated cloud file for the local provider")
    faults: Dict[str, FaultConfig] = Field(default_factory=dict, description="Local provider fault injection")


class ExecutorConfig(BaseModel):
    """Scheduling, retry and readiness settings."""
    max_workers: int = Field(default=4, ge=1, description="Concurrent actions on independent branches")
    max_attempts: int = Field(default=5, ge=1, description="Attempts per action on transient errors")
    backoff_base: float = Field(default=1.0, ge=0, description="First retry delay in seconds")
    backoff_max: float = Field(default=30.0, ge=0, description="Upper bound for a retry delay")
    wait_timeout: float = Field(default=900, gt=0, description="Seconds per wait-until-ready cycle")
    wait_cycles: int = Field(default=2, ge=1, description="Wait cycles before giving up on readiness")
    run_timeout: Optional[float] = Field(default=None, gt=0, description="Cancel dispatching after this many seconds")


class PlanConfig(BaseModel):
    """Planner settings."""
    refresh: bool = Field(default=True, description="Read every managed resource before planning")


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")


class EngineConfig(BaseModel):
    """Complete engine configuration."""
    state: StateConfig = Field(default_factory=StateConfig)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)
    plan: PlanConfig = Field(default_factory=PlanConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_engine_config(config_path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None) -> EngineConfig:
    """
    Load the layered configuration and validate it.

    Args:
        config_path: Optional explicit config YAML file
        overrides: Optional nested dict applied last (CLI flags)

    Returns:
        Validated EngineConfig

    Raises:
        ConfigError: If a layer cannot be read or the result is invalid
    """
    raw = load_config(config_path)
    if overrides:
        deep_merge(raw, overrides)

    try:
        config = EngineConfig(**raw)
    except PydanticValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}")

    if config.provider.name not in ("aws", "local"):
        raise ConfigError(
            f"Unknown provider '{config.provider.name}'. Supported providers: aws, local"
        )

    logger.debug(
        f"Engine config: provider={config.provider.name}, state={config.state.path}, "
        f"workers={config.executor.max_workers}"
    )
    return config


__all__ = [
    "EngineConfig",
    "StateConfig",
    "ProviderConfig",
    "FaultConfig",
    "ExecutorConfig",
    "PlanConfig",
    "load_engine_config",
    "load_config",
    "get_user_config_path",
    "get_project_config_path",
]
