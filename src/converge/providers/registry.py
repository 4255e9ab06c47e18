"""Provider selection from configuration."""

from ..config import ProviderConfig
from ..utils.errors import ConfigError
from ..utils.logging import get_logger
from .aws import AwsProvider
from .base import Provider
from .simulated import SimulatedCloud, SimulatedProvider

logger = get_logger("providers.registry")


def build_provider(config: ProviderConfig) -> Provider:
    """
    Instantiate the configured provider backend.

    Raises:
        ConfigError: If the backend name is unknown
    """
    if config.name == "local":
        logger.info(f"Using local simulated provider ({config.local_path})")
        return SimulatedProvider(SimulatedCloud(config.local_path, config.faults))

    if config.name == "aws":
        logger.info(f"Using AWS provider in {config.region}" + (f" (profile {config.profile})" if config.profile else ""))
        return AwsProvider(config.region, config.profile)

    raise ConfigError(f"Unknown provider '{config.name}'. Supported providers: aws, local")
