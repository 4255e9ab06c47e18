"""Provider adapters: the boundary between the engine and a cloud."""

from .base import Provider, ProviderAdapter, ReadyStatus
from .registry import build_provider
from .simulated import SimulatedAdapter, SimulatedCloud, SimulatedProvider

__all__ = [
    "Provider",
    "ProviderAdapter",
    "ReadyStatus",
    "SimulatedAdapter",
    "SimulatedCloud",
    "SimulatedProvider",
    "build_provider",
]
