"""Abstract provider adapter interface."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Optional, Tuple
from ..model.kinds import KindSchema, get_schema
from ..utils.errors import ConfigError


class ReadyStatus(str, Enum):
    """Outcome of waiting for asynchronous provisioning."""
    READY = "ready"
    TIMED_OUT = "timed_out"


class ProviderAdapter(ABC):
    """
    Create/read/update/delete capability set for one resource kind.

    Adapters never decide whether a call is needed; the planner only calls
    create when no state record exists. Failures raise ProviderError with a
    transient/permanent classification.
    """

    kind: str = ""

    def __init__(self):
        schema = get_schema(self.kind)
        if schema is None:
            raise ConfigError(f"Adapter {type(self).__name__} declares unknown kind '{self.kind}'")
        self.schema: KindSchema = schema

    @abstractmethod
    def create(self, desired: Dict[str, Any], address: Optional[str] = None) -> Tuple[str, Dict[str, Any]]:
        """
        Create the resource.

        Args:
            desired: Resolved attributes (references already substituted)
            address: Resource address, for logging and fault attribution

        Returns:
            (identifier, observed attributes and outputs)
        """
        pass

    @abstractmethod
    def read(self, identifier: str) -> Optional[Dict[str, Any]]:
        """Return observed attributes and outputs, or None if the resource is gone."""
        pass

    @abstractmethod
    def update(
        self,
        identifier: str,
        desired: Dict[str, Any],
        previous: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Converge mutable attributes in place; previous is the last-applied snapshot."""
        pass

    @abstractmethod
    def delete(self, identifier: str) -> None:
        """Delete the resource. Deleting a resource that is already gone succeeds."""
        pass

    def wait_until_ready(self, identifier: str, timeout: float) -> ReadyStatus:
        """Block until the resource is usable or timeout seconds elapse."""
        return ReadyStatus.READY


class Provider:
    """A set of adapters, one per supported kind."""

    name = "provider"

    def __init__(self, adapters: Dict[str, ProviderAdapter]):
        self._adapters = dict(adapters)

    def supports(self, kind: str) -> bool:
        return kind in self._adapters

    def adapter(self, kind: str) -> ProviderAdapter:
        try:
            return self._adapters[kind]
        except KeyError:
            raise ConfigError(f"Provider '{self.name}' has no adapter for kind '{kind}'")

    def kinds(self):
        return sorted(self._adapters)
