"""Simulated cloud provider (the 'local' backend).

Keeps resources in memory, optionally persisted to a JSON file so that
consecutive CLI runs see the same cloud. Supports fault injection per
resource address and logs every call, which makes it the test double for the
provider boundary.
"""

import json
import secrets
import string
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from ..model.kinds import KINDS
from ..utils.errors import ProviderError, StateError
from ..utils.logging import get_logger
from .base import Provider, ProviderAdapter, ReadyStatus

logger = get_logger("providers.simulated")


class SimulatedCloud:
    """Shared backing store for all simulated adapters."""

    def __init__(self, path: Optional[str] = None, faults: Optional[Dict[str, Any]] = None):
        self.path = Path(path) if path else None
        self.resources: Dict[str, Dict[str, Any]] = {}
        self.sequence = 0
        self.calls: List[Tuple[str, str]] = []
        self._faults = {address: _fault_dict(f) for address, f in (faults or {}).items()}
        self._lock = threading.RLock()
        if self.path and self.path.exists():
            self._load()

    def _load(self) -> None:
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise StateError(f"Cannot read simulated cloud file {self.path}: {e}")
        self.resources = data.get("resources", {})
        self.sequence = data.get("sequence", 0)

    def save(self) -> None:
        if not self.path:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump({"sequence": self.sequence, "resources": self.resources}, f, indent=2, sort_keys=True)

    def record_call(self, operation: str, address: str) -> None:
        with self._lock:
            self.calls.append((operation, address))

    def next_identifier(self, prefix: str) -> str:
        with self._lock:
            self.sequence += 1
            return f"{prefix}-{self.sequence:08x}"

    def inject_fault(self, address: str, fail: bool = False, transient: int = 0, not_ready_cycles: int = 0) -> None:
        with self._lock:
            self._faults[address] = {"fail": fail, "transient": transient, "not_ready_cycles": not_ready_cycles}

    def check_fault(self, operation: str, address: str) -> None:
        """Raise the injected failure for a mutating call, if any."""
        with self._lock:
            fault = self._faults.get(address)
            if not fault:
                return
            if fault.get("fail"):
                raise ProviderError(
                    f"Simulated permanent failure on {operation} of {address}",
                    transient=False, code="SimulatedFailure", address=address,
                )
            if fault.get("transient", 0) > 0:
                fault["transient"] -= 1
                raise ProviderError(
                    f"Simulated throttling on {operation} of {address}",
                    transient=True, code="Throttling", address=address,
                )

    def consume_not_ready(self, address: str) -> bool:
        """True while the resource should still report not ready."""
        with self._lock:
            fault = self._faults.get(address)
            if fault and fault.get("not_ready_cycles", 0) > 0:
                fault["not_ready_cycles"] -= 1
                return True
            return False

    def find(self, address: str) -> Optional[str]:
        """Identifier of the live resource created for an address."""
        with self._lock:
            for identifier, entry in self.resources.items():
                if entry["address"] == address:
                    return identifier
            return None

    def modify_out_of_band(self, identifier: str, **attributes) -> None:
        """Change a live resource behind the engine's back (drift)."""
        with self._lock:
            self.resources[identifier]["attributes"].update(attributes)
            self.save()

    def delete_out_of_band(self, identifier: str) -> None:
        with self._lock:
            self.resources.pop(identifier, None)
            self.save()


def _fault_dict(fault: Any) -> Dict[str, Any]:
    if hasattr(fault, "model_dump"):
        return fault.model_dump()
    return dict(fault)


class SimulatedAdapter(ProviderAdapter):
    """Generic adapter whose behaviour is driven by the kind schema."""

    def __init__(self, kind: str, cloud: SimulatedCloud):
        self.kind = kind
        super().__init__()
        self.cloud = cloud

    def create(self, desired: Dict[str, Any], address: Optional[str] = None) -> Tuple[str, Dict[str, Any]]:
        address = address or f"{self.kind}.?"
        self.cloud.record_call("create", address)
        self.cloud.check_fault("create", address)

        identifier = self.cloud.next_identifier(self.schema.id_prefix)
        entry = {
            "kind": self.kind,
            "address": address,
            "attributes": dict(desired),
            "outputs": self._outputs(identifier, desired),
        }
        if self.kind == "secret":
            length = int(desired.get("length", 16))
            alphabet = string.ascii_letters + string.digits
            entry["secret_value"] = "".join(secrets.choice(alphabet) for _ in range(length))

        with self.cloud._lock:
            self.cloud.resources[identifier] = entry
            self.cloud.save()
        logger.debug(f"Simulated create {address} -> {identifier}")
        return identifier, self._observed(entry)

    def read(self, identifier: str) -> Optional[Dict[str, Any]]:
        with self.cloud._lock:
            entry = self.cloud.resources.get(identifier)
            if entry is None:
                self.cloud.record_call("read", identifier)
                return None
            self.cloud.record_call("read", entry["address"])
            return self._observed(entry)

    def update(
        self,
        identifier: str,
        desired: Dict[str, Any],
        previous: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        with self.cloud._lock:
            entry = self.cloud.resources.get(identifier)
        if entry is None:
            raise ProviderError(f"{self.kind} {identifier} not found", code="NotFound")

        self.cloud.record_call("update", entry["address"])
        self.cloud.check_fault("update", entry["address"])
        with self.cloud._lock:
            entry["attributes"] = dict(desired)
            if "version" in entry["outputs"]:
                entry["outputs"]["version"] += 1
            self.cloud.save()
        return self._observed(entry)

    def delete(self, identifier: str) -> None:
        with self.cloud._lock:
            entry = self.cloud.resources.get(identifier)
        if entry is None:
            self.cloud.record_call("delete", identifier)
            logger.debug(f"Simulated delete of absent {identifier}")
            return

        self.cloud.record_call("delete", entry["address"])
        self.cloud.check_fault("delete", entry["address"])
        with self.cloud._lock:
            self.cloud.resources.pop(identifier, None)
            self.cloud.save()

    def wait_until_ready(self, identifier: str, timeout: float) -> ReadyStatus:
        with self.cloud._lock:
            entry = self.cloud.resources.get(identifier)
        if entry is None:
            return ReadyStatus.TIMED_OUT
        self.cloud.record_call("wait", entry["address"])
        if self.cloud.consume_not_ready(entry["address"]):
            return ReadyStatus.TIMED_OUT
        return ReadyStatus.READY

    def _outputs(self, identifier: str, desired: Dict[str, Any]) -> Dict[str, Any]:
        outputs: Dict[str, Any] = {"id": identifier}
        for name in self.schema.outputs:
            if name == "id":
                continue
            if name == "arn":
                outputs[name] = f"arn:sim:{self.kind}:{identifier}"
            elif name == "address":
                outputs[name] = f"{identifier}.sim.internal"
            elif name == "endpoint":
                outputs[name] = f"{identifier}.sim.internal:{desired.get('port', 3306)}"
            elif name == "port":
                outputs[name] = desired.get("port", 3306)
            elif name == "handle":
                outputs[name] = desired.get("name", identifier)
            elif name == "version":
                outputs[name] = 1
            elif name in ("public_ip", "private_ip"):
                n = int(identifier.rsplit("-", 1)[-1], 16)
                first = 54 if name == "public_ip" else 10
                outputs[name] = f"{first}.0.{(n >> 8) & 255}.{n & 255}"
            else:
                outputs[name] = f"{identifier}/{name}"
        return outputs

    def _observed(self, entry: Dict[str, Any]) -> Dict[str, Any]:
        observed = dict(entry["attributes"])
        observed.update(entry["outputs"])
        return observed


class SimulatedProvider(Provider):
    """Provider with a simulated adapter for every known kind."""

    name = "local"

    def __init__(self, cloud: Optional[SimulatedCloud] = None):
        self.cloud = cloud or SimulatedCloud()
        super().__init__({kind: SimulatedAdapter(kind, self.cloud) for kind in KINDS})
