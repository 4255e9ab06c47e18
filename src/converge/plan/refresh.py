"""Read every managed resource back from the provider before planning."""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
from .diff import detect_drift
from ..providers.base import Provider
from ..state.models import StateRecord
from ..utils.logging import get_logger

logger = get_logger("plan.refresh")


class RefreshResult(BaseModel):
    """What the provider reported for each record (in memory only)."""
    observed: Dict[str, Dict[str, Any]] = Field(default_factory=dict, description="Address -> observed attributes")
    vanished: List[str] = Field(default_factory=list, description="Records whose resource no longer exists")
    drift: Dict[str, List[str]] = Field(default_factory=dict, description="Address -> drifted attributes")

    def recorded_attributes(self, record: StateRecord) -> Dict[str, Any]:
        """The record's snapshot with drifted attributes replaced by observed values."""
        attributes = dict(record.attributes)
        observed = self.observed.get(record.address, {})
        for attribute in self.drift.get(record.address, []):
            attributes[attribute] = observed[attribute]
        return attributes


def refresh_state(records: List[StateRecord], provider: Provider) -> RefreshResult:
    """
    Read each record's resource through its adapter.

    The state document is not modified; the planner consumes the result.
    """
    result = RefreshResult()
    for record in records:
        adapter = provider.adapter(record.kind)
        observed: Optional[Dict[str, Any]] = adapter.read(record.identifier)
        if observed is None:
            logger.warning(f"{record.address} ({record.identifier}) no longer exists in the provider")
            result.vanished.append(record.address)
            continue
        result.observed[record.address] = observed
        drifted = detect_drift(record.attributes, observed)
        if drifted:
            logger.warning(f"{record.address} drifted outside the engine: {', '.join(drifted)}")
            result.drift[record.address] = drifted
    logger.info(
        f"Refreshed {len(records)} records: {len(result.vanished)} vanished, {len(result.drift)} drifted"
    )
    return result
