"""Pydantic models for the persisted state document."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List
from pydantic import BaseModel, Field

STATE_FORMAT_VERSION = 2


class RecordStatus(str, Enum):
    """Lifecycle of a managed resource as last observed by a run."""
    CREATING = "creating"
    READY = "ready"
    TAINTED = "tainted"


class StateRecord(BaseModel):
    """What the engine knows about one managed resource."""
    kind: str = Field(..., description="Resource kind")
    name: str = Field(..., description="Resource name")
    identifier: str = Field(..., description="Provider-assigned identifier")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Last-applied resolved attributes")
    outputs: Dict[str, Any] = Field(default_factory=dict, description="Provider-reported outputs")
    dependencies: List[str] = Field(default_factory=list, description="Addresses depended on when last applied")
    status: RecordStatus = Field(default=RecordStatus.READY, description="Lifecycle status")
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def address(self) -> str:
        return f"{self.kind}.{self.name}"

    def value(self, attribute: str) -> Any:
        """Value a reference to this resource resolves to (outputs win over attributes)."""
        if attribute == "id":
            return self.outputs.get("id", self.identifier)
        if attribute in self.outputs:
            return self.outputs[attribute]
        if attribute in self.attributes:
            return self.attributes[attribute]
        raise KeyError(f"{self.address} has no output or attribute '{attribute}'")


class StateDocument(BaseModel):
    """Versioned state document: address -> record."""
    version: int = Field(default=STATE_FORMAT_VERSION)
    serial: int = Field(default=0, description="Incremented on every write")
    lineage: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Stable id of this state's history")
    records: Dict[str, StateRecord] = Field(default_factory=dict)
