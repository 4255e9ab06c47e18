"""Pydantic models for plans: ordered actions with per-attribute diffs."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class Operation(str, Enum):
    """What an action does to one resource."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    NO_OP = "no-op"


class AttributeDiff(BaseModel):
    """Old and new value of one attribute (sensitive values already redacted)."""
    attribute: str = Field(..., description="Attribute name")
    before: Any = Field(default=None, description="Last-applied value")
    after: Any = Field(default=None, description="Desired value; '(known after apply)' when unresolved")
    forces_replacement: bool = Field(default=False, description="Attribute is immutable")
    sensitive: bool = Field(default=False, description="Values are redacted")


class Action(BaseModel):
    """One step of a plan."""
    id: str = Field(..., description="Unique action id, '<operation>:<address>'")
    address: str = Field(..., description="Resource address kind.name")
    kind: str = Field(..., description="Resource kind")
    name: str = Field(..., description="Resource name")
    operation: Operation = Field(..., description="create, update, delete or no-op")
    replace: bool = Field(default=False, description="Part of a delete-then-create replacement")
    reason: Optional[str] = Field(default=None, description="Why this action was planned")
    diffs: List[AttributeDiff] = Field(default_factory=list, description="Attribute changes")
    requires: List[str] = Field(default_factory=list, description="Action ids that must succeed first")

    @property
    def is_change(self) -> bool:
        return self.operation is not Operation.NO_OP


class PlanSummary(BaseModel):
    """Counts per operation, a replace counting once."""
    create: int = 0
    update: int = 0
    delete: int = 0
    replace: int = 0
    no_op: int = 0

    @property
    def changes(self) -> int:
        return self.create + self.update + self.delete + self.replace


class Plan(BaseModel):
    """Ordered actions converging actual state towards desired state."""
    actions: List[Action] = Field(default_factory=list, description="Actions in execution order")
    destroy: bool = Field(default=False, description="Plan deletes every managed resource")
    source: Optional[str] = Field(default=None, description="Desired-state document path")
    state_serial: int = Field(default=0, description="State serial the plan was computed against")
    drift: Dict[str, List[str]] = Field(default_factory=dict, description="Address -> attributes changed outside the engine")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def get(self, action_id: str) -> Optional[Action]:
        for action in self.actions:
            if action.id == action_id:
                return action
        return None

    def changes(self) -> List[Action]:
        return [a for a in self.actions if a.is_change]

    def has_changes(self) -> bool:
        return any(a.is_change for a in self.actions)

    def summary(self) -> PlanSummary:
        summary = PlanSummary()
        for action in self.actions:
            if action.replace:
                if action.operation is not Operation.DELETE:
                    summary.replace += 1
            elif action.operation is Operation.CREATE:
                summary.create += 1
            elif action.operation is Operation.UPDATE:
                summary.update += 1
            elif action.operation is Operation.DELETE:
                summary.delete += 1
            else:
                summary.no_op += 1
        return summary
