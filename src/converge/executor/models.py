"""Pydantic models for apply outcomes."""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field


class ActionStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


class RunStatus(str, Enum):
    SUCCEEDED = "succeeded"
    PARTIAL = "partial"
    CANCELLED = "cancelled"


class ActionResult(BaseModel):
    """Outcome of one plan action."""
    action_id: str = Field(..., description="Plan action id")
    address: str = Field(..., description="Resource address")
    operation: str = Field(..., description="create, update, delete or no-op")
    status: ActionStatus = Field(..., description="Outcome")
    identifier: Optional[str] = Field(default=None, description="Provider identifier after the action")
    error: Optional[str] = Field(default=None, description="Failure message")
    error_kind: Optional[str] = Field(default=None, description="transient, permanent, timed_out or internal")
    skipped_because: Optional[str] = Field(default=None, description="Failed action that caused the skip")
    attempts: int = Field(default=0, ge=0, description="Provider attempts made")
    duration: float = Field(default=0.0, ge=0, description="Seconds spent")


class RetryEvent(BaseModel):
    """A transient failure that was retried."""
    action_id: str
    attempt: int = Field(..., description="Attempt that failed")
    error: str
    delay: float = Field(..., description="Seconds waited before the next attempt")


class ApplyReport(BaseModel):
    """Outcome of an apply run."""
    status: RunStatus = Field(..., description="succeeded, partial or cancelled")
    results: List[ActionResult] = Field(default_factory=list, description="One result per action, in plan order")
    retries: List[RetryEvent] = Field(default_factory=list, description="Every retried transient failure")
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    def _addresses(self, status: ActionStatus) -> List[str]:
        addresses: List[str] = []
        for result in self.results:
            if result.status is status and result.address not in addresses:
                addresses.append(result.address)
        return addresses

    @property
    def succeeded(self) -> List[str]:
        return self._addresses(ActionStatus.SUCCEEDED)

    @property
    def failed(self) -> List[str]:
        return self._addresses(ActionStatus.FAILED)

    @property
    def skipped(self) -> List[str]:
        return self._addresses(ActionStatus.SKIPPED)

    @property
    def cancelled(self) -> List[str]:
        return self._addresses(ActionStatus.CANCELLED)

    def result(self, action_id: str) -> Optional[ActionResult]:
        for result in self.results:
            if result.action_id == action_id:
                return result
        return None
