"""Executor: runs plans against a provider."""

from .executor import Executor
from .models import ActionResult, ActionStatus, ApplyReport, RetryEvent, RunStatus

__all__ = ["Executor", "ActionResult", "ActionStatus", "ApplyReport", "RetryEvent", "RunStatus"]
