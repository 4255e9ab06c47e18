"""Planning: diff the desired graph against state and order the actions."""

from .models import Action, AttributeDiff, Operation, Plan, PlanSummary
from .planner import Planner, build_graph, plan_changes
from .refresh import RefreshResult, refresh_state

__all__ = [
    "Action",
    "AttributeDiff",
    "Operation",
    "Plan",
    "PlanSummary",
    "Planner",
    "RefreshResult",
    "build_graph",
    "plan_changes",
    "refresh_state",
]
