"""Human-friendly output for plans, apply reports and state records."""

import json
import os
from typing import Any, List, Optional
from ..executor.models import ActionStatus, ApplyReport
from ..plan.models import Action, Operation, Plan
from ..state.models import StateRecord


def _use_ascii(ascii_mode: Optional[bool] = None) -> bool:
    """Resolve whether to use ASCII output (checked at format time)."""
    if ascii_mode is not None:
        return bool(ascii_mode)
    return os.environ.get("CONVERGE_ASCII", "").lower() in ("1", "true", "yes")


def _section(title: str, width: int = 65) -> List[str]:
    h = "-" * width
    return [h, title.center(width), h]


def _symbol(action: Action) -> str:
    if action.replace:
        return "-/+"
    return {
        Operation.CREATE: "+",
        Operation.UPDATE: "~",
        Operation.DELETE: "-",
        Operation.NO_OP: " ",
    }[action.operation]


def _value(value: Any) -> str:
    if isinstance(value, str):
        return value if value.startswith("(") else json.dumps(value)
    return json.dumps(value, sort_keys=True, default=str)


def format_plan(plan: Plan, show_unchanged: bool = False, ascii_mode: Optional[bool] = None) -> str:
    """
    Render a plan the way operators review it before apply.

    A replacement is shown once, with '-/+', at its create step.
    """
    arrow = "->" if _use_ascii(ascii_mode) else "→"
    lines: List[str] = []
    title = "DESTROY PLAN" if plan.destroy else "EXECUTION PLAN"
    lines.extend(_section(title))
    lines.append("")

    if plan.drift:
        lines.append("Changed outside of converge:")
        for address, attributes in sorted(plan.drift.items()):
            lines.append(f"  ! {address}: {', '.join(attributes)}")
        lines.append("")

    shown = 0
    for action in plan.actions:
        if action.replace and action.operation is Operation.DELETE:
            continue
        if action.operation is Operation.NO_OP and not show_unchanged:
            continue
        shown += 1
        header = f"{_symbol(action)} {action.address}"
        if action.reason and action.operation is not Operation.NO_OP:
            header += f"  ({action.reason})"
        lines.append(header)
        for diff in action.diffs:
            marker = "  # forces replacement" if diff.forces_replacement and action.replace else ""
            if action.operation is Operation.CREATE and not action.replace:
                lines.append(f"    {diff.attribute} = {_value(diff.after)}")
            else:
                lines.append(
                    f"    {diff.attribute}: {_value(diff.before)} {arrow} {_value(diff.after)}{marker}"
                )
        lines.append("")

    if shown == 0:
        lines.append("No changes. Infrastructure matches the desired state.")
        lines.append("")

    summary = plan.summary()
    lines.append(
        f"Plan: {summary.create} to create, {summary.update} to update, "
        f"{summary.replace} to replace, {summary.delete} to delete."
    )
    return "\n".join(lines)


def format_apply_report(report: ApplyReport) -> str:
    lines: List[str] = []
    lines.extend(_section(f"APPLY {report.status.value.upper()}"))
    lines.append("")

    labels = {
        ActionStatus.SUCCEEDED: "ok",
        ActionStatus.FAILED: "FAILED",
        ActionStatus.SKIPPED: "skipped",
        ActionStatus.CANCELLED: "cancelled",
    }
    for result in report.results:
        if result.operation == Operation.NO_OP.value and result.status is ActionStatus.SUCCEEDED:
            continue
        line = f"  [{labels[result.status]}] {result.action_id}"
        if result.identifier:
            line += f" ({result.identifier})"
        if result.error:
            line += f": {result.error}"
        if result.skipped_because:
            line += f": requires {result.skipped_because}"
        lines.append(line)

    if report.retries:
        lines.append("")
        lines.append(f"Retries: {len(report.retries)}")
        for retry in report.retries:
            lines.append(f"  {retry.action_id} attempt {retry.attempt}, waited {retry.delay:.1f}s: {retry.error}")

    lines.append("")
    lines.append(
        f"Succeeded: {len(report.succeeded)}  Failed: {len(report.failed)}  "
        f"Skipped: {len(report.skipped)}  Cancelled: {len(report.cancelled)}"
    )
    return "\n".join(lines)


def format_state_list(records: List[StateRecord]) -> str:
    """Identifiers and outputs of every managed resource."""
    if not records:
        return "No resources in state."
    width = max(len(r.address) for r in records)
    lines = []
    for record in records:
        status = "" if record.status.value == "ready" else f"  [{record.status.value}]"
        lines.append(f"{record.address:<{width}}  {record.identifier}{status}")
        for name, value in sorted(record.outputs.items()):
            if name != "id":
                lines.append(f"{'':<{width}}    {name} = {value}")
    return "\n".join(lines)


def format_state_record(record: StateRecord, sensitive: Optional[List[str]] = None) -> str:
    hidden = set(sensitive or [])
    lines = [
        f"# {record.address}",
        f"identifier   = {record.identifier}",
        f"status       = {record.status.value}",
        f"updated_at   = {record.updated_at.isoformat()}",
    ]
    if record.dependencies:
        lines.append(f"dependencies = {', '.join(record.dependencies)}")
    lines.append("attributes:")
    for name, value in sorted(record.attributes.items()):
        shown = "(sensitive)" if name in hidden else _value(value)
        lines.append(f"  {name} = {shown}")
    lines.append("outputs:")
    for name, value in sorted(record.outputs.items()):
        lines.append(f"  {name} = {_value(value)}")
    return "\n".join(lines)
