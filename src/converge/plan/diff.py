"""Attribute comparison between desired values and the last-applied snapshot."""

import json
from typing import Any, Dict, List
from ..model.kinds import KindSchema
from ..model.references import UNKNOWN
from .models import AttributeDiff

REDACTED = "(sensitive)"


def canonical(value: Any) -> Any:
    """
    Normal form for comparison.

    Lists compare as multisets: providers report collections (subnet ids,
    security groups, rules) in arbitrary order.
    """
    if isinstance(value, dict):
        return {str(k): canonical(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        items = [canonical(v) for v in value]
        return sorted(items, key=lambda item: json.dumps(item, sort_keys=True, default=str))
    return value


def values_equal(left: Any, right: Any) -> bool:
    if left is UNKNOWN or right is UNKNOWN:
        return False
    return canonical(left) == canonical(right)


def diff_attributes(schema: KindSchema, desired: Dict[str, Any], recorded: Dict[str, Any]) -> List[AttributeDiff]:
    """
    Per-attribute differences.

    An attribute missing from desired but present in the record is a change
    to None. UNKNOWN desired values always count as changes.
    """
    diffs: List[AttributeDiff] = []
    for attribute in sorted(set(desired) | set(recorded)):
        after = desired.get(attribute)
        before = recorded.get(attribute)
        if attribute not in desired and before in (None, {}, []):
            continue
        if values_equal(after, before):
            continue
        sensitive = schema.is_sensitive(attribute)
        diffs.append(AttributeDiff(
            attribute=attribute,
            before=REDACTED if sensitive and before is not None else before,
            after=display_value(after, sensitive),
            forces_replacement=schema.is_immutable(attribute),
            sensitive=sensitive,
        ))
    return diffs


def display_value(value: Any, sensitive: bool = False) -> Any:
    if value is UNKNOWN:
        return str(UNKNOWN)
    if sensitive and value is not None:
        return REDACTED
    return value


def creation_diffs(schema: KindSchema, desired: Dict[str, Any]) -> List[AttributeDiff]:
    """All desired attributes as additions."""
    return [
        AttributeDiff(
            attribute=attribute,
            after=display_value(desired[attribute], schema.is_sensitive(attribute)),
            sensitive=schema.is_sensitive(attribute),
        )
        for attribute in sorted(desired)
    ]


def detect_drift(recorded: Dict[str, Any], observed: Dict[str, Any]) -> List[str]:
    """Attributes whose observed value differs from the last-applied one (keys in both only)."""
    return sorted(
        attribute for attribute in set(recorded) & set(observed)
        if canonical(recorded[attribute]) != canonical(observed[attribute])
    )
