"""Validate a desired-state graph before any planning happens."""

from collections import Counter
from typing import List
from ..utils.errors import ValidationError
from ..utils.logging import get_logger
from .kinds import KINDS, get_schema
from .models import DesiredState, Resource
from .references import find_references

logger = get_logger("model.validator")


def validate_desired_state(state: DesiredState) -> None:
    """
    Validate every resource of the desired state.

    All violations are collected and reported together.

    Args:
        state: Parsed desired state

    Raises:
        ValidationError: If any violation is found
    """
    violations = collect_violations(state)
    if violations:
        logger.error(f"Desired state has {len(violations)} validation error(s)")
        raise ValidationError(violations)
    logger.debug(f"Validated {len(state.resources)} resources")


def collect_violations(state: DesiredState) -> List[str]:
    """Return every violation found in the desired state (empty if valid)."""
    violations: List[str] = []
    by_address = {}

    counts = Counter(r.address for r in state.resources)
    for address, count in sorted(counts.items()):
        if count > 1:
            violations.append(f"{address}: declared {count} times; (kind, name) must be unique")

    for resource in state.resources:
        by_address.setdefault(resource.address, resource)

    for resource in state.resources:
        violations.extend(_check_schema(resource))

    for resource in state.resources:
        violations.extend(_check_references(resource, by_address))

    return violations


def _check_schema(resource: Resource) -> List[str]:
    """Check attribute names and sensitive values against the kind schema."""
    problems: List[str] = []
    schema = get_schema(resource.kind)
    if schema is None:
        problems.append(
            f"{resource.address}: unknown kind '{resource.kind}' "
            f"(supported: {', '.join(sorted(KINDS))})"
        )
        return problems

    if "tags" in resource.attributes:
        problems.append(f"{resource.address}: 'tags' belongs at resource level, not under attributes")

    for attr in schema.required:
        if attr not in resource.attributes:
            problems.append(f"{resource.address}: missing required attribute '{attr}'")

    for attr in sorted(resource.attributes):
        if attr not in schema.attributes:
            problems.append(f"{resource.address}: unknown attribute '{attr}' for kind '{resource.kind}'")

    for group in schema.one_of:
        present = [a for a in group if a in resource.attributes]
        if len(present) != 1:
            problems.append(f"{resource.address}: exactly one of {', '.join(group)} must be set")

    for attr in schema.sensitive:
        if attr in resource.attributes and not find_references(resource.attributes[attr]):
            problems.append(
                f"{resource.address}: sensitive attribute '{attr}' must reference a secret handle, "
                "not a literal value"
            )

    return problems


def _check_references(resource: Resource, by_address: dict) -> List[str]:
    """Check that references and depends_on point at declared resources."""
    problems: List[str] = []

    for ref in resource.references:
        target = by_address.get(ref.address)
        if target is None:
            problems.append(f"{resource.address}: reference {ref} points at undeclared resource '{ref.address}'")
            continue
        schema = get_schema(target.kind)
        if schema is not None and not schema.exposes(ref.attribute):
            problems.append(
                f"{resource.address}: reference {ref} uses '{ref.attribute}', "
                f"which kind '{target.kind}' neither declares nor outputs"
            )

    for dep in resource.depends_on:
        if dep not in by_address:
            problems.append(f"{resource.address}: depends_on '{dep}' is not a declared resource")

    return problems
