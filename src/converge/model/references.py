"""Reference and variable expressions inside attribute values.

``${<kind>.<name>.<attribute>}`` consumes another resource's output or
attribute; ``${var.<name>}`` is replaced from the document variables at load
time. A value that is exactly one expression resolves to the raw value (lists
and numbers survive); an expression embedded in text is interpolated.
"""

import re
from typing import Any, Callable, Dict, List, NamedTuple

REFERENCE_PATTERN = re.compile(r"\$\{([a-z][a-z0-9_]*)\.([A-Za-z0-9_\-]+)\.([A-Za-z0-9_]+)\}")
VARIABLE_PATTERN = re.compile(r"\$\{var\.([A-Za-z0-9_]+)\}")
# Resource names must be referenceable.
NAME_PATTERN = r"^[A-Za-z0-9_\-]+$"


class Reference(NamedTuple):
    """Edge from a dependent attribute to a dependency's output."""
    kind: str
    name: str
    attribute: str

    @property
    def address(self) -> str:
        return f"{self.kind}.{self.name}"

    def __str__(self) -> str:
        return f"${{{self.kind}.{self.name}.{self.attribute}}}"


class _Unknown:
    """Placeholder for a value only known after apply."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "(known after apply)"

    def __str__(self) -> str:
        return "(known after apply)"


UNKNOWN = _Unknown()


def find_references(value: Any) -> List[Reference]:
    """Collect every resource reference inside a (nested) value."""
    found: List[Reference] = []
    if isinstance(value, str):
        for match in REFERENCE_PATTERN.finditer(value):
            if match.group(1) != "var":
                found.append(Reference(*match.groups()))
    elif isinstance(value, dict):
        for item in value.values():
            found.extend(find_references(item))
    elif isinstance(value, (list, tuple)):
        for item in value:
            found.extend(find_references(item))
    return found


def resolve_value(value: Any, lookup: Callable[[Reference], Any]) -> Any:
    """
    Replace references using lookup.

    If any nested reference resolves to UNKNOWN the whole value is UNKNOWN,
    since a partially known value cannot be compared or sent to a provider.
    """
    if isinstance(value, str):
        full = REFERENCE_PATTERN.fullmatch(value)
        if full and full.group(1) != "var":
            return lookup(Reference(*full.groups()))

        unknown = False

        def _sub(match):
            nonlocal unknown
            if match.group(1) == "var":
                return match.group(0)
            resolved = lookup(Reference(*match.groups()))
            if resolved is UNKNOWN:
                unknown = True
                return ""
            return str(resolved)

        text = REFERENCE_PATTERN.sub(_sub, value)
        return UNKNOWN if unknown else text

    if isinstance(value, dict):
        resolved_dict = {k: resolve_value(v, lookup) for k, v in value.items()}
        if any(v is UNKNOWN for v in resolved_dict.values()):
            return UNKNOWN
        return resolved_dict

    if isinstance(value, (list, tuple)):
        resolved_list = [resolve_value(v, lookup) for v in value]
        if any(v is UNKNOWN for v in resolved_list):
            return UNKNOWN
        return resolved_list

    return value


def substitute_variables(value: Any, variables: Dict[str, Any], missing: List[str]) -> Any:
    """Replace ${var.*} expressions; unknown variable names are appended to missing."""
    if isinstance(value, str):
        full = VARIABLE_PATTERN.fullmatch(value)
        if full:
            name = full.group(1)
            if name not in variables:
                missing.append(name)
                return value
            return variables[name]

        def _sub(match):
            name = match.group(1)
            if name not in variables:
                missing.append(name)
                return match.group(0)
            return str(variables[name])

        return VARIABLE_PATTERN.sub(_sub, value)

    if isinstance(value, dict):
        return {k: substitute_variables(v, variables, missing) for k, v in value.items()}

    if isinstance(value, list):
        return [substitute_variables(v, variables, missing) for v in value]

    return value
