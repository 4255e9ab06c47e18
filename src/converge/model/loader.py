"""Load a desired-state YAML document into a DesiredState."""

from pathlib import Path
from typing import Any, Dict, List, Optional
import yaml
from pydantic import ValidationError as PydanticValidationError
from ..utils.errors import DesiredStateLoadError, ValidationError
from ..utils.logging import get_logger
from .models import DesiredState, Resource
from .references import substitute_variables

logger = get_logger("model.loader")

SUPPORTED_VERSIONS = [1]


def load_desired_state(document_path: str, variables: Optional[Dict[str, Any]] = None) -> DesiredState:
    """
    Load and structurally validate a desired-state document.

    Args:
        document_path: Path to the YAML document
        variables: Variable values overriding the document defaults

    Returns:
        DesiredState with variables substituted and default tags merged

    Raises:
        DesiredStateLoadError: If the file cannot be read or is not a document
        ValidationError: If individual resource entries are malformed
    """
    path = Path(document_path)

    if not path.exists():
        raise DesiredStateLoadError(
            f"Desired-state file not found: {document_path}. "
            "Please check the file path and ensure the file exists."
        )

    if not path.is_file():
        raise DesiredStateLoadError(f"Path is not a file: {document_path}.")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise DesiredStateLoadError(f"Invalid YAML in desired-state file: {e}")
    except OSError as e:
        raise DesiredStateLoadError(
            f"Error reading desired-state file: {e}. "
            "Please check file permissions and try again."
        )

    state = parse_desired_state(data, variables)
    state.source = str(path)
    logger.info(f"Loaded desired state from {document_path} ({len(state.resources)} resources)")
    return state


def parse_desired_state(data: Any, variables: Optional[Dict[str, Any]] = None) -> DesiredState:
    """Build a DesiredState from already-parsed document data."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise DesiredStateLoadError("Desired-state document must be a mapping with a 'resources' list.")

    version = data.get("version", 1)
    if version not in SUPPORTED_VERSIONS:
        raise DesiredStateLoadError(
            f"Unsupported desired-state version {version!r}. "
            f"Supported versions: {', '.join(str(v) for v in SUPPORTED_VERSIONS)}"
        )

    declared = data.get("variables") or {}
    if not isinstance(declared, dict):
        raise DesiredStateLoadError("'variables' must be a mapping of name to default value.")

    resolved_vars = dict(declared)
    if variables:
        unknown = sorted(set(variables) - set(declared))
        if unknown:
            logger.warning(f"Variables not declared in document: {', '.join(unknown)}")
        resolved_vars.update(variables)

    raw_resources = data.get("resources") or []
    if not isinstance(raw_resources, list):
        raise DesiredStateLoadError("'resources' must be a list.")

    default_tags = data.get("default_tags") or {}
    if not isinstance(default_tags, dict):
        raise DesiredStateLoadError("'default_tags' must be a mapping.")

    missing: List[str] = []
    default_tags = substitute_variables(default_tags, resolved_vars, missing)

    problems: List[str] = []
    resources: List[Resource] = []
    for idx, entry in enumerate(raw_resources):
        if not isinstance(entry, dict):
            problems.append(f"resources[{idx}]: entry must be a mapping")
            continue
        entry = substitute_variables(entry, resolved_vars, missing)
        own_tags = entry.get("tags") or {}
        if not isinstance(own_tags, dict):
            label = f"{entry.get('kind', '?')}.{entry.get('name', '?')}"
            problems.append(f"resources[{idx}] ({label}): tags: must be a mapping of tag name to value")
            continue
        tags = dict(default_tags)
        tags.update(own_tags)
        try:
            resources.append(Resource(
                kind=entry.get("kind"),
                name=entry.get("name"),
                attributes=entry.get("attributes") or {},
                tags=tags,
                depends_on=entry.get("depends_on") or [],
            ))
        except PydanticValidationError as e:
            label = f"{entry.get('kind', '?')}.{entry.get('name', '?')}"
            for err in e.errors():
                field = ".".join(str(p) for p in err["loc"])
                problems.append(f"resources[{idx}] ({label}): {field}: {err['msg']}")

    for name in sorted(set(missing)):
        problems.append(f"undefined variable '{name}'")

    if problems:
        raise ValidationError(problems)

    return DesiredState(
        version=version,
        variables=resolved_vars,
        default_tags=default_tags,
        resources=resources,
    )
