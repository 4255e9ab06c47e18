"""CLI utilities package."""

import logging
import sys
from typing import Any, Dict, Optional, Tuple
import click
import yaml
from ...config import load_engine_config
from ...engine import Engine
from ...utils.errors import (
    ConfigError,
    ConvergeError,
    CyclicDependencyError,
    DesiredStateLoadError,
    GraphConstructionError,
    LockHeldError,
    PartialApplyError,
    StateVersionError,
    ValidationError,
)
from ...utils.logging import get_logger, setup_logging
from .file_resolver import resolve_file_path

logger = get_logger("cli.utils")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INVALID = 2
EXIT_LOCKED = 3

# Exception -> (exit code, suggestion); first isinstance match wins.
ERROR_EXITS = [
    (ValidationError, EXIT_INVALID, "Fix every listed violation and run 'converge validate' again."),
    (CyclicDependencyError, EXIT_INVALID, "Break the cycle by removing one of the references."),
    (GraphConstructionError, EXIT_INVALID, None),
    (DesiredStateLoadError, EXIT_INVALID, None),
    (ConfigError, EXIT_INVALID, "Check --config, ~/.converge/config.yaml and CONVERGE_* variables."),
    (LockHeldError, EXIT_LOCKED, None),
    (StateVersionError, EXIT_FAILED, "Upgrade converge to read this state document."),
    (PartialApplyError, EXIT_FAILED, "Fix the failures and run apply again; succeeded resources are kept."),
]


def format_error(message: str, suggestion: Optional[str] = None) -> str:
    """
    Format error message with optional suggestion.

    Args:
        message: Error message
        suggestion: Optional suggestion or help text

    Returns:
        Formatted error string
    """
    error = f"Error: {message}"
    if suggestion:
        error += f"\nTip: {suggestion}"
    return error


def exit_code_for(error: Exception) -> Tuple[int, Optional[str]]:
    for error_type, code, suggestion in ERROR_EXITS:
        if isinstance(error, error_type):
            return code, suggestion
    return EXIT_FAILED, None


def fail(error: Exception) -> None:
    """Print an error to stderr and exit with its mapped code."""
    if isinstance(error, ConvergeError):
        code, suggestion = exit_code_for(error)
        click.echo(format_error(str(error), suggestion), err=True)
    else:
        code = EXIT_FAILED
        logger.error(f"Unexpected error: {error}", exc_info=True)
        click.echo(format_error(f"Unexpected failure: {error}"), err=True)
    sys.exit(code)


def parse_vars(values: Tuple[str, ...]) -> Dict[str, Any]:
    """
    Parse repeated --var name=value options.

    Values are read as YAML scalars, so --var count=2 yields an int.

    Raises:
        click.BadParameter: If an item is not name=value
    """
    variables: Dict[str, Any] = {}
    for item in values:
        name, sep, raw = item.partition("=")
        if not sep or not name.strip():
            raise click.BadParameter(f"'{item}' is not in name=value form", param_hint="--var")
        try:
            variables[name.strip()] = yaml.safe_load(raw) if raw else ""
        except yaml.YAMLError:
            variables[name.strip()] = raw
    return variables


def build_engine(ctx: click.Context, workers: Optional[int] = None) -> Engine:
    """Engine configured from the layered config plus global CLI options."""
    options = ctx.obj or {}
    overrides: Dict[str, Any] = {}
    if options.get("state_path"):
        overrides.setdefault("state", {})["path"] = options["state_path"]
    if options.get("provider"):
        overrides.setdefault("provider", {})["name"] = options["provider"]
    if workers:
        overrides.setdefault("executor", {})["max_workers"] = workers

    config = load_engine_config(options.get("config_path"), overrides)
    if not options.get("verbose"):
        setup_logging(config.logging.level)
    return Engine(config)


def load_document(engine: Engine, file_path: Optional[str], var: Tuple[str, ...]):
    """Resolve, load and parse the desired-state document."""
    try:
        path = resolve_file_path(file_path)
    except FileNotFoundError as e:
        raise DesiredStateLoadError(str(e))
    return engine.load(str(path), parse_vars(var))


def set_verbose(verbose: bool) -> None:
    if verbose:
        setup_logging(logging.DEBUG)


__all__ = [
    "EXIT_OK",
    "EXIT_FAILED",
    "EXIT_INVALID",
    "EXIT_LOCKED",
    "build_engine",
    "exit_code_for",
    "fail",
    "format_error",
    "load_document",
    "parse_vars",
    "resolve_file_path",
    "set_verbose",
]
