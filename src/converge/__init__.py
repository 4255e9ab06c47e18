"""Converge - Declarative infrastructure convergence engine."""

from typing import Any, Dict, Optional
from .config import load_engine_config
from .engine import Engine
from .executor import ApplyReport
from .plan import Plan
from .utils.logging import setup_logging, get_logger
from .utils.errors import ConvergeError

__version__ = "0.1.0"

__all__ = ["Engine", "plan", "apply", "destroy", "__version__"]

setup_logging()
logger = get_logger("converge")


def _engine(config_path: Optional[str]) -> Engine:
    return Engine(load_engine_config(config_path))


def plan(document_path: str, variables: Optional[Dict[str, Any]] = None,
         config_path: Optional[str] = None, destroy: bool = False) -> Plan:
    """Load a desired-state document and return its plan."""
    engine = _engine(config_path)
    desired = None if destroy else engine.load(document_path, variables)
    return engine.plan(desired, destroy=destroy)


def apply(document_path: str, variables: Optional[Dict[str, Any]] = None,
          config_path: Optional[str] = None) -> ApplyReport:
    """
    Converge the cloud towards a desired-state document.

    Raises:
        ConvergeError: ValidationError, CyclicDependencyError, LockHeldError,
            PartialApplyError and friends
    """
    try:
        engine = _engine(config_path)
        logger.info(f"Starting apply of {document_path}")
        return engine.apply(engine.load(document_path, variables))
    except ConvergeError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error during apply: {e}", exc_info=True)
        raise ConvergeError(f"Apply failed: {e}") from e


def destroy(config_path: Optional[str] = None) -> ApplyReport:
    """Delete every resource recorded in state."""
    return _engine(config_path).destroy()
