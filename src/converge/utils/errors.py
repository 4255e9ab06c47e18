"""Custom exception classes for Converge."""

from typing import List, Optional


class ConvergeError(Exception):
    """Base exception for all Converge errors."""
    pass


class DesiredStateLoadError(ConvergeError):
    """Raised when the desired-state document cannot be read or parsed."""
    pass


class ValidationError(ConvergeError):
    """Raised when the desired-state graph is invalid.

    Carries every violation found so authors can fix them in one pass.
    """

    def __init__(self, violations: List[str]):
        self.violations = list(violations)
        lines = "\n".join(f"  - {v}" for v in self.violations)
        super().__init__(f"{len(self.violations)} validation error(s):\n{lines}")


class CyclicDependencyError(ConvergeError):
    """Raised when resource references form a cycle."""

    def __init__(self, cycle: List[str]):
        self.cycle = list(cycle)
        path = " -> ".join(self.cycle + self.cycle[:1])
        super().__init__(f"Dependency cycle detected: {path}")


class GraphConstructionError(ConvergeError):
    """Raised when dependency graph construction fails."""
    pass


class LockHeldError(ConvergeError):
    """Raised when another run holds the state lock."""

    def __init__(self, lock_path: str, holder: Optional[dict] = None):
        self.lock_path = lock_path
        self.holder = holder or {}
        who = ", ".join(f"{k}={v}" for k, v in sorted(self.holder.items())) or "unknown holder"
        super().__init__(
            f"State is locked by another run ({who}). "
            f"Retry later, or run 'converge force-unlock' if {lock_path} is stale."
        )


class StateError(ConvergeError):
    """Raised when the state document cannot be read or written."""
    pass


class StateVersionError(StateError):
    """Raised when the state format version is not supported."""
    pass


class ProviderError(ConvergeError):
    """Raised by provider adapters when a cloud call fails."""

    def __init__(
        self,
        message: str,
        transient: bool = False,
        code: Optional[str] = None,
        address: Optional[str] = None,
        identifier: Optional[str] = None,
    ):
        self.transient = transient
        self.code = code
        self.address = address
        # Set when the provider assigned an identifier before the failure.
        self.identifier = identifier
        super().__init__(message)

    @property
    def kind(self) -> str:
        return "transient" if self.transient else "permanent"


class WaitTimeoutError(ProviderError):
    """Raised when a resource never became ready within its wait cycles."""

    @property
    def kind(self) -> str:
        return "timed_out"


class PartialApplyError(ConvergeError):
    """Raised when an apply run converged only part of the graph."""

    def __init__(self, report):
        self.report = report
        super().__init__(
            f"Apply partially failed: {len(report.succeeded)} succeeded, "
            f"{len(report.failed)} failed ({', '.join(report.failed)}), "
            f"{len(report.skipped)} skipped ({', '.join(report.skipped) or 'none'})"
        )


class PlanningError(ConvergeError):
    """Raised when a consistent action order cannot be produced."""
    pass


class ConfigError(ConvergeError):
    """Raised when configuration is invalid or missing."""
    pass
