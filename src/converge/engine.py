"""Engine facade: load, validate, plan and apply under the state lock."""

import threading
import time
import uuid
from typing import Any, Callable, Dict, Optional
from .config import EngineConfig
from .executor import ApplyReport, Executor, RunStatus
from .model.loader import load_desired_state
from .model.models import DesiredState
from .plan import Plan, Planner, RefreshResult, build_graph, refresh_state
from .graph.dependency_graph import DependencyGraph
from .providers import Provider, build_provider
from .state import StateStore
from .utils.errors import PartialApplyError
from .utils.logging import get_logger

logger = get_logger("engine")


class Engine:
    """
    One configured engine instance.

    Validation and cycle detection always complete before the provider is
    touched; plan and apply runs hold the advisory state lock throughout.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        provider: Optional[Provider] = None,
        store: Optional[StateStore] = None,
        cancel_event: Optional[threading.Event] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config or EngineConfig()
        self._provider = provider
        self.store = store or StateStore(self.config.state.path, backup=self.config.state.backup)
        self.cancel_event = cancel_event or threading.Event()
        self.sleep = sleep

    @property
    def provider(self) -> Provider:
        if self._provider is None:
            self._provider = build_provider(self.config.provider)
        return self._provider

    def load(self, document_path: str, variables: Optional[Dict[str, Any]] = None) -> DesiredState:
        return load_desired_state(document_path, variables)

    def validate(self, desired: DesiredState) -> DependencyGraph:
        """Raises ValidationError or CyclicDependencyError; never calls the provider."""
        return build_graph(desired)

    def plan(self, desired: Optional[DesiredState] = None, destroy: bool = False,
             refresh: Optional[bool] = None) -> Plan:
        """Compute a plan under the state lock."""
        desired = desired or DesiredState()
        graph = DependencyGraph() if destroy else self.validate(desired)
        with self.store.lock(str(uuid.uuid4()), "plan"):
            return self._plan(graph, desired, destroy, refresh)

    def apply(
        self,
        desired: Optional[DesiredState] = None,
        destroy: bool = False,
        refresh: Optional[bool] = None,
        confirm: Optional[Callable[[Plan], bool]] = None,
    ) -> Optional[ApplyReport]:
        """
        Plan and execute in a single locked run.

        Args:
            desired: Desired state; None or empty with destroy=True deletes every record
            destroy: Plan a delete for every record
            refresh: Override the configured refresh setting
            confirm: Called with the plan before execution; returning False aborts

        Returns:
            ApplyReport, or None when confirm declined

        Raises:
            PartialApplyError: If some actions failed or were skipped
        """
        desired = desired or DesiredState()
        graph = DependencyGraph() if destroy else self.validate(desired)
        run_id = str(uuid.uuid4())
        with self.store.lock(run_id, "destroy" if destroy else "apply"):
            plan = self._plan(graph, desired, destroy, refresh)
            if confirm is not None and not confirm(plan):
                logger.info("Apply declined; no changes made")
                return None

            executor = Executor(
                self.provider,
                self.store,
                self.config.executor,
                cancel_event=self.cancel_event,
                sleep=self.sleep,
            )
            logger.info(f"Run {run_id}: executing {len(plan.actions)} action(s)")
            report = executor.apply(plan, desired)

        if report.status is RunStatus.PARTIAL:
            raise PartialApplyError(report)
        return report

    def destroy(self, confirm: Optional[Callable[[Plan], bool]] = None) -> Optional[ApplyReport]:
        return self.apply(DesiredState(), destroy=True, confirm=confirm)

    def _plan(self, graph: DependencyGraph, desired: DesiredState, destroy: bool,
              refresh: Optional[bool]) -> Plan:
        self.store.load()
        records = self.store.records()
        refreshed: Optional[RefreshResult] = None
        if (self.config.plan.refresh if refresh is None else refresh) and records:
            refreshed = refresh_state(records, self.provider)
        planner = Planner(graph, records, refreshed)
        return planner.plan(destroy=destroy, source=desired.source, serial=self.store.serial)
