"""Run plan actions against a provider, recording every outcome in the state store."""

import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
from tenacity import RetryCallState, Retrying, retry_if_exception, stop_after_attempt, wait_exponential
from ..config import ExecutorConfig
from ..model.models import DesiredState, Resource
from ..model.references import Reference, resolve_value
from ..plan.models import Action, Operation, Plan
from ..providers.base import Provider, ReadyStatus
from ..state.models import RecordStatus, StateRecord
from ..state.store import StateStore
from ..utils.errors import ProviderError, StateError, WaitTimeoutError
from ..utils.logging import get_logger
from .models import ActionResult, ActionStatus, ApplyReport, RetryEvent, RunStatus

logger = get_logger("executor.executor")


def _retryable(error: BaseException) -> bool:
    """Transient provider errors, unless something was already created."""
    return isinstance(error, ProviderError) and error.transient and not error.identifier


class Executor:
    """
    Dispatch plan actions with bounded concurrency.

    An action starts only after every action it requires has succeeded. A
    failure skips everything downstream of it; independent branches keep
    going. Cancellation stops dispatching, lets in-flight actions finish and
    marks the rest cancelled.
    """

    def __init__(
        self,
        provider: Provider,
        store: StateStore,
        config: Optional[ExecutorConfig] = None,
        cancel_event: Optional[threading.Event] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.provider = provider
        self.store = store
        self.config = config or ExecutorConfig()
        self.cancel_event = cancel_event or threading.Event()
        self.sleep = sleep
        self._retries: List[RetryEvent] = []
        self._retries_lock = threading.Lock()

    def apply(self, plan: Plan, desired: Optional[DesiredState] = None) -> ApplyReport:
        """
        Execute a plan.

        Args:
            plan: Ordered actions from the planner
            desired: Desired state the plan was made from (not needed for destroy)

        Returns:
            ApplyReport with one result per action
        """
        resources: Dict[str, Resource] = {}
        if desired is not None:
            resources = {r.address: r for r in desired.resources}

        report = ApplyReport(status=RunStatus.SUCCEEDED)
        self._retries = []
        results: Dict[str, ActionResult] = {}
        pending: List[Action] = list(plan.actions)
        running: Dict[Future, Action] = {}
        deadline = time.monotonic() + self.config.run_timeout if self.config.run_timeout else None

        logger.info(f"Applying {len(plan.changes())} change(s) with up to {self.config.max_workers} worker(s)")
        with ThreadPoolExecutor(max_workers=self.config.max_workers, thread_name_prefix="converge") as pool:
            while pending or running:
                if deadline is not None and time.monotonic() >= deadline and not self.cancel_event.is_set():
                    logger.warning(f"Run timeout of {self.config.run_timeout}s reached; cancelling")
                    self.cancel_event.set()

                if not self.cancel_event.is_set():
                    for action in list(pending):
                        blocker = self._blocker(action, results)
                        if blocker == "waiting":
                            continue
                        if blocker is not None:
                            pending.remove(action)
                            results[action.id] = self._skipped(action, blocker)
                            continue
                        if len(running) >= self.config.max_workers:
                            continue
                        pending.remove(action)
                        logger.debug(f"Dispatching {action.id}")
                        running[pool.submit(self._run, action, resources.get(action.address))] = action

                if not running:
                    if self.cancel_event.is_set() or not pending:
                        break
                    # Only blocked actions remain with nothing in flight; cannot happen for a valid plan.
                    for action in pending:
                        results[action.id] = self._skipped(action, "unsatisfiable requirement")
                    pending = []
                    break

                timeout = None
                if deadline is not None and not self.cancel_event.is_set():
                    timeout = max(0.0, deadline - time.monotonic())
                done, _ = wait(list(running), timeout=timeout, return_when=FIRST_COMPLETED)
                for future in done:
                    action = running.pop(future)
                    results[action.id] = future.result()

        for action in pending:
            results[action.id] = ActionResult(
                action_id=action.id,
                address=action.address,
                operation=action.operation.value,
                status=ActionStatus.CANCELLED,
            )

        report.results = [results[a.id] for a in plan.actions if a.id in results]
        report.retries = list(self._retries)
        report.finished_at = datetime.now(timezone.utc)
        if self.cancel_event.is_set() and pending:
            report.status = RunStatus.CANCELLED
        elif report.failed or report.skipped or report.cancelled:
            report.status = RunStatus.PARTIAL
        logger.info(
            f"Apply {report.status.value}: {len(report.succeeded)} succeeded, "
            f"{len(report.failed)} failed, {len(report.skipped)} skipped, {len(report.cancelled)} cancelled"
        )
        return report

    def _blocker(self, action: Action, results: Dict[str, ActionResult]) -> Optional[str]:
        """None if runnable, 'waiting' if requirements are unfinished, else the root failure."""
        for required in action.requires:
            result = results.get(required)
            if result is None:
                return "waiting"
            if result.status is ActionStatus.FAILED:
                return required
            if result.status in (ActionStatus.SKIPPED, ActionStatus.CANCELLED):
                return result.skipped_because or required
        return None

    def _skipped(self, action: Action, because: str) -> ActionResult:
        logger.warning(f"Skipping {action.id}: requirement {because} did not succeed")
        return ActionResult(
            action_id=action.id,
            address=action.address,
            operation=action.operation.value,
            status=ActionStatus.SKIPPED,
            skipped_because=because,
        )

    def _run(self, action: Action, resource: Optional[Resource]) -> ActionResult:
        """Run one action on a worker thread; never raises."""
        started = time.monotonic()
        result = ActionResult(
            action_id=action.id,
            address=action.address,
            operation=action.operation.value,
            status=ActionStatus.SUCCEEDED,
        )
        try:
            if action.operation is Operation.NO_OP:
                record = self.store.get_address(action.address)
                result.identifier = record.identifier if record else None
            else:
                result.identifier = self._perform(action, resource, result)
                logger.info(f"{action.id} succeeded" + (f" ({result.identifier})" if result.identifier else ""))
        except ProviderError as e:
            result.status = ActionStatus.FAILED
            result.error = str(e)
            result.error_kind = e.kind
            result.identifier = e.identifier
            logger.error(f"{action.id} failed ({e.kind}): {e}")
        except StateError as e:
            result.status = ActionStatus.FAILED
            result.error = str(e)
            result.error_kind = "state"
            logger.error(f"{action.id} could not record state: {e}")
        except Exception as e:
            result.status = ActionStatus.FAILED
            result.error = f"{type(e).__name__}: {e}"
            result.error_kind = "internal"
            logger.error(f"{action.id} failed unexpectedly: {e}", exc_info=True)
        result.duration = round(time.monotonic() - started, 3)
        return result

    def _call(self, action: Action, result: ActionResult, operation: Callable[..., Any], *args, **kwargs) -> Any:
        """
        Make one provider call, retrying transient failures with capped exponential backoff.

        Only the call itself is retried; steps already completed by the
        action are never repeated.
        """
        def before_sleep(state: RetryCallState) -> None:
            error = state.outcome.exception()
            delay = state.next_action.sleep
            logger.warning(
                f"{action.id} attempt {state.attempt_number}/{self.config.max_attempts} failed transiently "
                f"({error.code}); retrying in {delay:.1f}s"
            )
            with self._retries_lock:
                self._retries.append(
                    RetryEvent(action_id=action.id, attempt=state.attempt_number, error=str(error), delay=delay)
                )
            result.attempts = max(result.attempts, state.attempt_number + 1)

        retrying = Retrying(
            retry=retry_if_exception(_retryable),
            stop=stop_after_attempt(self.config.max_attempts),
            wait=wait_exponential(multiplier=self.config.backoff_base, max=self.config.backoff_max),
            sleep=self.sleep,
            before_sleep=before_sleep,
            reraise=True,
        )
        result.attempts = max(result.attempts, 1)
        try:
            return retrying(operation, *args, **kwargs)
        except ProviderError as e:
            e.address = e.address or action.address
            raise

    def _perform(self, action: Action, resource: Optional[Resource], result: ActionResult) -> Optional[str]:
        if action.operation is Operation.DELETE:
            return self._delete(action, result)
        if resource is None:
            raise ProviderError(f"{action.address} is not in the desired state", code="MissingResource")
        if action.operation is Operation.CREATE:
            return self._create(action, resource, result)
        return self._update(action, resource, result)

    def _resolve(self, resource: Resource) -> Dict[str, Any]:
        """Substitute references from the state store (dependencies have already been applied)."""
        def lookup(reference: Reference) -> Any:
            record = self.store.get_address(reference.address)
            if record is None:
                raise StateError(f"{resource.address} references {reference}, which has no state record")
            try:
                return record.value(reference.attribute)
            except KeyError as e:
                raise StateError(str(e))

        return resolve_value(resource.desired_attributes(), lookup)

    def _record(self, resource: Resource, identifier: str, attributes: Dict[str, Any],
                observed: Dict[str, Any], status: RecordStatus) -> StateRecord:
        schema = self.provider.adapter(resource.kind).schema
        outputs = {name: observed[name] for name in schema.outputs if name in observed}
        outputs["id"] = identifier
        record = StateRecord(
            kind=resource.kind,
            name=resource.name,
            identifier=identifier,
            attributes=attributes,
            outputs=outputs,
            dependencies=[a for a in resource.dependency_addresses() if a != resource.address],
            status=status,
        )
        self.store.put(record)
        return record

    def _create(self, action: Action, resource: Resource, result: ActionResult) -> str:
        adapter = self.provider.adapter(resource.kind)
        attributes = self._resolve(resource)
        try:
            identifier, observed = self._call(action, result, adapter.create, attributes, address=resource.address)
        except ProviderError as e:
            if e.identifier:
                logger.warning(f"{resource.address} partially created as {e.identifier}; marking tainted")
                self._record(resource, e.identifier, attributes, {}, RecordStatus.TAINTED)
            raise
        self._record(resource, identifier, attributes, observed, RecordStatus.CREATING)

        # From here on the resource exists: a failure taints it instead of creating it again.
        try:
            if adapter.schema.asynchronous:
                self._wait(action, result, adapter, resource, identifier)
            observed = dict(observed)
            observed.update(self._call(action, result, adapter.read, identifier) or {})
        except ProviderError as e:
            e.identifier = e.identifier or identifier
            logger.warning(f"{resource.address} ({identifier}) failed after creation; marking tainted")
            self._record(resource, identifier, attributes, observed, RecordStatus.TAINTED)
            raise
        self._record(resource, identifier, attributes, observed, RecordStatus.READY)
        return identifier

    def _wait(self, action: Action, result: ActionResult, adapter, resource: Resource, identifier: str) -> None:
        for cycle in range(1, self.config.wait_cycles + 1):
            logger.info(f"Waiting for {resource.address} ({identifier}) to become ready, cycle {cycle}")
            status = self._call(action, result, adapter.wait_until_ready, identifier, self.config.wait_timeout)
            if status is ReadyStatus.READY:
                return
        raise WaitTimeoutError(
            f"{resource.address} ({identifier}) not ready after {self.config.wait_cycles} wait cycle(s)",
            code="WaitTimeout",
            address=resource.address,
            identifier=identifier,
        )

    def _update(self, action: Action, resource: Resource, result: ActionResult) -> str:
        record = self.store.get_address(resource.address)
        if record is None:
            raise StateError(f"Cannot update {resource.address}: no state record")
        adapter = self.provider.adapter(resource.kind)
        attributes = self._resolve(resource)
        observed = self._call(action, result, adapter.update, record.identifier, attributes, previous=record.attributes)
        merged = dict(record.outputs)
        merged.update(observed or {})
        self._record(resource, record.identifier, attributes, merged, RecordStatus.READY)
        return record.identifier

    def _delete(self, action: Action, result: ActionResult) -> Optional[str]:
        record = self.store.get_address(action.address)
        if record is None:
            logger.info(f"{action.address} has no state record; nothing to delete")
            return None
        self._call(action, result, self.provider.adapter(record.kind).delete, record.identifier)
        self.store.remove(record.kind, record.name)
        return record.identifier
