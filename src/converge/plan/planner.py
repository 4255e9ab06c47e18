"""Compute the ordered action list that converges state towards the desired graph."""

from typing import Any, Dict, List, Optional, Set
import networkx as nx
from ..graph.dependency_graph import DependencyGraph
from ..model.kinds import get_schema
from ..model.models import DesiredState, Resource
from ..model.references import UNKNOWN, Reference, resolve_value
from ..model.validator import validate_desired_state
from ..state.models import RecordStatus, StateRecord
from ..utils.errors import PlanningError
from ..utils.logging import get_logger
from .diff import creation_diffs, diff_attributes
from .models import Action, AttributeDiff, Operation, Plan
from .refresh import RefreshResult

logger = get_logger("plan.planner")


def build_graph(desired: DesiredState) -> DependencyGraph:
    """
    Validate a desired state and build its dependency graph.

    Raises:
        ValidationError: If the document violates the kind schemas or references
        CyclicDependencyError: If references form a cycle
    """
    validate_desired_state(desired)
    graph = DependencyGraph()
    graph.build_from_resources(desired.resources)
    return graph


def action_id(operation: Operation, address: str) -> str:
    return f"{operation.value}:{address}"


class Planner:
    """
    Diff a validated desired graph against state records.

    Args:
        graph: Dependency graph of the desired resources (empty for destroy)
        records: Current state records
        refresh: Provider observations; None plans against the state alone
    """

    def __init__(
        self,
        graph: DependencyGraph,
        records: List[StateRecord],
        refresh: Optional[RefreshResult] = None,
    ):
        self.graph = graph
        self.records: Dict[str, StateRecord] = {r.address: r for r in records}
        self.refresh = refresh
        # address -> resolved desired attributes (UNKNOWN where not yet known)
        self._planned: Dict[str, Dict[str, Any]] = {}
        # address -> operation of its apply action
        self._operations: Dict[str, Operation] = {}
        self._replaced: Set[str] = set()

    def plan(self, destroy: bool = False, source: Optional[str] = None, serial: int = 0) -> Plan:
        """
        Build the plan.

        Raises:
            PlanningError: If the actions cannot be ordered consistently
        """
        actions: Dict[str, Action] = {}

        if not destroy:
            for address in self.graph.topological_order():
                resource = self.graph.get_resource(address)
                for action in self._plan_resource(resource):
                    actions[action.id] = action

        for address in sorted(self.records):
            if destroy or address not in self.graph:
                record = self.records[address]
                delete = Action(
                    id=action_id(Operation.DELETE, address),
                    address=address,
                    kind=record.kind,
                    name=record.name,
                    operation=Operation.DELETE,
                    reason="destroy requested" if destroy else "no longer in the desired state",
                )
                actions[delete.id] = delete

        ordered = self._order(actions)
        plan = Plan(
            actions=ordered,
            destroy=destroy,
            source=source,
            state_serial=serial,
            drift=dict(self.refresh.drift) if self.refresh else {},
        )
        summary = plan.summary()
        logger.info(
            f"Plan: {summary.create} to create, {summary.update} to update, "
            f"{summary.replace} to replace, {summary.delete} to delete, {summary.no_op} unchanged"
        )
        return plan

    def _plan_resource(self, resource: Resource) -> List[Action]:
        address = resource.address
        schema = get_schema(resource.kind)
        # Per attribute: one unresolved attribute must not hide the others.
        desired = {k: resolve_value(v, self._lookup) for k, v in resource.desired_attributes().items()}
        self._planned[address] = desired

        record = self.records.get(address)
        vanished = self.refresh is not None and address in self.refresh.vanished

        if record is None or vanished:
            reason = "resource no longer exists in the provider" if vanished else "not yet created"
            return [self._apply_action(resource, Operation.CREATE, reason, creation_diffs(schema, desired))]

        if record.status is not RecordStatus.READY:
            return self._replace(resource, f"record is {record.status.value}", creation_diffs(schema, desired))

        replaced_deps = sorted(
            ref.address for ref in resource.references
            if ref.address in self._replaced and ref.address != address
        )
        recorded = self.refresh.recorded_attributes(record) if self.refresh else record.attributes
        diffs = diff_attributes(schema, desired, recorded)

        if replaced_deps:
            return self._replace(resource, f"references replaced {', '.join(replaced_deps)}", diffs)

        forcing = [d.attribute for d in diffs if d.forces_replacement]
        if forcing:
            return self._replace(resource, f"immutable attribute(s) changed: {', '.join(forcing)}", diffs)

        if diffs:
            changed = ", ".join(d.attribute for d in diffs)
            return [self._apply_action(resource, Operation.UPDATE, f"changed: {changed}", diffs)]

        return [self._apply_action(resource, Operation.NO_OP, None, [])]

    def _replace(self, resource: Resource, reason: str, diffs: List[AttributeDiff]) -> List[Action]:
        address = resource.address
        self._replaced.add(address)
        delete = Action(
            id=action_id(Operation.DELETE, address),
            address=address,
            kind=resource.kind,
            name=resource.name,
            operation=Operation.DELETE,
            replace=True,
            reason=reason,
        )
        create = self._apply_action(resource, Operation.CREATE, reason, diffs, replace=True)
        return [delete, create]

    def _apply_action(
        self,
        resource: Resource,
        operation: Operation,
        reason: Optional[str],
        diffs: List[AttributeDiff],
        replace: bool = False,
    ) -> Action:
        self._operations[resource.address] = operation
        return Action(
            id=action_id(operation, resource.address),
            address=resource.address,
            kind=resource.kind,
            name=resource.name,
            operation=operation,
            replace=replace,
            reason=reason,
            diffs=diffs,
        )

    def _lookup(self, reference: Reference) -> Any:
        """Plan-time value of a reference."""
        target = reference.address
        schema = get_schema(reference.kind)
        planned = self._planned.get(target, {})
        operation = self._operations.get(target)

        if operation is Operation.CREATE:
            if reference.attribute in schema.outputs or reference.attribute not in planned:
                return UNKNOWN
            return planned[reference.attribute]

        record = self.records.get(target)
        if reference.attribute not in schema.outputs and reference.attribute in planned:
            return planned[reference.attribute]
        if record is None:
            return UNKNOWN
        try:
            return record.value(reference.attribute)
        except KeyError:
            return UNKNOWN

    def _order(self, actions: Dict[str, Action]) -> List[Action]:
        """Topologically order actions and fill in their requires lists."""
        graph = nx.DiGraph()
        graph.add_nodes_from(actions)

        def apply_id(address: str) -> Optional[str]:
            operation = self._operations.get(address)
            return action_id(operation, address) if operation else None

        # dependency apply -> dependent apply
        for address, operation in self._operations.items():
            for dependency in self.graph.get_dependencies(address):
                if dependency != address:
                    graph.add_edge(apply_id(dependency), action_id(operation, address))

        deletes = {a.address for a in actions.values() if a.operation is Operation.DELETE}
        for address in deletes:
            delete_id = action_id(Operation.DELETE, address)
            # replace: delete -> create
            if address in self._operations:
                graph.add_edge(delete_id, apply_id(address))

        for dependent, record in self.records.items():
            for dependency in record.dependencies:
                if dependency not in deletes or dependency == dependent:
                    continue
                dependency_delete = action_id(Operation.DELETE, dependency)
                if dependent in deletes:
                    # dependent delete -> dependency delete
                    graph.add_edge(action_id(Operation.DELETE, dependent), dependency_delete)
                elif dependent in self._operations and dependency not in self.graph.get_dependencies(dependent):
                    # surviving dependent stops using the dependency before it goes
                    graph.add_edge(apply_id(dependent), dependency_delete)

        try:
            order = list(nx.lexicographical_topological_sort(graph, key=lambda node: self._sort_key(actions[node])))
        except nx.NetworkXUnfeasible:
            cycle = [source for source, _ in nx.find_cycle(graph)]
            raise PlanningError(f"Actions cannot be ordered; cycle among {' -> '.join(cycle)}")

        ordered = []
        for node in order:
            action = actions[node]
            action.requires = sorted(graph.predecessors(node))
            ordered.append(action)
        return ordered

    def _sort_key(self, action: Action):
        return (action.kind, action.name, 0 if action.operation is Operation.DELETE else 1)


def plan_changes(
    desired: DesiredState,
    records: List[StateRecord],
    refresh: Optional[RefreshResult] = None,
    destroy: bool = False,
    serial: int = 0,
) -> Plan:
    """Validate, build the graph and plan in one call."""
    graph = DependencyGraph() if destroy else build_graph(desired)
    return Planner(graph, records, refresh).plan(destroy=destroy, source=desired.source, serial=serial)
