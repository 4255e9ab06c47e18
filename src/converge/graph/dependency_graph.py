"""Build directed dependency graph from desired-state resources."""

import networkx as nx
from typing import List, Dict, Set, Optional, Tuple
from ..model.models import Resource
from ..utils.errors import CyclicDependencyError, GraphConstructionError
from ..utils.logging import get_logger

logger = get_logger("graph.dependency_graph")


class DependencyGraph:
    """Directed dependency graph: nodes=resources, edges=dependent -> dependency."""

    def __init__(self):
        self.graph = nx.DiGraph()
        self._resource_map: Dict[str, Resource] = {}

    def add_resource(self, resource: Resource) -> None:
        """Add a resource node (edges are added by build_from_resources)."""
        node_id = self.get_node_id(resource)
        if node_id in self._resource_map:
            raise GraphConstructionError(f"Duplicate resource address: {node_id}")
        self.graph.add_node(node_id, resource=resource)
        self._resource_map[node_id] = resource

    def get_node_id(self, resource: Resource) -> str:
        """Generate unique node ID for a resource."""
        return resource.address

    def build_from_resources(self, resources: List[Resource]) -> None:
        """
        Build the complete dependency graph and reject cycles.

        Raises:
            GraphConstructionError: If a dependency is not a declared resource
            CyclicDependencyError: If the references form a cycle
        """
        for resource in resources:
            self.add_resource(resource)

        for resource in resources:
            node_id = self.get_node_id(resource)
            for dep_node_id in resource.dependency_addresses():
                if dep_node_id not in self._resource_map:
                    raise GraphConstructionError(
                        f"{node_id} depends on '{dep_node_id}', which is not in the graph"
                    )
                self.graph.add_edge(node_id, dep_node_id)
                logger.debug(f"Added dependency edge: {node_id} -> {dep_node_id}")

        self.check_acyclic()
        logger.info(
            f"Built dependency graph with {self.graph.number_of_nodes()} nodes "
            f"and {self.graph.number_of_edges()} edges"
        )

    def check_acyclic(self) -> None:
        """Raise CyclicDependencyError naming the resources of a cycle."""
        try:
            cycle_edges = nx.find_cycle(self.graph)
        except nx.NetworkXNoCycle:
            return
        cycle = [source for source, _ in cycle_edges]
        logger.error(f"Dependency cycle: {' -> '.join(cycle)}")
        raise CyclicDependencyError(cycle)

    def topological_order(self) -> List[str]:
        """Dependencies before dependents; ties broken by (kind, name)."""
        return list(nx.lexicographical_topological_sort(
            self.graph.reverse(copy=False),
            key=self._sort_key,
        ))

    def _sort_key(self, node_id: str) -> Tuple[str, str]:
        resource = self._resource_map[node_id]
        return (resource.kind, resource.name)

    def get_dependencies(self, resource_id: str) -> List[str]:
        """Direct dependencies of a resource."""
        if resource_id not in self.graph:
            return []
        return sorted(self.graph.successors(resource_id))

    def get_downstream_resources(self, resource_id: str) -> Set[str]:
        """Get all resources that depend on the given resource (downstream)."""
        if resource_id not in self.graph:
            return set()
        return set(nx.ancestors(self.graph, resource_id))

    def get_upstream_resources(self, resource_id: str) -> Set[str]:
        """Get all resources that the given resource depends on (upstream)."""
        if resource_id not in self.graph:
            return set()
        return set(nx.descendants(self.graph, resource_id))

    def get_resource(self, node_id: str) -> Optional[Resource]:
        """Get resource by node ID."""
        return self._resource_map.get(node_id)

    def get_all_resources(self) -> List[Resource]:
        """Get all resources in the graph."""
        return list(self._resource_map.values())

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._resource_map
