"""Build directed dependency graph from declared resources."""

import networkx as nx
from typing import Callable, Dict, Iterable, List, Optional, Set
from ..contracts.resource import ResourceNode
from ..contracts.values import iter_references
from ..utils.errors import CycleError, DuplicateIdError, GraphConstructionError, UnresolvedReferenceError
from ..utils.logging import get_logger

logger = get_logger("graph.dependency_graph")

DEFAULT_COMPUTED_ATTRIBUTES = frozenset({"id"})

ComputedLookup = Callable[[str], Iterable[str]]


class ResourceGraph:
    """Directed dependency graph: nodes=resources, edges=dependent -> dependency."""

    def __init__(self):
        self.graph = nx.DiGraph()
        self._resource_map: Dict[str, ResourceNode] = {}
        self._built = False

    def add_node(self, node: ResourceNode) -> None:
        """Add a resource to the graph."""
        if node.id in self._resource_map:
            raise DuplicateIdError(node.id)
        self.graph.add_node(node.id, resource=node)
        self._resource_map[node.id] = node
        self._built = False

    def add_nodes(self, nodes: Iterable[ResourceNode]) -> None:
        for node in nodes:
            self.add_node(node)

    def build(self, computed_attributes: Optional[ComputedLookup] = None) -> "ResourceGraph":
        """
        Resolve explicit and reference dependencies into edges and validate the graph.

        Args:
            computed_attributes: Returns the attributes a provider computes for a
                resource type; references may target those in addition to declared ones

        Raises:
            UnresolvedReferenceError: Reference to a missing resource or attribute
            CycleError: Dependencies are not acyclic
        """
        self.graph.remove_edges_from(list(self.graph.edges))

        for node_id in sorted(self._resource_map):
            node = self._resource_map[node_id]
            for dep_id in node.depends_on:
                if dep_id not in self._resource_map:
                    raise UnresolvedReferenceError(node_id, dep_id)
                self._add_edge(node_id, dep_id, "explicit")

            for reference in iter_references(node.attributes):
                target = self._resource_map.get(reference.target)
                if target is None:
                    raise UnresolvedReferenceError(node_id, reference.address)
                computed = (
                    set(computed_attributes(target.type))
                    if computed_attributes is not None
                    else set(DEFAULT_COMPUTED_ATTRIBUTES)
                )
                if reference.root_attribute not in target.attributes and reference.root_attribute not in computed:
                    raise UnresolvedReferenceError(
                        node_id,
                        reference.address,
                        reason=f"{target.id} has no attribute '{reference.root_attribute}'"
                    )
                self._add_edge(node_id, reference.target, "reference")

        try:
            cycle_edges = nx.find_cycle(self.graph)
        except nx.NetworkXNoCycle:
            cycle_edges = None
        if cycle_edges:
            cycle = [edge[0] for edge in cycle_edges] + [cycle_edges[0][0]]
            raise CycleError(cycle)

        self._built = True
        logger.info(f"Built resource graph with {self.graph.number_of_nodes()} nodes and {self.graph.number_of_edges()} edges")
        return self

    def _add_edge(self, node_id: str, dep_id: str, kind: str) -> None:
        if self.graph.has_edge(node_id, dep_id):
            return
        self.graph.add_edge(node_id, dep_id, kind=kind)
        logger.debug(f"Added {kind} dependency edge: {node_id} -> {dep_id}")

    def _require_built(self) -> None:
        if not self._built:
            raise GraphConstructionError("Resource graph must be built before it is queried")

    def topo_order(self) -> List[str]:
        """Dependencies first; ties broken by lexicographic id."""
        self._require_built()
        return list(nx.lexicographical_topological_sort(self.graph.reverse(copy=False)))

    def dependencies(self, node_id: str) -> List[str]:
        """Direct dependencies of a resource."""
        if node_id not in self.graph:
            return []
        return sorted(self.graph.successors(node_id))

    def dependents(self, node_id: str) -> List[str]:
        """Resources that directly depend on the given one."""
        if node_id not in self.graph:
            return []
        return sorted(self.graph.predecessors(node_id))

    def get_downstream_resources(self, resource_id: str) -> Set[str]:
        """Get all resources that depend on the given resource (transitively)."""
        if resource_id not in self.graph:
            return set()
        return set(nx.ancestors(self.graph, resource_id))

    def get_upstream_resources(self, resource_id: str) -> Set[str]:
        """Get all resources the given resource depends on (transitively)."""
        if resource_id not in self.graph:
            return set()
        return set(nx.descendants(self.graph, resource_id))

    def get_node(self, node_id: str) -> Optional[ResourceNode]:
        return self._resource_map.get(node_id)

    def nodes(self) -> List[ResourceNode]:
        """All resources, sorted by id."""
        return [self._resource_map[node_id] for node_id in sorted(self._resource_map)]

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._resource_map

    def __len__(self) -> int:
        return len(self._resource_map)

    @classmethod
    def from_nodes(cls, nodes: Iterable[ResourceNode],
                   computed_attributes: Optional[ComputedLookup] = None) -> "ResourceGraph":
        """Add and build in one step."""
        graph = cls()
        graph.add_nodes(nodes)
        return graph.build(computed_attributes)
