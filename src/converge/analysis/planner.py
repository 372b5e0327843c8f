"""Order changes into waves of independent actions."""

import networkx as nx
from typing import Dict, List, Optional, Set
from ..contracts.plan import ActionType, Change, ChangeKind, Plan, PlannedAction, action_key
from ..contracts.state import StateSnapshot
from ..utils.errors import AmbiguousOrderError
from ..utils.logging import get_logger

logger = get_logger("analysis.planner")

_NOOP = "noop"


def build_plan(changes: List[Change], snapshot: StateSnapshot, destroy: bool = False) -> Plan:
    """
    Expand changes into actions, order them and group them into waves.

    Ordering rules:
    - a dependency's create/update runs before its dependents' create/update
    - destroys run in reverse dependency order
    - a replace destroys then creates, unless create_before_destroy is set, in
      which case it creates, lets dependents update, then destroys the old object
    - create_before_destroy propagates to replaced dependencies
    - a resource stops referencing a dependency before that dependency is destroyed

    Raises:
        AmbiguousOrderError: The action graph has a cycle (internal invariant)
    """
    by_id: Dict[str, Change] = {c.node_id: c for c in changes}
    cbd = _create_before_destroy_set(by_id)
    graph = nx.DiGraph()
    meta: Dict[str, dict] = {}

    def add_vertex(key: str, **attrs) -> str:
        graph.add_node(key)
        meta[key] = attrs
        return key

    apply_vertex: Dict[str, str] = {}
    destroy_vertices: Dict[str, List[str]] = {}
    old_destroy_vertices: Dict[str, List[str]] = {}
    own_destroy_vertex: Dict[str, str] = {}

    for change in changes:
        node_id = change.node_id
        kind = ChangeKind(change.kind)
        if kind in (ChangeKind.CREATE, ChangeKind.REPLACE):
            apply_vertex[node_id] = add_vertex(action_key(node_id, ActionType.CREATE),
                                               change=change, action=ActionType.CREATE)
        elif kind == ChangeKind.UPDATE:
            apply_vertex[node_id] = add_vertex(action_key(node_id, ActionType.UPDATE),
                                               change=change, action=ActionType.UPDATE)
        elif kind == ChangeKind.NO_OP:
            apply_vertex[node_id] = add_vertex(f"{_NOOP}:{node_id}", change=change, action=None)

        main_destroy: Optional[str] = None
        if kind in (ChangeKind.DESTROY, ChangeKind.REPLACE) and change.provider_instance_id:
            main_destroy = add_vertex(action_key(node_id, ActionType.DESTROY),
                                      change=change, action=ActionType.DESTROY,
                                      instance_id=change.provider_instance_id, deposed=False)
            own_destroy_vertex[node_id] = main_destroy
        deposed_keys = [
            add_vertex(action_key(node_id, ActionType.DESTROY, instance_id),
                       change=change, action=ActionType.DESTROY,
                       instance_id=instance_id, deposed=True)
            for instance_id in change.deposed
        ]
        destroy_vertices[node_id] = ([main_destroy] if main_destroy else []) + deposed_keys
        old_destroy_vertices[node_id] = list(deposed_keys)
        if kind == ChangeKind.REPLACE and node_id in cbd and main_destroy:
            old_destroy_vertices[node_id].insert(0, main_destroy)
        if kind == ChangeKind.DESTROY and main_destroy:
            # the record goes away with the main object, so leftovers are destroyed first
            for key in deposed_keys:
                graph.add_edge(key, main_destroy)

    dependents: Dict[str, Set[str]] = {}
    for change in changes:
        for dep in change.dependencies:
            dependents.setdefault(dep, set()).add(change.node_id)

    for change in changes:
        node_id = change.node_id
        kind = ChangeKind(change.kind)
        own_apply = apply_vertex.get(node_id)

        # dependency create/update before dependent create/update
        if own_apply:
            for dep in change.dependencies:
                if dep in apply_vertex:
                    graph.add_edge(apply_vertex[dep], own_apply)

        # destroys in reverse dependency order
        for dep in change.prior_dependencies:
            for own_destroy in destroy_vertices.get(node_id, []):
                for dep_destroy in destroy_vertices.get(dep, []):
                    graph.add_edge(own_destroy, dep_destroy)

        # stop referencing a dependency before it is destroyed
        if own_apply:
            for dep in change.prior_dependencies:
                dep_change = by_id.get(dep)
                if dep_change is not None and ChangeKind(dep_change.kind) == ChangeKind.DESTROY:
                    for dep_destroy in destroy_vertices.get(dep, []):
                        graph.add_edge(own_apply, dep_destroy)

        if kind == ChangeKind.REPLACE and node_id not in cbd and node_id in own_destroy_vertex:
            graph.add_edge(own_destroy_vertex[node_id], own_apply)

        # old objects go away after the replacement exists and dependents point at it
        for old_destroy in old_destroy_vertices.get(node_id, []):
            if own_apply:
                graph.add_edge(own_apply, old_destroy)
            for dependent in sorted(dependents.get(node_id, ())):
                if dependent in apply_vertex:
                    graph.add_edge(apply_vertex[dependent], old_destroy)

    _contract_noops(graph, meta)

    if not nx.is_directed_acyclic_graph(graph):
        cycle_edges = nx.find_cycle(graph)
        raise AmbiguousOrderError([edge[0] for edge in cycle_edges] + [cycle_edges[0][0]])

    actions: List[PlannedAction] = []
    for wave, generation in enumerate(nx.topological_generations(graph)):
        for key in sorted(generation, key=lambda k: (meta[k]["change"].node_id, k)):
            actions.append(_planned_action(key, wave, meta[key], sorted(graph.predecessors(key)), cbd))

    plan = Plan(
        destroy=destroy,
        state_fingerprint=snapshot.fingerprint,
        state_serial=snapshot.serial,
        state_lineage=snapshot.lineage,
        changes=changes,
        actions=actions,
    )
    logger.info(f"Planned {len(actions)} action(s) in {plan.wave_count} wave(s)")
    return plan


def _create_before_destroy_set(by_id: Dict[str, Change]) -> Set[str]:
    """Replaced resources that create before destroying, propagated to their dependencies."""
    result: Set[str] = set()
    stack = [
        node_id for node_id, change in by_id.items()
        if ChangeKind(change.kind) == ChangeKind.REPLACE and change.lifecycle.create_before_destroy
    ]
    seen: Set[str] = set()
    while stack:
        node_id = stack.pop()
        if node_id in seen:
            continue
        seen.add(node_id)
        change = by_id.get(node_id)
        if change is None:
            continue
        if ChangeKind(change.kind) == ChangeKind.REPLACE:
            result.add(node_id)
        stack.extend(change.dependencies)
    if result:
        logger.debug(f"create_before_destroy applies to: {', '.join(sorted(result))}")
    return result


def _contract_noops(graph: nx.DiGraph, meta: Dict[str, dict]) -> None:
    """Remove placeholder vertices while keeping the orderings that pass through them."""
    for key in [k for k in graph.nodes if k.startswith(f"{_NOOP}:")]:
        preds = list(graph.predecessors(key))
        succs = list(graph.successors(key))
        for pred in preds:
            for succ in succs:
                if pred != succ:
                    graph.add_edge(pred, succ)
        graph.remove_node(key)
        del meta[key]


def _planned_action(key: str, wave: int, info: dict, requires: List[str], cbd: Set[str]) -> PlannedAction:
    change: Change = info["change"]
    action: ActionType = info["action"]
    replace = ChangeKind(change.kind) == ChangeKind.REPLACE
    common = dict(
        node_id=change.node_id,
        type=change.type,
        action=action,
        wave=wave,
        replace=replace,
        create_before_destroy=change.node_id in cbd,
        requires=requires,
    )
    if action == ActionType.DESTROY:
        return PlannedAction(
            orphaned=change.orphaned,
            deposed=info.get("deposed", False),
            provider_instance_id=info.get("instance_id"),
            **common,
        )
    instance_id: Optional[str] = change.provider_instance_id if action == ActionType.UPDATE else None
    return PlannedAction(
        provider_instance_id=instance_id,
        after_attributes=change.after_attributes,
        dependencies=change.dependencies,
        **common,
    )
