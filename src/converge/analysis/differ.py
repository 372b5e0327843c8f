"""Compare declared configuration against recorded state, one change per resource."""

from typing import Any, Dict, List, Mapping, Optional
from ..contracts.plan import FORCES_REPLACEMENT, Change, ChangeKind
from ..contracts.state import RecordStatus, StateRecord, StateSnapshot
from ..contracts.values import Reference, contains_reference, fingerprint, lookup_path, resolve_value
from ..graph.dependency_graph import ResourceGraph
from ..providers.registry import ProviderRegistry
from ..utils.errors import DestroyPreventedError
from ..utils.logging import get_logger

logger = get_logger("analysis.differ")

_MISSING = object()


def compute_changes(
    graph: ResourceGraph,
    snapshot: StateSnapshot,
    providers: ProviderRegistry,
    refreshed: Optional[Mapping[str, Optional[Dict[str, Any]]]] = None
) -> List[Change]:
    """
    Compute the change for every declared resource and every orphaned record.

    Args:
        graph: Built resource graph
        snapshot: State snapshot for this cycle (read only)
        providers: Provider registry (capabilities decide update vs replace)
        refreshed: Optional provider-read attributes per record id; None marks
            an object that no longer exists

    Returns:
        Changes: declared resources in topological order, then orphans by id

    Raises:
        DestroyPreventedError: A prevent_destroy resource would be destroyed or replaced
        ProviderNotFoundError: A resource or record type has no provider
    """
    refreshed = refreshed or {}
    kinds: Dict[str, ChangeKind] = {}
    after_by_id: Dict[str, Dict[str, Any]] = {}
    current_by_id: Dict[str, Dict[str, Any]] = {}
    changes: List[Change] = []
    prevented: List[str] = []

    for node_id in graph.topo_order():
        node = graph.get_node(node_id)
        capabilities = providers.capabilities(node.type)
        record = _current_record(snapshot.get(node_id), refreshed)
        if record is not None:
            current_by_id[node_id] = record.attributes

        def lookup(reference: Reference) -> Any:
            return _plan_time_value(reference, graph, kinds, after_by_id, current_by_id)

        after = resolve_value(node.attributes, lookup)
        after_by_id[node_id] = after

        if record is None:
            kind = ChangeKind.CREATE
            changed: List[str] = sorted(after)
            reasons: List[str] = []
        else:
            changed = sorted(
                key for key, value in after.items()
                if contains_reference(value) or record.attributes.get(key, _MISSING) != value
            )
            reasons = []
            if record.type != node.type:
                reasons.append(f"type changed from {record.type}")
            if record.status == RecordStatus.TAINTED:
                reasons.append("tainted")
            reasons.extend(f"{key}{FORCES_REPLACEMENT}" for key in changed if capabilities.requires_replacement(key))

            if reasons:
                kind = ChangeKind.REPLACE
            elif changed:
                kind = ChangeKind.UPDATE
            elif not contains_reference(after) and record.config_fingerprint != fingerprint(after):
                kind = ChangeKind.UPDATE
            else:
                kind = ChangeKind.NO_OP

        if kind == ChangeKind.REPLACE and node.lifecycle.prevent_destroy:
            prevented.append(node_id)

        kinds[node_id] = kind
        changes.append(Change(
            node_id=node_id,
            type=node.type,
            kind=kind,
            before_attributes=record.attributes if record else {},
            after_attributes=after,
            dependencies=graph.dependencies(node_id),
            prior_dependencies=record.dependencies if record else [],
            provider_instance_id=record.provider_instance_id if record else None,
            lifecycle=node.lifecycle,
            changed_attributes=changed,
            replace_reasons=reasons,
            deposed=record.deposed if record else [],
        ))

    for record_id in snapshot.ids():
        if record_id in graph:
            continue
        record = snapshot.get(record_id)
        providers.get(record.type)
        changes.append(_destroy_change(record, orphaned=True))

    if prevented:
        raise DestroyPreventedError(sorted(prevented))

    _log_summary(changes)
    return changes


def compute_destroy_changes(
    snapshot: StateSnapshot,
    providers: ProviderRegistry,
    graph: Optional[ResourceGraph] = None
) -> List[Change]:
    """
    Destroy every recorded resource.

    Lifecycle flags come from the declared configuration when a graph is given.

    Raises:
        DestroyPreventedError: A recorded resource is declared with prevent_destroy
    """
    changes: List[Change] = []
    prevented: List[str] = []
    for record_id in snapshot.ids():
        record = snapshot.get(record_id)
        providers.get(record.type)
        node = graph.get_node(record_id) if graph is not None else None
        if node is not None and node.lifecycle.prevent_destroy:
            prevented.append(record_id)
        changes.append(_destroy_change(record, orphaned=node is None and graph is not None))

    if prevented:
        raise DestroyPreventedError(sorted(prevented))

    _log_summary(changes)
    return changes


def _destroy_change(record: StateRecord, orphaned: bool) -> Change:
    return Change(
        node_id=record.id,
        type=record.type,
        kind=ChangeKind.DESTROY,
        before_attributes=record.attributes,
        after_attributes={},
        dependencies=[],
        prior_dependencies=record.dependencies,
        provider_instance_id=record.provider_instance_id,
        orphaned=orphaned,
        deposed=record.deposed,
    )


def _current_record(record: Optional[StateRecord],
                    refreshed: Mapping[str, Optional[Dict[str, Any]]]) -> Optional[StateRecord]:
    """Overlay refreshed attributes; a refreshed None means the object is gone."""
    if record is None or record.id not in refreshed:
        return record
    current = refreshed[record.id]
    if current is None:
        logger.warning(f"{record.id} no longer exists remotely; it will be created again")
        return None
    merged = dict(record.attributes)
    merged.update(current)
    return record.model_copy(update={"attributes": merged})


def _plan_time_value(
    reference: Reference,
    graph: ResourceGraph,
    kinds: Mapping[str, ChangeKind],
    after_by_id: Mapping[str, Dict[str, Any]],
    current_by_id: Mapping[str, Dict[str, Any]]
) -> Any:
    """
    Value of a reference as far as it is known before apply.

    Declared attributes of the target are known. Computed attributes are known
    when the target is unchanged; an in-place update keeps only its id.
    """
    target = graph.get_node(reference.target)
    if reference.root_attribute in target.attributes:
        return lookup_path(after_by_id[reference.target], reference.attribute, default=reference)
    kind = kinds.get(reference.target)
    if kind in (ChangeKind.CREATE, ChangeKind.REPLACE):
        return reference
    if kind == ChangeKind.UPDATE and reference.root_attribute != "id":
        return reference
    current = current_by_id.get(reference.target)
    if current is None:
        return reference
    return lookup_path(current, reference.attribute, default=reference)


def _log_summary(changes: List[Change]) -> None:
    counts: Dict[str, int] = {}
    for change in changes:
        counts[ChangeKind(change.kind).value] = counts.get(ChangeKind(change.kind).value, 0) + 1
    summary = ", ".join(f"{k}={v}" for k, v in sorted(counts.items())) or "no resources"
    logger.info(f"Computed {len(changes)} change(s): {summary}")
