"""Tests for the differ (declared configuration vs recorded state)."""

import pytest
from converge.analysis.differ import compute_changes, compute_destroy_changes
from converge.contracts.plan import ChangeKind
from converge.contracts.state import RecordStatus, StateRecord, StateSnapshot
from converge.contracts.values import Reference, fingerprint
from converge.graph.dependency_graph import ResourceGraph
from converge.utils.errors import DestroyPreventedError, ProviderNotFoundError


def _snapshot(*records: StateRecord) -> StateSnapshot:
    return StateSnapshot({r.id: r for r in records}, serial=len(records), lineage="test", fingerprint="fp")


def _applied(node, instance_id=None, status=RecordStatus.APPLIED, **extra_attrs) -> StateRecord:
    """Record as the executor would commit it for node."""
    instance_id = instance_id or f"{node.name}-1"
    attributes = dict(node.attributes)
    attributes.update(extra_attrs)
    attributes["id"] = instance_id
    return StateRecord(
        id=node.id,
        type=node.type,
        provider_instance_id=instance_id,
        attributes=attributes,
        config_fingerprint=fingerprint(node.attributes),
        status=status,
        dependencies=list(node.depends_on),
    )


def _by_id(changes):
    return {c.node_id: c for c in changes}


class TestComputeChanges:
    """Test per-resource change kinds."""

    def test_create_when_state_empty(self, make_node, registry):
        graph = ResourceGraph.from_nodes([make_node("a", size=1)])
        changes = compute_changes(graph, _snapshot(), registry)

        assert len(changes) == 1
        assert changes[0].kind == ChangeKind.CREATE
        assert changes[0].after_attributes == {"tag": "a", "size": 1}

    def test_noop_when_state_matches(self, make_node, registry):
        node = make_node("a", size=1)
        changes = compute_changes(ResourceGraph.from_nodes([node]), _snapshot(_applied(node)), registry)

        assert changes[0].kind == ChangeKind.NO_OP
        assert changes[0].is_noop

    def test_updatable_attribute_change_is_update(self, make_node, registry):
        old = make_node("a", size=1)
        new = make_node("a", size=2)
        changes = compute_changes(ResourceGraph.from_nodes([new]), _snapshot(_applied(old)), registry)

        change = changes[0]
        assert change.kind == ChangeKind.UPDATE
        assert change.changed_attributes == ["size"]
        assert change.provider_instance_id == "a-1"

    def test_non_updatable_attribute_change_is_replace(self, make_node, registry):
        old = make_node("a", zone="east")
        new = make_node("a", zone="west")
        changes = compute_changes(ResourceGraph.from_nodes([new]), _snapshot(_applied(old)), registry)

        change = changes[0]
        assert change.kind == ChangeKind.REPLACE
        assert change.replace_reasons == ["zone requires replacement"]

    def test_tainted_record_is_replaced(self, make_node, registry):
        node = make_node("a", size=1)
        record = _applied(node, status=RecordStatus.TAINTED)
        changes = compute_changes(ResourceGraph.from_nodes([node]), _snapshot(record), registry)

        assert changes[0].kind == ChangeKind.REPLACE
        assert "tainted" in changes[0].replace_reasons

    def test_type_change_is_replace(self, make_node, registry):
        node = make_node("a")
        record = _applied(node).model_copy(update={"type": "legacy"})
        changes = compute_changes(ResourceGraph.from_nodes([node]), _snapshot(record), registry)

        assert changes[0].kind == ChangeKind.REPLACE
        assert "type changed from legacy" in changes[0].replace_reasons

    def test_removed_resource_is_orphan_destroy(self, make_node, registry):
        kept = make_node("a")
        gone = make_node("b")
        snapshot = _snapshot(_applied(kept), _applied(gone))
        changes = _by_id(compute_changes(ResourceGraph.from_nodes([kept]), snapshot, registry))

        assert changes["fake.b"].kind == ChangeKind.DESTROY
        assert changes["fake.b"].orphaned
        assert changes["fake.b"].provider_instance_id == "b-1"
        assert changes["fake.a"].kind == ChangeKind.NO_OP

    def test_prevent_destroy_blocks_replace(self, make_node, registry):
        old = make_node("a", zone="east", prevent_destroy=True)
        new = make_node("a", zone="west", prevent_destroy=True)

        with pytest.raises(DestroyPreventedError) as exc_info:
            compute_changes(ResourceGraph.from_nodes([new]), _snapshot(_applied(old)), registry)
        assert exc_info.value.node_ids == ["fake.a"]

    def test_computed_reference_of_new_target_is_known_after_apply(self, make_node, registry):
        nodes = [make_node("a"), make_node("b", parent=Reference("fake.a", "id"))]
        changes = _by_id(compute_changes(ResourceGraph.from_nodes(nodes), _snapshot(), registry))

        assert changes["fake.b"].after_attributes["parent"] == Reference("fake.a", "id")

    def test_computed_reference_of_unchanged_target_is_resolved(self, make_node, registry):
        a = make_node("a")
        b_resolved = make_node("b", parent="a-1")
        b = make_node("b", parent=Reference("fake.a", "id"))
        snapshot = _snapshot(_applied(a), _applied(b_resolved))
        changes = _by_id(compute_changes(ResourceGraph.from_nodes([a, b]), snapshot, registry))

        assert changes["fake.b"].after_attributes["parent"] == "a-1"
        assert changes["fake.b"].kind == ChangeKind.NO_OP

    def test_in_place_update_keeps_id_but_not_other_computed_values(self, make_node, registry):
        a_old = make_node("a", size=1)
        a_new = make_node("a", size=2)
        b = make_node("b", parent=Reference("fake.a", "id"), digest=Reference("fake.a", "digest"))
        b_applied = make_node("b", parent="a-1", digest="d1")
        snapshot = _snapshot(_applied(a_old, digest="d1"), _applied(b_applied))
        graph = ResourceGraph.from_nodes([a_new, b], computed_attributes=lambda t: {"id", "digest"})
        changes = _by_id(compute_changes(graph, snapshot, registry))

        assert changes["fake.a"].kind == ChangeKind.UPDATE
        after = changes["fake.b"].after_attributes
        assert after["parent"] == "a-1"
        assert after["digest"] == Reference("fake.a", "digest")
        assert changes["fake.b"].changed_attributes == ["digest"]

    def test_declared_reference_is_resolved_at_plan_time(self, make_node, registry):
        nodes = [make_node("a", size=3), make_node("b", size=Reference("fake.a", "size"))]
        changes = _by_id(compute_changes(ResourceGraph.from_nodes(nodes), _snapshot(), registry))

        assert changes["fake.b"].after_attributes["size"] == 3

    def test_refreshed_attributes_reveal_drift(self, make_node, registry):
        node = make_node("a", size=1)
        refreshed = {"fake.a": {"tag": "a", "size": 5, "id": "a-1"}}
        changes = compute_changes(ResourceGraph.from_nodes([node]), _snapshot(_applied(node)), registry, refreshed)

        assert changes[0].kind == ChangeKind.UPDATE
        assert changes[0].before_attributes["size"] == 5

    def test_refreshed_missing_object_is_recreated(self, make_node, registry):
        node = make_node("a")
        changes = compute_changes(ResourceGraph.from_nodes([node]), _snapshot(_applied(node)), registry,
                                  {"fake.a": None})

        assert changes[0].kind == ChangeKind.CREATE

    def test_orphan_without_provider_fails(self, make_node, registry):
        record = _applied(make_node("a")).model_copy(update={"type": "unknown"})

        with pytest.raises(ProviderNotFoundError):
            compute_changes(ResourceGraph.from_nodes([]), _snapshot(record), registry)


class TestComputeDestroyChanges:
    """Test destroy-everything change sets."""

    def test_every_record_destroyed(self, make_node, registry):
        snapshot = _snapshot(_applied(make_node("a")), _applied(make_node("b")))
        changes = compute_destroy_changes(snapshot, registry)

        assert [c.node_id for c in changes] == ["fake.a", "fake.b"]
        assert all(c.kind == ChangeKind.DESTROY for c in changes)

    def test_prevent_destroy_from_configuration(self, make_node, registry):
        node = make_node("a", prevent_destroy=True)
        graph = ResourceGraph.from_nodes([node])

        with pytest.raises(DestroyPreventedError):
            compute_destroy_changes(_snapshot(_applied(node)), registry, graph)
