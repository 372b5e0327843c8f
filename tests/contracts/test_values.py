"""Tests for attribute values and references."""

import pytest
from converge.contracts.resource import ResourceNode
from converge.contracts.values import (
    Reference,
    contains_reference,
    fingerprint,
    iter_references,
    lookup_path,
    parse_reference,
    render_value,
    resolve_value,
)


class TestReferences:
    """Test reference parsing and resolution."""

    def test_parse_whole_string_reference(self):
        ref = parse_reference("${aws_vpc.main.tags.Name}")

        assert ref == Reference("aws_vpc.main", "tags.Name")
        assert ref.root_attribute == "tags"
        assert str(ref) == "${aws_vpc.main.tags.Name}"

    @pytest.mark.parametrize("text", ["plain", "${var.x}x", "x${a.b.c}", "${a.b}"])
    def test_non_references(self, text):
        assert parse_reference(text) is None

    def test_iter_and_resolve_nested(self):
        value = {"a": [Reference("t.x", "id"), {"b": Reference("t.y", "arn")}], "c": 1}

        assert [r.target for r in iter_references(value)] == ["t.x", "t.y"]
        assert contains_reference(value)
        resolved = resolve_value(value, lambda ref: f"<{ref.target}>")
        assert resolved == {"a": ["<t.x>", {"b": "<t.y>"}], "c": 1}
        assert not contains_reference(resolved)

    def test_lookup_path(self):
        attrs = {"tags": {"Name": "web"}, "ports": [80, 443]}

        assert lookup_path(attrs, "tags.Name") == "web"
        assert lookup_path(attrs, "ports.1") == 443
        assert lookup_path(attrs, "tags.Missing", default=None) is None
        with pytest.raises(KeyError):
            lookup_path(attrs, "nope")

    def test_resource_node_round_trips_references(self):
        node = ResourceNode(type="t", name="x", attributes={"parent": Reference("t.y", "id")})
        dumped = node.model_dump(mode="json")

        assert dumped["attributes"]["parent"] == {"$ref": "t.y.id"}
        assert ResourceNode.model_validate(dumped).attributes == node.attributes


class TestFingerprint:
    """Test canonical hashing and rendering."""

    def test_fingerprint_ignores_key_order(self):
        assert fingerprint({"a": 1, "b": [1, 2]}) == fingerprint({"b": [1, 2], "a": 1})
        assert fingerprint({"a": 1}) != fingerprint({"a": 2})

    def test_render_value(self):
        assert render_value("x") == '"x"'
        assert render_value(Reference("t.y", "id")) == "(known after apply: t.y.id)"
        assert render_value([Reference("t.y", "id")]) == "(known after apply)"
