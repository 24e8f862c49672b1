"""Tests for graph models and the small utilities under them."""

import pytest
from pydantic import ValidationError

from skillgraph.models.graph import Edge, GraphSnapshot, Group, Handle, Node
from skillgraph.models.manifest import MANIFEST_NODE_TYPE, ManifestData, default_manifest_node
from skillgraph.models.result import OperationResult
from skillgraph.utils.cloning import clone
from skillgraph.utils.geometry import Rect, compute_bounds, node_size
from skillgraph.utils.identifiers import ensure_unique_id
from skillgraph.utils.paths import (
    MISSING,
    delete_path,
    is_writable_path,
    merge_patch,
    read_path,
    set_path,
)


class TestNode:
    """Test Node parsing and wire shape."""

    def test_accepts_camel_and_snake_keys(self):
        """Edges parse from either key style."""
        a = Edge.model_validate({"source": "a", "target": "b", "sourcePort": "out"})
        b = Edge(source="a", target="b", source_port="out")
        assert a.source_port == b.source_port == "out"

    def test_payload_is_camel_case_without_nulls(self):
        """to_payload() produces the editor's JSON shape."""
        edge = Edge(id="e1", source="a", target="b", source_port="out")
        payload = edge.to_payload()
        assert payload["sourcePort"] == "out"
        assert "targetPort" not in payload
        assert "source_port" not in payload

    def test_ports_alias_for_handles(self):
        """Legacy 'ports' payloads become handles."""
        node = Node.model_validate({"id": "n", "ports": [{"id": "in", "direction": "input"}]})
        assert [h.id for h in node.handles] == ["in"]

    def test_handle_direction_normalized(self):
        """Direction is lower-cased and defaults to bidirectional."""
        assert Handle(id="h", direction="OUTPUT").direction == "output"
        assert Handle(id="h", direction=None).direction == "bidirectional"

    def test_invalid_direction_rejected(self):
        """Unknown directions fail validation."""
        with pytest.raises(ValidationError):
            Handle(id="h", direction="sideways")

    def test_handle_ids_by_direction(self):
        """Bidirectional handles count for both directions."""
        node = Node(id="n", handles=[
            Handle(id="in", direction="input"),
            Handle(id="out", direction="output"),
            Handle(id="io"),
        ])
        assert node.handle_ids("input") == ["in", "io"]
        assert node.handle_ids("output") == ["out", "io"]
        assert node.find_handle("out").direction == "output"
        assert node.find_handle("nope") is None

    def test_unknown_fields_survive(self):
        """Editor-specific fields are kept through a round trip."""
        node = Node.model_validate({"id": "n", "color": "red"})
        assert node.to_payload()["color"] == "red"

    def test_clone_is_deep(self):
        """Mutating a clone leaves the original untouched."""
        node = Node(id="n", data={"items": [1, 2]})
        copy = clone(node)
        copy.data["items"].append(3)
        assert node.data["items"] == [1, 2]


class TestSnapshotAndResult:
    """Test snapshot and result containers."""

    def test_snapshot_from_payload(self):
        snapshot = GraphSnapshot.model_validate({
            "nodes": [{"id": "a"}],
            "edges": [{"id": "e", "source": "a", "target": "a"}],
            "groups": [{"id": "g", "nodeIds": ["a"]}],
        })
        assert snapshot.groups[0].node_ids == ["a"]

    def test_result_helpers(self):
        ok = OperationResult.ok({"x": 1}, ["careful"])
        failed = OperationResult.fail("nope", data={"missing": ["a"]})
        assert ok.success and ok.warnings == ["careful"]
        assert not failed.success and failed.error == "nope"


class TestManifestModel:
    """Test the default manifest node."""

    def test_default_manifest_is_complete(self):
        node = default_manifest_node(kind="executable", name="Demo")
        assert node.type == MANIFEST_NODE_TYPE
        data = ManifestData.model_validate(node.data)
        assert data.intent.kind == "executable"
        assert data.authority.mutation.allow_delete is True
        assert node.data["authority"]["mutation"]["appendOnly"] is False


class TestPaths:
    """Test dotted-path helpers."""

    def test_read_nested_and_missing(self):
        data = {"a": {"b": {"c": 1}}, "n": None}
        assert read_path(data, "a.b.c") == 1
        assert read_path(data, "a.x") is MISSING
        assert read_path(data, "n") is None

    def test_star_reads_whole_array(self):
        """'*' selects an array as a whole, or maps the rest of the path over it."""
        data = {"items": [{"name": "a"}, {"name": "b"}]}
        assert read_path(data, "items.*") == data["items"]
        assert read_path(data, "items.*.name") == ["a", "b"]
        assert read_path({"items": {"k": 1}}, "items.*") is MISSING

    def test_set_creates_intermediates(self):
        data = {}
        set_path(data, "a.b.c", 5)
        assert data == {"a": {"b": {"c": 5}}}

    def test_set_through_trailing_star(self):
        """'items.*' writes the list itself; a wildcard before the end is not writable."""
        data = {"items": [1, 1, 2]}
        set_path(data, "items.*", [1, 2])
        assert data == {"items": [1, 2]}
        assert is_writable_path("items.*")
        assert not is_writable_path("items.*.name")
        assert not is_writable_path("*")
        set_path(data, "items.*.name", "x")
        assert data == {"items": [1, 2]}

    def test_delete(self):
        data = {"a": {"b": 1, "c": 2}}
        assert delete_path(data, "a.b") is True
        assert delete_path(data, "a.zzz") is False
        assert data == {"a": {"c": 2}}

    def test_merge_patch_is_deep_and_copies(self):
        target = {"a": {"x": 1}, "list": [1]}
        merged = merge_patch(target, {"a": {"y": 2}, "list": [2]})
        assert merged == {"a": {"x": 1, "y": 2}, "list": [2]}
        assert target == {"a": {"x": 1}, "list": [1]}


class TestGeometry:
    """Test rectangle helpers."""

    def test_overlap_with_padding(self):
        a = Rect(0, 0, 100, 100)
        assert a.overlaps(Rect(100, 0, 10, 10), padding=1.0)
        assert not a.overlaps(Rect(101, 0, 10, 10), padding=1.0)

    def test_node_size_falls_back(self):
        assert node_size(Node(id="n"), 60, 60) == (60, 60)
        assert node_size(Node(id="n", width=10, height=20)) == (10, 20)

    def test_compute_bounds_pads(self):
        nodes = [
            Node(id="a", position={"x": 0, "y": 0}, width=100, height=50),
            Node(id="b", position={"x": 200, "y": 100}, width=100, height=50),
        ]
        bounds = compute_bounds(nodes, padding=10)
        assert (bounds.x, bounds.y, bounds.width, bounds.height) == (-10, -10, 320, 170)

    def test_compute_bounds_skips_unpositioned(self):
        assert compute_bounds([Node(id="a")]).width == 0


class TestIdentifiers:
    """Test id helpers."""

    def test_keeps_free_id(self):
        assert ensure_unique_id({"a"}, "b") == "b"

    def test_mints_when_taken_or_missing(self):
        minted = ensure_unique_id({"a"}, "a")
        assert minted != "a"
        assert ensure_unique_id(set(), None)


class TestGroupModel:
    def test_group_construction_is_lenient(self):
        """Membership size is a validation concern, not a model one."""
        assert Group(id="g", node_ids=["a"]).node_ids == ["a"]
