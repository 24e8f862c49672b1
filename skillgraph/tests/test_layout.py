"""Tests for the layout skills."""

import asyncio

from skillgraph.models.graph import Node
from skillgraph.models.intent import ALIGN_TO_GRID, EDGE_INTENT_CAPTURED
from skillgraph.registry import create_registry
from skillgraph.skills.layout import distribute_nodes, normalize_positions


def _positions(graph_api):
    return {node.id: (node.position.x, node.position.y) for node in graph_api.get_nodes()}


class TestIntentEmitters:
    """Test skills that hand work to the layout engine."""

    def test_auto_layout_emits_intent(self, run, bus):
        result = run("layout.autoLayout", {"layoutType": "elk"})
        assert result.data == {"queued": True}
        (event,) = bus.named(EDGE_INTENT_CAPTURED)
        assert event.payload.trigger == "applyLayout"
        assert event.payload.layout_type == "elk"
        assert event.payload.source == "skill.layout.autoLayout"

    def test_auto_layout_dry_run_is_silent(self, run, bus):
        result = run("layout.autoLayout", {"dryRun": True})
        assert result.data["action"] == "applyLayout"
        assert bus.events == []

    def test_reroute(self, run, bus):
        run("layout.rerouteEdges")
        assert bus.named(EDGE_INTENT_CAPTURED)[0].payload.trigger == "toolbarReroute"

    def test_requires_bus(self, graph_api):
        registry = create_registry(graph_api)
        result = asyncio.run(registry.execute_skill("layout.autoLayout"))
        assert not result.success


class TestAvoidCollisions:
    """Test layout.avoidCollisions."""

    def test_separates_overlapping_nodes(self, run, seed, make_node, graph_api):
        seed(nodes=[make_node("a"), make_node("b")])
        result = run("layout.avoidCollisions", {"axis": "x", "spacing": 80})
        assert result.success
        assert result.data["updated"] == ["a"]
        assert _positions(graph_api) == {"a": (160, 0), "b": (0, 0)}

    def test_locked_nodes_stay(self, run, seed, make_node, graph_api):
        seed(nodes=[make_node("a", state={"locked": True}), make_node("b")])
        run("layout.avoidCollisions", {"axis": "x", "spacing": 80})
        positions = _positions(graph_api)
        assert positions["a"] == (0, 0)
        assert positions["b"] == (160, 0)

    def test_no_overlap_no_moves(self, run, seed, make_node):
        seed(nodes=[make_node("a"), make_node("b", x=500)])
        assert run("layout.avoidCollisions").data == {"updated": []}

    def test_gives_up_after_shift_limit(self, run, seed, make_node):
        """A node pinned inside a full group can never clear its neighbour."""
        seed(
            nodes=[make_node("a"), make_node("b")],
            groups=[{
                "id": "g",
                "nodeIds": ["a", "b"],
                "bounds": {"x": 0, "y": 0, "width": 100, "height": 100},
            }],
        )
        result = run("layout.avoidCollisions", {"axis": "y"})
        assert not result.success
        assert "Unable to resolve collisions" in result.error

    def test_dry_run(self, run, seed, make_node, graph_api):
        seed(nodes=[make_node("a"), make_node("b")])
        result = run("layout.avoidCollisions", {"axis": "x", "spacing": 80, "dryRun": True})
        assert result.data["nodes"] == [{"id": "a", "position": {"x": 160, "y": 0}}]
        assert _positions(graph_api)["a"] == (0, 0)


class TestAlignDistribute:
    """Test layout.alignDistribute."""

    def test_align_left(self, run, seed, make_node, graph_api):
        seed(nodes=[make_node("a", y=0), make_node("b", x=200, y=300)])
        result = run("layout.alignDistribute", {"mode": "left", "nodeIds": ["a", "b"]})
        assert result.data["updated"] == ["b"]
        assert _positions(graph_api) == {"a": (0, 0), "b": (0, 300)}

    def test_align_bottom(self, run, seed, make_node, graph_api):
        seed(nodes=[make_node("a", height=50), make_node("b", x=200, height=100)])
        run("layout.alignDistribute", {"mode": "bottom", "nodeIds": ["a", "b"]})
        assert _positions(graph_api)["a"] == (0, 50)

    def test_distribute(self):
        nodes = [
            Node(id="a", position={"x": 0, "y": 0}, width=10, height=10),
            Node(id="b", position={"x": 20, "y": 0}, width=10, height=10),
            Node(id="c", position={"x": 100, "y": 0}, width=10, height=10),
        ]
        ((node_id, position),) = distribute_nodes(nodes, "horizontal")
        assert node_id == "b"
        assert position.x == 50

    def test_grid_mode_emits(self, run, bus):
        assert run("layout.alignDistribute", {"mode": "grid"}).data == {"queued": True}
        assert [event.name for event in bus.events] == [ALIGN_TO_GRID]

    def test_requires_node_ids(self, run):
        assert not run("layout.alignDistribute", {"mode": "left"}).success

    def test_unknown_mode(self, run, seed, make_node):
        seed(nodes=[make_node("a")])
        result = run("layout.alignDistribute", {"mode": "diagonal", "nodeIds": ["a"]})
        assert not result.success


class TestNormalizeSpacing:
    """Test layout.normalizeSpacing."""

    def test_chains_nodes(self, run, seed, make_node, graph_api):
        seed(nodes=[make_node("a", x=10), make_node("b", x=130)])
        result = run("layout.normalizeSpacing", {"nodeIds": ["a", "b"], "axis": "x", "spacing": 50})
        assert result.success
        assert _positions(graph_api) == {"a": (0, 0), "b": (50, 0)}

    def test_locked_node_anchors(self):
        nodes = [
            Node(id="a", position={"x": 7, "y": 0}, state={"locked": True}),
            Node(id="b", position={"x": 30, "y": 0}),
        ]
        updates = normalize_positions(nodes, "x", 50, set())
        assert [(node_id, pos.x) for node_id, pos in updates] == [("b", 57)]

    def test_keeps_order(self, run, seed, make_node, graph_api):
        seed(nodes=[make_node("a", y=400), make_node("b", y=20), make_node("c", y=90)])
        run("layout.normalizeSpacing", {"nodeIds": ["a", "b", "c"], "spacing": 100})
        positions = _positions(graph_api)
        assert positions["b"][1] < positions["c"][1] < positions["a"][1]

    def test_blocked_when_updates_forbidden(self, run, seed, make_node, manifest_node):
        seed(nodes=[manifest_node(mutation={"allowUpdate": False}), make_node("a", x=13)])
        result = run("layout.normalizeSpacing", {"nodeIds": ["a"], "axis": "x"})
        assert not result.success
        assert result.error == "Manifest forbids update operations."
