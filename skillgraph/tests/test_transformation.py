"""Tests for the transformation skills and mutation plans."""

from skillgraph.models.graph import Node
from skillgraph.skills.plan import MutationPlan
from skillgraph.store.graph_api import InMemoryGraphAPI


class CallLog(InMemoryGraphAPI):
    """InMemoryGraphAPI that records the order of mutator calls."""

    def __init__(self, store=None):
        super().__init__(store)
        self.calls = []

    def create_nodes(self, nodes):
        self.calls.append("create_nodes")
        return super().create_nodes(nodes)

    def create_edges(self, edges):
        self.calls.append("create_edges")
        return super().create_edges(edges)

    def update_node(self, node_id, patch):
        self.calls.append("update_node")
        return super().update_node(node_id, patch)

    def update_edge(self, edge_id, patch):
        self.calls.append("update_edge")
        return super().update_edge(edge_id, patch)

    def delete_node(self, node_id):
        self.calls.append("delete_node")
        return super().delete_node(node_id)

    def add_nodes_to_group(self, group_id, node_ids):
        self.calls.append("add_nodes_to_group")
        return super().add_nodes_to_group(group_id, node_ids)


def _node(graph_api, node_id):
    return next((node for node in graph_api.get_nodes() if node.id == node_id), None)


class TestMutationPlan:
    """Test plan ordering and failure handling."""

    def test_fixed_application_order(self, session, seed, make_node):
        seed(
            nodes=[make_node("a"), make_node("b"), make_node("old")],
            edges=[{"id": "e", "source": "old", "target": "b"}],
            groups=[{"id": "g", "nodeIds": ["a", "b"]}],
        )
        api = CallLog(session.store)
        plan = MutationPlan()
        plan.add_to_group("g", ["new"])
        plan.delete_node("old")
        plan.update_edge("e", {"source": "new"})
        plan.update_node("a", {"label": "A"})
        plan.edge_creates.append({"id": "e2", "source": "new", "target": "a"})
        plan.node_creates.append(Node(id="new"))

        result = plan.run(api)
        assert result.success
        assert api.calls == [
            "create_nodes", "create_edges", "update_node",
            "update_edge", "delete_node", "add_nodes_to_group",
        ]
        # the retargeted edge survives the deletion of its old source
        assert {edge.id for edge in api.get_edges()} == {"e", "e2"}
        assert result.data["groupAdds"] == [{"groupId": "g", "nodeIds": ["new"]}]

    def test_failure_keeps_earlier_writes(self, graph_api, seed, make_node):
        seed(nodes=[make_node("a")])
        plan = MutationPlan()
        plan.node_creates.append(Node(id="b"))
        plan.update_node("ghost", {"label": "x"})
        result = plan.run(graph_api)
        assert not result.success
        assert result.data["errors"] == ["Node ghost not found"]
        assert result.data["summary"]["createdNodes"] == ["b"]
        assert _node(graph_api, "b") is not None

    def test_updates_accumulate_per_node(self):
        plan = MutationPlan()
        plan.update_node("a", {"label": "x", "type": "t"})
        plan.update_node("a", {"label": "y"})
        assert plan.node_updates == {"a": {"label": "y", "type": "t"}}

    def test_dry_run_only_summarizes(self, graph_api):
        plan = MutationPlan()
        plan.node_creates.append(Node(id="a"))
        plan.delete_node("ghost")
        result = plan.run(graph_api, dry_run=True)
        assert result.data == {"createdNodes": ["a"], "deletedNodes": ["ghost"]}
        assert graph_api.get_nodes() == []


class TestRefactorSplit:
    """Test transform.refactor splits."""

    def test_split_with_redirect_and_removal(self, run, seed, make_node, graph_api):
        seed(
            nodes=[make_node("s", data={"a": 1}), make_node("t")],
            edges=[{"id": "e1", "source": "s", "target": "t"}],
        )
        result = run("transform.refactor", {"split": {
            "sourceId": "s",
            "removeOriginal": True,
            "parts": [
                {"id": "s-a", "data": {"b": 2}, "edgeRedirects": [{"edgeId": "e1", "endpoint": "source"}]},
                {"label": "Second"},
            ],
        }})
        assert result.success
        assert result.data["createdNodes"] == ["s-a", "s-2"]
        assert result.data["deletedNodes"] == ["s"]
        assert _node(graph_api, "s") is None
        assert _node(graph_api, "s-a").data == {"a": 1, "b": 2}
        assert _node(graph_api, "s-2").label == "Second"
        (edge,) = graph_api.get_edges()
        assert (edge.id, edge.source, edge.target) == ("e1", "s-a", "t")

    def test_split_note_and_created_edges(self, run, seed, make_node, graph_api):
        seed(nodes=[make_node("s", data={"memo": "first"}), make_node("t")])
        result = run("transform.refactor", {"split": {
            "sourceId": "s",
            "note": "split into parts",
            "parts": [{"createEdges": [{"target": "t"}, {"label": "no target"}]}],
        }})
        assert result.success
        assert _node(graph_api, "s").data["memo"] == "first\n\nsplit into parts"
        (edge,) = graph_api.get_edges()
        assert (edge.source, edge.target, edge.type) == ("s-1", "t", "straight")
        assert len(result.warnings) == 1

    def test_missing_source_changes_nothing(self, run, seed, make_node, session):
        seed(nodes=[make_node("a")])
        before = session.store.snapshot().to_payload()
        result = run("transform.refactor", {"split": {"sourceId": "ghost", "parts": [{}]}})
        assert not result.success
        assert result.data["errors"] == ['Split source node "ghost" not found.']
        assert session.store.snapshot().to_payload() == before

    def test_cluster_membership(self, run, seed, make_node, graph_api):
        seed(nodes=[make_node("s"), make_node("x"), make_node("y")], groups=[{"id": "g", "nodeIds": ["x", "y"]}])
        run("transform.refactor", {"split": {"sourceId": "s", "parts": [{"id": "p", "clusterId": "g"}]}})
        assert graph_api.get_groups()[0].node_ids == ["x", "y", "p"]


class TestRefactorMerge:
    """Test transform.refactor merges."""

    def test_merge_fields_edges_and_sources(self, run, seed, make_node, graph_api):
        seed(
            nodes=[make_node("t", data={"x": 1}), make_node("m", data={"info": {"y": 2}}), make_node("z")],
            edges=[{"id": "e", "source": "m", "target": "z"}],
        )
        result = run("transform.refactor", {"merge": {
            "targetId": "t",
            "sources": [
                {"id": "m", "fields": [{"from": "info.y", "to": "y"}], "annotations": "merged m"},
                {"id": "ghost"},
            ],
        }})
        assert result.success
        assert 'Merge source node "ghost" not found.' in result.warnings
        assert _node(graph_api, "t").data == {"x": 1, "y": 2, "memo": "merged m"}
        assert _node(graph_api, "m") is None
        (edge,) = graph_api.get_edges()
        assert (edge.source, edge.target) == ("t", "z")

    def test_merge_blocked_when_append_only(self, run, seed, make_node, manifest_node, graph_api):
        seed(nodes=[manifest_node(mutation={"appendOnly": True}), make_node("t"), make_node("m")])
        blocked = run("transform.refactor", {"merge": {"targetId": "t", "sources": [{"id": "m"}]}})
        assert not blocked.success
        assert "append-only" in blocked.error
        kept = run("transform.refactor", {
            "merge": {"targetId": "t", "sources": [{"id": "m"}], "deleteSources": False, "label": "Merged"},
        })
        assert kept.success
        assert _node(graph_api, "t").label == "Merged"
        assert _node(graph_api, "m") is not None

    def test_missing_target(self, run):
        result = run("transform.refactor", {"merge": {"targetId": "ghost"}})
        assert result.data["errors"] == ['Merge target node "ghost" not found.']


class TestNormalize:
    """Test transform.normalize."""

    def test_operations(self, run, seed, make_node, graph_api):
        seed(nodes=[
            make_node("a", data={"tags": ["x", "x", {"k": 1}, {"k": 1}], "old": "v"}),
            make_node("b", data={}),
        ])
        result = run("transform.normalize", {"operations": [
            {"type": "removeDuplicates", "nodeId": "a", "fieldPath": "tags"},
            {"type": "moveField", "from": {"nodeId": "a", "path": "old"}, "to": {"nodeId": "b", "path": "moved.value"}},
            {"type": "copyField", "from": {"nodeId": "b", "path": "moved"}, "to": {"nodeId": "a", "path": "copy"}},
            {"type": "setField", "nodeId": "b", "path": "flag", "value": True},
            {"type": "explode"},
        ]})
        assert result.success
        assert result.warnings == ['Unsupported normalization operation "explode".']
        assert _node(graph_api, "a").data == {"tags": ["x", {"k": 1}], "copy": {"value": "v"}}
        assert _node(graph_api, "b").data == {"moved": {"value": "v"}, "flag": True}

    def test_missing_node_and_non_array(self, run, seed, make_node):
        seed(nodes=[make_node("a", data={"tags": "x"})])
        result = run("transform.normalize", {"operations": [
            {"type": "removeDuplicates", "nodeId": "a", "fieldPath": "tags"},
            {"type": "setField", "nodeId": "ghost", "path": "x", "value": 1},
        ]})
        assert result.success
        assert result.warnings == [
            'Field "tags" on node "a" is not an array.',
            'Node "ghost" not found for normalization operation.',
        ]
        assert result.data == {}

    def test_remove_duplicates_through_star_path(self, run, seed, make_node, graph_api):
        seed(nodes=[make_node("a", data={"tags": ["x", "x", "y"], "items": [{"n": 1}, {"n": 1}]})])
        result = run("transform.normalize", {"operations": [
            {"type": "removeDuplicates", "nodeId": "a", "fieldPath": "tags.*"},
            {"type": "removeDuplicates", "nodeId": "a", "fieldPath": "items.*.n"},
        ]})
        assert result.success
        assert result.warnings == ['Field "items.*.n" on node "a" cannot be written back.']
        assert result.data["updatedNodes"] == ["a"]
        assert _node(graph_api, "a").data == {"tags": ["x", "y"], "items": [{"n": 1}, {"n": 1}]}


class TestTypeMigration:
    def test_migrates_in_place(self, run, seed, make_node, graph_api):
        seed(nodes=[make_node("a", type="note", data={"text": "hi", "legacy": 1})])
        result = run("transform.typeMigration", {"migrations": [{
            "nodeId": "a",
            "targetType": "markdown",
            "fieldMap": {"body": "text", "extra": {"from": "nope"}},
            "removeFields": ["legacy", "text"],
            "defaults": {"format": "md", "body": "unused"},
        }]})
        assert result.success
        assert result.warnings == ['Migration field "nope" missing on node "a".']
        node = _node(graph_api, "a")
        assert node.type == "markdown"
        assert node.data == {"body": "hi", "format": "md"}

    def test_unknown_node(self, run):
        result = run("transform.typeMigration", {"migrations": [{"nodeId": "ghost"}]})
        assert result.success
        assert "ghost" in result.warnings[0]


class TestSchemaUpgrade:
    def test_patches_and_version(self, run, seed, make_node, graph_api):
        seed(nodes=[make_node("a", data={"v": 1, "keep": True})])
        result = run("transform.schemaUpgrade", {
            "patches": [{"nodeId": "a", "data": {"v": 2}, "extensions": {"schema": "2.0"}}, {"nodeId": "ghost"}],
            "targetVersion": "2.0",
        })
        assert result.data["targetVersion"] == "2.0"
        assert result.data["updatedNodes"] == ["a"]
        node = _node(graph_api, "a")
        assert node.data == {"v": 2, "keep": True}
        assert node.extensions == {"schema": "2.0"}
        assert result.warnings == ['Schema upgrade skipped missing node "ghost".']


class TestInlineExtract:
    """Test transform.inlineExtract."""

    def test_extract_moves_fields_to_new_node(self, run, seed, make_node, graph_api):
        seed(nodes=[make_node("a", x=10, data={"payload": {"n": 1}, "keep": 1})])
        result = run("transform.inlineExtract", {"operations": [{
            "type": "extract",
            "sourceNodeId": "a",
            "newNode": {"id": "a-x"},
            "fields": ["payload"],
        }]})
        assert result.success
        assert result.data["createdNodes"] == ["a-x"]
        extracted = _node(graph_api, "a-x")
        assert extracted.data == {"payload": {"n": 1}}
        assert extracted.label == "a Extract"
        assert extracted.position.x == 10
        assert _node(graph_api, "a").data == {"keep": 1}

    def test_extract_id_collision_mints_new_id(self, run, seed, make_node, graph_api):
        seed(nodes=[make_node("a")])
        result = run("transform.inlineExtract", {"operations": [
            {"type": "extract", "sourceNodeId": "a", "newNode": {"id": "a"}},
        ]})
        (new_id,) = result.data["createdNodes"]
        assert new_id != "a"
        assert len(graph_api.get_nodes()) == 2

    def test_inline_and_delete_source(self, run, seed, make_node, graph_api):
        seed(nodes=[make_node("a", data={}), make_node("b", data={"note": "hello"})])
        result = run("transform.inlineExtract", {"operations": [{
            "type": "inline",
            "fromNodeId": "b",
            "intoNodeId": "a",
            "fieldMap": {"note": "notes.b"},
            "deleteSource": True,
        }]})
        assert result.success
        assert _node(graph_api, "a").data == {"notes": {"b": "hello"}}
        assert _node(graph_api, "b") is None

    def test_inline_delete_needs_permission(self, run, seed, make_node, manifest_node):
        seed(nodes=[manifest_node(mutation={"allowDelete": False}), make_node("a"), make_node("b")])
        result = run("transform.inlineExtract", {"operations": [
            {"type": "inline", "fromNodeId": "b", "intoNodeId": "a", "deleteSource": True},
        ]})
        assert not result.success
