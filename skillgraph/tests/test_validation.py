"""Tests for the validation skills and the schema validators behind them."""

from skillgraph.analysis.graph_schema import validate_edges, validate_groups, validate_nodes


class TestSchemaValidators:
    """Test the payload-level validators directly."""

    def test_node_problems(self):
        report = validate_nodes([
            {"id": "a", "position": {"x": 0, "y": 0}},
            {"id": "a", "position": {"x": 0, "y": 0}},
            {"position": {"x": 0, "y": 0}},
            {"id": "b", "position": {"x": "left", "y": 0}, "width": -1},
            {"id": "c"},
        ])
        messages = [issue.message for issue in report.errors]
        assert "Node ID 'a' already exists" in messages
        assert "Node must have a valid ID" in messages
        assert "Node position must have numeric x and y" in messages
        assert "Node width must be a non-negative number" in messages
        assert [issue.id for issue in report.warnings] == ["c"]
        assert report.ids == {"a", "b", "c"}

    def test_dangling_edges_are_errors(self):
        report = validate_edges([{"id": "e", "source": "a", "target": "ghost"}], {"a"})
        assert [issue.message for issue in report.errors] == ["Target node 'ghost' does not exist"]

    def test_single_member_group(self):
        report = validate_groups([{"id": "g", "nodeIds": ["a", "a"]}], {"a"})
        assert report.errors[0].message == "Group must reference at least two nodes"

    def test_non_list_payload(self):
        assert not validate_nodes("nodes").ok


class TestValidateSchema:
    """Test validation.schema."""

    def test_clean_graph(self, run, seed, make_node):
        seed(
            nodes=[make_node("a"), make_node("b")],
            edges=[{"id": "e", "source": "a", "target": "b"}],
            groups=[{"id": "g", "nodeIds": ["a", "b"]}],
        )
        result = run("validation.schema")
        assert result.success
        assert result.data["nodeErrors"] == []

    def test_override_payloads(self, run):
        result = run("validation.schema", {
            "nodes": [{"id": "a", "position": {"x": 0, "y": 0}}],
            "edges": [{"id": "e", "source": "a", "target": "b"}],
            "groups": [{"id": "g", "nodeIds": ["a"]}],
        })
        assert not result.success
        assert result.data["edgeErrors"][0]["message"] == "Target node 'b' does not exist"
        assert result.data["groupErrors"][0]["scope"] == "group"


class TestValidatePorts:
    """Test validation.ports."""

    def test_missing_handle(self, run, seed, make_node):
        seed(
            nodes=[make_node("a", handles=[{"id": "out", "direction": "output"}]), make_node("b")],
            edges=[{"id": "e", "source": "a", "target": "b", "sourcePort": "out", "targetPort": "in"}],
        )
        result = run("validation.ports")
        assert not result.success
        (error,) = result.data["errors"]
        assert error["code"] == "MISSING_HANDLE"
        assert error["nodeId"] == "b"

    def test_type_mismatch_and_wildcards(self, run, seed, make_node):
        seed(
            nodes=[
                make_node("a", handles=[
                    {"id": "n", "direction": "output", "dataType": "number"},
                    {"id": "v", "direction": "output", "dataType": "value"},
                ]),
                make_node("b", handles=[{"id": "s", "direction": "input", "dataType": "string"}]),
            ],
            edges=[
                {"id": "bad", "source": "a", "target": "b", "sourcePort": "n", "targetPort": "s"},
                {"id": "ok", "source": "a", "target": "b", "sourcePort": "v", "targetPort": "s"},
            ],
        )
        result = run("validation.ports")
        assert [(e["edgeId"], e["code"]) for e in result.data["errors"]] == [("bad", "TYPE_MISMATCH")]

    def test_ambiguous_source_warning(self, run, seed, make_node):
        seed(
            nodes=[
                make_node("a", handles=[
                    {"id": "o1", "direction": "output"},
                    {"id": "o2", "direction": "output"},
                ]),
                make_node("b"),
            ],
            edges=[{"id": "e", "source": "a", "target": "b"}],
        )
        result = run("validation.ports")
        assert result.success
        assert result.data["warnings"][0]["code"] == "AMBIGUOUS_SOURCE_HANDLE"

    def test_legacy_port_lists(self, run):
        """Ports listed under inputs/outputs count as handles."""
        result = run("validation.ports", {
            "nodes": [
                {"id": "a", "outputs": [{"key": "result"}]},
                {"id": "b", "inputs": [{"key": "arg"}]},
            ],
            "edges": [{"id": "e", "source": "a", "target": "b", "sourcePort": "result", "targetPort": "arg"}],
        })
        assert result.success

    def test_missing_node(self, run):
        result = run("validation.ports", {"nodes": [], "edges": [{"id": "e", "source": "a", "target": "b"}]})
        assert result.data["errors"][0]["code"] == "MISSING_NODE"


class TestValidateManifest:
    """Test validation.manifest."""

    def test_complete_manifest(self, run, seed, manifest_node):
        seed(nodes=[manifest_node()])
        result = run("validation.manifest")
        assert result.success
        assert result.data["manifestId"] == "manifest"

    def test_missing_manifest(self, run):
        result = run("validation.manifest")
        assert not result.success
        assert result.data["errors"][0]["code"] == "MANIFEST_MISSING"

    def test_duplicate_manifest(self, run, seed, manifest_node):
        seed(nodes=[manifest_node(), manifest_node(node_id="manifest-2")])
        assert run("validation.manifest").data["errors"][0]["code"] == "MANIFEST_DUPLICATE"

    def test_incomplete_manifest(self, run, seed, manifest_node):
        node = manifest_node(mutation={"allowCreate": True, "allowUpdate": "yes", "allowDelete": True})
        del node["data"]["identity"]["name"]
        seed(nodes=[node])
        errors = run("validation.manifest").data["errors"]
        found = {(error["code"], error["path"]) for error in errors}
        assert ("MANIFEST_FIELD_MISSING", "identity.name") in found
        assert ("MANIFEST_FIELD_INVALID", "authority.mutation.allowUpdate") in found
        assert ("MANIFEST_FIELD_MISSING", "authority.mutation.appendOnly") in found
        assert all(error["nodeId"] == "manifest" for error in errors)


class TestValidateDependencies:
    """Test validation.dependencies."""

    def test_declared_dependencies_checked(self, run, seed, manifest_node, make_node):
        node = manifest_node()
        node["data"]["dependencies"]["nodeTypes"] = ["manifest", "script"]
        node["data"]["dependencies"]["skills"] = ["struct.createNodes", "custom.skill"]
        seed(nodes=[node, make_node("a")])
        result = run("validation.dependencies")
        assert not result.success
        assert result.data["missingNodeTypes"] == ["script"]
        assert result.data["missingSkills"] == ["custom.skill"]

    def test_explicit_requirements(self, run, seed, make_node):
        seed(nodes=[make_node("a")])
        result = run("validation.dependencies", {
            "requiredNodeTypes": ["default"],
            "requiredSkills": ["x"],
            "availableSkills": ["x"],
            "requiredDefinitions": ["def-1"],
        })
        assert result.success
        assert result.data["warnings"][0]["code"] == "DEFINITION_CHECK_SKIPPED"

    def test_missing_definitions(self, run):
        result = run("validation.dependencies", {
            "requiredDefinitions": ["def-1", "def-2"],
            "availableDefinitions": ["def-1"],
        })
        assert result.data["missingDefinitions"] == ["def-2"]


class TestDetectOrphans:
    """Test validation.orphans."""

    def test_group_membership_exempts(self, run, seed, make_node, manifest_node):
        seed(
            nodes=[
                manifest_node(),
                make_node("a"), make_node("b"),
                make_node("c"), make_node("d"),
                make_node("lonely"),
            ],
            edges=[{"id": "e", "source": "a", "target": "b"}],
            groups=[{"id": "g", "nodeIds": ["c", "d"]}],
        )
        result = run("validation.orphans")
        assert not result.success
        assert [node["id"] for node in result.data["orphans"]] == ["lonely"]

    def test_allowed_and_scratchpads(self, run, seed, make_node):
        seed(nodes=[make_node("a"), make_node("pad", extensions={"scratchpad": True})])
        assert run("validation.orphans", {"allowedNodeIds": ["a"], "includeScratchpads": False}).success
        result = run("validation.orphans", {"allowedNodeIds": ["a"]})
        assert [node["id"] for node in result.data["orphans"]] == ["pad"]


class TestDetectUnsafeMutations:
    """Test validation.unsafeMutation."""

    def test_no_commands(self, run):
        result = run("validation.unsafeMutation")
        assert not result.success
        assert result.data == {"issues": ["No commands provided for analysis"]}

    def test_safe_commands(self, run):
        result = run("validation.unsafeMutation", {"commands": [{"action": "createNodes", "nodes": [{"id": "a"}]}]})
        assert result.success
        assert result.data["analyzedCommands"] == 1

    def test_delete_then_recreate_in_nested_batch(self, run):
        result = run("validation.unsafeMutation", {"commands": [
            {"action": "batch", "commands": [
                {"action": "delete", "ids": ["a"]},
                {"action": "createNodes", "nodes": [{"id": "a"}]},
            ]},
        ]})
        assert not result.success
        assert result.data["analyzedCommands"] == 2
        assert result.data["issues"] == ["Delete + recreate pattern detected for ids: a"]

    def test_mass_delete_and_replace(self, run):
        result = run("validation.unsafeMutation", {
            "commands": [
                {"action": "delete", "ids": ["a", "b", "c"]},
                {"action": "replace"},
                {"action": "clearGraph"},
            ],
            "massDeleteThreshold": 2,
        })
        issues = result.data["issues"]
        assert "Explicit replace action requested" in issues
        assert "clearGraph action requested" in issues
        assert any(issue.startswith("High-risk delete command affecting 3 ids") for issue in issues)

    def test_default_threshold_from_settings(self, run):
        ids = [f"n{i}" for i in range(11)]
        result = run("validation.unsafeMutation", {"commands": {"action": "delete", "ids": ids}})
        assert result.data["issues"] == ["High-risk delete command affecting 11 ids (threshold 10)."]


class TestValidateIntent:
    """Test validation.intent."""

    def test_executable_needs_script(self, run, seed, manifest_node):
        seed(nodes=[manifest_node(kind="executable")])
        result = run("validation.intent")
        assert not result.success
        assert result.data["errors"][0]["code"] == "INTENT_REQUIRES_SCRIPT"

    def test_executable_with_script(self, run, seed, manifest_node, make_node):
        seed(nodes=[manifest_node(kind="simulation"), make_node("s", type="script")])
        result = run("validation.intent")
        assert result.success
        assert result.data["scriptNodeIds"] == ["s"]

    def test_documentation_with_script_warns(self, run, seed, manifest_node, make_node):
        seed(nodes=[manifest_node(kind="documentation"), make_node("s", type="script")])
        result = run("validation.intent")
        assert result.success
        assert result.data["warnings"][0]["code"] == "INTENT_UNEXPECTED_SCRIPT"

    def test_no_manifest(self, run):
        result = run("validation.intent")
        assert result.success
        assert result.data["warnings"][0]["code"] == "MANIFEST_MISSING"
