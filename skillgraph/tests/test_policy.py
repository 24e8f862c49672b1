"""Tests for the manifest mutation policy."""

from skillgraph.models.skill import MutationAction
from skillgraph.policy.manifest_policy import (
    MALFORMED_POLICY_WARNING,
    assert_mutation_allowed,
    authorize,
    get_manifest_mutation_policy,
)


class TestPolicyResolution:
    """Test reading the policy off the manifest node."""

    def test_no_manifest_is_permissive(self, graph_api):
        state = get_manifest_mutation_policy(graph_api)
        assert not state.has_manifest
        assert state.warning is None
        assert authorize(graph_api, ["create", "update", "delete"]).allowed

    def test_missing_mutation_block_warns(self, graph_api, seed, manifest_node):
        node = manifest_node()
        del node["data"]["authority"]
        seed(nodes=[node])
        state = get_manifest_mutation_policy(graph_api)
        assert state.has_manifest
        assert state.warning == MALFORMED_POLICY_WARNING
        decision = authorize(graph_api, [MutationAction.delete])
        assert decision.allowed
        assert decision.warning == MALFORMED_POLICY_WARNING

    def test_only_explicit_false_revokes(self, graph_api, seed, manifest_node):
        """Missing or non-boolean flags keep the permission."""
        seed(nodes=[manifest_node(mutation={"allowCreate": "no", "allowUpdate": False})])
        policy = get_manifest_mutation_policy(graph_api).policy
        assert policy.allow_create
        assert not policy.allow_update
        assert policy.allow_delete
        assert not policy.append_only


class TestAuthorize:
    """Test decisions for requested actions."""

    def test_append_only_forbids_delete(self, graph_api, seed, manifest_node):
        seed(nodes=[manifest_node(mutation={"appendOnly": True})])
        decision = assert_mutation_allowed(graph_api, "delete")
        assert not decision.allowed
        assert "append-only" in decision.error
        assert assert_mutation_allowed(graph_api, "create").allowed

    def test_first_rejection_in_check_order(self, graph_api, seed, manifest_node):
        """Create is checked before delete."""
        seed(nodes=[manifest_node(mutation={"allowCreate": False, "allowDelete": False})])
        decision = authorize(graph_api, ["delete", "create"])
        assert decision.error == "Manifest forbids create operations."

    def test_empty_request_always_allowed(self, graph_api, seed, manifest_node):
        seed(nodes=[manifest_node(mutation={"allowCreate": False})])
        assert authorize(graph_api, []).allowed
