"""Mutation authority read from the graph's manifest node.

A missing manifest means a permissive graph. A manifest whose
``authority.mutation`` block is missing or malformed is also permissive, but
every check then carries a warning so the editor can surface the problem.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

from pydantic import BaseModel

from skillgraph.models.manifest import MANIFEST_NODE_TYPE, MutationPolicy
from skillgraph.models.skill import MutationAction

if TYPE_CHECKING:
    from skillgraph.store.graph_api import GraphAPI

MALFORMED_POLICY_WARNING = (
    "Manifest authority.mutation is missing or invalid; using permissive defaults."
)

_ERRORS = {
    MutationAction.create: "Manifest forbids create operations.",
    MutationAction.update: "Manifest forbids update operations.",
    MutationAction.delete: "Manifest forbids delete operations (append-only enforced).",
}

# authorize() checks in this order and reports the first rejection
_CHECK_ORDER = (MutationAction.create, MutationAction.update, MutationAction.delete)


class ManifestPolicyState(BaseModel):
    """effective mutation policy of a graph."""

    has_manifest: bool
    policy: MutationPolicy
    warning: str | None = None


class PolicyDecision(BaseModel):
    """outcome of a policy check. ``error`` set means the action is forbidden."""

    error: str | None = None
    warning: str | None = None

    @property
    def allowed(self) -> bool:
        return self.error is None


def get_manifest_mutation_policy(graph_api: GraphAPI) -> ManifestPolicyState:
    """Locate the manifest node and read its mutation block."""
    manifest = next(
        (node for node in graph_api.get_nodes() if node.type == MANIFEST_NODE_TYPE),
        None,
    )
    if manifest is None:
        return ManifestPolicyState(has_manifest=False, policy=MutationPolicy())

    authority = manifest.data.get("authority")
    mutation = authority.get("mutation") if isinstance(authority, dict) else None
    if not isinstance(mutation, dict):
        return ManifestPolicyState(
            has_manifest=True,
            policy=MutationPolicy(),
            warning=MALFORMED_POLICY_WARNING,
        )

    # only an explicit false revokes a permission, only an explicit true sets append-only
    return ManifestPolicyState(
        has_manifest=True,
        policy=MutationPolicy(
            allow_create=mutation.get("allowCreate") is not False,
            allow_update=mutation.get("allowUpdate") is not False,
            allow_delete=mutation.get("allowDelete") is not False,
            append_only=mutation.get("appendOnly") is True,
        ),
    )


def _forbidden(policy: MutationPolicy, action: MutationAction) -> bool:
    if action == MutationAction.create:
        return not policy.allow_create
    if action == MutationAction.update:
        return not policy.allow_update
    return not policy.allow_delete or policy.append_only


def assert_mutation_allowed(
    graph_api: GraphAPI,
    action: MutationAction | str,
) -> PolicyDecision:
    """Check a single action against the manifest."""
    state = get_manifest_mutation_policy(graph_api)
    action = MutationAction(action)
    if _forbidden(state.policy, action):
        return PolicyDecision(error=_ERRORS[action], warning=state.warning)
    return PolicyDecision(warning=state.warning)


def authorize(
    graph_api: GraphAPI,
    actions: Iterable[MutationAction | str],
) -> PolicyDecision:
    """Check a set of actions at once (create, then update, then delete).

    Returns the first rejection, or an allowing decision carrying the
    malformed-manifest warning if there is one.
    """
    requested = {MutationAction(action) for action in actions}
    if not requested:
        return PolicyDecision()
    state = get_manifest_mutation_policy(graph_api)
    for action in _CHECK_ORDER:
        if action in requested and _forbidden(state.policy, action):
            return PolicyDecision(error=_ERRORS[action], warning=state.warning)
    return PolicyDecision(warning=state.warning)
