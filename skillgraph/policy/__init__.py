"""Manifest-derived mutation policy."""

from skillgraph.policy.manifest_policy import (
    MALFORMED_POLICY_WARNING,
    ManifestPolicyState,
    PolicyDecision,
    assert_mutation_allowed,
    authorize,
    get_manifest_mutation_policy,
)

__all__ = [
    "MALFORMED_POLICY_WARNING",
    "ManifestPolicyState",
    "PolicyDecision",
    "assert_mutation_allowed",
    "authorize",
    "get_manifest_mutation_policy",
]
