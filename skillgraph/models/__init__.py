"""Core data models for the skill engine."""

from skillgraph.models.graph import (
    Bounds,
    Edge,
    GraphSnapshot,
    Group,
    Handle,
    Node,
    NodeState,
    Position,
)
from skillgraph.models.intent import (
    EDGE_INTENT_CAPTURED,
    Intent,
    IntentStage,
    LayoutIntent,
)
from skillgraph.models.manifest import (
    MANIFEST_NODE_TYPE,
    ManifestData,
    MutationPolicy,
    default_manifest_node,
)
from skillgraph.models.result import OperationResult
from skillgraph.models.skill import (
    MutationAction,
    Skill,
    SkillCategory,
    SkillContext,
    SkillContracts,
    SkillInfo,
    SkillParams,
)

__all__ = [
    # Graph entities
    "Bounds",
    "Edge",
    "GraphSnapshot",
    "Group",
    "Handle",
    "Node",
    "NodeState",
    "Position",
    # Manifest
    "MANIFEST_NODE_TYPE",
    "ManifestData",
    "MutationPolicy",
    "default_manifest_node",
    # Intents and events
    "EDGE_INTENT_CAPTURED",
    "Intent",
    "IntentStage",
    "LayoutIntent",
    # Skills
    "MutationAction",
    "OperationResult",
    "Skill",
    "SkillCategory",
    "SkillContext",
    "SkillContracts",
    "SkillInfo",
    "SkillParams",
]
