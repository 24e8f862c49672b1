"""Skillgraph - skill execution and validation engine for node-graph editors."""

from skillgraph.models.graph import (
    Edge,
    GraphSnapshot,
    Group,
    Node,
)
from skillgraph.models.result import OperationResult
from skillgraph.models.skill import (
    MutationAction,
    Skill,
    SkillCategory,
    SkillContext,
    SkillParams,
)
from skillgraph.registry import SkillRegistry, create_registry
from skillgraph.sdk import IntentDispatcher, open_session
from skillgraph.store import GraphStore, InMemoryGraphAPI

__all__ = [
    # Graph entities
    "Edge",
    "GraphSnapshot",
    "Group",
    "Node",
    # Skills
    "MutationAction",
    "OperationResult",
    "Skill",
    "SkillCategory",
    "SkillContext",
    "SkillParams",
    # Storage
    "GraphStore",
    "InMemoryGraphAPI",
    # High-level APIs
    "IntentDispatcher",
    "SkillRegistry",
    "create_registry",
    "open_session",
]
