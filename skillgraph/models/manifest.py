"""Data model for the manifest node.

A graph carries at most one node of type ``manifest``. Its ``data`` holds the
graph identity, what the graph is for (intent), what it depends on, and who may
mutate it (authority).
"""

from typing import Any

from pydantic import Field

from skillgraph.models.graph import GraphModel, Node, Position
from skillgraph.utils.identifiers import generate_id, utc_timestamp

MANIFEST_NODE_TYPE = "manifest"

# intents whose graphs are expected to contain at least one script node
EXECUTABLE_INTENT_KINDS = {"executable", "simulation"}


class ManifestIdentity(GraphModel):
    graph_id: str
    name: str
    version: str
    description: str | None = None
    created_at: str
    updated_at: str


class ManifestIntent(GraphModel):
    kind: str
    scope: str
    description: str | None = None


class ManifestDependencies(GraphModel):
    node_types: list[str] = Field(default_factory=list)
    port_contracts: list[str] = Field(default_factory=list)
    skills: list[str] = Field(default_factory=list)
    schema_versions: dict[str, str] = Field(default_factory=dict)
    optional: list[str] = Field(default_factory=list)


class MutationPolicy(GraphModel):
    """who may create, update and delete graph entities."""

    allow_create: bool = True
    allow_update: bool = True
    allow_delete: bool = True
    append_only: bool = False


class ManifestAuthority(GraphModel):
    mutation: MutationPolicy = Field(default_factory=MutationPolicy)
    actors: dict[str, Any] | None = None
    style_authority: str | None = None
    history: dict[str, Any] | None = None


class ManifestData(GraphModel):
    identity: ManifestIdentity
    intent: ManifestIntent
    dependencies: ManifestDependencies = Field(default_factory=ManifestDependencies)
    authority: ManifestAuthority = Field(default_factory=ManifestAuthority)


def default_manifest_node(
    kind: str = "graph",
    name: str = "Untitled Graph",
    node_id: str | None = None,
) -> Node:
    """Build a complete manifest node with permissive mutation authority."""
    now = utc_timestamp()
    data = ManifestData(
        identity=ManifestIdentity(
            graph_id=generate_id(),
            name=name,
            version="0.1.0",
            description="",
            created_at=now,
            updated_at=now,
        ),
        intent=ManifestIntent(kind=kind, scope="mixed"),
        dependencies=ManifestDependencies(
            node_types=["manifest", "legend", "dictionary", "default", "markdown"],
            port_contracts=["core"],
            skills=[],
            schema_versions={"nodes": ">=1.0.0", "ports": ">=1.0.0"},
        ),
        authority=ManifestAuthority(
            actors={"humans": True, "agents": True, "tools": True},
            style_authority="descriptive",
            history={"rewriteAllowed": False, "squashAllowed": False},
        ),
    )
    return Node(
        id=node_id or generate_id(),
        type=MANIFEST_NODE_TYPE,
        label="Manifest",
        position=Position(x=-260, y=-160),
        width=360,
        height=220,
        data=data.to_payload(),
    )
