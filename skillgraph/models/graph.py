"""Data model for the node graph: nodes, edges, groups.

Field names are snake_case in Python and camelCase on the wire (the editor's
JSON format), so ``Edge(sourcePort="out")`` and ``Edge(source_port="out")`` are
equivalent. Unknown fields are kept so editor-specific payloads survive a
round-trip through the engine.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

HandleDirection = Literal["input", "output", "bidirectional"]


class GraphModel(BaseModel):
    """Base for graph entities: camelCase aliases, extra fields allowed."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_payload(self) -> dict[str, Any]:
        """Dump to the editor's JSON shape (camelCase, no nulls)."""
        return self.model_dump(by_alias=True, exclude_none=True)


class Position(GraphModel):
    x: float = 0.0
    y: float = 0.0


class Bounds(GraphModel):
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0


class Handle(GraphModel):
    """a typed connection point on a node."""

    id: str
    direction: HandleDirection = "bidirectional"
    data_type: str = "value"

    @field_validator("direction", mode="before")
    @classmethod
    def _normalize_direction(cls, value: Any) -> str:
        if value is None or value == "":
            return "bidirectional"
        return str(value).lower()


class NodeState(GraphModel):
    locked: bool = False
    collapsed: bool = False
    hidden: bool = False


class Node(GraphModel):
    """a node on the canvas."""

    id: str
    type: str = "default"
    label: str = ""
    position: Position | None = None
    width: float | None = None
    height: float | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    handles: list[Handle] = Field(default_factory=list)
    state: NodeState = Field(default_factory=NodeState)
    extensions: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _accept_ports(cls, values: Any) -> Any:
        # the editor historically called handles "ports"
        if isinstance(values, dict) and "ports" in values and not values.get("handles"):
            values = dict(values)
            values["handles"] = values.pop("ports") or []
        return values

    def handle_ids(self, direction: str | None = None) -> list[str]:
        """Ids of handles usable in the given direction (input/output)."""
        if direction is None:
            return [h.id for h in self.handles]
        return [
            h.id
            for h in self.handles
            if h.direction == direction or h.direction == "bidirectional"
        ]

    def find_handle(self, handle_id: str) -> Handle | None:
        for handle in self.handles:
            if handle.id == handle_id:
                return handle
        return None


class Edge(GraphModel):
    """a directed connection between two nodes."""

    id: str | None = None
    source: str
    target: str
    source_port: str | None = None
    target_port: str | None = None
    type: str = "straight"
    label: str | None = None
    style: dict[str, Any] = Field(default_factory=dict)
    state: dict[str, Any] = Field(default_factory=dict)
    logic: dict[str, Any] = Field(default_factory=dict)
    routing: dict[str, Any] = Field(default_factory=dict)
    data: dict[str, Any] = Field(default_factory=dict)

    def endpoint_key(self) -> tuple[str, str, str, str]:
        """Identity used for duplicate detection."""
        return (
            self.source,
            self.source_port or "",
            self.target,
            self.target_port or "",
        )


class Group(GraphModel):
    """a named, bounded collection of nodes.

    Construction is lenient about membership size; the two-member minimum is
    checked by the schema validators and by the grouping skill.
    """

    id: str | None = None
    label: str = ""
    node_ids: list[str] = Field(default_factory=list)
    bounds: Bounds = Field(default_factory=Bounds)
    style: dict[str, Any] = Field(default_factory=dict)
    visible: bool = True
    collapsed: bool = False


class GraphSnapshot(GraphModel):
    """the full graph contents at a point in time."""

    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)
    groups: list[Group] = Field(default_factory=list)
