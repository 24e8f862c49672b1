"""Intent and event payload models."""

from typing import Any

from pydantic import Field

from skillgraph.models.graph import GraphModel

# event names on the bus
EDGE_INTENT_CAPTURED = "edgeIntentCaptured"
ALIGN_TO_GRID = "alignToGrid"
SKILL_EXECUTED = "skillExecuted"


class LayoutIntent(GraphModel):
    """payload of an edgeIntentCaptured event, consumed by the layout engine."""

    trigger: str
    layout_type: str | None = None
    timestamp: str
    source: str


class IntentStage(GraphModel):
    """one skill invocation inside an intent."""

    skill_id: str
    params: dict[str, Any] = Field(default_factory=dict)


class Intent(GraphModel):
    """an externally originated request mapped to one or more skill invocations."""

    kind: str
    stages: list[IntentStage] = Field(default_factory=list)
