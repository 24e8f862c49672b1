"""Layout skills.

``autoLayout`` and ``rerouteEdges`` only publish an intent for the external
layout engine. The other three compute positions themselves and write them
back with ``update_node``.
"""

import math
from typing import Literal

from pydantic import Field

from skillgraph.models.graph import Node, Position
from skillgraph.models.intent import ALIGN_TO_GRID, EDGE_INTENT_CAPTURED, LayoutIntent
from skillgraph.models.result import OperationResult
from skillgraph.models.skill import (
    MutationAction,
    Skill,
    SkillCategory,
    SkillContext,
    SkillContracts,
    SkillParams,
)
from skillgraph.skills.base import index_by_id
from skillgraph.utils.geometry import Rect, bounds_rect, node_position, node_rect
from skillgraph.utils.identifiers import utc_timestamp

DEFAULT_SPACING = 60
DEFAULT_GRID = 50
MAX_COLLISION_SHIFTS = 200
COLLISION_PADDING = 1.0
# node size used by the layout skills when a node has none
LAYOUT_NODE_SIZE = 60

ALIGN_MODES = ("left", "right", "top", "bottom", "center-horizontal", "center-vertical")
DISTRIBUTE_MODES = ("horizontal", "vertical")


def _rect(node: Node, position: Position | None = None) -> Rect:
    return node_rect(node, position, LAYOUT_NODE_SIZE, LAYOUT_NODE_SIZE)


def _locked(node: Node, locked_ids: set[str]) -> bool:
    return node.id in locked_ids or node.state.locked


def _apply_positions(ctx: SkillContext, updates: list[tuple[str, Position]], dry_run: bool) -> OperationResult:
    if not updates:
        return OperationResult.ok({"updated": []})
    if dry_run:
        return OperationResult.ok({
            "nodes": [{"id": node_id, "position": pos.model_dump()} for node_id, pos in updates]
        })

    applied = []
    warnings = []
    for node_id, position in updates:
        result = ctx.graph_api.update_node(node_id, {"position": position.model_dump()})
        if result.success:
            applied.append(node_id)
        else:
            warnings.append(result.error or f"Failed to move node {node_id}")
    return OperationResult.ok({"updated": applied}, warnings)


# intent emitters

class AutoLayoutParams(SkillParams):
    layout_type: str | None = None


def _emit_layout_intent(ctx: SkillContext, trigger: str, source: str, layout_type: str | None = None) -> None:
    intent = LayoutIntent(
        trigger=trigger,
        layout_type=layout_type,
        timestamp=utc_timestamp(),
        source=source,
    )
    ctx.event_bus.emit(EDGE_INTENT_CAPTURED, intent)


def auto_layout(ctx: SkillContext, params: AutoLayoutParams) -> OperationResult:
    if ctx.event_bus is None:
        return OperationResult.fail("No event bus available for layout skill")
    if params.dry_run:
        return OperationResult.ok({"action": "applyLayout", "layoutType": params.layout_type})
    _emit_layout_intent(ctx, "applyLayout", "skill.layout.autoLayout", params.layout_type)
    return OperationResult.ok({"queued": True})


def reroute_edges(ctx: SkillContext, params: SkillParams) -> OperationResult:
    if ctx.event_bus is None:
        return OperationResult.fail("No event bus available for reroute skill")
    if params.dry_run:
        return OperationResult.ok({"action": "rerouteEdges"})
    _emit_layout_intent(ctx, "toolbarReroute", "skill.layout.rerouteEdges")
    return OperationResult.ok({"queued": True})


# collision avoidance

class AvoidCollisionsParams(SkillParams):
    node_ids: list[str] = Field(default_factory=list)
    axis: Literal["x", "y"] = "y"
    spacing: float = DEFAULT_SPACING
    locked_node_ids: list[str] = Field(default_factory=list)


def _clamp(position: Position, rect: Rect, containers: list[Rect]) -> Position:
    x, y = position.x, position.y
    for bounds in containers:
        x = max(bounds.x, min(bounds.right - rect.width, x))
        y = max(bounds.y, min(bounds.bottom - rect.height, y))
    return Position(x=x, y=y)


def resolve_collisions(
    nodes: list[Node],
    groups: list,
    node_ids: list[str],
    axis: str,
    spacing: float,
    locked_ids: set[str],
) -> list[tuple[str, Position]]:
    """Plan shifts that separate the target nodes.

    Targets are visited in axis order. Each one is pushed ``spacing`` along the
    axis until its padded box clears every other node and every group it does
    not belong to, staying inside the groups it does belong to. Raises
    ValueError when a node needs more than MAX_COLLISION_SHIFTS shifts.
    """
    targets = set(node_ids)
    containers: dict[str, list[Rect]] = {}
    for group in groups:
        # groups whose bounds were never computed do not confine their members
        if group.bounds.width <= 0 or group.bounds.height <= 0:
            continue
        for member in group.node_ids:
            containers.setdefault(member, []).append(bounds_rect(group.bounds, group.id))

    placed: dict[str, Position] = {node.id: node_position(node) for node in nodes}
    ordered = sorted(
        (node for node in nodes if node.id in targets),
        key=lambda n: (placed[n.id].x, placed[n.id].y) if axis == "x" else (placed[n.id].y, placed[n.id].x),
    )

    updates = []
    for node in ordered:
        if _locked(node, locked_ids):
            continue
        original = placed[node.id]
        own_groups = containers.get(node.id, [])
        own_group_ids = {rect.id for rect in own_groups}
        obstacles = [
            _rect(other, placed[other.id]) for other in nodes if other.id != node.id
        ] + [
            bounds_rect(group.bounds, group.id)
            for group in groups
            if group.id not in own_group_ids and group.bounds.width > 0 and group.bounds.height > 0
        ]

        current = original
        shifts = 0
        while any(_rect(node, current).overlaps(o, COLLISION_PADDING) for o in obstacles):
            if shifts >= MAX_COLLISION_SHIFTS:
                raise ValueError(
                    f"Unable to resolve collisions for node {node.id} "
                    f"within {MAX_COLLISION_SHIFTS} iterations"
                )
            if axis == "x":
                current = Position(x=current.x + spacing, y=current.y)
            else:
                current = Position(x=current.x, y=current.y + spacing)
            current = _clamp(current, _rect(node, current), own_groups)
            shifts += 1

        if (current.x, current.y) != (original.x, original.y):
            updates.append((node.id, current))
        placed[node.id] = current
    return updates


def avoid_collisions(ctx: SkillContext, params: AvoidCollisionsParams) -> OperationResult:
    nodes = ctx.graph_api.get_nodes()
    node_ids = params.node_ids or [node.id for node in nodes]
    if not node_ids:
        return OperationResult.fail("No nodes available for collision resolution")
    try:
        updates = resolve_collisions(
            nodes,
            ctx.graph_api.get_groups(),
            node_ids,
            params.axis,
            params.spacing,
            set(params.locked_node_ids),
        )
    except ValueError as e:
        return OperationResult.fail(str(e))
    return _apply_positions(ctx, updates, params.dry_run)


# align / distribute

class AlignDistributeParams(SkillParams):
    mode: str = "left"
    node_ids: list[str] = Field(default_factory=list)


def align_nodes(nodes: list[Node], mode: str) -> list[tuple[str, Position]]:
    rects = [_rect(node) for node in nodes]
    if not rects:
        return []
    min_x = min(r.x for r in rects)
    max_x = max(r.right for r in rects)
    min_y = min(r.y for r in rects)
    max_y = max(r.bottom for r in rects)
    center_x = (min_x + max_x) / 2
    center_y = (min_y + max_y) / 2

    updates = []
    for rect in rects:
        x, y = rect.x, rect.y
        if mode == "left":
            x = min_x
        elif mode == "right":
            x = max_x - rect.width
        elif mode == "center-horizontal":
            x = center_x - rect.width / 2
        elif mode == "top":
            y = min_y
        elif mode == "bottom":
            y = max_y - rect.height
        elif mode == "center-vertical":
            y = center_y - rect.height / 2
        if (x, y) != (rect.x, rect.y):
            updates.append((rect.id, Position(x=x, y=y)))
    return updates


def distribute_nodes(nodes: list[Node], axis: str) -> list[tuple[str, Position]]:
    """Evenly space the centers of interior nodes between the two extremes."""
    if len(nodes) <= 2:
        return []
    horizontal = axis == "horizontal"

    def center(rect: Rect) -> float:
        return rect.x + rect.width / 2 if horizontal else rect.y + rect.height / 2

    rects = sorted((_rect(node) for node in nodes), key=center)
    first, last = center(rects[0]), center(rects[-1])
    span = last - first
    if abs(span) < 0.0001:
        return []
    step = span / (len(rects) - 1)

    updates = []
    for index, rect in enumerate(rects[1:-1], start=1):
        target = first + step * index
        x = target - rect.width / 2 if horizontal else rect.x
        y = rect.y if horizontal else target - rect.height / 2
        if (x, y) != (rect.x, rect.y):
            updates.append((rect.id, Position(x=x, y=y)))
    return updates


def align_distribute(ctx: SkillContext, params: AlignDistributeParams) -> OperationResult:
    mode = params.mode or "left"
    if mode == "grid":
        if params.dry_run:
            return OperationResult.ok({"action": ALIGN_TO_GRID})
        if ctx.event_bus is None:
            return OperationResult.fail("Grid alignment requires event bus")
        ctx.event_bus.emit(ALIGN_TO_GRID)
        return OperationResult.ok({"queued": True})

    if not params.node_ids:
        return OperationResult.fail("nodeIds must be a non-empty array")
    if mode not in ALIGN_MODES and mode not in DISTRIBUTE_MODES:
        return OperationResult.fail(f'Unsupported alignment mode "{mode}"')

    node_map = index_by_id(ctx.graph_api.get_nodes())
    selected = [node_map[node_id] for node_id in dict.fromkeys(params.node_ids) if node_id in node_map]
    if mode in DISTRIBUTE_MODES:
        updates = distribute_nodes(selected, mode)
    else:
        updates = align_nodes(selected, mode)
    return _apply_positions(ctx, updates, params.dry_run)


# spacing

class NormalizeSpacingParams(SkillParams):
    node_ids: list[str] = Field(min_length=1)
    axis: Literal["x", "y"] = "y"
    spacing: float = DEFAULT_GRID
    locked_node_ids: list[str] = Field(default_factory=list)


def _snap(value: float, size: float) -> float:
    if size <= 0:
        return value
    return math.floor(value / size + 0.5) * size


def normalize_positions(
    nodes: list[Node],
    axis: str,
    spacing: float,
    locked_ids: set[str],
) -> list[tuple[str, Position]]:
    """Chain unlocked nodes ``spacing`` apart along the axis; locked nodes anchor the chain."""
    ordered = sorted(nodes, key=lambda n: getattr(node_position(n), axis))
    current: float | None = None
    updates = []
    for node in ordered:
        pos = node_position(node)
        coordinate = getattr(pos, axis)
        if _locked(node, locked_ids):
            current = coordinate
            continue
        current = _snap(coordinate, spacing) if current is None else current + spacing
        target = Position(x=current, y=pos.y) if axis == "x" else Position(x=pos.x, y=current)
        if (target.x, target.y) != (pos.x, pos.y):
            updates.append((node.id, target))
    return updates


def normalize_spacing(ctx: SkillContext, params: NormalizeSpacingParams) -> OperationResult:
    node_map = index_by_id(ctx.graph_api.get_nodes())
    selected = [node_map[node_id] for node_id in dict.fromkeys(params.node_ids) if node_id in node_map]
    updates = normalize_positions(selected, params.axis, params.spacing, set(params.locked_node_ids))
    return _apply_positions(ctx, updates, params.dry_run)


_UPDATE = frozenset({MutationAction.update})

LAYOUT_SKILLS = [
    Skill(
        id="layout.autoLayout",
        title="Auto-Layout",
        description="Ask the layout engine to recompute the spatial arrangement.",
        category=SkillCategory.layout,
        run=auto_layout,
        params_model=AutoLayoutParams,
        requires=_UPDATE,
        contracts=SkillContracts(
            inputs=["layoutType?"],
            forbidden=["Mutating node identity or semantics"],
        ),
    ),
    Skill(
        id="layout.rerouteEdges",
        title="Reroute Edges",
        description="Recompute edge routes without changing endpoints.",
        category=SkillCategory.layout,
        run=reroute_edges,
        params_model=SkillParams,
        requires=_UPDATE,
        contracts=SkillContracts(forbidden=["Changing edge endpoints or handles"]),
    ),
    Skill(
        id="layout.avoidCollisions",
        title="Avoid Collisions",
        description="Resolve overlapping nodes using incremental shifts.",
        category=SkillCategory.layout,
        run=avoid_collisions,
        params_model=AvoidCollisionsParams,
        requires=_UPDATE,
        contracts=SkillContracts(
            inputs=["nodeIds?", "axis?", "spacing?", "lockedNodeIds?"],
            forbidden=["Crossing group boundaries", "Teleporting nodes across large distances"],
        ),
    ),
    Skill(
        id="layout.alignDistribute",
        title="Align / Distribute",
        description="Align or distribute nodes for readability.",
        category=SkillCategory.layout,
        run=align_distribute,
        params_model=AlignDistributeParams,
        requires=_UPDATE,
        contracts=SkillContracts(
            inputs=["mode", "nodeIds[]"],
            forbidden=["Inferring targets without explicit node ids"],
        ),
    ),
    Skill(
        id="layout.normalizeSpacing",
        title="Normalize Spacing",
        description="Enforce consistent spacing across a selection.",
        category=SkillCategory.layout,
        run=normalize_spacing,
        params_model=NormalizeSpacingParams,
        requires=_UPDATE,
        contracts=SkillContracts(
            inputs=["nodeIds[]", "axis", "spacing?", "lockedNodeIds?"],
            forbidden=["Mutating locked nodes", "Changing ordering"],
        ),
    ),
]
