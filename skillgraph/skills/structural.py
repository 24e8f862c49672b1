"""Structural skills: create nodes and edges, group, reparent, duplicate, extract."""

from typing import Any

from pydantic import AliasChoices, Field, ValidationError

from skillgraph.errors import SkillInputError
from skillgraph.models.graph import Edge, Group, Node, Position
from skillgraph.models.result import OperationResult
from skillgraph.models.skill import (
    MutationAction,
    Skill,
    SkillCategory,
    SkillContext,
    SkillContracts,
    SkillParams,
)
from skillgraph.skills.base import (
    directional_handle_ids,
    forward_failure,
    handle_index,
    index_by_id,
    missing_ids,
    missing_nodes_result,
    payload,
    payloads,
)
from skillgraph.store.graph_api import DEFAULT_DUPLICATE_OFFSET
from skillgraph.utils.cloning import clone
from skillgraph.utils.geometry import (
    DEFAULT_GROUP_PADDING,
    DEFAULT_NODE_HEIGHT,
    DEFAULT_NODE_WIDTH,
    compute_bounds,
)

# edge creation modes in which unresolved handles are tolerated
INFERENCE_MODES = {"import", "automation", "transformation", "auto", "inferred"}

POSITIONS_OMITTED_WARNING = "Node positions omitted so auto-layout can place them safely"

# aliases the editor uses for edge endpoints and ports
_EDGE_ALIAS_KEYS = (
    "from", "to", "source_port", "target_port",
    "sourceHandle", "targetHandle", "fromHandle", "toHandle", "handle",
)


# createNodes

class CreateNodesParams(SkillParams):
    nodes: list[dict[str, Any]] = Field(min_length=1)
    preserve_positions: bool = False
    default_width: float | None = None
    default_height: float | None = None
    auto_label_prefix: str | None = None


def _sanitize_node(raw: dict[str, Any], index: int, params: CreateNodesParams) -> Node:
    if not raw.get("id"):
        raise SkillInputError(f"nodes[{index}] is missing required id")
    candidate = clone(raw)
    if candidate.get("width") is None:
        candidate["width"] = params.default_width or DEFAULT_NODE_WIDTH
    if candidate.get("height") is None:
        candidate["height"] = params.default_height or DEFAULT_NODE_HEIGHT
    if not params.preserve_positions:
        candidate.pop("position", None)
    if not candidate.get("label") and params.auto_label_prefix:
        candidate["label"] = f"{params.auto_label_prefix} {index + 1}"
    try:
        return Node.model_validate(candidate)
    except ValidationError as e:
        raise SkillInputError(f"nodes[{index}] is invalid: {e.errors()[0]['msg']}") from e


def create_nodes(ctx: SkillContext, params: CreateNodesParams) -> OperationResult:
    existing = {node.id for node in ctx.graph_api.get_nodes()}
    sanitized = [_sanitize_node(raw, i, params) for i, raw in enumerate(params.nodes)]

    seen: set[str] = set()
    duplicate_ids = []
    for node in sanitized:
        if node.id in existing or node.id in seen:
            duplicate_ids.append(node.id)
        seen.add(node.id)
    if duplicate_ids:
        return OperationResult.fail(
            "One or more node ids already exist",
            data={"duplicateIds": duplicate_ids},
        )

    warnings = [] if params.preserve_positions else [POSITIONS_OMITTED_WARNING]
    if params.dry_run:
        return OperationResult.ok({"nodes": payloads(sanitized)}, warnings)

    result = ctx.graph_api.create_nodes(sanitized)
    if not result.success:
        return forward_failure(result, "createNodes failed")
    return OperationResult.ok({"created": payloads(result.data["created"])}, warnings)


# createEdges

class CreateEdgesParams(SkillParams):
    edges: list[dict[str, Any]] = Field(default_factory=list)
    connections: list[dict[str, Any]] = Field(default_factory=list)
    allow_handle_inference: bool = False
    mode: str | None = None
    fail_on_duplicate: bool = True
    default_type: str = "straight"

    def inference_permitted(self) -> bool:
        return self.allow_handle_inference or (self.mode or "").lower() in INFERENCE_MODES


def _resolve_port(
    node: Node,
    direction: str,
    explicit: str | None,
    allow_inference: bool,
    label: str,
) -> tuple[str | None, str | None]:
    """Returns (port, warning). Raises SkillInputError when the port cannot be resolved."""
    role = "source" if direction == "output" else "target"
    if explicit:
        if explicit not in handle_index(node) and not allow_inference:
            raise SkillInputError(
                f'{label} references unknown {role} handle "{explicit}" on node "{node.id}"'
            )
        return explicit, None
    candidates = directional_handle_ids(node, direction)
    if len(candidates) == 1:
        return candidates[0], None
    if len(candidates) > 1:
        if not allow_inference:
            plural = "outputs" if direction == "output" else "inputs"
            raise SkillInputError(
                f"{label} must specify {role}Port because {role} node exposes multiple {plural}"
            )
        return None, f'{label} omitted {role}Port on multi-handle node "{node.id}"'
    return None, None


def _sanitize_edge(
    raw: dict[str, Any],
    index: int,
    node_map: dict[str, Node],
    params: CreateEdgesParams,
) -> tuple[Edge, list[str]]:
    label = f"edges[{index}]"
    source_id = raw.get("source") or raw.get("from")
    target_id = raw.get("target") or raw.get("to")
    if not source_id or not target_id:
        raise SkillInputError(f"{label} must include source and target")
    if source_id not in node_map:
        raise SkillInputError(f'{label} references missing source node "{source_id}"')
    if target_id not in node_map:
        raise SkillInputError(f'{label} references missing target node "{target_id}"')

    allow = params.inference_permitted()
    source_port, source_warning = _resolve_port(
        node_map[source_id],
        "output",
        raw.get("sourcePort") or raw.get("source_port") or raw.get("sourceHandle")
        or raw.get("fromHandle") or raw.get("handle"),
        allow,
        label,
    )
    target_port, target_warning = _resolve_port(
        node_map[target_id],
        "input",
        raw.get("targetPort") or raw.get("target_port") or raw.get("targetHandle")
        or raw.get("toHandle"),
        allow,
        label,
    )

    candidate = {key: clone(value) for key, value in raw.items() if key not in _EDGE_ALIAS_KEYS}
    candidate.update(
        source=source_id,
        target=target_id,
        sourcePort=source_port,
        targetPort=target_port,
        type=raw.get("type") or params.default_type,
    )
    try:
        edge = Edge.model_validate(candidate)
    except ValidationError as e:
        raise SkillInputError(f"{label} is invalid: {e.errors()[0]['msg']}") from e
    return edge, [w for w in (source_warning, target_warning) if w]


def create_edges(ctx: SkillContext, params: CreateEdgesParams) -> OperationResult:
    requested = params.edges or params.connections
    if not requested:
        raise SkillInputError("edges must be a non-empty array")

    node_map = index_by_id(ctx.graph_api.get_nodes())
    existing_edges = ctx.graph_api.get_edges()
    edge_ids = {edge.id for edge in existing_edges if edge.id}
    seen = {edge.endpoint_key() for edge in existing_edges}

    warnings: list[str] = []
    planned: list[Edge] = []
    duplicates: list[dict[str, Any]] = []
    duplicate_ids: list[dict[str, Any]] = []
    for index, raw in enumerate(requested):
        edge, edge_warnings = _sanitize_edge(raw, index, node_map, params)
        warnings.extend(edge_warnings)
        if edge.id and edge.id in edge_ids:
            duplicate_ids.append({"index": index, "id": edge.id})
        key = edge.endpoint_key()
        if key in seen:
            duplicates.append({
                "index": index,
                "source": edge.source,
                "target": edge.target,
                "sourcePort": edge.source_port,
                "targetPort": edge.target_port,
            })
            continue
        seen.add(key)
        planned.append(edge)

    if duplicate_ids:
        return OperationResult.fail(
            "One or more edge ids already exist", data={"duplicateIds": duplicate_ids}
        )
    if duplicates and params.fail_on_duplicate:
        return OperationResult.fail(
            "One or more edges already exist", data={"duplicates": duplicates}
        )
    if duplicates:
        warnings.append(f"{len(duplicates)} edge(s) already exist and were ignored")

    if params.dry_run:
        return OperationResult.ok({"edges": payloads(planned)}, warnings)
    if not planned:
        return OperationResult.ok({"edges": [], "created": []}, warnings)

    result = ctx.graph_api.create_edges(planned)
    if not result.success:
        return forward_failure(result, "createEdges failed")
    return OperationResult.ok(
        {"edges": payloads(planned), "created": payloads(result.data["created"])},
        warnings,
    )


# grouping

class GroupingParams(SkillParams):
    action: str = "create"
    group_id: str | None = None
    node_ids: list[str] = Field(default_factory=list)
    label: str = ""
    padding: float = DEFAULT_GROUP_PADDING
    allow_regroup: bool = False
    recalculate_bounds: bool = True
    style: dict[str, Any] | None = None
    visible: bool = True
    collapsed: bool = False

    @property
    def normalized_action(self) -> str:
        action = (self.action or "create").lower()
        return "dissolve" if action == "delete" else action


def _grouping_actions(params: GroupingParams) -> set[MutationAction]:
    action = params.normalized_action
    if action == "dissolve":
        return {MutationAction.delete}
    if action == "create":
        return {MutationAction.create}
    return {MutationAction.update}


def _grouped_elsewhere(groups: list[Group], node_ids: list[str], skip: str | None = None) -> list[str]:
    wanted = set(node_ids)
    grouped: list[str] = []
    for group in groups:
        if group.id == skip:
            continue
        for node_id in group.node_ids:
            if node_id in wanted and node_id not in grouped:
                grouped.append(node_id)
    return grouped


def _require_node_ids(node_ids: list[str]) -> list[str]:
    if not node_ids:
        raise SkillInputError("nodeIds must be a non-empty array")
    return node_ids


def _members_after(action: str, current: list[str], node_ids: list[str]) -> list[str]:
    if action == "add":
        return current + [node_id for node_id in node_ids if node_id not in current]
    if action == "remove":
        removed = set(node_ids)
        return [node_id for node_id in current if node_id not in removed]
    return list(dict.fromkeys(node_ids))


def grouping(ctx: SkillContext, params: GroupingParams) -> OperationResult:
    action = params.normalized_action
    graph_api = ctx.graph_api
    node_map = index_by_id(graph_api.get_nodes())
    groups = graph_api.get_groups()
    group_map = index_by_id(groups)

    if action == "create":
        node_ids = _require_node_ids(params.node_ids)
        missing = missing_ids(node_ids, node_map)
        if missing:
            return missing_nodes_result(missing)
        if len(set(node_ids)) < 2:
            return OperationResult.fail("Groups must reference at least two nodes")
        if not params.allow_regroup:
            grouped = _grouped_elsewhere(groups, node_ids)
            if grouped:
                return OperationResult.fail(
                    "One or more nodes already belong to a group",
                    data={"groupedNodeIds": grouped},
                )
        group = Group(
            id=params.group_id,
            label=params.label,
            node_ids=list(dict.fromkeys(node_ids)),
            bounds=compute_bounds([node_map[node_id] for node_id in node_ids], params.padding),
            style=clone(params.style or {}),
            visible=params.visible,
            collapsed=params.collapsed,
        )
        if params.dry_run:
            return OperationResult.ok({"action": "create", "group": payload(group)})
        result = graph_api.create_groups([group])
        if not result.success:
            return forward_failure(result, "createGroups failed")
        return OperationResult.ok({"action": "create", "group": payload(result.data["created"][0])})

    if action == "dissolve":
        if not params.group_id:
            return OperationResult.fail("groupId is required for dissolve")
        if params.group_id not in group_map:
            return OperationResult.fail(f"Group {params.group_id} not found")
        if params.dry_run:
            return OperationResult.ok({"action": "dissolve", "groupId": params.group_id})
        result = graph_api.delete_group(params.group_id)
        if not result.success:
            return forward_failure(result, "deleteGroup failed")
        return OperationResult.ok({"action": "dissolve", "groupId": params.group_id})

    if action not in ("add", "remove", "set"):
        return OperationResult.fail(f'Unsupported grouping action "{params.action}"')

    node_ids = _require_node_ids(params.node_ids)
    group = group_map.get(params.group_id) if params.group_id else None
    if group is None:
        return OperationResult.fail(f"Group {params.group_id} not found")
    if action == "add" and not params.allow_regroup:
        grouped = _grouped_elsewhere(groups, node_ids, skip=group.id)
        if grouped:
            return OperationResult.fail(
                "One or more nodes already belong to another group",
                data={"groupedNodeIds": grouped},
            )
    if action != "remove":
        missing = missing_ids(node_ids, node_map)
        if missing:
            return missing_nodes_result(missing)

    planned = clone(group)
    planned.node_ids = _members_after(action, group.node_ids, node_ids)
    if params.recalculate_bounds:
        members = [node_map[node_id] for node_id in planned.node_ids if node_id in node_map]
        planned.bounds = compute_bounds(members, params.padding)
    if params.dry_run:
        return OperationResult.ok({"action": action, "group": payload(planned)})

    if action == "add":
        result = graph_api.add_nodes_to_group(group.id, node_ids)
    elif action == "remove":
        result = graph_api.remove_nodes_from_group(group.id, node_ids)
    else:
        result = graph_api.set_group_nodes(group.id, node_ids)
    if not result.success:
        return forward_failure(result, f"{action} failed")
    if params.recalculate_bounds:
        result = graph_api.update_group(group.id, {"bounds": planned.bounds})
        if not result.success:
            return forward_failure(result, "updateGroup failed")
    return OperationResult.ok({"action": action, "group": payload(result.data)})


# reparent

class ReparentParams(SkillParams):
    node_ids: list[str] = Field(min_length=1)
    target_group_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("targetGroupId", "toGroupId", "to", "target_group_id"),
    )
    source_group_ids: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("sourceGroupIds", "fromGroupIds", "from", "source_group_ids"),
    )
    recalculate_bounds: bool = True
    padding: float = DEFAULT_GROUP_PADDING


def reparent(ctx: SkillContext, params: ReparentParams) -> OperationResult:
    graph_api = ctx.graph_api
    node_map = index_by_id(graph_api.get_nodes())
    groups = graph_api.get_groups()
    group_map = index_by_id(groups)

    missing = missing_ids(params.node_ids, node_map)
    if missing:
        return missing_nodes_result(missing)
    target = params.target_group_id
    if target and target not in group_map:
        return OperationResult.fail(f"Target group {target} not found")

    moving = set(params.node_ids)
    sources = params.source_group_ids or [
        group.id for group in groups if moving.intersection(group.node_ids)
    ]
    if not sources and not target:
        return OperationResult.fail("Nothing to reparent: no source or target groups resolved")

    operations: list[dict[str, Any]] = []
    for group_id in sources:
        group = group_map.get(group_id)
        if group is None or group_id == target:
            continue
        candidates = [node_id for node_id in group.node_ids if node_id in moving]
        if candidates:
            operations.append({"type": "remove", "groupId": group_id, "nodeIds": candidates})
    if target:
        operations.append({"type": "add", "groupId": target, "nodeIds": list(params.node_ids)})
    if not operations:
        return OperationResult.fail("No reparent operations resolved")

    if params.dry_run:
        return OperationResult.ok({"operations": operations})

    summary = []
    for op in operations:
        if op["type"] == "remove":
            outcome = graph_api.remove_nodes_from_group(op["groupId"], op["nodeIds"])
            if not outcome.success:
                return forward_failure(outcome, f"Failed to remove nodes from {op['groupId']}")
        else:
            outcome = graph_api.add_nodes_to_group(op["groupId"], op["nodeIds"])
            if not outcome.success:
                return forward_failure(outcome, f"Failed to add nodes to {op['groupId']}")
            if params.recalculate_bounds:
                members = [node_map[n] for n in outcome.data.node_ids if n in node_map]
                bounds = compute_bounds(members, params.padding)
                outcome = graph_api.update_group(op["groupId"], {"bounds": bounds})
                if not outcome.success:
                    return forward_failure(outcome, f"Failed to update bounds of {op['groupId']}")
        summary.append({"type": "updatedGroup", "id": op["groupId"]})

    return OperationResult.ok({"operations": operations, "summary": summary})


# duplicate

class DuplicateParams(SkillParams):
    node_ids: list[str] = Field(min_length=1)
    include_edges: bool = True
    offset: Position | None = None


def duplicate(ctx: SkillContext, params: DuplicateParams) -> OperationResult:
    node_map = index_by_id(ctx.graph_api.get_nodes())
    missing = missing_ids(params.node_ids, node_map)
    if missing:
        return missing_nodes_result(missing)

    offset = params.offset.model_dump() if params.offset else dict(DEFAULT_DUPLICATE_OFFSET)
    if params.dry_run:
        return OperationResult.ok({
            "planned": {
                "count": len(params.node_ids),
                "includeEdges": params.include_edges,
                "offset": offset,
            }
        })

    result = ctx.graph_api.duplicate_nodes(params.node_ids, params.include_edges, offset)
    if not result.success:
        return forward_failure(result, "duplicateNodes failed")
    return OperationResult.ok({
        "nodes": payloads(result.data["nodes"]),
        "edges": payloads(result.data["edges"]),
        "idMap": result.data["idMap"],
    })


# extractSubgraph

class ExtractSubgraphParams(SkillParams):
    node_ids: list[str] = Field(min_length=1)
    include_groups: bool = True
    create_group: bool = False
    group_id: str | None = None
    group_label: str = Field(
        default="Extracted Subgraph",
        validation_alias=AliasChoices("groupLabel", "label", "group_label"),
    )
    padding: float = DEFAULT_GROUP_PADDING
    style: dict[str, Any] | None = None
    visible: bool = True


def _extract_actions(params: ExtractSubgraphParams) -> set[MutationAction]:
    return {MutationAction.create} if params.create_group else set()


def extract_subgraph(ctx: SkillContext, params: ExtractSubgraphParams) -> OperationResult:
    graph_api = ctx.graph_api
    node_map = index_by_id(graph_api.get_nodes())
    missing = missing_ids(params.node_ids, node_map)
    if missing:
        return missing_nodes_result(missing)

    selected = set(params.node_ids)
    extracted: dict[str, Any] = {
        "nodes": payloads(node_map[node_id] for node_id in dict.fromkeys(params.node_ids)),
        "edges": payloads(
            edge for edge in graph_api.get_edges()
            if edge.source in selected and edge.target in selected
        ),
        "groups": [],
    }
    if params.include_groups:
        extracted["groups"] = payloads(
            group for group in graph_api.get_groups()
            if group.node_ids and selected.issuperset(group.node_ids)
        )

    if not params.create_group:
        return OperationResult.ok(extracted)

    group = Group(
        id=params.group_id,
        label=params.group_label,
        node_ids=list(dict.fromkeys(params.node_ids)),
        bounds=compute_bounds([node_map[node_id] for node_id in params.node_ids], params.padding),
        style=clone(params.style or {}),
        visible=params.visible,
    )
    if params.dry_run:
        return OperationResult.ok({"payload": extracted, "plannedGroup": payload(group)})
    result = graph_api.create_groups([group])
    if not result.success:
        return forward_failure(result, "createGroups failed")
    return OperationResult.ok({"payload": extracted, "group": payload(result.data["created"][0])})


STRUCTURAL_SKILLS = [
    Skill(
        id="struct.createNodes",
        title="Create Nodes",
        description="Create new nodes without disturbing existing state.",
        category=SkillCategory.structural,
        run=create_nodes,
        params_model=CreateNodesParams,
        requires=frozenset({MutationAction.create}),
        contracts=SkillContracts(
            inputs=["nodes[]"],
            outputs=["created[]", "warnings[]"],
            forbidden=["implicit position assignment when preservePositions is false"],
        ),
    ),
    Skill(
        id="struct.createEdges",
        title="Create Edges",
        description="Attach relationships between existing nodes.",
        category=SkillCategory.structural,
        run=create_edges,
        params_model=CreateEdgesParams,
        requires=frozenset({MutationAction.create}),
        contracts=SkillContracts(
            inputs=["edges[]"],
            preconditions=["nodes referenced must already exist"],
            forbidden=["rewiring existing edges unless failOnDuplicate is false"],
        ),
    ),
    Skill(
        id="struct.grouping",
        title="Group / Ungroup",
        description="Create or dissolve containment without altering meaning.",
        category=SkillCategory.structural,
        run=grouping,
        params_model=GroupingParams,
        requires=_grouping_actions,
        contracts=SkillContracts(
            inputs=["action", "groupId?", "nodeIds?"],
            warnings=["Grouping mutations never move nodes; bounds only"],
        ),
    ),
    Skill(
        id="struct.reparent",
        title="Reparent",
        description="Move nodes between structural containers.",
        category=SkillCategory.structural,
        run=reparent,
        params_model=ReparentParams,
        requires=frozenset({MutationAction.update}),
        contracts=SkillContracts(
            inputs=["nodeIds[]", "sourceGroupIds?", "targetGroupId?"],
            postconditions=["Groups updated to reflect new membership"],
            forbidden=["Implicit layout changes"],
        ),
    ),
    Skill(
        id="struct.duplicate",
        title="Duplicate",
        description="Clone nodes (and optionally edges) safely.",
        category=SkillCategory.structural,
        run=duplicate,
        params_model=DuplicateParams,
        requires=frozenset({MutationAction.create}),
        contracts=SkillContracts(
            inputs=["nodeIds[]", "includeEdges?", "offset?"],
            postconditions=["New node ids minted"],
            forbidden=["Identity collisions"],
        ),
    ),
    Skill(
        id="struct.extractSubgraph",
        title="Extract Subgraph",
        description="Lift a subset of nodes into a new cluster or payload.",
        category=SkillCategory.structural,
        run=extract_subgraph,
        params_model=ExtractSubgraphParams,
        requires=_extract_actions,
        contracts=SkillContracts(
            inputs=["nodeIds[]", "includeGroups?", "createGroup?"],
            outputs=["payload { nodes, edges, groups }"],
            forbidden=["Snapshot overwrite of existing graph"],
        ),
    ),
]
