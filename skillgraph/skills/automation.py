"""Automation skills: scripts, batch commands, procedural generation, simulation steps, artifacts, import/export."""

import json
import logging
import re
from typing import Any

from pydantic import AliasChoices, Field

from skillgraph.adapters.script_runner import runner_from_settings
from skillgraph.analysis.artifact import compile_artifact as render_artifact
from skillgraph.errors import ScriptRunnerError
from skillgraph.models.graph import GraphSnapshot
from skillgraph.models.result import OperationResult
from skillgraph.models.skill import (
    MutationAction,
    Skill,
    SkillCategory,
    SkillContext,
    SkillContracts,
    SkillParams,
)
from skillgraph.skills.base import payload, payloads
from skillgraph.skills.plan import PlanApplyError
from skillgraph.store.graph_api import GraphAPI
from skillgraph.utils.cloning import clone
from skillgraph.utils.geometry import DEFAULT_NODE_HEIGHT, DEFAULT_NODE_WIDTH
from skillgraph.utils.identifiers import ensure_unique_id

logger = logging.getLogger(__name__)

_TOKEN = re.compile(r"\{\{([^}]+)\}\}")

_CREATE_COMMANDS = {"createNodes", "createEdges", "createGroups"}
_UPDATE_COMMANDS = {
    "updateNode", "updateNodes", "updateEdge", "updateEdges", "updateGroup",
    "translate", "move", "addNodesToGroup", "removeNodesFromGroup", "setGroupNodes",
}
_GROUP_MEMBERSHIP_COMMANDS = {
    "addNodesToGroup": "add_nodes_to_group",
    "removeNodesFromGroup": "remove_nodes_from_group",
    "setGroupNodes": "set_group_nodes",
}


def _as_list(value: Any) -> list:
    if value is None or value == "":
        return []
    return value if isinstance(value, list) else [value]


def _target_ids(command: dict[str, Any]) -> list[str]:
    return _as_list(command.get("ids")) or _as_list(command.get("id"))


def command_actions(commands: list[dict[str, Any]]) -> set[MutationAction]:
    """Mutation capabilities a command list needs."""
    actions = set()
    for command in commands:
        action = command.get("action") if isinstance(command, dict) else None
        if action in _CREATE_COMMANDS:
            actions.add(MutationAction.create)
        elif action in _UPDATE_COMMANDS:
            actions.add(MutationAction.update)
        elif action == "delete":
            actions.add(MutationAction.delete)
    return actions


def _record(summary: dict[str, Any], key: str, values: list[Any]) -> None:
    summary.setdefault(key, []).extend(values)


def _check(result: OperationResult, fallback: str) -> OperationResult:
    if not result.success:
        raise PlanApplyError(result.error or fallback)
    return result


def _created_ids(result: OperationResult) -> list[str]:
    return [entity.id for entity in result.data.get("created", [])]


def apply_commands(
    graph_api: GraphAPI,
    commands: list[dict[str, Any]],
    dry_run: bool,
    summary: dict[str, Any],
) -> None:
    """Run commands in order, recording each applied one in ``summary``.

    Raises PlanApplyError at the first command that fails or is not
    understood; later commands are not run and earlier ones are kept.
    """
    for command in commands:
        action = command.get("action") if isinstance(command, dict) else None

        if action in _CREATE_COMMANDS:
            kind = action[len("create"):].lower()  # nodes, edges, groups
            items = _as_list(command.get(kind))
            if not items:
                continue
            if dry_run:
                ids = [item.get("id") for item in items if isinstance(item, dict)]
            else:
                create = getattr(graph_api, f"create_{kind}")
                ids = _created_ids(_check(create(items), f"{action} failed"))
            _record(summary, f"created{kind.title()}", ids)

        elif action in ("updateNode", "updateEdge", "updateGroup"):
            entity_id = command.get("id")
            patch = command.get("updates") or command.get("patch")
            if not entity_id or not patch:
                continue
            kind = action[len("update"):].lower()
            if not dry_run:
                update = getattr(graph_api, f"update_{kind}")
                _check(update(entity_id, patch), f"Failed to update {kind} {entity_id}")
            _record(summary, f"updated{kind.title()}s", [entity_id])

        elif action in ("updateNodes", "updateEdges"):
            ids = _as_list(command.get("ids"))
            patch = command.get("updates") or command.get("patch")
            if not ids or not patch:
                continue
            kind = action[len("update"):].lower()
            if not dry_run:
                update = getattr(graph_api, f"update_{kind}")
                _check(update(ids, patch), f"{action} failed")
            _record(summary, f"updated{kind.title()}", ids)

        elif action == "delete":
            kind = command.get("type") or "node"
            if kind not in ("node", "edge", "group"):
                raise PlanApplyError(f"Unsupported delete type: {kind}")
            for entity_id in _target_ids(command):
                if not dry_run:
                    delete = getattr(graph_api, f"delete_{kind}")
                    _check(delete(entity_id), f"Failed to delete {kind} {entity_id}")
                _record(summary, f"deleted{kind.title()}s", [entity_id])

        elif action in ("translate", "move"):
            ids = _target_ids(command)
            if not ids:
                continue
            delta = command.get("delta") or command.get("offset") or {
                "x": command.get("dx") or 0,
                "y": command.get("dy") or 0,
            }
            if not dry_run:
                _check(graph_api.translate_nodes(ids, delta), "translateNodes failed")
            _record(summary, "translatedNodes", [{"ids": ids, "delta": delta}])

        elif action in _GROUP_MEMBERSHIP_COMMANDS:
            group_id = command.get("groupId") or command.get("id")
            node_ids = _as_list(command.get("nodeIds"))
            if not group_id or not node_ids:
                continue
            if not dry_run:
                method = getattr(graph_api, _GROUP_MEMBERSHIP_COMMANDS[action])
                _check(method(group_id, node_ids), f"{action} failed")
            _record(summary, "groupMutations", [{"action": action, "groupId": group_id, "nodeIds": node_ids}])

        else:
            raise PlanApplyError(f"Unsupported automation command: {action}")


# scriptExecution

class ScriptExecutionParams(SkillParams):
    script: str | None = Field(default=None, validation_alias=AliasChoices("script", "source"))
    meta: dict[str, Any] = Field(default_factory=dict)


async def script_execution(ctx: SkillContext, params: ScriptExecutionParams) -> OperationResult:
    if not params.script:
        return OperationResult(success=False, error="Script text is required", data={"errors": ["Script text is required"]})

    runner = ctx.script_runner or runner_from_settings()
    if params.dry_run:
        available = runner is not None
        return OperationResult(
            success=available,
            data={
                "available": available,
                "message": "Script runner available" if available else "Script runner not initialized",
            },
        )
    if runner is None:
        message = "Script runner unavailable in this environment"
        return OperationResult(success=False, error=message, data={"errors": [message]})

    try:
        result = await runner.run(params.script, params.meta)
    except ScriptRunnerError as e:
        logger.warning("script execution failed: %s", e)
        return OperationResult(success=False, error=str(e), data={"errors": [str(e)]})
    return OperationResult(success=result.get("success") is not False, data=result)


# batchMutation

class BatchMutationParams(SkillParams):
    commands: list[dict[str, Any]] = Field(default_factory=list)


def _commands_failed(message: str, summary: dict[str, Any]) -> OperationResult:
    return OperationResult(success=False, error=message, data={"errors": [message], "summary": summary})


def batch_mutation(ctx: SkillContext, params: BatchMutationParams) -> OperationResult:
    if not params.commands:
        return _commands_failed("commands array is required", {})
    summary: dict[str, Any] = {}
    try:
        apply_commands(ctx.graph_api, params.commands, params.dry_run, summary)
    except PlanApplyError as e:
        logger.warning("batch mutation stopped: %s", e)
        return _commands_failed(str(e), summary)
    return OperationResult.ok(summary)


# proceduralGeneration

class ProceduralGenerationParams(SkillParams):
    blueprint: dict[str, Any] = Field(default_factory=dict)
    count: int | None = None
    parameters: dict[str, Any] | None = None


def substitute_tokens(value: Any, variables: dict[str, Any]) -> Any:
    """Replace ``{{name}}`` placeholders in every string inside ``value``.

    Unknown names are left as they are.
    """
    if isinstance(value, str):
        def replace(match: re.Match) -> str:
            key = match.group(1).strip()
            return str(variables[key]) if key in variables else match.group(0)
        return _TOKEN.sub(replace, value)
    if isinstance(value, list):
        return [substitute_tokens(item, variables) for item in value]
    if isinstance(value, dict):
        return {key: substitute_tokens(item, variables) for key, item in value.items()}
    return value


def _generated(template: Any, variables: dict[str, Any], default_id: str) -> tuple[str, dict[str, Any]]:
    template = template if isinstance(template, dict) else {}
    raw_id = template.get("id") or default_id
    return raw_id, substitute_tokens(template, variables)


def procedural_generation(ctx: SkillContext, params: ProceduralGenerationParams) -> OperationResult:
    blueprint = params.blueprint
    node_templates = _as_list(blueprint.get("nodes"))
    edge_templates = _as_list(blueprint.get("edges"))
    group_templates = _as_list(blueprint.get("groups"))
    if not (node_templates or edge_templates or group_templates):
        return _commands_failed("Blueprint must include nodes, edges, or groups", {})

    iterations = max(1, int(params.count or blueprint.get("count") or 1))
    base_variables = dict(params.parameters or blueprint.get("parameters") or {})
    graph_api = ctx.graph_api
    node_ids = {node.id for node in graph_api.get_nodes()}
    edge_ids = {edge.id for edge in graph_api.get_edges()}
    group_ids = {group.id for group in graph_api.get_groups() if group.id}

    nodes, edges, groups = [], [], []
    for index in range(iterations):
        variables = {**base_variables, "index": index, "iteration": index, "count": iterations}
        id_map: dict[str, str] = {}

        for position, template in enumerate(node_templates):
            raw_id, node = _generated(template, variables, f"node_{position}")
            requested = node.get("id") or raw_id
            node["id"] = ensure_unique_id(node_ids, requested)
            node_ids.add(node["id"])
            # edges and groups may name either the template id or its substituted form
            id_map[raw_id] = node["id"]
            id_map[requested] = node["id"]
            nodes.append(node)

        for position, template in enumerate(edge_templates):
            raw_id, edge = _generated(template, variables, f"edge_{position}")
            edge["id"] = ensure_unique_id(edge_ids, edge.get("id") or raw_id)
            edge_ids.add(edge["id"])
            edge["source"] = id_map.get(edge.get("source"), edge.get("source"))
            edge["target"] = id_map.get(edge.get("target"), edge.get("target"))
            edges.append(edge)

        for position, template in enumerate(group_templates):
            raw_id, group = _generated(template, variables, f"group_{position}")
            group["id"] = ensure_unique_id(group_ids, group.get("id") or raw_id)
            group_ids.add(group["id"])
            group["nodeIds"] = [id_map.get(member, member) for member in _as_list(group.get("nodeIds"))]
            groups.append(group)

    commands = [
        {"action": "createNodes", "nodes": nodes},
        {"action": "createEdges", "edges": edges},
        {"action": "createGroups", "groups": groups},
    ]
    summary: dict[str, Any] = {}
    try:
        apply_commands(graph_api, commands, params.dry_run, summary)
    except PlanApplyError as e:
        return _commands_failed(str(e), summary)
    return OperationResult.ok(summary)


# simulationStep

class SimulationStepParams(SkillParams):
    mutations: list[dict[str, Any]] = Field(default_factory=list)
    record_previous: bool = True
    step_id: str | None = None


def touched_node_ids(mutations: list[dict[str, Any]]) -> list[str]:
    touched: list[str] = []
    for command in mutations:
        action = command.get("action")
        if action == "updateNode":
            ids = _as_list(command.get("id"))
        elif action == "updateNodes":
            ids = _as_list(command.get("ids"))
        elif action == "delete" and (command.get("type") or "node") == "node":
            ids = _target_ids(command)
        elif action in ("translate", "move"):
            ids = _target_ids(command)
        else:
            continue
        touched.extend(node_id for node_id in ids if node_id not in touched)
    return touched


def simulation_step(ctx: SkillContext, params: SimulationStepParams) -> OperationResult:
    if not params.mutations:
        return _commands_failed("mutations array is required", {})

    graph_api = ctx.graph_api
    touched = touched_node_ids(params.mutations)
    summary: dict[str, Any] = {}
    if params.record_previous:
        current = {node.id: node for node in graph_api.get_nodes()}
        summary["before"] = {node_id: payload(current[node_id]) for node_id in touched if node_id in current}

    try:
        apply_commands(graph_api, params.mutations, params.dry_run, summary)
    except PlanApplyError as e:
        logger.warning("simulation step %s stopped: %s", params.step_id, e)
        return _commands_failed(str(e), summary)

    if not params.dry_run:
        after = {node.id: node for node in graph_api.get_nodes()}
        summary["after"] = {node_id: payload(after[node_id]) for node_id in touched if node_id in after}
    summary["stepId"] = params.step_id
    return OperationResult.ok(summary)


# compileArtifact

class CompileArtifactParams(SkillParams):
    format: str = "json"
    manifest: dict[str, Any] = Field(default_factory=dict)
    pretty: bool = True


def _snapshot(graph_api: GraphAPI) -> GraphSnapshot:
    return GraphSnapshot(
        nodes=graph_api.get_nodes(),
        edges=graph_api.get_edges(),
        groups=graph_api.get_groups(),
    )


def compile_artifact(ctx: SkillContext, params: CompileArtifactParams) -> OperationResult:
    fmt = (params.format or "json").lower()
    artifact = render_artifact(
        _snapshot(ctx.graph_api),
        fmt,
        manifest=params.manifest,
        pretty=params.pretty,
        generated_at=ctx.now.isoformat(),
    )
    return OperationResult.ok({"artifact": artifact, "format": fmt, "manifest": params.manifest})


# importExport

class ImportExportParams(SkillParams):
    direction: str = Field(default="", validation_alias=AliasChoices("direction", "mode"))
    node_ids: list[str] | str | None = None
    manifest: dict[str, Any] = Field(default_factory=dict)
    as_: str | None = Field(default=None, validation_alias=AliasChoices("as", "format"))
    pretty: bool = True
    payload: dict[str, Any] | None = Field(default=None, validation_alias=AliasChoices("payload", "data"))
    source: str | None = None


def _import_actions(params: ImportExportParams) -> set[MutationAction]:
    if params.direction.lower() == "import":
        return {MutationAction.create}
    return set()


def export_graph(ctx: SkillContext, params: ImportExportParams) -> OperationResult:
    snapshot = _snapshot(ctx.graph_api)
    wanted = set(_as_list(params.node_ids))
    nodes = [node for node in snapshot.nodes if not wanted or node.id in wanted]
    kept = {node.id for node in nodes}
    edges = [edge for edge in snapshot.edges if edge.source in kept and edge.target in kept]
    groups = [group for group in snapshot.groups if all(member in kept for member in group.node_ids)]
    document = {
        "manifest": params.manifest,
        "nodes": payloads(nodes),
        "edges": payloads(edges),
        "groups": payloads(groups),
        "exportedAt": ctx.now.isoformat(),
    }
    if params.as_ == "string":
        return OperationResult.ok(json.dumps(document, indent=2 if params.pretty else None))
    return OperationResult.ok(document)


def _import_document(params: ImportExportParams) -> tuple[dict[str, Any] | None, list[str]]:
    if params.payload is not None:
        return params.payload, []
    if params.source:
        try:
            document = json.loads(params.source)
        except ValueError as e:
            return None, ["Failed to parse import source", str(e)]
        if isinstance(document, dict):
            return document, []
    return None, ["Import payload is required"]


def import_graph(ctx: SkillContext, params: ImportExportParams) -> OperationResult:
    document, errors = _import_document(params)
    if errors:
        return OperationResult(success=False, error=errors[0], data={"errors": errors})

    incoming_nodes = [node for node in _as_list(document.get("nodes")) if isinstance(node, dict)]
    incoming_edges = [edge for edge in _as_list(document.get("edges")) if isinstance(edge, dict)]
    incoming_groups = [group for group in _as_list(document.get("groups")) if isinstance(group, dict)]
    if not (incoming_nodes or incoming_edges or incoming_groups):
        return _commands_failed("Import payload is empty", {})

    graph_api = ctx.graph_api
    node_ids = {node.id for node in graph_api.get_nodes()}
    edge_ids = {edge.id for edge in graph_api.get_edges()}
    group_ids = {group.id for group in graph_api.get_groups() if group.id}

    # every incoming id is replaced; references are rewritten through the map
    node_id_map: dict[str, str] = {}
    nodes = []
    for raw in incoming_nodes:
        node = clone(raw)
        node["id"] = ensure_unique_id(node_ids, None)
        node_ids.add(node["id"])
        if raw.get("id"):
            node_id_map[raw["id"]] = node["id"]
        if node.get("width") is None:
            node["width"] = DEFAULT_NODE_WIDTH
        if node.get("height") is None:
            node["height"] = DEFAULT_NODE_HEIGHT
        nodes.append(node)

    edges = []
    for raw in incoming_edges:
        edge = clone(raw)
        edge["id"] = ensure_unique_id(edge_ids, None)
        edge_ids.add(edge["id"])
        edge["source"] = node_id_map.get(raw.get("source"), raw.get("source"))
        edge["target"] = node_id_map.get(raw.get("target"), raw.get("target"))
        edges.append(edge)

    groups = []
    for raw in incoming_groups:
        group = clone(raw)
        group["id"] = ensure_unique_id(group_ids, None)
        group_ids.add(group["id"])
        members = _as_list(raw.get("nodeIds", raw.get("node_ids")))
        group.pop("node_ids", None)
        group["nodeIds"] = [node_id_map.get(member, member) for member in members]
        groups.append(group)

    commands = [
        {"action": "createNodes", "nodes": nodes},
        {"action": "createEdges", "edges": edges},
        {"action": "createGroups", "groups": groups},
    ]
    summary: dict[str, Any] = {}
    try:
        apply_commands(graph_api, commands, params.dry_run, summary)
    except PlanApplyError as e:
        logger.warning("import stopped: %s", e)
        return _commands_failed(str(e), summary)
    summary["nodeIdMap"] = node_id_map
    return OperationResult.ok(summary)


def import_export(ctx: SkillContext, params: ImportExportParams) -> OperationResult:
    direction = params.direction.lower()
    if direction == "export":
        return export_graph(ctx, params)
    if direction == "import":
        return import_graph(ctx, params)
    message = 'direction must be "import" or "export"'
    return OperationResult(success=False, error=message, data={"errors": [message]})


AUTOMATION_SKILLS = [
    Skill(
        id="automation.scriptExecution",
        title="Script Execution",
        description="Run scripts in an external sandboxed runner.",
        category=SkillCategory.automation,
        run=script_execution,
        params_model=ScriptExecutionParams,
        contracts=SkillContracts(
            inputs=["script", "meta?"],
            forbidden=["Running without sandbox availability"],
        ),
    ),
    Skill(
        id="automation.batchMutation",
        title="Batch Mutation",
        description="Apply a list of graph mutations in order.",
        category=SkillCategory.automation,
        run=batch_mutation,
        params_model=BatchMutationParams,
        requires=lambda params: command_actions(params.commands),
        contracts=SkillContracts(inputs=["commands[]"], forbidden=["clearGraph", "replace"]),
    ),
    Skill(
        id="automation.proceduralGeneration",
        title="Procedural Generation",
        description="Generate graph structures from parameterized blueprints.",
        category=SkillCategory.automation,
        run=procedural_generation,
        params_model=ProceduralGenerationParams,
        requires=frozenset({MutationAction.create}),
        contracts=SkillContracts(
            inputs=["blueprint", "count?"],
            forbidden=["Overwriting existing IDs without remapping"],
        ),
    ),
    Skill(
        id="automation.simulationStep",
        title="Simulation Step",
        description="Advance the graph via a reversible mutation bundle.",
        category=SkillCategory.automation,
        run=simulation_step,
        params_model=SimulationStepParams,
        requires=lambda params: command_actions(params.mutations),
        contracts=SkillContracts(
            inputs=["mutations[]"],
            forbidden=["Destructive resets without backup"],
        ),
    ),
    Skill(
        id="automation.compileArtifact",
        title="Compile Graph -> Artifact",
        description="Compile the current graph into an external artifact.",
        category=SkillCategory.automation,
        run=compile_artifact,
        params_model=CompileArtifactParams,
        contracts=SkillContracts(inputs=["format?", "manifest?"], forbidden=["Using UI-only state as data"]),
    ),
    Skill(
        id="automation.importExport",
        title="Import / Export",
        description="Move graph data between systems with continuity safeguards.",
        category=SkillCategory.automation,
        run=import_export,
        params_model=ImportExportParams,
        requires=_import_actions,
        contracts=SkillContracts(
            inputs=["direction", "payload?"],
            forbidden=["Snapshot replacement of live graphs"],
        ),
    ),
]
