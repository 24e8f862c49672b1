"""Validation skills.

Each returns ``success=True`` only when it found no errors. Findings are
reported in ``data``; none of these skills raise for bad graph content or
touch the GraphAPI mutators.
"""

from typing import Any

from pydantic import Field, ValidationError

from skillgraph.analysis.graph_schema import validate_edges, validate_groups, validate_nodes
from skillgraph.config import get_settings
from skillgraph.models.graph import Edge, Node
from skillgraph.models.manifest import EXECUTABLE_INTENT_KINDS, MANIFEST_NODE_TYPE
from skillgraph.models.result import OperationResult
from skillgraph.models.skill import Skill, SkillCategory, SkillContext, SkillContracts, SkillParams
from skillgraph.skills.base import directional_handle_ids, handle_index, index_by_id, payloads

# handle data types that are compatible with everything
WILDCARD_TYPES = {"value", "any", "trigger", "input", "output", "bidirectional"}

SCRIPT_NODE_TYPE = "script"

# required fields per manifest section
_MANIFEST_FIELDS = {
    "identity": ("graphId", "name", "version", "createdAt", "updatedAt"),
    "intent": ("kind", "scope"),
    "dependencies": ("nodeTypes", "portContracts", "skills", "schemaVersions"),
    "authority": ("mutation",),
}
_MUTATION_FLAGS = ("allowCreate", "allowUpdate", "allowDelete", "appendOnly")


def _as_list(value: Any) -> list:
    if not value:
        return []
    return value if isinstance(value, list) else [value]


def _manifest_nodes(nodes: list[Node]) -> list[Node]:
    return [node for node in nodes if node.type == MANIFEST_NODE_TYPE]


def _parse_all(model, raw: list[Any]) -> list:
    parsed = []
    for item in raw:
        try:
            parsed.append(model.model_validate(item))
        except ValidationError:
            continue
    return parsed


class GraphOverrideParams(SkillParams):
    """Validate these payloads instead of the live graph when given."""

    nodes: list[Any] | None = None
    edges: list[Any] | None = None
    groups: list[Any] | None = None


# schema

def validate_schema(ctx: SkillContext, params: GraphOverrideParams) -> OperationResult:
    graph_api = ctx.graph_api
    nodes = params.nodes if params.nodes is not None else payloads(graph_api.get_nodes())
    edges = params.edges if params.edges is not None else payloads(graph_api.get_edges())
    groups = params.groups if params.groups is not None else payloads(graph_api.get_groups())

    node_report = validate_nodes(nodes)
    edge_report = validate_edges(edges, node_report.ids)
    group_report = validate_groups(groups, node_report.ids)

    warnings = node_report.warnings + edge_report.warnings + group_report.warnings
    return OperationResult(
        success=node_report.ok and edge_report.ok and group_report.ok,
        data={
            "nodeErrors": [issue.model_dump() for issue in node_report.errors],
            "edgeErrors": [issue.model_dump() for issue in edge_report.errors],
            "groupErrors": [issue.model_dump() for issue in group_report.errors],
            "warnings": [issue.model_dump() for issue in warnings],
        },
    )


# ports

def _strict(data_type: str | None) -> bool:
    return bool(data_type) and data_type.lower() not in WILDCARD_TYPES


def validate_ports(ctx: SkillContext, params: GraphOverrideParams) -> OperationResult:
    nodes = _parse_all(Node, params.nodes) if params.nodes is not None else ctx.graph_api.get_nodes()
    edges = _parse_all(Edge, params.edges) if params.edges is not None else ctx.graph_api.get_edges()
    node_map = index_by_id(nodes)

    errors: list[dict[str, Any]] = []
    warnings: list[dict[str, Any]] = []
    for edge in edges:
        if not edge.id:
            continue
        source = node_map.get(edge.source)
        target = node_map.get(edge.target)
        if source is None or target is None:
            errors.append({
                "edgeId": edge.id,
                "code": "MISSING_NODE",
                "message": f"Edge references missing node (source {edge.source} or target {edge.target}).",
            })
            continue

        source_handle = handle_index(source).get(edge.source_port) if edge.source_port else None
        target_handle = handle_index(target).get(edge.target_port) if edge.target_port else None
        if edge.source_port and source_handle is None:
            errors.append({
                "edgeId": edge.id,
                "nodeId": source.id,
                "code": "MISSING_HANDLE",
                "message": f'Source handle "{edge.source_port}" not found on node "{source.id}".',
            })
        if edge.target_port and target_handle is None:
            errors.append({
                "edgeId": edge.id,
                "nodeId": target.id,
                "code": "MISSING_HANDLE",
                "message": f'Target handle "{edge.target_port}" not found on node "{target.id}".',
            })
        if source_handle and target_handle:
            source_type, target_type = source_handle.data_type, target_handle.data_type
            if _strict(source_type) and _strict(target_type) and source_type.lower() != target_type.lower():
                errors.append({
                    "edgeId": edge.id,
                    "code": "TYPE_MISMATCH",
                    "message": f"Handle type mismatch ({source_type} -> {target_type}).",
                })

        if not edge.source_port and len(directional_handle_ids(source, "output")) > 1:
            warnings.append({
                "edgeId": edge.id,
                "code": "AMBIGUOUS_SOURCE_HANDLE",
                "message": f'Edge omits source handle but node "{source.id}" exposes multiple outputs.',
            })
        if not edge.target_port and len(directional_handle_ids(target, "input")) > 1:
            warnings.append({
                "edgeId": edge.id,
                "code": "AMBIGUOUS_TARGET_HANDLE",
                "message": f'Edge omits target handle but node "{target.id}" exposes multiple inputs.',
            })

    return OperationResult(success=not errors, data={"errors": errors, "warnings": warnings})


# manifest

def _issue(code: str, path: str, message: str, node_id: str | None = None) -> dict[str, Any]:
    return {"code": code, "path": path, "message": message, "nodeId": node_id}


def check_manifest_data(data: dict[str, Any], node_id: str | None = None) -> list[dict[str, Any]]:
    """Structural problems in a manifest node's data."""
    errors = []
    for section, fields in _MANIFEST_FIELDS.items():
        block = data.get(section)
        if not isinstance(block, dict):
            errors.append(_issue(
                "MANIFEST_SECTION_MISSING", section, f"Manifest section '{section}' is missing", node_id
            ))
            continue
        for name in fields:
            path = f"{section}.{name}"
            if name not in block or block[name] is None or block[name] == "":
                errors.append(_issue("MANIFEST_FIELD_MISSING", path, f"Manifest field '{path}' is missing", node_id))
            elif section == "dependencies" and name != "schemaVersions" and not isinstance(block[name], list):
                errors.append(_issue("MANIFEST_FIELD_INVALID", path, f"Manifest field '{path}' must be a list", node_id))

    versions = (data.get("dependencies") or {}).get("schemaVersions") if isinstance(data.get("dependencies"), dict) else None
    if versions is not None and not (
        isinstance(versions, dict) and all(isinstance(v, str) for v in versions.values())
    ):
        errors.append(_issue(
            "MANIFEST_FIELD_INVALID",
            "dependencies.schemaVersions",
            "Manifest field 'dependencies.schemaVersions' must map subsystem names to version strings",
            node_id,
        ))

    authority = data.get("authority")
    mutation = authority.get("mutation") if isinstance(authority, dict) else None
    if mutation is not None:
        if not isinstance(mutation, dict):
            errors.append(_issue(
                "MANIFEST_FIELD_INVALID", "authority.mutation",
                "Manifest field 'authority.mutation' must be an object", node_id,
            ))
        else:
            for flag in _MUTATION_FLAGS:
                path = f"authority.mutation.{flag}"
                if flag not in mutation:
                    errors.append(_issue("MANIFEST_FIELD_MISSING", path, f"Manifest field '{path}' is missing", node_id))
                elif not isinstance(mutation[flag], bool):
                    errors.append(_issue(
                        "MANIFEST_FIELD_INVALID", path, f"Manifest field '{path}' must be a boolean", node_id
                    ))
    return errors


def validate_manifest(ctx: SkillContext, params: SkillParams) -> OperationResult:
    manifests = _manifest_nodes(ctx.graph_api.get_nodes())
    if not manifests:
        errors = [_issue("MANIFEST_MISSING", "", "Graph has no manifest node")]
        return OperationResult(success=False, data={"errors": errors, "manifestId": None})
    if len(manifests) > 1:
        ids = [node.id for node in manifests]
        errors = [_issue(
            "MANIFEST_DUPLICATE", "", f"Graph has {len(ids)} manifest nodes: {', '.join(ids)}"
        )]
        return OperationResult(success=False, data={"errors": errors, "manifestId": None})

    manifest = manifests[0]
    errors = check_manifest_data(manifest.data, manifest.id)
    return OperationResult(success=not errors, data={"errors": errors, "manifestId": manifest.id})


# dependencies

class DependencyParams(SkillParams):
    required_node_types: list[str] | None = None
    required_skills: list[str] | None = None
    required_definitions: list[str] | None = None
    available_skills: list[str] | None = None
    available_definitions: list[str] | None = None
    dependencies: dict[str, Any] | None = None


def validate_dependencies(ctx: SkillContext, params: DependencyParams) -> OperationResult:
    nodes = ctx.graph_api.get_nodes()
    manifests = _manifest_nodes(nodes)
    declared = manifests[0].data.get("dependencies") if len(manifests) == 1 else None
    declared = declared if isinstance(declared, dict) else {}
    overrides = params.dependencies or {}

    def required(explicit: list[str] | None, key: str) -> list[str]:
        if explicit is not None:
            return explicit
        return _as_list(overrides.get(key) or declared.get(key))

    required_node_types = required(params.required_node_types, "nodeTypes")
    required_skills = required(params.required_skills, "skills")
    required_definitions = required(params.required_definitions, "definitions")

    if params.available_skills is not None:
        available_skills = set(params.available_skills)
    elif ctx.registry is not None:
        available_skills = set(ctx.registry.skill_ids())
    else:
        available_skills = set()

    present_types = {node.type for node in nodes}
    missing_node_types = [t for t in required_node_types if t not in present_types]
    missing_skills = [s for s in required_skills if s not in available_skills]
    missing_definitions = []
    warnings = []
    if params.available_definitions is not None:
        available = set(params.available_definitions)
        missing_definitions = [d for d in required_definitions if d not in available]
    elif required_definitions:
        warnings.append({
            "code": "DEFINITION_CHECK_SKIPPED",
            "message": "Definitions list not provided; cannot confirm definition dependencies.",
        })

    return OperationResult(
        success=not (missing_node_types or missing_skills or missing_definitions),
        data={
            "missingNodeTypes": missing_node_types,
            "missingSkills": missing_skills,
            "missingDefinitions": missing_definitions,
            "warnings": warnings,
        },
    )


# orphans

class OrphanParams(SkillParams):
    allowed_node_ids: list[str] = Field(default_factory=list)
    include_scratchpads: bool = True


def detect_orphans(ctx: SkillContext, params: OrphanParams) -> OperationResult:
    graph_api = ctx.graph_api
    connected: set[str] = set()
    for edge in graph_api.get_edges():
        connected.add(edge.source)
        connected.add(edge.target)
    grouped = {node_id for group in graph_api.get_groups() for node_id in group.node_ids}
    allowed = set(params.allowed_node_ids)

    orphans = []
    for node in graph_api.get_nodes():
        if node.id in allowed or node.id in connected or node.id in grouped:
            continue
        if node.type == MANIFEST_NODE_TYPE:
            continue
        if not params.include_scratchpads and node.extensions.get("scratchpad"):
            continue
        orphans.append(node)

    return OperationResult(success=not orphans, data={"orphans": payloads(orphans)})


# unsafe mutations

class UnsafeMutationParams(SkillParams):
    commands: list[dict[str, Any]] | dict[str, Any] | None = None
    mass_delete_threshold: int | None = None


def flatten_commands(commands: list[Any]) -> list[dict[str, Any]]:
    """Expand nested batch/transaction commands into one flat list."""
    flat = []
    for command in commands:
        if not isinstance(command, dict):
            continue
        if command.get("action") in ("batch", "transaction"):
            flat.extend(flatten_commands(_as_list(command.get("commands"))))
        else:
            flat.append(command)
    return flat


def detect_unsafe_mutations(ctx: SkillContext, params: UnsafeMutationParams) -> OperationResult:
    commands = _as_list(params.commands)
    if not commands:
        return OperationResult(success=False, data={"issues": ["No commands provided for analysis"]})

    threshold = params.mass_delete_threshold
    if threshold is None:
        threshold = get_settings().mass_delete_threshold

    flat = flatten_commands(commands)
    issues: list[str] = []
    created: set[str] = set()
    deleted: list[str] = []
    clear_requested = False
    for command in flat:
        action = command.get("action")
        if not action and command.get("type") == "nodegraph-data":
            issues.append("Direct nodegraph-data payload detected")
        if action == "replace":
            issues.append("Explicit replace action requested")
        if action == "clearGraph":
            clear_requested = True
        if action in ("createNodes", "create"):
            nodes = command.get("nodes") if isinstance(command.get("nodes"), list) else _as_list(command.get("node"))
            created.update(node["id"] for node in nodes if isinstance(node, dict) and node.get("id"))
        if action == "delete":
            ids = command.get("ids") if isinstance(command.get("ids"), list) else _as_list(command.get("id"))
            for entity_id in ids:
                if isinstance(entity_id, str) and entity_id not in deleted:
                    deleted.append(entity_id)

    recreated = [entity_id for entity_id in deleted if entity_id in created]
    if recreated:
        issues.append(f"Delete + recreate pattern detected for ids: {', '.join(recreated)}")
    if len(deleted) > threshold:
        issues.append(
            f"High-risk delete command affecting {len(deleted)} ids (threshold {threshold})."
        )
    if clear_requested:
        issues.append("clearGraph action requested")

    return OperationResult(success=not issues, data={"issues": issues, "analyzedCommands": len(flat)})


# intent

def validate_intent(ctx: SkillContext, params: SkillParams) -> OperationResult:
    nodes = ctx.graph_api.get_nodes()
    manifests = _manifest_nodes(nodes)
    script_ids = [node.id for node in nodes if node.type == SCRIPT_NODE_TYPE]
    if not manifests:
        return OperationResult(
            success=True,
            data={
                "kind": None,
                "errors": [],
                "warnings": [{"code": "MANIFEST_MISSING", "message": "No manifest node; intent not checked."}],
                "scriptNodeIds": script_ids,
            },
        )

    intent = manifests[0].data.get("intent")
    kind = intent.get("kind") if isinstance(intent, dict) else None
    errors = []
    warnings = []
    if kind in EXECUTABLE_INTENT_KINDS and not script_ids:
        errors.append({
            "code": "INTENT_REQUIRES_SCRIPT",
            "message": f"Manifest intent '{kind}' expects at least one script node.",
        })
    elif kind == "documentation" and script_ids:
        warnings.append({
            "code": "INTENT_UNEXPECTED_SCRIPT",
            "message": "Documentation graph contains script nodes.",
        })

    return OperationResult(
        success=not errors,
        data={"kind": kind, "errors": errors, "warnings": warnings, "scriptNodeIds": script_ids},
    )


VALIDATION_SKILLS = [
    Skill(
        id="validation.schema",
        title="Schema Validation",
        description="Validate nodes, edges, and groups against structural contracts.",
        category=SkillCategory.validation,
        run=validate_schema,
        params_model=GraphOverrideParams,
        contracts=SkillContracts(
            inputs=["nodes?", "edges?", "groups?"],
            outputs=["nodeErrors[]", "edgeErrors[]", "groupErrors[]"],
        ),
    ),
    Skill(
        id="validation.ports",
        title="Port Compatibility Checks",
        description="Ensure edge ports exist and match declared data types.",
        category=SkillCategory.validation,
        run=validate_ports,
        params_model=GraphOverrideParams,
        contracts=SkillContracts(inputs=["edges[]?"], forbidden=["Implicit handle creation"]),
    ),
    Skill(
        id="validation.manifest",
        title="Manifest Validation",
        description="Check that the graph has exactly one complete manifest node.",
        category=SkillCategory.validation,
        run=validate_manifest,
        contracts=SkillContracts(outputs=["errors[]"]),
    ),
    Skill(
        id="validation.dependencies",
        title="Missing Dependency Detection",
        description="Verify required node types, skills, and definitions are present.",
        category=SkillCategory.validation,
        run=validate_dependencies,
        params_model=DependencyParams,
        contracts=SkillContracts(
            inputs=["requiredNodeTypes[]?", "requiredSkills[]?"],
            outputs=["missingNodeTypes[]", "missingSkills[]"],
        ),
    ),
    Skill(
        id="validation.orphans",
        title="Orphan Detection",
        description="Identify nodes with no edges and no group membership.",
        category=SkillCategory.validation,
        run=detect_orphans,
        params_model=OrphanParams,
        contracts=SkillContracts(
            inputs=["allowedNodeIds?", "includeScratchpads?"],
            forbidden=["Automatic deletion of orphaned nodes"],
        ),
    ),
    Skill(
        id="validation.unsafeMutation",
        title="Unsafe Mutation Detection",
        description="Analyse proposed commands for dangerous mutation patterns.",
        category=SkillCategory.validation,
        run=detect_unsafe_mutations,
        params_model=UnsafeMutationParams,
        contracts=SkillContracts(inputs=["commands[]"], forbidden=["Implicit graph replacement"]),
    ),
    Skill(
        id="validation.intent",
        title="Intent Consistency",
        description="Cross-check the manifest intent against graph contents.",
        category=SkillCategory.validation,
        run=validate_intent,
        contracts=SkillContracts(outputs=["errors[]", "warnings[]"]),
    ),
]
