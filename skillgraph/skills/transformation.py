"""Transformation skills: refactor, normalize, type migration, schema upgrade, inline/extract.

Each skill reads the graph once, builds a MutationPlan against private copies
and applies it in one pass. Missing optional inputs (a merge source that does
not exist, a field that is absent) become warnings; a missing split source or
merge target fails the call before anything is written.
"""

import json
from typing import Any, Literal

from pydantic import AliasChoices, Field

from skillgraph.models.graph import GraphModel, Node
from skillgraph.models.result import OperationResult
from skillgraph.models.skill import (
    MutationAction,
    Skill,
    SkillCategory,
    SkillContext,
    SkillContracts,
    SkillParams,
)
from skillgraph.skills.base import errors_result
from skillgraph.skills.plan import MutationPlan
from skillgraph.utils.cloning import clone
from skillgraph.utils.identifiers import ensure_unique_id
from skillgraph.utils.paths import (
    MISSING,
    delete_path,
    is_writable_path,
    merge_patch,
    read_path,
    set_path,
)


def _working_copies(ctx: SkillContext) -> dict[str, dict[str, Any]]:
    """Editor-shaped copies of every node, keyed by id."""
    return {node.id: node.model_dump(by_alias=True, exclude_none=True) for node in ctx.graph_api.get_nodes()}


def _data(node: dict[str, Any]) -> dict[str, Any]:
    if not isinstance(node.get("data"), dict):
        node["data"] = {}
    return node["data"]


def _append_memo(data: dict[str, Any], text: str) -> None:
    data["memo"] = "\n\n".join(part for part in (data.get("memo"), text) if part)


# refactor

class EdgeRedirect(GraphModel):
    edge_id: str | None = None
    endpoint: Literal["source", "target"] = "source"
    handle: str | None = Field(default=None, validation_alias=AliasChoices("handle", "handleId"))


class SplitPart(GraphModel):
    id: str | None = None
    label: str | None = None
    type: str | None = None
    data: dict[str, Any] | None = None
    replace_data: bool = False
    position: dict[str, Any] | None = None
    extensions: dict[str, Any] | None = None
    state: dict[str, Any] | None = None
    edge_redirects: list[EdgeRedirect] = Field(default_factory=list)
    create_edges: list[dict[str, Any]] = Field(default_factory=list)
    cluster_id: str | None = None


class SplitSpec(GraphModel):
    source_id: str | None = None
    parts: list[SplitPart] = Field(default_factory=list)
    remove_original: bool = False
    note: str | None = None


class MergeField(GraphModel):
    from_path: str | None = Field(default=None, validation_alias=AliasChoices("from", "source", "fromPath"))
    to_path: str | None = Field(default=None, validation_alias=AliasChoices("to", "target", "toPath"))
    remove_original: bool = False


class MergeSource(GraphModel):
    id: str | None = None
    fields: list[MergeField] = Field(default_factory=list)
    annotations: str | None = None
    handle_map: dict[str, str] = Field(default_factory=dict)


class MergeSpec(GraphModel):
    target_id: str | None = None
    sources: list[MergeSource] = Field(default_factory=list)
    retarget_edges: bool = True
    delete_sources: bool = True
    data: dict[str, Any] | None = None
    label: str | None = None
    type: str | None = None


class RefactorParams(SkillParams):
    split: SplitSpec | None = None
    splits: list[SplitSpec] = Field(default_factory=list)
    merge: MergeSpec | None = None
    merges: list[MergeSpec] = Field(default_factory=list)

    def all_splits(self) -> list[SplitSpec]:
        return ([self.split] if self.split else []) + self.splits

    def all_merges(self) -> list[MergeSpec]:
        return ([self.merge] if self.merge else []) + self.merges


def _refactor_actions(params: RefactorParams) -> set[MutationAction]:
    actions = set()
    splits, merges = params.all_splits(), params.all_merges()
    if splits:
        actions.add(MutationAction.create)
    if merges or any(
        split.note or any(part.edge_redirects or part.cluster_id for part in split.parts)
        for split in splits
    ):
        actions.add(MutationAction.update)
    if any(split.remove_original for split in splits) or any(merge.delete_sources for merge in merges):
        actions.add(MutationAction.delete)
    return actions


def _plan_split(
    split: SplitSpec,
    nodes: dict[str, dict[str, Any]],
    edge_ids: set[str],
    plan: MutationPlan,
    errors: list[str],
) -> None:
    source_id = split.source_id
    if not source_id or source_id not in nodes:
        errors.append(f'Split source node "{source_id}" not found.')
        return
    if not split.parts:
        errors.append(f'Split for "{source_id}" requires at least one part.')
        return
    source = nodes[source_id]

    for index, part in enumerate(split.parts, start=1):
        base = clone(source)
        base["id"] = ensure_unique_id(set(nodes), part.id or f"{source_id}-{index}")
        if part.label:
            base["label"] = part.label
        if part.replace_data:
            base["data"] = clone(part.data or {})
        elif part.data:
            base["data"] = merge_patch(base.get("data"), part.data)
        if part.type:
            base["type"] = part.type
        for key in ("position", "extensions", "state"):
            override = getattr(part, key)
            if override:
                base[key] = merge_patch(base.get(key), override)
        plan.node_creates.append(Node.model_validate(base))
        nodes[base["id"]] = base

        for redirect in part.edge_redirects:
            if not redirect.edge_id or redirect.edge_id not in edge_ids:
                plan.warnings.append(f'Edge redirect references missing edge "{redirect.edge_id}".')
                continue
            if redirect.endpoint == "target":
                plan.update_edge(redirect.edge_id, {"target": base["id"], "targetPort": redirect.handle})
            else:
                plan.update_edge(redirect.edge_id, {"source": base["id"], "sourcePort": redirect.handle})

        for blueprint in part.create_edges:
            if not blueprint.get("target"):
                plan.warnings.append(
                    f'Skipped creating edge for split part "{base["id"]}" because target is missing.'
                )
                continue
            edge_id = ensure_unique_id(edge_ids, blueprint.get("id"))
            edge_ids.add(edge_id)
            edge = {
                "id": edge_id,
                "source": blueprint.get("source") or base["id"],
                "target": blueprint["target"],
                "sourcePort": blueprint.get("sourcePort"),
                "targetPort": blueprint.get("targetPort"),
                "type": blueprint.get("type") or "straight",
                "label": blueprint.get("label"),
                "data": blueprint.get("data") or {},
                "style": blueprint.get("style") or {},
            }
            plan.edge_creates.append({key: value for key, value in edge.items() if value is not None})

        if part.cluster_id:
            plan.add_to_group(part.cluster_id, [base["id"]])

    if split.remove_original:
        plan.delete_node(source_id)
    elif split.note:
        data = clone(source.get("data") or {})
        _append_memo(data, split.note)
        plan.update_node(source_id, {"data": data})


def _plan_merge(
    merge: MergeSpec,
    nodes: dict[str, dict[str, Any]],
    edges: list[dict[str, Any]],
    plan: MutationPlan,
    errors: list[str],
) -> None:
    target_id = merge.target_id
    if not target_id or target_id not in nodes:
        errors.append(f'Merge target node "{target_id}" not found.')
        return
    target = nodes[target_id]
    target_data = _data(target)

    for entry in merge.sources:
        source_id = entry.id
        if not source_id or source_id not in nodes:
            plan.warnings.append(f'Merge source node "{source_id}" not found.')
            continue
        source = nodes[source_id]
        for mapping in entry.fields:
            if not mapping.from_path or not mapping.to_path:
                continue
            value = read_path(_data(source), mapping.from_path)
            if value is MISSING:
                plan.warnings.append(f'Field "{mapping.from_path}" missing on node "{source_id}" during merge.')
                continue
            set_path(target_data, mapping.to_path, clone(value))
            if mapping.remove_original and source_id != target_id:
                delete_path(_data(source), mapping.from_path)
                plan.update_node(source_id, {"data": clone(_data(source))})
        if entry.annotations:
            _append_memo(target_data, entry.annotations)

        if merge.retarget_edges:
            for edge in edges:
                if edge["source"] == source_id:
                    patch = {"source": target_id}
                    if entry.handle_map.get("source"):
                        patch["sourcePort"] = entry.handle_map["source"]
                    plan.update_edge(edge["id"], patch)
                if edge["target"] == source_id:
                    patch = {"target": target_id}
                    if entry.handle_map.get("target"):
                        patch["targetPort"] = entry.handle_map["target"]
                    plan.update_edge(edge["id"], patch)

        if merge.delete_sources and source_id != target_id:
            plan.delete_node(source_id)

    if merge.data:
        target["data"] = target_data = merge_patch(target_data, merge.data)
    if merge.label:
        target["label"] = merge.label
    if merge.type:
        target["type"] = merge.type
    plan.update_node(target_id, {
        "data": clone(target_data),
        "label": target.get("label", ""),
        "type": target.get("type", "default"),
    })


def refactor(ctx: SkillContext, params: RefactorParams) -> OperationResult:
    nodes = _working_copies(ctx)
    edges = [edge.model_dump(by_alias=True) for edge in ctx.graph_api.get_edges()]
    edge_ids = {edge["id"] for edge in edges}

    plan = MutationPlan()
    errors: list[str] = []
    for split in params.all_splits():
        _plan_split(split, nodes, edge_ids, plan, errors)
    for merge in params.all_merges():
        _plan_merge(merge, nodes, edges, plan, errors)

    if errors:
        return errors_result(errors, warnings=plan.warnings, summary=plan.summary)
    return plan.run(ctx.graph_api, params.dry_run)


# normalize

class NormalizeParams(SkillParams):
    operations: list[dict[str, Any]] = Field(default_factory=list)


def _dedupe(items: list[Any]) -> list[Any]:
    seen = set()
    unique = []
    for item in items:
        key = json.dumps(item, sort_keys=True, default=str)
        if key in seen:
            continue
        seen.add(key)
        unique.append(item)
    return unique


def normalize(ctx: SkillContext, params: NormalizeParams) -> OperationResult:
    nodes = _working_copies(ctx)
    plan = MutationPlan()

    def lookup(node_id: str | None) -> dict[str, Any] | None:
        if node_id not in nodes:
            plan.warnings.append(f'Node "{node_id}" not found for normalization operation.')
            return None
        return nodes[node_id]

    for op in params.operations:
        kind = op.get("type")
        if kind == "removeDuplicates":
            node_id, field_path = op.get("nodeId"), op.get("fieldPath")
            node = lookup(node_id)
            if node is None or not field_path:
                continue
            items = read_path(_data(node), field_path)
            if not isinstance(items, list):
                plan.warnings.append(f'Field "{field_path}" on node "{node_id}" is not an array.')
                continue
            if not is_writable_path(field_path):
                plan.warnings.append(f'Field "{field_path}" on node "{node_id}" cannot be written back.')
                continue
            unique = _dedupe(items)
            if len(unique) != len(items):
                set_path(_data(node), field_path, unique)
                plan.update_node(node_id, {"data": clone(_data(node))})

        elif kind in ("moveField", "copyField"):
            origin, destination = op.get("from") or {}, op.get("to") or {}
            source = lookup(origin.get("nodeId"))
            target = lookup(destination.get("nodeId"))
            if source is None or target is None or not origin.get("path") or not destination.get("path"):
                continue
            value = read_path(_data(source), origin["path"])
            if value is MISSING:
                plan.warnings.append(f'Path "{origin["path"]}" not found on node "{origin["nodeId"]}".')
                continue
            set_path(_data(target), destination["path"], clone(value))
            plan.update_node(destination["nodeId"], {"data": clone(_data(target))})
            if kind == "moveField" and op.get("removeOriginal", True) is not False:
                delete_path(_data(source), origin["path"])
                plan.update_node(origin["nodeId"], {"data": clone(_data(source))})

        elif kind == "setField":
            node = lookup(op.get("nodeId"))
            if node is None or not op.get("path"):
                continue
            set_path(_data(node), op["path"], clone(op.get("value")))
            plan.update_node(op["nodeId"], {"data": clone(_data(node))})

        else:
            plan.warnings.append(f'Unsupported normalization operation "{kind}".')

    return plan.run(ctx.graph_api, params.dry_run)


# typeMigration

class Migration(GraphModel):
    node_id: str | None = None
    field_map: dict[str, Any] = Field(default_factory=dict, validation_alias=AliasChoices("fieldMap", "fields"))
    remove_fields: list[str] = Field(default_factory=list)
    defaults: dict[str, Any] = Field(default_factory=dict)
    data: dict[str, Any] = Field(default_factory=dict)
    target_type: str | None = None
    label: str | None = None


class TypeMigrationParams(SkillParams):
    migrations: list[Migration] = Field(default_factory=list)


def migrate_data(original: dict[str, Any], migration: Migration, warnings: list[str]) -> dict[str, Any]:
    """New ``data`` for a node: remapped fields, removals, defaults, then overrides."""
    migrated = clone(original)
    for target_path, mapping in migration.field_map.items():
        from_path = mapping if isinstance(mapping, str) else (mapping or {}).get("from")
        if not from_path:
            continue
        value = read_path(original, from_path)
        if value is MISSING:
            warnings.append(f'Migration field "{from_path}" missing on node "{migration.node_id}".')
            continue
        set_path(migrated, target_path, clone(value))
        if isinstance(mapping, dict) and mapping.get("removeOriginal"):
            delete_path(migrated, from_path)
    for path in migration.remove_fields:
        delete_path(migrated, path)
    for path, value in migration.defaults.items():
        if read_path(migrated, path) is MISSING:
            set_path(migrated, path, clone(value))
    for path, value in migration.data.items():
        set_path(migrated, path, clone(value))
    return migrated


def type_migration(ctx: SkillContext, params: TypeMigrationParams) -> OperationResult:
    nodes = _working_copies(ctx)
    plan = MutationPlan()
    for migration in params.migrations:
        node = nodes.get(migration.node_id)
        if node is None:
            plan.warnings.append(f'Cannot migrate node "{migration.node_id}" - node not found.')
            continue
        node["data"] = migrate_data(_data(node), migration, plan.warnings)
        if migration.target_type:
            node["type"] = migration.target_type
        if migration.label:
            node["label"] = migration.label
        plan.update_node(migration.node_id, {
            "data": clone(node["data"]),
            "type": node.get("type", "default"),
            "label": node.get("label", ""),
        })
    return plan.run(ctx.graph_api, params.dry_run)


# schemaUpgrade

class SchemaPatch(GraphModel):
    node_id: str | None = None
    data: dict[str, Any] | None = None
    extensions: dict[str, Any] | None = None
    type: str | None = None
    label: str | None = None


class SchemaUpgradeParams(SkillParams):
    patches: list[SchemaPatch] = Field(default_factory=list)
    target_version: str | None = None


def schema_upgrade(ctx: SkillContext, params: SchemaUpgradeParams) -> OperationResult:
    nodes = _working_copies(ctx)
    plan = MutationPlan()
    for patch in params.patches:
        node = nodes.get(patch.node_id)
        if node is None:
            plan.warnings.append(f'Schema upgrade skipped missing node "{patch.node_id}".')
            continue
        if patch.data:
            node["data"] = merge_patch(node.get("data"), patch.data)
        if patch.extensions:
            node["extensions"] = merge_patch(node.get("extensions"), patch.extensions)
        if patch.type:
            node["type"] = patch.type
        if patch.label:
            node["label"] = patch.label
        plan.update_node(patch.node_id, {
            key: clone(node[key]) for key in ("data", "extensions", "type", "label") if key in node
        })

    result = plan.run(ctx.graph_api, params.dry_run)
    if result.success and params.target_version:
        result.data["targetVersion"] = params.target_version
    return result


# inlineExtract

class InlineExtractParams(SkillParams):
    operations: list[dict[str, Any]] = Field(default_factory=list)


def _inline_extract_actions(params: InlineExtractParams) -> set[MutationAction]:
    kinds = [op.get("type") for op in params.operations]
    actions = set()
    if "extract" in kinds:
        actions.add(MutationAction.create)
    if "inline" in kinds or "extract" in kinds:
        actions.add(MutationAction.update)
    if any(op.get("type") == "inline" and op.get("deleteSource") for op in params.operations):
        actions.add(MutationAction.delete)
    return actions


def _extracted_node(op: dict[str, Any], source: dict[str, Any], node_id: str) -> dict[str, Any]:
    blueprint = op.get("newNode") or {}
    node = {
        "id": node_id,
        "type": blueprint.get("type") or source.get("type") or "default",
        "label": blueprint.get("label") or f"{source.get('label') or source['id']} Extract",
        "position": clone(blueprint.get("position") or source.get("position")),
        "width": blueprint.get("width") or source.get("width"),
        "height": blueprint.get("height") or source.get("height"),
        "data": clone(blueprint.get("data") or {}),
        "handles": clone(blueprint.get("handles") or blueprint.get("ports") or source.get("handles") or []),
        "extensions": clone(blueprint.get("extensions") or {}),
        "state": clone(blueprint.get("state") or {}),
    }
    return {key: value for key, value in node.items() if value is not None}


def inline_extract(ctx: SkillContext, params: InlineExtractParams) -> OperationResult:
    nodes = _working_copies(ctx)
    plan = MutationPlan()
    extracted: list[dict[str, Any]] = []

    def lookup(node_id: str | None) -> dict[str, Any] | None:
        if node_id not in nodes:
            plan.warnings.append(f'Inline/extract operation skipped missing node "{node_id}".')
            return None
        return nodes[node_id]

    for op in params.operations:
        kind = op.get("type")
        if kind == "inline":
            source = lookup(op.get("fromNodeId"))
            target = lookup(op.get("intoNodeId"))
            if source is None or target is None:
                continue
            for from_path, to_path in (op.get("fieldMap") or {}).items():
                value = read_path(_data(source), from_path)
                if value is MISSING:
                    plan.warnings.append(f'Inline field "{from_path}" missing on node "{op["fromNodeId"]}".')
                    continue
                set_path(_data(target), to_path or from_path, clone(value))
                if op.get("removeOriginal", True) is not False:
                    delete_path(_data(source), from_path)
                    plan.update_node(op["fromNodeId"], {"data": clone(_data(source))})
                plan.update_node(op["intoNodeId"], {"data": clone(_data(target))})
            if op.get("deleteSource"):
                plan.delete_node(op["fromNodeId"])

        elif kind == "extract":
            source = lookup(op.get("sourceNodeId"))
            if source is None:
                continue
            blueprint_id = (op.get("newNode") or {}).get("id")
            node_id = ensure_unique_id(set(nodes), blueprint_id)
            node = _extracted_node(op, source, node_id)
            nodes[node_id] = node
            for path in op.get("fields") or []:
                value = read_path(_data(source), path)
                if value is MISSING:
                    plan.warnings.append(f'Extract field "{path}" missing on node "{op["sourceNodeId"]}".')
                    continue
                set_path(node["data"], path, clone(value))
                if op.get("removeFields", True) is not False:
                    delete_path(_data(source), path)
                    plan.update_node(op["sourceNodeId"], {"data": clone(_data(source))})
            extracted.append(node)

        else:
            plan.warnings.append(f'Unsupported inline/extract operation "{kind}".')

    plan.node_creates = [Node.model_validate(node) for node in extracted]
    return plan.run(ctx.graph_api, params.dry_run)


_UPDATE = frozenset({MutationAction.update})

TRANSFORMATION_SKILLS = [
    Skill(
        id="transform.refactor",
        title="Refactor",
        description="Split or merge nodes while preserving semantics.",
        category=SkillCategory.transform,
        run=refactor,
        params_model=RefactorParams,
        requires=_refactor_actions,
        contracts=SkillContracts(
            inputs=["split?", "merge?"],
            forbidden=["Identity loss without opt-in removal"],
        ),
    ),
    Skill(
        id="transform.normalize",
        title="Normalize / Denormalize",
        description="Shift between compact and expanded representations.",
        category=SkillCategory.transform,
        run=normalize,
        params_model=NormalizeParams,
        requires=_UPDATE,
        contracts=SkillContracts(
            inputs=["operations[]"],
            forbidden=["Dropping data without explicit instruction"],
        ),
    ),
    Skill(
        id="transform.typeMigration",
        title="Type Migration",
        description="Upgrade node types safely.",
        category=SkillCategory.transform,
        run=type_migration,
        params_model=TypeMigrationParams,
        requires=_UPDATE,
        contracts=SkillContracts(
            inputs=["migrations[]"],
            forbidden=["Replacing nodes without preserving IDs"],
        ),
    ),
    Skill(
        id="transform.schemaUpgrade",
        title="Schema Upgrade",
        description="Apply schema patches incrementally.",
        category=SkillCategory.transform,
        run=schema_upgrade,
        params_model=SchemaUpgradeParams,
        requires=_UPDATE,
        contracts=SkillContracts(
            inputs=["patches[]", "targetVersion?"],
            forbidden=["Skipping intermediate versions"],
        ),
    ),
    Skill(
        id="transform.inlineExtract",
        title="Inline / Extract",
        description="Move structure between abstraction layers.",
        category=SkillCategory.transform,
        run=inline_extract,
        params_model=InlineExtractParams,
        requires=_inline_extract_actions,
        contracts=SkillContracts(
            inputs=["operations[]"],
            forbidden=["Removing references without replacing them"],
        ),
    ),
]
