"""The narrow CRUD surface skills use to read and mutate the graph.

Every mutator returns an OperationResult. Ordinary domain failures (unknown
ids, collisions, dangling references) come back as ``success=False``; nothing
here raises for them. Reads hand out deep copies so callers can plan freely.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Protocol

from pydantic import BaseModel, ValidationError

from skillgraph.models.graph import Edge, Group, Node, Position
from skillgraph.models.result import OperationResult
from skillgraph.store.graph_store import GraphChange, GraphStore
from skillgraph.utils.cloning import clone
from skillgraph.utils.geometry import node_position
from skillgraph.utils.identifiers import ensure_unique_id

logger = logging.getLogger(__name__)

DEFAULT_DUPLICATE_OFFSET = {"x": 40.0, "y": 40.0}

# patch keys merged one level deep instead of replaced
_MERGED_KEYS = ("position", "state", "style")


class GraphAPI(Protocol):
    """Protocol for the graph surface skills run against."""

    def get_nodes(self) -> list[Node]: ...
    def get_edges(self) -> list[Edge]: ...
    def get_groups(self) -> list[Group]: ...

    def create_nodes(self, nodes: Iterable[Node | dict]) -> OperationResult: ...
    def create_edges(self, edges: Iterable[Edge | dict]) -> OperationResult: ...
    def create_groups(self, groups: Iterable[Group | dict]) -> OperationResult: ...

    def update_node(self, node_id: str, patch: dict) -> OperationResult: ...
    def update_nodes(self, node_ids: Iterable[str], patch: dict) -> OperationResult: ...
    def update_edge(self, edge_id: str, patch: dict) -> OperationResult: ...
    def update_edges(self, edge_ids: Iterable[str], patch: dict) -> OperationResult: ...
    def update_group(self, group_id: str, patch: dict) -> OperationResult: ...

    def delete_node(self, node_id: str) -> OperationResult: ...
    def delete_edge(self, edge_id: str) -> OperationResult: ...
    def delete_group(self, group_id: str) -> OperationResult: ...

    def translate_nodes(self, node_ids: Iterable[str], delta: dict | Position) -> OperationResult: ...

    def add_nodes_to_group(self, group_id: str, node_ids: Iterable[str]) -> OperationResult: ...
    def remove_nodes_from_group(self, group_id: str, node_ids: Iterable[str]) -> OperationResult: ...
    def set_group_nodes(self, group_id: str, node_ids: Iterable[str]) -> OperationResult: ...
    def read_group(self, group_id: str) -> OperationResult: ...

    def duplicate_nodes(
        self,
        node_ids: Iterable[str],
        include_edges: bool = True,
        offset: dict | Position | None = None,
    ) -> OperationResult: ...


def _field_alias(model_cls: type[BaseModel], key: str) -> str:
    info = model_cls.model_fields.get(key)
    if info is not None and info.alias:
        return info.alias
    return key


def _plain(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True)
    return clone(value)


def apply_patch(entity: BaseModel, patch: dict | None) -> BaseModel:
    """Return a new entity with ``patch`` applied.

    Top-level keys replace, except position/state/style which merge one level.
    The id is never patched. Raises ValidationError when the result is invalid.
    """
    model_cls = type(entity)
    payload = entity.model_dump(by_alias=True)
    for key, value in (patch or {}).items():
        alias = _field_alias(model_cls, key)
        if alias == "id":
            continue
        value = _plain(value)
        current = payload.get(alias)
        if alias in _MERGED_KEYS and isinstance(value, dict) and isinstance(current, dict):
            payload[alias] = {**current, **value}
        else:
            payload[alias] = value
    return model_cls.model_validate(payload)


def _delta_xy(delta: dict | Position | None) -> tuple[float, float]:
    if isinstance(delta, Position):
        return delta.x, delta.y
    delta = delta or {}
    return float(delta.get("x") or 0), float(delta.get("y") or 0)


class InMemoryGraphAPI:
    """GraphAPI over a GraphStore."""

    def __init__(self, store: GraphStore | None = None) -> None:
        self.store = store if store is not None else GraphStore()
        self._copy_counter = 0

    def _commit(self, kind: str, action: str, ids: list[str]) -> None:
        logger.debug("%s %s: %s", action, kind, ids)
        self.store.notify(GraphChange(kind=kind, action=action, ids=list(ids)))

    # reads

    def get_nodes(self) -> list[Node]:
        return [clone(node) for node in self.store.nodes.values()]

    def get_edges(self) -> list[Edge]:
        return [clone(edge) for edge in self.store.edges.values()]

    def get_groups(self) -> list[Group]:
        return [clone(group) for group in self.store.groups.values()]

    def read_group(self, group_id: str) -> OperationResult:
        group = self.store.groups.get(group_id)
        if group is None:
            return OperationResult.fail(f"Group {group_id} not found")
        return OperationResult.ok(clone(group))

    # creates

    def create_nodes(self, nodes: Iterable[Node | dict]) -> OperationResult:
        try:
            parsed = [Node.model_validate(_plain(node)) for node in nodes]
        except ValidationError as e:
            return OperationResult.fail(f"Invalid node: {e}")

        if any(not node.id for node in parsed):
            return OperationResult.fail("Every node requires an id")
        seen: set[str] = set()
        duplicates: list[str] = []
        for node in parsed:
            if node.id in self.store.nodes or node.id in seen:
                duplicates.append(node.id)
            seen.add(node.id)
        if duplicates:
            return OperationResult.fail(
                "One or more node ids already exist",
                data={"duplicateIds": duplicates},
            )

        for node in parsed:
            self.store.nodes[node.id] = node
        self._commit("node", "create", [node.id for node in parsed])
        return OperationResult.ok({"created": [clone(node) for node in parsed]})

    def create_edges(self, edges: Iterable[Edge | dict]) -> OperationResult:
        try:
            parsed = [Edge.model_validate(_plain(edge)) for edge in edges]
        except ValidationError as e:
            return OperationResult.fail(f"Invalid edge: {e}")

        taken = set(self.store.edges)
        missing: list[str] = []
        collisions: list[str] = []
        for edge in parsed:
            for endpoint in (edge.source, edge.target):
                if endpoint not in self.store.nodes and endpoint not in missing:
                    missing.append(endpoint)
            if edge.id:
                if edge.id in taken:
                    collisions.append(edge.id)
                taken.add(edge.id)
        if missing:
            return OperationResult.fail(
                f"Edge endpoints not found: {', '.join(missing)}",
                data={"missing": missing},
            )
        if collisions:
            return OperationResult.fail(
                "One or more edge ids already exist",
                data={"duplicateIds": collisions},
            )

        for edge in parsed:
            if not edge.id:
                edge.id = ensure_unique_id(taken, None)
                taken.add(edge.id)
            self.store.edges[edge.id] = edge
        self._commit("edge", "create", [edge.id for edge in parsed])
        return OperationResult.ok({"created": [clone(edge) for edge in parsed]})

    def create_groups(self, groups: Iterable[Group | dict]) -> OperationResult:
        try:
            parsed = [Group.model_validate(_plain(group)) for group in groups]
        except ValidationError as e:
            return OperationResult.fail(f"Invalid group: {e}")

        taken = set(self.store.groups)
        for group in parsed:
            if group.id and group.id in taken:
                return OperationResult.fail(
                    f"Group {group.id} already exists",
                    data={"duplicateIds": [group.id]},
                )
            unknown = [node_id for node_id in group.node_ids if node_id not in self.store.nodes]
            if unknown:
                return OperationResult.fail(
                    f"Group references unknown nodes: {', '.join(unknown)}",
                    data={"missing": unknown},
                )
            group.id = ensure_unique_id(taken, group.id)
            taken.add(group.id)

        for group in parsed:
            self.store.groups[group.id] = group
        self._commit("group", "create", [group.id for group in parsed])
        return OperationResult.ok({"created": [clone(group) for group in parsed]})

    # updates

    def update_node(self, node_id: str, patch: dict) -> OperationResult:
        node = self.store.nodes.get(node_id)
        if node is None:
            return OperationResult.fail(f"Node {node_id} not found")
        try:
            updated = apply_patch(node, patch)
        except ValidationError as e:
            return OperationResult.fail(f"Invalid patch for node {node_id}: {e}")
        self.store.nodes[node_id] = updated
        self._commit("node", "update", [node_id])
        return OperationResult.ok(clone(updated))

    def update_nodes(self, node_ids: Iterable[str], patch: dict) -> OperationResult:
        ids = list(node_ids)
        missing = [node_id for node_id in ids if node_id not in self.store.nodes]
        if missing:
            return OperationResult.fail(
                f"Nodes not found: {', '.join(missing)}", data={"missing": missing}
            )
        try:
            updated = {node_id: apply_patch(self.store.nodes[node_id], patch) for node_id in ids}
        except ValidationError as e:
            return OperationResult.fail(f"Invalid node patch: {e}")
        self.store.nodes.update(updated)
        self._commit("node", "update", ids)
        return OperationResult.ok({"ids": ids})

    def _check_endpoints(self, edge: Edge) -> str | None:
        for endpoint in (edge.source, edge.target):
            if endpoint not in self.store.nodes:
                return f"Edge endpoint {endpoint} not found"
        return None

    def update_edge(self, edge_id: str, patch: dict) -> OperationResult:
        edge = self.store.edges.get(edge_id)
        if edge is None:
            return OperationResult.fail(f"Edge {edge_id} not found")
        try:
            updated = apply_patch(edge, patch)
        except ValidationError as e:
            return OperationResult.fail(f"Invalid patch for edge {edge_id}: {e}")
        error = self._check_endpoints(updated)
        if error:
            return OperationResult.fail(error)
        self.store.edges[edge_id] = updated
        self._commit("edge", "update", [edge_id])
        return OperationResult.ok(clone(updated))

    def update_edges(self, edge_ids: Iterable[str], patch: dict) -> OperationResult:
        ids = list(edge_ids)
        missing = [edge_id for edge_id in ids if edge_id not in self.store.edges]
        if missing:
            return OperationResult.fail(
                f"Edges not found: {', '.join(missing)}", data={"missing": missing}
            )
        try:
            updated = {edge_id: apply_patch(self.store.edges[edge_id], patch) for edge_id in ids}
        except ValidationError as e:
            return OperationResult.fail(f"Invalid edge patch: {e}")
        for edge in updated.values():
            error = self._check_endpoints(edge)
            if error:
                return OperationResult.fail(error)
        self.store.edges.update(updated)
        self._commit("edge", "update", ids)
        return OperationResult.ok({"ids": ids})

    def update_group(self, group_id: str, patch: dict) -> OperationResult:
        group = self.store.groups.get(group_id)
        if group is None:
            return OperationResult.fail(f"Group {group_id} not found")
        try:
            updated = apply_patch(group, patch)
        except ValidationError as e:
            return OperationResult.fail(f"Invalid patch for group {group_id}: {e}")
        unknown = [node_id for node_id in updated.node_ids if node_id not in self.store.nodes]
        if unknown:
            return OperationResult.fail(f"Group references unknown nodes: {', '.join(unknown)}")
        self.store.groups[group_id] = updated
        self._commit("group", "update", [group_id])
        return OperationResult.ok(clone(updated))

    # deletes

    def delete_node(self, node_id: str) -> OperationResult:
        if node_id not in self.store.nodes:
            return OperationResult.fail(f"Node {node_id} not found")
        del self.store.nodes[node_id]
        affected = [
            edge_id
            for edge_id, edge in self.store.edges.items()
            if edge.source == node_id or edge.target == node_id
        ]
        for edge_id in affected:
            del self.store.edges[edge_id]
        for group in self.store.groups.values():
            if node_id in group.node_ids:
                group.node_ids = [member for member in group.node_ids if member != node_id]
        self._commit("node", "delete", [node_id])
        return OperationResult.ok({"deletedNodeId": node_id, "affectedEdges": affected})

    def delete_edge(self, edge_id: str) -> OperationResult:
        if edge_id not in self.store.edges:
            return OperationResult.fail(f"Edge {edge_id} not found")
        del self.store.edges[edge_id]
        self._commit("edge", "delete", [edge_id])
        return OperationResult.ok({"deletedEdgeId": edge_id})

    def delete_group(self, group_id: str) -> OperationResult:
        if group_id not in self.store.groups:
            return OperationResult.fail(f"Group {group_id} not found")
        del self.store.groups[group_id]
        self._commit("group", "delete", [group_id])
        return OperationResult.ok({"deletedGroupId": group_id})

    # geometry

    def translate_nodes(self, node_ids: Iterable[str], delta: dict | Position) -> OperationResult:
        ids = list(node_ids)
        missing = [node_id for node_id in ids if node_id not in self.store.nodes]
        if missing:
            return OperationResult.fail(
                f"Nodes not found: {', '.join(missing)}", data={"missing": missing}
            )
        dx, dy = _delta_xy(delta)
        for node_id in ids:
            node = self.store.nodes[node_id]
            position = node_position(node)
            node.position = Position(x=position.x + dx, y=position.y + dy)
        self._commit("node", "update", ids)
        return OperationResult.ok({"ids": ids, "delta": {"x": dx, "y": dy}})

    # group membership

    def _membership(self, group_id: str, node_ids: list[str]) -> tuple[Group | None, str | None]:
        group = self.store.groups.get(group_id)
        if group is None:
            return None, f"Group {group_id} not found"
        unknown = [node_id for node_id in node_ids if node_id not in self.store.nodes]
        if unknown:
            return None, f"Nodes not found: {', '.join(unknown)}"
        return group, None

    def add_nodes_to_group(self, group_id: str, node_ids: Iterable[str]) -> OperationResult:
        ids = list(node_ids)
        group, error = self._membership(group_id, ids)
        if error:
            return OperationResult.fail(error)
        members = list(group.node_ids)
        for node_id in ids:
            if node_id not in members:
                members.append(node_id)
        group.node_ids = members
        self._commit("group", "update", [group_id])
        return OperationResult.ok(clone(group))

    def remove_nodes_from_group(self, group_id: str, node_ids: Iterable[str]) -> OperationResult:
        group = self.store.groups.get(group_id)
        if group is None:
            return OperationResult.fail(f"Group {group_id} not found")
        removed = set(node_ids)
        group.node_ids = [member for member in group.node_ids if member not in removed]
        self._commit("group", "update", [group_id])
        return OperationResult.ok(clone(group))

    def set_group_nodes(self, group_id: str, node_ids: Iterable[str]) -> OperationResult:
        ids = list(dict.fromkeys(node_ids))
        group, error = self._membership(group_id, ids)
        if error:
            return OperationResult.fail(error)
        group.node_ids = ids
        self._commit("group", "update", [group_id])
        return OperationResult.ok(clone(group))

    # duplication

    def _copy_id(self, node_id: str) -> str:
        while True:
            self._copy_counter += 1
            candidate = f"{node_id}-copy{self._copy_counter}"
            if candidate not in self.store.nodes:
                return candidate

    def duplicate_nodes(
        self,
        node_ids: Iterable[str],
        include_edges: bool = True,
        offset: dict | Position | None = None,
    ) -> OperationResult:
        ids = list(dict.fromkeys(node_ids))
        missing = [node_id for node_id in ids if node_id not in self.store.nodes]
        if missing:
            return OperationResult.fail(
                f"Nodes not found: {', '.join(missing)}", data={"missing": missing}
            )
        dx, dy = _delta_xy(offset if offset is not None else DEFAULT_DUPLICATE_OFFSET)

        id_map: dict[str, str] = {}
        created_nodes: list[Node] = []
        for node_id in ids:
            copy = clone(self.store.nodes[node_id])
            position = node_position(copy)
            copy.id = self._copy_id(node_id)
            copy.position = Position(x=position.x + dx, y=position.y + dy)
            id_map[node_id] = copy.id
            self.store.nodes[copy.id] = copy
            created_nodes.append(copy)

        created_edges: list[Edge] = []
        if include_edges:
            taken = set(self.store.edges)
            for edge in list(self.store.edges.values()):
                if edge.source in id_map and edge.target in id_map:
                    copy = clone(edge)
                    copy.id = ensure_unique_id(taken, f"{edge.id}-copy" if edge.id else None)
                    copy.source = id_map[edge.source]
                    copy.target = id_map[edge.target]
                    taken.add(copy.id)
                    self.store.edges[copy.id] = copy
                    created_edges.append(copy)

        self._commit("node", "create", [node.id for node in created_nodes])
        if created_edges:
            self._commit("edge", "create", [edge.id for edge in created_edges])
        return OperationResult.ok({
            "nodes": [clone(node) for node in created_nodes],
            "edges": [clone(edge) for edge in created_edges],
            "idMap": id_map,
        })
