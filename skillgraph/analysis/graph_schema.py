"""Structural validators for node, edge and group payloads.

These work on plain dicts (the editor's JSON shape) rather than on models so
they can describe data the models would refuse to load: a missing id, a
string where a coordinate should be, a group with one member. They never
raise and never fix anything; they only report.
"""

import math
from dataclasses import dataclass, field
from typing import Any, get_args

from pydantic import BaseModel

from skillgraph.models.graph import HandleDirection

_DIRECTIONS = set(get_args(HandleDirection))


class SchemaIssue(BaseModel):
    """one problem found in a payload."""

    scope: str  # "node", "edge" or "group"
    index: int
    id: str | None = None
    message: str


@dataclass
class SchemaReport:
    """issues for one entity list, plus the ids that were seen."""

    ids: set[str] = field(default_factory=set)
    errors: list[SchemaIssue] = field(default_factory=list)
    warnings: list[SchemaIssue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _entity_id(candidate: Any) -> str | None:
    if isinstance(candidate, dict) and isinstance(candidate.get("id"), str) and candidate["id"].strip():
        return candidate["id"]
    return None


def _check_handles(handles: Any) -> list[str]:
    if handles is None:
        return []
    if not isinstance(handles, list):
        return ["Node handles must be a list"]
    problems = []
    for position, handle in enumerate(handles):
        if not isinstance(handle, dict) or not handle.get("id"):
            problems.append(f"Handle at index {position} must have an id")
            continue
        direction = handle.get("direction")
        if direction not in (None, "") and str(direction).lower() not in _DIRECTIONS:
            problems.append(f"Handle '{handle['id']}' has invalid direction '{direction}'")
    return problems


def validate_nodes(nodes: list[Any]) -> SchemaReport:
    report = SchemaReport()
    if not isinstance(nodes, list):
        report.errors.append(SchemaIssue(scope="node", index=-1, message="Nodes payload must be an array"))
        return report

    for index, candidate in enumerate(nodes):
        node_id = _entity_id(candidate)

        def error(message: str) -> None:
            report.errors.append(SchemaIssue(scope="node", index=index, id=node_id, message=message))

        if not isinstance(candidate, dict):
            error("Node must be an object")
            continue
        if node_id is None:
            error("Node must have a valid ID")
            continue
        if node_id in report.ids:
            error(f"Node ID '{node_id}' already exists")
            continue
        report.ids.add(node_id)

        if "type" in candidate and not isinstance(candidate["type"], str):
            error("Node type must be a string")

        position = candidate.get("position")
        if position is None:
            report.warnings.append(
                SchemaIssue(scope="node", index=index, id=node_id, message="Node has no position")
            )
        elif not (isinstance(position, dict) and _is_number(position.get("x")) and _is_number(position.get("y"))):
            error("Node position must have numeric x and y")

        for dimension in ("width", "height"):
            value = candidate.get(dimension)
            if value is not None and not (_is_number(value) and value >= 0):
                error(f"Node {dimension} must be a non-negative number")

        for problem in _check_handles(candidate.get("handles", candidate.get("ports"))):
            error(problem)

    return report


def validate_edges(edges: list[Any], node_ids: set[str]) -> SchemaReport:
    report = SchemaReport()
    if not isinstance(edges, list):
        report.errors.append(SchemaIssue(scope="edge", index=-1, message="Edges payload must be an array"))
        return report

    for index, candidate in enumerate(edges):
        edge_id = _entity_id(candidate)

        def error(message: str) -> None:
            report.errors.append(SchemaIssue(scope="edge", index=index, id=edge_id, message=message))

        if not isinstance(candidate, dict):
            error("Edge must be an object")
            continue
        if edge_id is None:
            error("Edge must have a valid ID")
            continue
        if edge_id in report.ids:
            error(f"Edge ID '{edge_id}' already exists")
            continue
        report.ids.add(edge_id)

        source, target = candidate.get("source"), candidate.get("target")
        if not source or not target:
            error("Edge must have source and target")
            continue
        if source not in node_ids:
            error(f"Source node '{source}' does not exist")
        if target not in node_ids:
            error(f"Target node '{target}' does not exist")

    return report


def validate_groups(groups: list[Any], node_ids: set[str] | None = None) -> SchemaReport:
    """Check groups; membership is checked against ``node_ids`` when given."""
    report = SchemaReport()
    if not isinstance(groups, list):
        report.errors.append(SchemaIssue(scope="group", index=-1, message="Groups payload must be an array"))
        return report

    for index, candidate in enumerate(groups):
        group_id = _entity_id(candidate)

        def error(message: str) -> None:
            report.errors.append(SchemaIssue(scope="group", index=index, id=group_id, message=message))

        if not isinstance(candidate, dict):
            error("Group must be an object")
            continue
        if group_id is None:
            error("Group must have a string id")
            continue
        if group_id in report.ids:
            error(f"Duplicate group id '{group_id}'")
            continue
        report.ids.add(group_id)

        raw_members = candidate.get("nodeIds", candidate.get("node_ids"))
        members = list(dict.fromkeys(
            member for member in (raw_members if isinstance(raw_members, list) else [])
            if isinstance(member, str) and member.strip()
        ))
        if len(members) < 2:
            error("Group must reference at least two nodes")
            continue
        if node_ids is not None:
            unknown = [member for member in members if member not in node_ids]
            if unknown:
                error(f"Group references unknown nodes: {', '.join(unknown)}")

        bounds = candidate.get("bounds")
        if bounds is not None and not (
            isinstance(bounds, dict)
            and all(_is_number(bounds.get(key, 0)) for key in ("x", "y", "width", "height"))
        ):
            error("Group bounds must be numeric")

    return report
