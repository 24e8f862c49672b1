"""Helpers shared by the skill families."""

from collections.abc import Iterable
from typing import Any, TypeVar

from pydantic import BaseModel

from skillgraph.models.graph import Handle, Node
from skillgraph.models.result import OperationResult

T = TypeVar("T")


def index_by_id(entities: Iterable[T]) -> dict[str, T]:
    """Map entity id -> entity, skipping entities without an id."""
    return {entity.id: entity for entity in entities if getattr(entity, "id", None)}


def missing_ids(ids: Iterable[str], known: Iterable[str]) -> list[str]:
    known = set(known)
    return [entity_id for entity_id in ids if entity_id not in known]


def payloads(entities: Iterable[BaseModel]) -> list[dict[str, Any]]:
    """Editor-shaped dicts for a list of models."""
    return [entity.model_dump(by_alias=True, exclude_none=True) for entity in entities]


def payload(entity: BaseModel | None) -> dict[str, Any] | None:
    if entity is None:
        return None
    return entity.model_dump(by_alias=True, exclude_none=True)


def forward_failure(result: OperationResult, fallback: str) -> OperationResult:
    """Failed skill result built from a failed GraphAPI result."""
    return OperationResult.fail(result.error or fallback, data=result.data)


def errors_result(errors: list[Any], **data: Any) -> OperationResult:
    """Failed result carrying a structured error list (precondition failures)."""
    return OperationResult(
        success=False,
        error=str(errors[0]) if errors and isinstance(errors[0], str) else None,
        data={"errors": errors, **data},
    )


def missing_nodes_result(missing: list[str]) -> OperationResult:
    return OperationResult.fail("One or more nodeIds do not exist", data={"missing": missing})


def handle_index(node: Node) -> dict[str, Handle]:
    """Every handle on a node, keyed by id.

    Older node payloads list ports under ``inputs``/``outputs`` (keyed by
    ``key``, ``id`` or ``name``); those are folded in with their direction.
    """
    index = {handle.id: handle for handle in node.handles if handle.id}
    extras = node.model_extra or {}
    for key, direction in (("inputs", "input"), ("outputs", "output")):
        legacy = extras.get(key)
        if not isinstance(legacy, list):
            continue
        for item in legacy:
            if not isinstance(item, dict):
                continue
            handle_id = item.get("key") or item.get("id") or item.get("name")
            if handle_id:
                index[handle_id] = Handle(
                    id=handle_id,
                    direction=direction,
                    data_type=item.get("dataType") or item.get("type") or "value",
                )
    return index


def directional_handle_ids(node: Node, direction: str) -> list[str]:
    """Ids of handles usable as ``direction`` (bidirectional handles count for both)."""
    return [
        handle.id
        for handle in handle_index(node).values()
        if handle.direction in (direction, "bidirectional")
    ]
