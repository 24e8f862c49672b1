"""Mutation plans shared by the transformation skills.

A skill first computes the whole plan against private copies of the graph,
then applies it in a fixed order:

    node creates -> edge creates -> node updates -> edge updates
    -> node deletes -> group membership adds

so redirected edges always see their new endpoints already created, and edges
retargeted away from a node survive that node's deletion. Application stops at
the first failing call; earlier writes are kept.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from skillgraph.models.graph import Node
from skillgraph.models.result import OperationResult
from skillgraph.store.graph_api import GraphAPI

logger = logging.getLogger(__name__)


class PlanApplyError(Exception):
    """A GraphAPI call failed while applying a plan."""


@dataclass
class MutationPlan:
    node_creates: list[Node] = field(default_factory=list)
    edge_creates: list[dict[str, Any]] = field(default_factory=list)
    node_updates: dict[str, dict[str, Any]] = field(default_factory=dict)
    edge_updates: dict[str, dict[str, Any]] = field(default_factory=dict)
    node_deletes: list[str] = field(default_factory=list)
    group_adds: list[tuple[str, list[str]]] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    summary: dict[str, Any] = field(default_factory=dict)

    def update_node(self, node_id: str, patch: dict[str, Any]) -> None:
        # later patches replace earlier values key by key
        self.node_updates.setdefault(node_id, {}).update(patch)

    def update_edge(self, edge_id: str, patch: dict[str, Any]) -> None:
        self.edge_updates.setdefault(edge_id, {}).update(patch)

    def delete_node(self, node_id: str) -> None:
        if node_id not in self.node_deletes:
            self.node_deletes.append(node_id)

    def add_to_group(self, group_id: str, node_ids: list[str]) -> None:
        self.group_adds.append((group_id, list(node_ids)))

    def apply(self, graph_api: GraphAPI, dry_run: bool = False) -> None:
        """Apply (or, on a dry run, only summarize) the plan.

        Raises PlanApplyError on the first failed call; ``summary`` then
        describes what was applied before it.
        """
        if self.node_creates:
            ids = [node.id for node in self.node_creates]
            if not dry_run:
                self._check(graph_api.create_nodes(self.node_creates), "createNodes failed")
            self.summary["createdNodes"] = ids

        if self.edge_creates:
            if not dry_run:
                self._check(graph_api.create_edges(self.edge_creates), "createEdges failed")
            self.summary["createdEdges"] = [edge["id"] for edge in self.edge_creates]

        if self.node_updates:
            self.summary["updatedNodes"] = []
            for node_id, patch in self.node_updates.items():
                if not dry_run:
                    self._check(graph_api.update_node(node_id, patch), f"Failed to update node {node_id}")
                self.summary["updatedNodes"].append(node_id)

        if self.edge_updates:
            self.summary["updatedEdges"] = []
            for edge_id, patch in self.edge_updates.items():
                if not dry_run:
                    self._check(graph_api.update_edge(edge_id, patch), f"Failed to update edge {edge_id}")
                self.summary["updatedEdges"].append(edge_id)

        if self.node_deletes:
            self.summary["deletedNodes"] = []
            for node_id in self.node_deletes:
                if not dry_run:
                    self._check(graph_api.delete_node(node_id), f"Failed to delete node {node_id}")
                self.summary["deletedNodes"].append(node_id)

        if self.group_adds:
            self.summary["groupAdds"] = []
            for group_id, node_ids in self.group_adds:
                if not dry_run:
                    self._check(
                        graph_api.add_nodes_to_group(group_id, node_ids),
                        f"Failed to add nodes to group {group_id}",
                    )
                self.summary["groupAdds"].append({"groupId": group_id, "nodeIds": node_ids})

    @staticmethod
    def _check(result: OperationResult, fallback: str) -> None:
        if not result.success:
            raise PlanApplyError(result.error or fallback)

    def run(self, graph_api: GraphAPI, dry_run: bool = False) -> OperationResult:
        """Apply the plan and wrap the outcome as a skill result."""
        try:
            self.apply(graph_api, dry_run)
        except PlanApplyError as e:
            logger.warning("mutation plan stopped: %s", e)
            return OperationResult(
                success=False,
                error=str(e),
                data={"errors": [str(e)], "summary": self.summary},
                warnings=self.warnings,
            )
        return OperationResult.ok(self.summary, self.warnings)
