"""In-memory graph store with change subscriptions.

The store is an explicit value handed to whoever needs it (the GraphAPI, the
server, tests); there is no module-level graph.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from skillgraph.models.graph import Edge, GraphSnapshot, Group, Node
from skillgraph.utils.cloning import clone

logger = logging.getLogger(__name__)


@dataclass
class GraphChange:
    """what changed in a single committed write."""

    kind: str  # "node", "edge", "group" or "graph"
    action: str  # "create", "update", "delete" or "load"
    ids: list[str] = field(default_factory=list)


Listener = Callable[[GraphChange], None]


class Subscription:
    """Handle returned by GraphStore.subscribe()."""

    def __init__(self, store: GraphStore, listener: Listener) -> None:
        self._store = store
        self._listener = listener

    @property
    def active(self) -> bool:
        return self._listener in self._store._listeners

    def unsubscribe(self) -> None:
        self._store._listeners.discard(self._listener)


class GraphStore:
    """Owns the authoritative nodes, edges and groups.

    Entities are kept in insertion order, keyed by id. Writes go through
    InMemoryGraphAPI, which calls notify() after each committed change.
    """

    def __init__(self, snapshot: GraphSnapshot | None = None) -> None:
        self.nodes: dict[str, Node] = {}
        self.edges: dict[str, Edge] = {}
        self.groups: dict[str, Group] = {}
        self._listeners: set[Listener] = set()
        if snapshot is not None:
            self._replace(snapshot)

    def _replace(self, snapshot: GraphSnapshot) -> None:
        self.nodes = {node.id: clone(node) for node in snapshot.nodes}
        self.edges = {edge.id: clone(edge) for edge in snapshot.edges if edge.id}
        self.groups = {group.id: clone(group) for group in snapshot.groups if group.id}

    def subscribe(self, listener: Listener) -> Subscription:
        self._listeners.add(listener)
        return Subscription(self, listener)

    def notify(self, change: GraphChange) -> None:
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                # a broken listener must not undo a committed write
                logger.exception("graph listener failed for %s %s", change.kind, change.action)

    def snapshot(self) -> GraphSnapshot:
        """Deep copy of the current contents."""
        return GraphSnapshot(
            nodes=[clone(node) for node in self.nodes.values()],
            edges=[clone(edge) for edge in self.edges.values()],
            groups=[clone(group) for group in self.groups.values()],
        )

    def load(self, snapshot: GraphSnapshot) -> None:
        """Replace the whole graph. Not used by skills."""
        self._replace(snapshot)
        self.notify(GraphChange(kind="graph", action="load"))

    def __repr__(self) -> str:
        return (
            f"GraphStore(nodes={len(self.nodes)}, edges={len(self.edges)}, "
            f"groups={len(self.groups)})"
        )
