"""Graph storage: the store value and the GraphAPI over it."""

from skillgraph.store.graph_api import GraphAPI, InMemoryGraphAPI, apply_patch
from skillgraph.store.graph_store import GraphChange, GraphStore, Subscription

__all__ = [
    "GraphAPI",
    "GraphChange",
    "GraphStore",
    "InMemoryGraphAPI",
    "Subscription",
    "apply_patch",
]
