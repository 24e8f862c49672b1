"""API routes for reading and loading the session graph."""

from typing import Any

from fastapi import APIRouter, Depends

from server.state import get_session
from skillgraph.models.graph import GraphSnapshot
from skillgraph.sdk.session import Session

router = APIRouter()


@router.get("/graph")
def get_graph(session: Session = Depends(get_session)) -> dict[str, Any]:
    """get the current graph in the editor's JSON shape."""
    return session.store.snapshot().to_payload()


@router.put("/graph")
def load_graph(snapshot: GraphSnapshot, session: Session = Depends(get_session)) -> dict[str, Any]:
    """replace the session graph.

    This is the only whole-graph write; skills never replace the graph.
    """
    session.store.load(snapshot)
    return {
        "status": "ok",
        "nodes": len(session.store.nodes),
        "edges": len(session.store.edges),
        "groups": len(session.store.groups),
    }
