"""Shared fixtures: a fresh session per test and helpers to seed and run it."""

import asyncio

import pytest

from skillgraph.adapters.event_bus import RecordingEventBus
from skillgraph.models.graph import GraphSnapshot
from skillgraph.sdk.session import build_session


@pytest.fixture
def bus():
    return RecordingEventBus()


@pytest.fixture
def session(bus):
    return build_session(event_bus=bus)


@pytest.fixture
def graph_api(session):
    return session.graph_api


@pytest.fixture
def make_node():
    """Factory for editor-shaped node dicts with a position and size."""

    def factory(node_id, x=0, y=0, width=100, height=100, **extra):
        return {
            "id": node_id,
            "type": extra.pop("type", "default"),
            "label": extra.pop("label", node_id),
            "position": {"x": x, "y": y},
            "width": width,
            "height": height,
            **extra,
        }

    return factory


@pytest.fixture
def seed(session):
    """Load nodes/edges/groups (dicts) into the session graph."""

    def load(nodes=(), edges=(), groups=()):
        session.store.load(GraphSnapshot.model_validate({
            "nodes": list(nodes),
            "edges": list(edges),
            "groups": list(groups),
        }))

    return load


@pytest.fixture
def run(session):
    """Execute a skill synchronously and return its OperationResult."""

    def execute(skill_id, params=None, **extra):
        return asyncio.run(session.registry.execute_skill(skill_id, params, **extra))

    return execute


@pytest.fixture
def manifest_node():
    """Factory for a manifest node dict with the given mutation block."""

    def factory(mutation=None, kind="graph", node_id="manifest"):
        data = {
            "identity": {
                "graphId": "g-1",
                "name": "Test Graph",
                "version": "0.1.0",
                "createdAt": "2024-01-01T00:00:00Z",
                "updatedAt": "2024-01-01T00:00:00Z",
            },
            "intent": {"kind": kind, "scope": "mixed"},
            "dependencies": {
                "nodeTypes": ["manifest", "default"],
                "portContracts": ["core"],
                "skills": [],
                "schemaVersions": {"nodes": ">=1.0.0"},
            },
            "authority": {
                "mutation": mutation if mutation is not None else {
                    "allowCreate": True,
                    "allowUpdate": True,
                    "allowDelete": True,
                    "appendOnly": False,
                },
            },
        }
        return {
            "id": node_id,
            "type": "manifest",
            "label": "Manifest",
            "position": {"x": -400, "y": -400},
            "width": 100,
            "height": 100,
            "data": data,
        }

    return factory
