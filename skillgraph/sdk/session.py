"""Session SDK - one entry point that wires the engine together.

Example:
    from skillgraph.sdk import open_session

    with open_session() as session:
        result = asyncio.run(session.registry.execute_skill(
            "struct.createNodes", {"nodes": [{"id": "a"}]}
        ))
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass

from skillgraph.adapters.event_bus import EventBus, InMemoryEventBus
from skillgraph.adapters.script_runner import ScriptRunner, runner_from_settings
from skillgraph.models.graph import GraphSnapshot
from skillgraph.registry import SkillRegistry, create_registry
from skillgraph.sdk.dispatcher import IntentDispatcher
from skillgraph.store.graph_api import InMemoryGraphAPI
from skillgraph.store.graph_store import GraphStore


@dataclass
class Session:
    """Everything needed to run skills against one graph."""

    store: GraphStore
    graph_api: InMemoryGraphAPI
    event_bus: EventBus
    registry: SkillRegistry
    dispatcher: IntentDispatcher


def build_session(
    snapshot: GraphSnapshot | dict | None = None,
    event_bus: EventBus | None = None,
    script_runner: ScriptRunner | None = None,
) -> Session:
    """Create a store, GraphAPI, registry and dispatcher for one graph.

    Args:
        snapshot: Initial graph contents (empty when not provided)
        event_bus: Bus for layout intents and telemetry (in-memory when not provided)
        script_runner: Runner for automation.scriptExecution (from settings when not provided)
    """
    if isinstance(snapshot, dict):
        snapshot = GraphSnapshot.model_validate(snapshot)
    store = GraphStore(snapshot)
    graph_api = InMemoryGraphAPI(store)
    bus = event_bus if event_bus is not None else InMemoryEventBus()
    runner = script_runner if script_runner is not None else runner_from_settings()
    registry = create_registry(graph_api, event_bus=bus, script_runner=runner)
    return Session(
        store=store,
        graph_api=graph_api,
        event_bus=bus,
        registry=registry,
        dispatcher=IntentDispatcher(registry, bus),
    )


@contextmanager
def open_session(
    snapshot: GraphSnapshot | dict | None = None,
    event_bus: EventBus | None = None,
    script_runner: ScriptRunner | None = None,
) -> Generator[Session, None, None]:
    """Open a session; any in-flight intent is cancelled on exit.

    Yields:
        Session with the store, GraphAPI, event bus, registry and dispatcher
    """
    session = build_session(snapshot, event_bus=event_bus, script_runner=script_runner)
    try:
        yield session
    finally:
        session.dispatcher.cancel()
