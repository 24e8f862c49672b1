"""Adapters to the engine's external collaborators."""

from skillgraph.adapters.event_bus import (
    EventBus,
    InMemoryEventBus,
    RecordedEvent,
    RecordingEventBus,
)
from skillgraph.adapters.script_runner import (
    HttpScriptRunner,
    ScriptRunner,
    runner_from_settings,
)

__all__ = [
    "EventBus",
    "InMemoryEventBus",
    "RecordedEvent",
    "RecordingEventBus",
    "HttpScriptRunner",
    "ScriptRunner",
    "runner_from_settings",
]
