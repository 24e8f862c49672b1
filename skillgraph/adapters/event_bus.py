"""Event bus shared by the engine and its external collaborators."""

import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

logger = logging.getLogger(__name__)

EventHandler = Callable[[Any], None]


class EventBus(Protocol):
    """Protocol for publishing engine events (layout intents, telemetry)."""

    def on(self, event: str, handler: EventHandler) -> None:
        """Register a handler for an event name."""
        ...

    def off(self, event: str, handler: EventHandler) -> None:
        """Remove a handler."""
        ...

    def emit(self, event: str, payload: Any = None) -> None:
        """Publish an event to its handlers."""
        ...


class InMemoryEventBus:
    """dispatches events synchronously to registered handlers."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def on(self, event: str, handler: EventHandler) -> None:
        self._handlers[event].append(handler)

    def off(self, event: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: str, payload: Any = None) -> None:
        for handler in list(self._handlers.get(event, [])):
            try:
                handler(payload)
            except Exception:
                logger.exception("handler for %s failed", event)


@dataclass
class RecordedEvent:
    name: str
    payload: Any


class RecordingEventBus(InMemoryEventBus):
    """stores every emitted event in a list, and still dispatches to handlers."""

    def __init__(self) -> None:
        super().__init__()
        self.events: list[RecordedEvent] = []

    def emit(self, event: str, payload: Any = None) -> None:
        self.events.append(RecordedEvent(name=event, payload=payload))
        super().emit(event, payload)

    def named(self, event: str) -> list[RecordedEvent]:
        """Events recorded under the given name."""
        return [recorded for recorded in self.events if recorded.name == event]

    def clear(self) -> None:
        """Clear all recorded events."""
        self.events.clear()
