"""The in-process session served by the API."""

from skillgraph.adapters.event_bus import RecordingEventBus
from skillgraph.sdk.session import Session, build_session

_session: Session | None = None


def get_session() -> Session:
    """Get or create the app's session (FastAPI dependency)."""
    global _session
    if _session is None:
        _session = build_session(event_bus=RecordingEventBus())
    return _session


def reset_session() -> Session:
    """Drop the current session and start an empty one."""
    global _session
    _session = None
    return get_session()
