"""SDK for driving the engine: sessions and intent dispatch."""

from skillgraph.sdk.dispatcher import (
    CancellationToken,
    IntentDispatcher,
    IntentResult,
    StageResult,
)
from skillgraph.sdk.session import Session, build_session, open_session

__all__ = [
    "CancellationToken",
    "IntentDispatcher",
    "IntentResult",
    "StageResult",
    "Session",
    "build_session",
    "open_session",
]
