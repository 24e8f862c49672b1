"""ID generation and timestamp utilities."""

import uuid
from datetime import datetime, timezone


def generate_id() -> str:
    """Generate a unique entity ID (UUID4)."""
    return str(uuid.uuid4())


def ensure_unique_id(existing_ids: set[str], proposed: str | None) -> str:
    """Return ``proposed`` if it is free, otherwise a fresh UUID not in ``existing_ids``.

    The caller is responsible for adding the returned id to ``existing_ids``.
    """
    if proposed and proposed not in existing_ids:
        return proposed
    candidate = generate_id()
    while candidate in existing_ids:
        candidate = generate_id()
    return candidate


def utc_timestamp() -> str:
    """Generate an ISO8601 UTC timestamp."""
    return datetime.now(timezone.utc).isoformat()
