"""Utility functions for the skill engine."""

from skillgraph.utils.cloning import clone
from skillgraph.utils.identifiers import ensure_unique_id, generate_id, utc_timestamp
from skillgraph.utils.paths import (
    MISSING,
    delete_path,
    is_writable_path,
    merge_patch,
    read_path,
    set_path,
)

__all__ = [
    "clone",
    "ensure_unique_id",
    "generate_id",
    "utc_timestamp",
    "MISSING",
    "delete_path",
    "is_writable_path",
    "merge_patch",
    "read_path",
    "set_path",
]
