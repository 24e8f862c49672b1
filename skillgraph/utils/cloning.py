"""Structural clone helpers.

Skills plan against private copies of graph entities. Pydantic models are
copied with ``model_copy(deep=True)``; plain containers with ``copy.deepcopy``.
Neither loses values that are not JSON-safe.
"""

import copy
from typing import Any, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


def clone(value: T) -> T:
    """Deep copy a model, container or scalar."""
    if isinstance(value, BaseModel):
        return value.model_copy(deep=True)
    if isinstance(value, (dict, list, set, tuple)):
        return copy.deepcopy(value)
    return value
