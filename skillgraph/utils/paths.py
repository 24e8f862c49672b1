"""Dotted-path access into nested node data.

Paths look like ``meta.text`` or ``items.0``. On reads, ``*`` selects every
element of a list: ``items.*`` is the list itself and ``items.*.name`` is the
list of ``name`` values of its elements.
"""

from typing import Any

from skillgraph.utils.cloning import clone


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


# returned by read_path when the path does not resolve (None is a valid value)
MISSING: Any = _Missing()


def _split(path: str) -> list[str]:
    return [segment for segment in path.split(".") if segment != ""]


def _step(current: Any, key: str) -> Any:
    if isinstance(current, dict):
        return current.get(key, MISSING)
    if isinstance(current, list) and key.lstrip("-").isdigit():
        index = int(key)
        if -len(current) <= index < len(current):
            return current[index]
    return MISSING


def read_path(obj: Any, path: str | None) -> Any:
    """Read the value at ``path``; return MISSING when it does not resolve."""
    if not isinstance(obj, (dict, list)):
        return MISSING
    if not path:
        return obj
    segments = _split(path)
    current = obj
    for position, key in enumerate(segments):
        if current is MISSING or current is None:
            return MISSING
        if key == "*":
            if not isinstance(current, list):
                return MISSING
            rest = ".".join(segments[position + 1:])
            if not rest:
                return current
            values = [read_path(item, rest) for item in current]
            return [value for value in values if value is not MISSING]
        current = _step(current, key)
    return current


def _write_segments(path: str) -> list[str]:
    segments = _split(path)
    # ``items.*`` names the list itself
    while segments and segments[-1] == "*":
        segments.pop()
    return segments


def is_writable_path(path: str | None) -> bool:
    """True when ``set_path`` can write at ``path`` (no wildcard before the end)."""
    if not path:
        return False
    segments = _write_segments(path)
    return bool(segments) and "*" not in segments


def set_path(obj: dict, path: str, value: Any) -> None:
    """Write ``value`` at ``path``, creating intermediate dicts as needed.

    A trailing ``*`` is dropped. Paths that are not writable are ignored.
    """
    if not is_writable_path(path):
        return
    segments = _write_segments(path)
    current: Any = obj
    for key in segments[:-1]:
        if isinstance(current, list):
            if not (key.isdigit() and int(key) < len(current)):
                return
            nxt = current[int(key)]
            if not isinstance(nxt, (dict, list)):
                nxt = {}
                current[int(key)] = nxt
            current = nxt
            continue
        nxt = current.get(key)
        if not isinstance(nxt, (dict, list)):
            nxt = {}
            current[key] = nxt
        current = nxt
    last = segments[-1]
    if isinstance(current, list) and last.isdigit() and int(last) < len(current):
        current[int(last)] = value
    elif isinstance(current, dict):
        current[last] = value


def delete_path(obj: Any, path: str | None) -> bool:
    """Remove the value at ``path``. Returns True if something was removed."""
    if not isinstance(obj, (dict, list)) or not path:
        return False
    segments = _split(path)
    if not segments:
        return False
    current = obj
    for key in segments[:-1]:
        current = _step(current, key)
        if not isinstance(current, (dict, list)):
            return False
    last = segments[-1]
    if isinstance(current, dict) and last in current:
        del current[last]
        return True
    if isinstance(current, list) and last.isdigit() and int(last) < len(current):
        del current[int(last)]
        return True
    return False


def merge_patch(target: dict | None, patch: dict | None) -> dict:
    """Deep-merge ``patch`` into a copy of ``target``. Lists and scalars replace."""
    result = clone(target) if isinstance(target, dict) else {}
    for key, value in (patch or {}).items():
        if isinstance(value, dict):
            result[key] = merge_patch(result.get(key), value)
        else:
            result[key] = clone(value)
    return result
