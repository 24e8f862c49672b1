"""Rectangle helpers used by grouping and the layout skills."""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass

from skillgraph.models.graph import Bounds, Node, Position

DEFAULT_NODE_WIDTH = 160
DEFAULT_NODE_HEIGHT = 80
DEFAULT_GROUP_PADDING = 32


@dataclass
class Rect:
    x: float
    y: float
    width: float
    height: float
    id: str | None = None

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def overlaps(self, other: Rect, padding: float = 1.0) -> bool:
        """True when the rectangles intersect once padded by ``padding``."""
        return not (
            self.right + padding <= other.x
            or self.x >= other.right + padding
            or self.bottom + padding <= other.y
            or self.y >= other.bottom + padding
        )


def _finite(value, fallback: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    return number if math.isfinite(number) else fallback


def node_size(
    node: Node,
    default_width: float = DEFAULT_NODE_WIDTH,
    default_height: float = DEFAULT_NODE_HEIGHT,
) -> tuple[float, float]:
    width = node.width if node.width is not None else node.data.get("width")
    height = node.height if node.height is not None else node.data.get("height")
    return _finite(width, default_width), _finite(height, default_height)


def node_position(node: Node) -> Position:
    if node.position is None:
        return Position(x=0, y=0)
    return Position(x=_finite(node.position.x, 0.0), y=_finite(node.position.y, 0.0))


def node_rect(
    node: Node,
    position: Position | None = None,
    default_width: float = DEFAULT_NODE_WIDTH,
    default_height: float = DEFAULT_NODE_HEIGHT,
) -> Rect:
    pos = position or node_position(node)
    width, height = node_size(node, default_width, default_height)
    return Rect(x=pos.x, y=pos.y, width=width, height=height, id=node.id)


def bounds_rect(bounds: Bounds, rect_id: str | None = None) -> Rect:
    return Rect(
        x=_finite(bounds.x, 0.0),
        y=_finite(bounds.y, 0.0),
        width=_finite(bounds.width, 0.0),
        height=_finite(bounds.height, 0.0),
        id=rect_id,
    )


def compute_bounds(nodes: Iterable[Node], padding: float = DEFAULT_GROUP_PADDING) -> Bounds:
    """Padded bounding box of the given nodes; nodes without a position are skipped."""
    rects = [node_rect(node) for node in nodes if node is not None and node.position is not None]
    if not rects:
        return Bounds()
    pad = _finite(padding, DEFAULT_GROUP_PADDING)
    min_x = min(rect.x for rect in rects)
    min_y = min(rect.y for rect in rects)
    max_x = max(rect.right for rect in rects)
    max_y = max(rect.bottom for rect in rects)
    return Bounds(
        x=min_x - pad,
        y=min_y - pad,
        width=max(0.0, max_x - min_x + pad * 2),
        height=max(0.0, max_y - min_y + pad * 2),
    )
