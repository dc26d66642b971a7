"""
Binding allocation for connections between the same pair of nodes.

Up to three connections may join a pair of nodes. Each one attaches to a
fixed binding point on both node footprints, chosen purely by how many
connections the pair currently has and their insertion order:

    1 connection  -> center
    2 connections -> left, right
    3 connections -> left, center, right

Footprints come from the rendered label, so a rename moves the points.
"""

from typing import Dict, List, Sequence, Tuple

from storymap.constants import (
    BINDING_INSET,
    LABEL_CHAR_WIDTH,
    LABEL_FONT_SIZE,
    LABEL_PADDING,
    PLACEHOLDER_NAME,
)

NONE = 'none'
LEFT = 'left'
CENTER = 'center'
RIGHT = 'right'

BINDINGS = (NONE, LEFT, CENTER, RIGHT)

BINDING_LAYOUTS: Dict[int, Tuple[str, ...]] = {
    1: (CENTER,),
    2: (LEFT, RIGHT),
    3: (LEFT, CENTER, RIGHT),
}

MAX_CONNECTIONS_PER_PAIR = max(BINDING_LAYOUTS)


def measure_label(name: str) -> Tuple[float, float]:
    """Width and height of a node box for the given name, padding included."""
    text = name or PLACEHOLDER_NAME
    lines = text.split('\n')
    longest = max(len(line) for line in lines)
    width = longest * LABEL_CHAR_WIDTH + 2 * LABEL_PADDING
    height = len(lines) * LABEL_FONT_SIZE + 2 * LABEL_PADDING
    return (width, height)


def allocate(connections: Sequence) -> List:
    """
    Assign start/end bindings to the connections of one node pair.

    `connections` must be in insertion order. Returns the connections whose
    bindings actually changed. Running it again on the same list changes
    nothing.
    """
    layout = BINDING_LAYOUTS.get(len(connections))
    if layout is None:
        if connections:
            raise ValueError(f"Cannot bind {len(connections)} connections between one pair")
        return []

    changed = []
    for connection, binding in zip(connections, layout):
        if connection.start_binding != binding or connection.end_binding != binding:
            connection.start_binding = binding
            connection.end_binding = binding
            changed.append(connection)
    return changed


def binding_points(node) -> Dict[str, Tuple[float, float]]:
    """World coordinates of the three binding points of a node."""
    mid_y = node.y + node.height / 2
    return {
        LEFT: (node.x + BINDING_INSET, mid_y),
        CENTER: (node.x + node.width / 2, mid_y),
        RIGHT: (node.x + node.width - BINDING_INSET, mid_y),
    }


def binding_point(node, binding: str) -> Tuple[float, float]:
    """A single binding point. Unbound ends fall back to the centre."""
    points = binding_points(node)
    return points.get(binding, points[CENTER])
