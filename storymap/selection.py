"""
Selection Manager - which nodes are currently selected.

Selection is a set of node ids that is always a subset of the live nodes:
deleting a node drops it from the selection automatically. Marquee
selection always replaces the whole selection, it is never additive.
"""

import logging
from typing import List, Optional, Tuple

from storymap import events as ev
from storymap.graph_store import GraphStore, Node

logger = logging.getLogger(__name__)

Rect = Tuple[float, float, float, float]


def rects_intersect(a: Rect, b: Rect) -> bool:
    """Overlap test for (x0, y0, x1, y1) rectangles. Touching edges count as overlap."""
    return not (b[0] > a[2] or b[2] < a[0] or b[1] > a[3] or b[3] < a[1])


class SelectionManager:
    """Tracks selected node ids and the in-progress marquee rectangle."""

    def __init__(self, store: GraphStore):
        self._store = store
        self._events = store.events
        self._selected: List[str] = []
        self._origin: Optional[Tuple[float, float]] = None
        self._current: Optional[Tuple[float, float]] = None
        self._events.on(ev.NODE_REMOVED, self._on_node_removed)

    # --- Queries ---

    @property
    def selected_ids(self) -> List[str]:
        return list(self._selected)

    def selected_nodes(self) -> List[Node]:
        """Selected nodes in store order."""
        chosen = set(self._selected)
        return [n for n in self._store.nodes() if n.id in chosen]

    def is_selected(self, node_id: str) -> bool:
        return node_id in self._selected

    def __len__(self) -> int:
        return len(self._selected)

    @property
    def is_marquee_active(self) -> bool:
        return self._origin is not None

    @property
    def marquee_rect(self) -> Optional[Rect]:
        """Current marquee as (x0, y0, x1, y1), whichever direction it was dragged."""
        if self._origin is None:
            return None
        current = self._current or self._origin
        return (
            min(self._origin[0], current[0]),
            min(self._origin[1], current[1]),
            max(self._origin[0], current[0]),
            max(self._origin[1], current[1]),
        )

    # --- Marquee ---

    def start_marquee(self, world_point: Tuple[float, float]) -> None:
        self._origin = (world_point[0], world_point[1])
        self._current = self._origin
        self._events.emit(ev.MARQUEE_CHANGED, self.marquee_rect)

    def update_marquee(self, world_point: Tuple[float, float]) -> None:
        if self._origin is None:
            return
        self._current = (world_point[0], world_point[1])
        self._events.emit(ev.MARQUEE_CHANGED, self.marquee_rect)

    def finish_marquee(self) -> List[str]:
        """Replace the selection with every node whose box overlaps the marquee."""
        rect = self.marquee_rect
        if rect is None:
            return self.selected_ids
        self._origin = None
        self._current = None
        self._events.emit(ev.MARQUEE_CHANGED, None)

        hits = [n.id for n in self._store.nodes() if rects_intersect(rect, n.bounds)]
        logger.debug(f"Marquee {rect} selected {len(hits)} node(s)")
        self._replace(hits)
        return self.selected_ids

    def cancel_marquee(self) -> None:
        if self._origin is None:
            return
        self._origin = None
        self._current = None
        self._events.emit(ev.MARQUEE_CHANGED, None)

    # --- Whole-selection operations ---

    def select_all(self) -> None:
        self._replace(self._store.node_ids())

    def set_selection(self, node_ids: List[str]) -> None:
        self._replace([nid for nid in node_ids if self._store.has_node(nid)])

    def clear(self) -> None:
        self._replace([])

    def _replace(self, node_ids: List[str]) -> None:
        if node_ids == self._selected:
            return
        self._selected = list(dict.fromkeys(node_ids))
        self._events.emit(ev.SELECTION_CHANGED, self.selected_ids)

    def _on_node_removed(self, node: Node) -> None:
        if node.id in self._selected:
            self._selected.remove(node.id)
            self._events.emit(ev.SELECTION_CHANGED, self.selected_ids)
