"""
Connection Creator - the two-click gesture that links a pair of nodes.

States:
    idle                      nothing in progress
    awaiting_second_node      a start node is chosen; a guide line runs from
                              its centre to the pointer

cancel() is the only way out of awaiting_second_node, so the guide line and
pointer tracking are always torn down together. The machine knows nothing
about UI events: callers feed it node clicks and world-space pointer moves.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from storymap import events as ev
from storymap.graph_store import Connection, GraphStore, Node

logger = logging.getLogger(__name__)

IDLE = 'idle'
AWAITING_SECOND_NODE = 'awaiting_second_node'


@dataclass(frozen=True)
class ConnectorState:
    """Immutable snapshot of the connection gesture."""
    name: str = IDLE
    start_node_id: Optional[str] = None
    guide_start: Optional[Tuple[float, float]] = None
    guide_end: Optional[Tuple[float, float]] = None

    @property
    def guide(self) -> Optional[Tuple[Tuple[float, float], Tuple[float, float]]]:
        if self.guide_start is None:
            return None
        return (self.guide_start, self.guide_end or self.guide_start)


class ConnectionCreator:
    """Finite state machine for creating connections by clicking two nodes."""

    def __init__(self, store: GraphStore):
        self._store = store
        self._events = store.events
        self._state = ConnectorState()
        self._on_state_change: Optional[Callable[[ConnectorState], None]] = None
        self._events.on(ev.NODE_REMOVED, self._on_node_removed)

    @property
    def state(self) -> ConnectorState:
        return self._state

    @property
    def is_awaiting(self) -> bool:
        return self._state.name == AWAITING_SECOND_NODE

    @property
    def is_tracking_pointer(self) -> bool:
        """True while pointer moves should be forwarded to move_pointer()."""
        return self.is_awaiting

    def set_on_state_change(self, callback: Callable[[ConnectorState], None]):
        self._on_state_change = callback

    # --- enter / exit / transition ---

    def enter(self, node_id: str) -> ConnectorState:
        """Start the gesture at node_id (idle -> awaiting_second_node)."""
        node = self._require_node(node_id)
        center = node.center
        self._set_state(ConnectorState(
            name=AWAITING_SECOND_NODE,
            start_node_id=node_id,
            guide_start=center,
            guide_end=center,
        ))
        logger.debug(f"Connection gesture started at {node_id[:8]}")
        return self._state

    def cancel(self) -> ConnectorState:
        """Leave awaiting_second_node, dropping the guide line. Safe to call when idle."""
        if self._state.name != IDLE:
            self._set_state(ConnectorState())
            logger.debug("Connection gesture cancelled")
        return self._state

    exit = cancel

    def click_node(self, node_id: str) -> Optional[Connection]:
        """
        Feed a qualifying click on a node.

        Returns the new connection when the gesture completes, None otherwise.
        Store errors (e.g. TooManyConnectionsError) propagate after the
        gesture has been cancelled.
        """
        if not self.is_awaiting:
            self.enter(node_id)
            return None
        return self.transition(node_id)

    def transition(self, target_node_id: str) -> Optional[Connection]:
        start_node_id = self._state.start_node_id
        if target_node_id == start_node_id:
            self.cancel()
            return None
        try:
            return self._store.create_connection(start_node_id, target_node_id)
        finally:
            self.cancel()

    def move_pointer(self, world_point: Tuple[float, float]) -> ConnectorState:
        if not self.is_tracking_pointer:
            return self._state
        self._set_state(ConnectorState(
            name=AWAITING_SECOND_NODE,
            start_node_id=self._state.start_node_id,
            guide_start=self._state.guide_start,
            guide_end=(world_point[0], world_point[1]),
        ))
        return self._state

    # --- internals ---

    def _require_node(self, node_id: str) -> Node:
        node = self._store.get_node(node_id)
        if node is None:
            raise KeyError(f"Unknown node id: {node_id}")
        return node

    def _set_state(self, state: ConnectorState) -> None:
        self._state = state
        self._events.emit(ev.GUIDE_CHANGED, state.guide)
        if self._on_state_change:
            self._on_state_change(state)

    def _on_node_removed(self, node: Node) -> None:
        # Losing the start node means losing the gesture's context
        if self._state.start_node_id == node.id:
            self.cancel()
