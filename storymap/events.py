"""
Observable notifications for the rendering layer.

The engine never draws anything itself. Components emit the events below and
whoever renders the canvas subscribes to the ones it cares about.
"""

import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

NODE_CREATED = 'node_created'
NODE_UPDATED = 'node_updated'
NODE_REMOVED = 'node_removed'
CONNECTION_CREATED = 'connection_created'
CONNECTION_UPDATED = 'connection_updated'
CONNECTION_REMOVED = 'connection_removed'
CONNECTION_REBOUND = 'connection_rebound'
SELECTION_CHANGED = 'selection_changed'
MARQUEE_CHANGED = 'marquee_changed'
GUIDE_CHANGED = 'guide_changed'
ANNOTATION_OPENED = 'annotation_opened'
ANNOTATION_CLOSED = 'annotation_closed'
VIEW_CHANGED = 'view_changed'
GRAPH_CHANGED = 'graph_changed'

ALL_EVENTS = (
    NODE_CREATED, NODE_UPDATED, NODE_REMOVED,
    CONNECTION_CREATED, CONNECTION_UPDATED, CONNECTION_REMOVED, CONNECTION_REBOUND,
    SELECTION_CHANGED, MARQUEE_CHANGED, GUIDE_CHANGED,
    ANNOTATION_OPENED, ANNOTATION_CLOSED, VIEW_CHANGED, GRAPH_CHANGED,
)


class EventBus:
    """Synchronous publish/subscribe keyed by event name."""

    def __init__(self):
        self._callbacks: Dict[str, List[Callable[[Any], None]]] = {name: [] for name in ALL_EVENTS}

    def on(self, event: str, callback: Callable[[Any], None]) -> None:
        if event not in self._callbacks:
            raise ValueError(f"Unknown event '{event}'. Valid: {ALL_EVENTS}")
        self._callbacks[event].append(callback)

    def off(self, event: str, callback: Callable[[Any], None]) -> None:
        listeners = self._callbacks.get(event, [])
        if callback in listeners:
            listeners.remove(callback)

    def listener_count(self, event: str) -> int:
        return len(self._callbacks.get(event, []))

    def emit(self, event: str, payload: Any = None) -> None:
        # Copy so a callback may unsubscribe itself while we iterate
        for callback in list(self._callbacks.get(event, [])):
            callback(payload)
