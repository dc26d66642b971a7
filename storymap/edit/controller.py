"""
Editor Session - single source of truth for one canvas editing session.

This controller owns the graph store and every interaction component and
coordinates between:
- Pointer/keyboard events from the UI (already reduced to plain values)
- The transient gestures (marquee, connection creation, sweep delete)
- Graph mutations and their persistence

It is also the error boundary: store errors raised by a user action are
caught here, recorded, and handed to the on_error callback. Nothing raised
by the engine for a rejected action reaches the UI layer.

Gestures are mutually exclusive: while one of marquee, connect or
sweep-delete is active the others cannot start.
"""

import logging
import math
from contextlib import ExitStack, contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from storymap import events as ev
from storymap.clipboard import Clipboard
from storymap.codec import export_document, load_document, parse_document
from storymap.config import DEFAULTS
from storymap.constants import (
    DELETE_KEYS,
    KEY_CANCEL,
    MODE_CONNECT,
    MODE_MARQUEE,
    MODE_SWEEP_DELETE,
    STAGE_HEIGHT,
    STAGE_WIDTH,
)
from storymap.edit.connector import ConnectionCreator
from storymap.errors import StoryMapError
from storymap.events import EventBus
from storymap.graph_store import Connection, GraphStore, Node
from storymap.persistence import CanvasPersistence
from storymap.selection import SelectionManager
from storymap.storage.protocol import KeyValueStore
from storymap.viewport import Viewport

logger = logging.getLogger(__name__)

Point = Tuple[float, float]

# Distance in world units within which a click hits a connection line
CONNECTION_HIT_TOLERANCE = 6.0

BUTTON_LEFT = 0
BUTTON_RIGHT = 2


class EditorSession:
    """Owns the graph and routes user gestures to the engine components."""

    def __init__(self, kv_store: Optional[KeyValueStore] = None,
                 settings: Optional[Dict[str, Any]] = None,
                 on_error: Optional[Callable[[str, str], None]] = None,
                 stage_size: Point = (STAGE_WIDTH, STAGE_HEIGHT)):
        self.events = EventBus()
        self.store = GraphStore(self.events)
        self.selection = SelectionManager(self.store)
        self.connector = ConnectionCreator(self.store)
        self.clipboard = Clipboard()
        self.viewport = Viewport()
        self.persistence: Optional[CanvasPersistence] = None
        if kv_store is not None:
            self.persistence = CanvasPersistence(kv_store, self.store, self.viewport)

        self.settings: Dict[str, Any] = {**DEFAULTS, **(settings or {})}
        self.stage_size = stage_size
        self.pointer_world: Point = (0.0, 0.0)
        self.current_node_id: Optional[str] = None
        self.open_annotations: List[str] = []

        self._on_error = on_error
        self._errors: List[str] = []
        self._sweeping = False
        self._swept: set = set()
        self._pan_origin: Optional[Point] = None
        self._drag: Optional[Dict[str, Any]] = None
        self._drag_stack: Optional[ExitStack] = None
        self._swallow_click = False

        self.events.on(ev.CONNECTION_REMOVED, self._on_connection_removed)
        self.events.on(ev.NODE_REMOVED, self._on_node_removed)

    # --- Lifecycle ---

    def load(self) -> None:
        """Restore the stored graph and view (no-op without a key-value store)."""
        if self.persistence is not None:
            self.persistence.load_all()

    def close(self) -> None:
        """Tear the session down: drop gestures and stop autosaving."""
        self.cancel()
        if self.persistence is not None:
            self.persistence.disable_autosave()

    # --- Error surfacing ---

    @property
    def errors(self) -> List[str]:
        return list(self._errors)

    def _notify_error(self, title: str, message: str) -> None:
        error_msg = f"{title}: {message}"
        self._errors.append(error_msg)
        logger.warning(error_msg)
        if self._on_error:
            self._on_error(title, message)

    @contextmanager
    def _surface_errors(self, title: str) -> Iterator[None]:
        try:
            yield
        except StoryMapError as e:
            self._notify_error(title, str(e))

    # --- Gesture modes ---

    @property
    def mode(self) -> Optional[str]:
        if self.connector.is_awaiting:
            return MODE_CONNECT
        if self.selection.is_marquee_active:
            return MODE_MARQUEE
        if self._sweeping:
            return MODE_SWEEP_DELETE
        return None

    @property
    def is_busy(self) -> bool:
        """True while any gesture, node drag or pan is in progress."""
        return self.mode is not None or self._drag is not None or self._pan_origin is not None

    def _can_enter(self, mode: str) -> bool:
        active = self.mode
        if active is None or active == mode:
            return True
        logger.debug(f"Ignoring {mode} gesture while {active} is active")
        return False

    def cancel(self) -> None:
        """Cancel key: leave every transient mode. The graph itself is untouched."""
        self.connector.cancel()
        self.selection.cancel_marquee()
        self._end_sweep()
        self.close_all_annotations()
        self.selection.clear()

    # --- Pointer input (screen coordinates) ---

    def pointer_down(self, screen: Point, button: int = BUTTON_LEFT,
                     ctrl: bool = False, shift: bool = False) -> None:
        world = self._track(screen)
        self._swallow_click = False
        if button == BUTTON_RIGHT:
            # Nodes are swept on move, a plain right click deletes nothing
            self.begin_sweep_delete()
            return
        if button != BUTTON_LEFT:
            return

        node = self.store.node_at(world)
        if node is None:
            if shift:
                self.begin_marquee(world)
            elif self.mode is None:
                self._pan_origin = screen
            return
        # Shift is reserved for the marquee, it never drags a node
        if not ctrl and not shift and self.mode is None:
            self._begin_drag(node, world)

    def pointer_move(self, screen: Point, buttons: Optional[int] = None) -> None:
        """
        Pointer moved to `screen`.

        `buttons` is the DOM bitmask of pressed buttons, if known. Zero means
        the release happened outside the canvas, so any press-and-hold
        gesture still running is ended here instead of by pointer_up.
        """
        world = self._track(screen)
        if buttons == 0 and self._holding_button:
            logger.debug("Button released outside the canvas, ending gesture")
            self._release_left()
            self._end_sweep()
            return
        if self._pan_origin is not None:
            self.viewport.pan_by(screen[0] - self._pan_origin[0], screen[1] - self._pan_origin[1])
            self._pan_origin = screen
            return
        if self._drag is not None:
            dx, dy = self._drag['offset']
            self.store.move_node(self._drag['node_id'], (world[0] - dx, world[1] - dy))
            return
        if self.selection.is_marquee_active:
            self.selection.update_marquee(world)
        elif self.connector.is_tracking_pointer:
            self.connector.move_pointer(world)
        elif self._sweeping:
            self._sweep_at(world)

    def pointer_up(self, screen: Point, button: int = BUTTON_LEFT) -> None:
        self._track(screen)
        if button == BUTTON_RIGHT:
            self._end_sweep()
            return
        if self._release_left():
            # The browser follows this mouseup with a click on the empty canvas
            self._swallow_click = True

    @property
    def _holding_button(self) -> bool:
        return (self._pan_origin is not None or self._drag is not None
                or self._sweeping or self.selection.is_marquee_active)

    def _release_left(self) -> bool:
        """End pan, drag and marquee. Returns True if a marquee was finished."""
        if self._pan_origin is not None:
            self._pan_origin = None
            self.events.emit(ev.VIEW_CHANGED, self.viewport)
        if self._drag is not None:
            self._end_drag()
        if self.selection.is_marquee_active:
            self.selection.finish_marquee()
            return True
        return False

    def click(self, screen: Point, ctrl: bool = False) -> Optional[Any]:
        """
        A completed click.

        On a node: Ctrl (or an ongoing connection gesture) drives the
        connection state machine, otherwise the node is shown in the info
        panel. On a connection line: opens its annotation. On empty canvas:
        Ctrl adds a node.
        """
        world = self._track(screen)
        if self._swallow_click:
            self._swallow_click = False
            return None
        node = self.store.node_at(world)
        if node is not None:
            if ctrl or self.connector.is_awaiting:
                return self.connect_click(node.id)
            self.current_node_id = node.id
            return node

        connection = self.connection_at(world)
        if connection is not None:
            self.open_annotation(connection.id)
            return connection

        if ctrl:
            return self.add_node(world)
        if self.settings.get('close_objects_on_canvas_click'):
            self.close_all_annotations()
            self.selection.clear()
        return None

    def wheel(self, screen: Point, delta_y: float) -> float:
        """Zoom one step around the pointer."""
        scale = self.viewport.zoom_at(screen, delta_y)
        self.events.emit(ev.VIEW_CHANGED, self.viewport)
        return scale

    def _track(self, screen: Point) -> Point:
        self.pointer_world = self.viewport.to_world(screen)
        return self.pointer_world

    # --- Node drag ---

    def _begin_drag(self, node: Node, world: Point) -> None:
        # A drag whose mouseup never arrived must release its batch first
        self._end_drag()
        self._drag = {'node_id': node.id, 'offset': (world[0] - node.x, world[1] - node.y)}
        # One graph_changed (and one save) per drag, not per move
        self._drag_stack = ExitStack()
        self._drag_stack.enter_context(self.store.batch())

    def _end_drag(self) -> None:
        self._drag = None
        if self._drag_stack is not None:
            stack, self._drag_stack = self._drag_stack, None
            stack.close()

    # --- Marquee ---

    def begin_marquee(self, world: Point) -> bool:
        if not self._can_enter(MODE_MARQUEE):
            return False
        self.selection.start_marquee(world)
        return True

    # --- Connection gesture ---

    def connect_click(self, node_id: str) -> Optional[Connection]:
        if not self._can_enter(MODE_CONNECT):
            return None
        with self._surface_errors("Connection"):
            return self.connector.click_node(node_id)
        return None

    def connection_at(self, world: Point,
                      tolerance: float = CONNECTION_HIT_TOLERANCE) -> Optional[Connection]:
        closest = None
        closest_dist = float('inf')
        for connection in self.store.connections():
            start, end = self.store.endpoints(connection)
            dist, _t = self._point_to_line_distance(world, start, end)
            if dist <= tolerance and dist < closest_dist:
                closest_dist = dist
                closest = connection
        return closest

    def _point_to_line_distance(self, point: Point, line_start: Point,
                                line_end: Point) -> Tuple[float, float]:
        px, py = point
        x1, y1 = line_start
        x2, y2 = line_end
        dx, dy = x2 - x1, y2 - y1

        if dx == 0 and dy == 0:
            return math.sqrt((px - x1)**2 + (py - y1)**2), 0.0

        t = max(0.0, min(1.0, ((px - x1) * dx + (py - y1) * dy) / (dx * dx + dy * dy)))
        closest_x, closest_y = x1 + t * dx, y1 + t * dy
        return math.sqrt((px - closest_x)**2 + (py - closest_y)**2), t

    # --- Sweep delete (right-button drag) ---

    def begin_sweep_delete(self) -> bool:
        if not self._can_enter(MODE_SWEEP_DELETE):
            return False
        self._sweeping = True
        self._swept.clear()
        return True

    def _sweep_at(self, world: Point) -> None:
        if not self._sweeping:
            return
        node = self.store.node_at(world)
        if node is not None and node.id not in self._swept:
            self._swept.add(node.id)
            self.store.delete_node(node.id)

    def _end_sweep(self) -> None:
        self._sweeping = False
        self._swept.clear()

    # --- Keyboard ---

    def handle_key(self, key: str, ctrl: bool = False) -> bool:
        """Apply a keyboard shortcut. Returns True if the key was handled."""
        if key == KEY_CANCEL:
            self.cancel()
            return True
        if key in DELETE_KEYS:
            self.delete_selected()
            return True
        if ctrl and key.lower() == 'a':
            self.select_all()
            return True
        if ctrl and key.lower() == 'c':
            self.copy()
            return True
        if ctrl and key.lower() == 'v':
            self.paste()
            return True
        return False

    # --- Graph operations ---

    def add_node(self, world: Point, name: str = '', story: str = '', reference: str = '') -> Node:
        return self.store.add_node(world, name=name, story=story, reference=reference)

    def add_node_at_view_center(self) -> Node:
        center = self.viewport.to_world((self.stage_size[0] / 2, self.stage_size[1] / 2))
        return self.add_node(center)

    def delete_node(self, node_id: str) -> bool:
        return self.store.delete_node(node_id)

    def rename_node(self, node_id: str, new_name: str) -> bool:
        if not self.store.has_node(node_id):
            logger.debug(f"Ignoring rename of deleted node {node_id[:8]}")
            return False
        with self._surface_errors("Rename"):
            self.store.rename_node(node_id, new_name)
            return True
        return False

    def update_node(self, node_id: str, story: Optional[str] = None,
                    reference: Optional[str] = None) -> Optional[Node]:
        """Edit story/reference from the info panel. Deleted nodes are ignored."""
        if not self.store.has_node(node_id):
            return None
        return self.store.update_node(node_id, story=story, reference=reference)

    def create_connection(self, start_node_id: str, end_node_id: str, description: str = '',
                          symbol: str = '') -> Optional[Connection]:
        if not (self.store.has_node(start_node_id) and self.store.has_node(end_node_id)):
            return None
        with self._surface_errors("Connection"):
            return self.store.create_connection(start_node_id, end_node_id, description, symbol)
        return None

    def update_connection(self, connection_id: str, description: Optional[str] = None,
                          symbol: Optional[str] = None) -> Optional[Connection]:
        if self.store.get_connection(connection_id) is None:
            return None
        return self.store.update_connection(connection_id, description=description, symbol=symbol)

    def delete_connection(self, connection_id: str) -> bool:
        return self.store.delete_connection(connection_id)

    def select_all(self) -> None:
        self.selection.select_all()

    def delete_selected(self) -> int:
        node_ids = self.selection.selected_ids
        with self.store.batch():
            for node_id in node_ids:
                self.store.delete_node(node_id)
        self.selection.clear()
        return len(node_ids)

    def copy(self) -> int:
        if not len(self.selection):
            return 0
        buffer = self.clipboard.copy(self.store, self.selection.selected_ids)
        return len(buffer.nodes)

    def paste(self, anchor: Optional[Point] = None) -> List[Node]:
        """Paste the clipboard at anchor (world), defaulting to the last pointer position."""
        return self.clipboard.paste(self.store, self.selection, anchor or self.pointer_world)

    def clear_canvas(self) -> None:
        self.close_all_annotations()
        self.connector.cancel()
        self.store.clear()
        self.current_node_id = None

    # --- Info panel / node list ---

    @property
    def current_node(self) -> Optional[Node]:
        if self.current_node_id is None:
            return None
        return self.store.get_node(self.current_node_id)

    def node_list(self) -> List[Tuple[str, str]]:
        """(id, label) for the sidebar, in creation order."""
        return [(n.id, n.label) for n in self.store.nodes()]

    def focus_node(self, node_id: str) -> Optional[Node]:
        """Centre the view on a node and show it in the info panel."""
        node = self.store.get_node(node_id)
        if node is None:
            return None
        self.viewport.focus((node.x, node.y, node.width, node.height), self.stage_size)
        self.events.emit(ev.VIEW_CHANGED, self.viewport)
        self.current_node_id = node_id
        return node

    # --- Annotation panels ---

    def open_annotation(self, connection_id: str) -> bool:
        if self.store.get_connection(connection_id) is None:
            return False
        if connection_id not in self.open_annotations:
            self.open_annotations.append(connection_id)
        self.events.emit(ev.ANNOTATION_OPENED, connection_id)
        return True

    def close_annotation(self, connection_id: str) -> None:
        if connection_id in self.open_annotations:
            self.open_annotations.remove(connection_id)
            self.events.emit(ev.ANNOTATION_CLOSED, connection_id)

    def close_all_annotations(self) -> None:
        for connection_id in list(self.open_annotations):
            self.close_annotation(connection_id)

    # --- Import / export ---

    def import_text(self, text: str) -> bool:
        """Replace the graph with an imported document; invalid documents change nothing."""
        with self._surface_errors("Import"):
            if self.persistence is not None:
                self.persistence.import_text(text)
            else:
                load_document(self.store, parse_document(text))
            self.current_node_id = None
            return True
        return False

    def export_text(self) -> str:
        return export_document(self.store)

    # --- Event reactions ---

    def _on_connection_removed(self, connection: Connection) -> None:
        self.close_annotation(connection.id)

    def _on_node_removed(self, node: Node) -> None:
        if self.current_node_id == node.id:
            self.current_node_id = None
        if self._drag is not None and self._drag['node_id'] == node.id:
            self._end_drag()
