"""
Canvas persistence - keeps the graph and view documents in a key-value store.

Two logical documents are written:
- canvasData: the graph document (see storymap.codec)
- canvasViewState: {"scale": float, "position": {"x": float, "y": float}}

Only one load/import/save runs at a time. Graph changes that happen while a
load is in flight (the load itself rebuilds the graph) do not write; a single
save follows once the load has finished.
"""

import json
import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional

from storymap import codec
from storymap import events as ev
from storymap.constants import GRAPH_DOCUMENT_KEY, VIEW_DOCUMENT_KEY
from storymap.errors import StoryMapError, ValidationError
from storymap.graph_store import GraphStore
from storymap.storage.protocol import KeyValueStore
from storymap.viewport import Viewport

logger = logging.getLogger(__name__)


class CanvasPersistence:
    """Reads and writes the canvas documents, optionally saving on every change."""

    def __init__(self, kv_store: KeyValueStore, store: GraphStore,
                 viewport: Optional[Viewport] = None, autosave: bool = True):
        self.kv_store = kv_store
        self.store = store
        self.viewport = viewport or Viewport()
        self._events = store.events
        self._in_flight: Optional[str] = None
        self._pending_graph_save = False
        self._pending_view_save = False
        self._autosave = False
        if autosave:
            self.enable_autosave()

    @property
    def in_flight(self) -> Optional[str]:
        """Name of the operation currently running, if any."""
        return self._in_flight

    def enable_autosave(self) -> None:
        if self._autosave:
            return
        self._events.on(ev.GRAPH_CHANGED, self._on_graph_changed)
        self._events.on(ev.VIEW_CHANGED, self._on_view_changed)
        self._autosave = True

    def disable_autosave(self) -> None:
        if not self._autosave:
            return
        self._events.off(ev.GRAPH_CHANGED, self._on_graph_changed)
        self._events.off(ev.VIEW_CHANGED, self._on_view_changed)
        self._autosave = False

    @contextmanager
    def _exclusive(self, operation: str) -> Iterator[None]:
        if self._in_flight is not None:
            raise RuntimeError(f"Cannot {operation} while {self._in_flight} is in progress")
        self._in_flight = operation
        try:
            yield
        finally:
            self._in_flight = None

    # --- Graph document ---

    def save_graph(self) -> None:
        with self._exclusive("save_graph"):
            self.kv_store.set(GRAPH_DOCUMENT_KEY, json.dumps(codec.serialize(self.store)))
        self._pending_graph_save = False

    def load_graph(self) -> List[StoryMapError]:
        """
        Replace the graph with the stored document.

        A missing document starts an empty canvas. A stored document that
        does not parse or validate is logged and left alone.
        """
        raw = self.kv_store.get(GRAPH_DOCUMENT_KEY)
        if raw is None:
            with self._exclusive("load_graph"):
                self.store.clear()
            self._flush_pending()
            return []

        try:
            document = codec.parse_document(raw)
        except ValidationError as e:
            logger.warning(f"Stored canvas could not be loaded: {e}")
            return []
        return self._replace_graph(document, "load_graph")

    def import_text(self, text: str) -> List[StoryMapError]:
        """
        Replace the graph with a user-supplied document.

        Raises:
            ValidationError if the text is not a valid graph document; the
            current graph is left untouched.
        """
        document = codec.parse_document(text)
        skipped = self._replace_graph(document, "import")
        logger.info(f"Imported canvas with {len(self.store)} nodes")
        return skipped

    def export_text(self) -> str:
        return codec.export_document(self.store)

    def _replace_graph(self, document: dict, operation: str) -> List[StoryMapError]:
        with self._exclusive(operation):
            skipped = codec.load_document(self.store, document)
        self._flush_pending()
        return skipped

    # --- View document ---

    def save_view(self) -> None:
        with self._exclusive("save_view"):
            self.kv_store.set(VIEW_DOCUMENT_KEY, json.dumps(self.viewport.to_document()))
        self._pending_view_save = False

    def load_view(self) -> bool:
        raw = self.kv_store.get(VIEW_DOCUMENT_KEY)
        if raw is None:
            return False
        try:
            document = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Stored view state could not be parsed: {e}")
            return False
        applied = self.viewport.apply_document(document)
        if applied:
            self._events.emit(ev.VIEW_CHANGED, self.viewport)
        return applied

    def load_all(self) -> List[StoryMapError]:
        skipped = self.load_graph()
        self.load_view()
        return skipped

    # --- Autosave ---

    def _on_graph_changed(self, _store) -> None:
        if self._in_flight is not None:
            self._pending_graph_save = True
            return
        self.save_graph()

    def _on_view_changed(self, _viewport) -> None:
        if self._in_flight is not None:
            self._pending_view_save = True
            return
        self.save_view()

    def _flush_pending(self) -> None:
        if self._pending_graph_save:
            self.save_graph()
        if self._pending_view_save:
            self.save_view()
