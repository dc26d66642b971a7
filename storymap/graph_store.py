"""
Graph Store - single owner of the nodes and connections of a canvas.

All mutation goes through GraphStore methods. Entities are addressed by
stable string ids (UUID4) that are never reused within a session; a
networkx MultiGraph keyed by connection id indexes which connections join
which pair of nodes, in insertion order.

Every mutating call validates first and mutates second, so a rejected
operation leaves the graph exactly as it was.
"""

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

import networkx as nx

from storymap import bindings
from storymap.constants import PLACEHOLDER_NAME
from storymap import events as ev
from storymap.errors import NameConflictError, SelfConnectionError, TooManyConnectionsError
from storymap.events import EventBus

logger = logging.getLogger(__name__)


@dataclass
class Node:
    """A labelled box on the canvas. (x, y) is the top-left corner in world units."""
    id: str
    x: float
    y: float
    name: str = ''
    story: str = ''
    reference: str = ''
    width: float = 0.0
    height: float = 0.0

    def __post_init__(self):
        if not self.width or not self.height:
            self.width, self.height = bindings.measure_label(self.name)

    @property
    def position(self) -> Tuple[float, float]:
        return (self.x, self.y)

    @property
    def label(self) -> str:
        return self.name or PLACEHOLDER_NAME

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """Axis-aligned bounding box as (x0, y0, x1, y1)."""
        return (self.x, self.y, self.x + self.width, self.y + self.height)

    def contains(self, point: Tuple[float, float]) -> bool:
        x0, y0, x1, y1 = self.bounds
        return x0 <= point[0] <= x1 and y0 <= point[1] <= y1


@dataclass
class Connection:
    """A typed link between two distinct nodes."""
    id: str
    start_node_id: str
    end_node_id: str
    description: str = ''
    symbol: str = ''
    start_binding: str = field(default=bindings.NONE)
    end_binding: str = field(default=bindings.NONE)

    @property
    def pair(self) -> frozenset:
        return frozenset((self.start_node_id, self.end_node_id))

    def touches(self, node_id: str) -> bool:
        return node_id in (self.start_node_id, self.end_node_id)


def _new_id() -> str:
    return str(uuid.uuid4())


class GraphStore:
    """
    Owns the node and connection collections of one editing session.

    Usage:
        store = GraphStore()
        a = store.add_node((10, 10), name="Intro")
        b = store.add_node((200, 10), name="Climax")
        store.create_connection(a.id, b.id, symbol="!")
        store.delete_node(a.id)   # cascades to the connection
    """

    def __init__(self, events: Optional[EventBus] = None,
                 max_connections_per_pair: int = bindings.MAX_CONNECTIONS_PER_PAIR):
        self.events = events or EventBus()
        self.max_connections_per_pair = max_connections_per_pair
        self._nodes: Dict[str, Node] = {}
        self._connections: Dict[str, Connection] = {}
        self._graph = nx.MultiGraph()
        self._batch_depth = 0
        self._dirty = False

    # --- Queries ---

    def nodes(self) -> List[Node]:
        """Live nodes in creation order."""
        return list(self._nodes.values())

    def connections(self) -> List[Connection]:
        """Live connections in creation order."""
        return list(self._connections.values())

    def get_node(self, node_id: str) -> Optional[Node]:
        return self._nodes.get(node_id)

    def get_connection(self, connection_id: str) -> Optional[Connection]:
        return self._connections.get(connection_id)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def node_ids(self) -> List[str]:
        return list(self._nodes)

    def index_of(self, node_id: str) -> int:
        """Position of a node in creation order."""
        return self.node_ids().index(node_id)

    def connections_between(self, node_a: str, node_b: str) -> List[Connection]:
        """Connections joining the unordered pair {node_a, node_b}, in insertion order."""
        if not self._graph.has_edge(node_a, node_b):
            return []
        return [self._connections[key] for key in self._graph[node_a][node_b]]

    def connections_for_node(self, node_id: str) -> List[Connection]:
        return [c for c in self._connections.values() if c.touches(node_id)]

    def neighbors(self, node_id: str) -> List[str]:
        if node_id not in self._graph:
            return []
        return list(self._graph.neighbors(node_id))

    def find_by_name(self, name: str) -> List[Node]:
        return [n for n in self._nodes.values() if n.name == name]

    def node_at(self, point: Tuple[float, float]) -> Optional[Node]:
        """Topmost node (latest created) whose box contains the world point."""
        for node in reversed(list(self._nodes.values())):
            if node.contains(point):
                return node
        return None

    def _require_node(self, node_id: str) -> Node:
        node = self._nodes.get(node_id)
        if node is None:
            raise KeyError(f"Unknown node id: {node_id}")
        return node

    def _require_connection(self, connection_id: str) -> Connection:
        connection = self._connections.get(connection_id)
        if connection is None:
            raise KeyError(f"Unknown connection id: {connection_id}")
        return connection

    # --- Change notification ---

    @contextmanager
    def batch(self) -> Iterator['GraphStore']:
        """Group several mutations so graph_changed fires once at the end."""
        self._batch_depth += 1
        try:
            yield self
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._dirty:
                self._dirty = False
                self.events.emit(ev.GRAPH_CHANGED, self)

    def _changed(self) -> None:
        if self._batch_depth:
            self._dirty = True
        else:
            self.events.emit(ev.GRAPH_CHANGED, self)

    # --- Nodes ---

    def add_node(self, position: Tuple[float, float], name: str = '', story: str = '',
                 reference: str = '') -> Node:
        """Create a node. Always succeeds; names are not checked for uniqueness here."""
        node = Node(
            id=_new_id(),
            x=float(position[0]),
            y=float(position[1]),
            name=name or '',
            story=story or '',
            reference=reference or '',
        )
        self._nodes[node.id] = node
        self._graph.add_node(node.id)
        logger.debug(f"Added node {node.id[:8]} '{node.label}' at {node.position}")
        self.events.emit(ev.NODE_CREATED, node)
        self._changed()
        return node

    def delete_node(self, node_id: str) -> bool:
        """
        Delete a node and every connection touching it.

        Unknown ids are ignored. Bindings are re-packed once, after all
        incident connections are gone.
        """
        node = self._nodes.get(node_id)
        if node is None:
            return False

        with self.batch():
            incident = self.connections_for_node(node_id)
            pairs = {c.pair for c in incident}
            for connection in incident:
                self.delete_connection(connection.id, rebind=False)
            for pair in pairs:
                self._rebind_pair(*tuple(pair))

            del self._nodes[node_id]
            self._graph.remove_node(node_id)
            logger.debug(f"Deleted node {node_id[:8]} with {len(incident)} connection(s)")
            self.events.emit(ev.NODE_REMOVED, node)
            self._changed()
        return True

    def rename_node(self, node_id: str, new_name: str) -> Node:
        """
        Rename a node.

        Raises:
            KeyError if node_id does not exist.
            NameConflictError if another live node already has new_name.
        """
        node = self._require_node(node_id)
        new_name = (new_name or '').strip()
        if new_name == node.name:
            return node
        if any(other.name == new_name for other in self._nodes.values() if other.id != node_id):
            raise NameConflictError(new_name)

        node.name = new_name
        node.width, node.height = bindings.measure_label(new_name)
        self.events.emit(ev.NODE_UPDATED, node)
        # Footprint changed, so every binding point on this node moved
        self._refresh_incident(node_id)
        self._changed()
        return node

    def update_node(self, node_id: str, story: Optional[str] = None,
                    reference: Optional[str] = None) -> Node:
        """Update the free-text annotation fields of a node."""
        node = self._require_node(node_id)
        changed = False
        if story is not None and story != node.story:
            node.story = story
            changed = True
        if reference is not None and reference != node.reference:
            node.reference = reference
            changed = True
        if changed:
            self.events.emit(ev.NODE_UPDATED, node)
            self._changed()
        return node

    def move_node(self, node_id: str, position: Tuple[float, float]) -> Node:
        node = self._require_node(node_id)
        node.x, node.y = float(position[0]), float(position[1])
        self.events.emit(ev.NODE_UPDATED, node)
        self._refresh_incident(node_id)
        self._changed()
        return node

    # --- Connections ---

    def create_connection(self, start_node_id: str, end_node_id: str, description: str = '',
                          symbol: str = '') -> Connection:
        """
        Connect two distinct nodes.

        Raises:
            SelfConnectionError if both ends are the same node.
            KeyError if either node does not exist.
            TooManyConnectionsError if the pair is already at the limit.
        """
        if start_node_id == end_node_id:
            raise SelfConnectionError(start_node_id)
        self._require_node(start_node_id)
        self._require_node(end_node_id)
        existing = self._graph.number_of_edges(start_node_id, end_node_id)
        if existing >= self.max_connections_per_pair:
            raise TooManyConnectionsError(start_node_id, end_node_id, self.max_connections_per_pair)

        connection = Connection(
            id=_new_id(),
            start_node_id=start_node_id,
            end_node_id=end_node_id,
            description=description or '',
            symbol=symbol or '',
        )
        self._connections[connection.id] = connection
        self._graph.add_edge(start_node_id, end_node_id, key=connection.id)
        self.events.emit(ev.CONNECTION_CREATED, connection)
        self._rebind_pair(start_node_id, end_node_id)
        self._changed()
        return connection

    def update_connection(self, connection_id: str, description: Optional[str] = None,
                          symbol: Optional[str] = None) -> Connection:
        connection = self._require_connection(connection_id)
        changed = False
        if description is not None and description != connection.description:
            connection.description = description
            changed = True
        if symbol is not None and symbol != connection.symbol:
            connection.symbol = symbol
            changed = True
        if changed:
            self.events.emit(ev.CONNECTION_UPDATED, connection)
            self._changed()
        return connection

    def delete_connection(self, connection_id: str, rebind: bool = True) -> bool:
        """Remove a connection; the remaining ones of its pair are re-packed unless rebind=False."""
        connection = self._connections.pop(connection_id, None)
        if connection is None:
            return False
        self._graph.remove_edge(connection.start_node_id, connection.end_node_id, key=connection_id)
        self.events.emit(ev.CONNECTION_REMOVED, connection)
        if rebind:
            self._rebind_pair(connection.start_node_id, connection.end_node_id)
        self._changed()
        return True

    def clear(self) -> None:
        """Remove every node and connection at once."""
        removed_connections = list(self._connections.values())
        removed_nodes = list(self._nodes.values())
        self._connections.clear()
        self._nodes.clear()
        self._graph.clear()
        with self.batch():
            for connection in removed_connections:
                self.events.emit(ev.CONNECTION_REMOVED, connection)
            for node in removed_nodes:
                self.events.emit(ev.NODE_REMOVED, node)
            self._changed()
        logger.info(f"Cleared canvas ({len(removed_nodes)} nodes, {len(removed_connections)} connections)")

    # --- Bindings ---

    def _rebind_pair(self, node_a: str, node_b: str) -> None:
        pair_connections = self.connections_between(node_a, node_b)
        for connection in bindings.allocate(pair_connections):
            self.events.emit(ev.CONNECTION_REBOUND, connection)

    def rebind_all(self) -> None:
        """Re-run the allocator for every pair. Idempotent."""
        seen = set()
        for connection in self.connections():
            if connection.pair in seen:
                continue
            seen.add(connection.pair)
            self._rebind_pair(connection.start_node_id, connection.end_node_id)

    def _refresh_incident(self, node_id: str) -> None:
        for connection in self.connections_for_node(node_id):
            self.events.emit(ev.CONNECTION_REBOUND, connection)

    def endpoints(self, connection: Connection) -> Tuple[Tuple[float, float], Tuple[float, float]]:
        """World coordinates of both ends of a connection at their binding points."""
        start = self._require_node(connection.start_node_id)
        end = self._require_node(connection.end_node_id)
        return (bindings.binding_point(start, connection.start_binding),
                bindings.binding_point(end, connection.end_binding))

    def midpoint(self, connection: Connection) -> Tuple[float, float]:
        (sx, sy), (ex, ey) = self.endpoints(connection)
        return ((sx + ex) / 2, (sy + ey) / 2)
