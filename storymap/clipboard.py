"""
Clipboard Transformer - copy a selected sub-graph and paste fresh copies of it.

The buffer is a detached snapshot: node descriptors are stored relative to
the top-left corner of the copied set, and connections are kept only when
both ends were copied (endpoints re-indexed into the local node list).
Pasting never touches the buffer, so the same snapshot can be pasted again.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Tuple

from storymap.graph_store import GraphStore, Node
from storymap.selection import SelectionManager

logger = logging.getLogger(__name__)


@dataclass
class ClipboardBuffer:
    nodes: List[Dict[str, Any]] = field(default_factory=list)
    connections: List[Dict[str, Any]] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.nodes)


class Clipboard:
    """Holds at most one copied sub-graph."""

    def __init__(self):
        self.buffer = ClipboardBuffer()

    @property
    def is_empty(self) -> bool:
        return not self.buffer

    def copy(self, store: GraphStore, node_ids: Sequence[str]) -> ClipboardBuffer:
        """Snapshot the given nodes (in store order) and the connections among them."""
        chosen = set(node_ids)
        nodes = [n for n in store.nodes() if n.id in chosen]
        if not nodes:
            return self.buffer

        min_x = min(n.x for n in nodes)
        min_y = min(n.y for n in nodes)
        local_index = {n.id: i for i, n in enumerate(nodes)}

        buffer = ClipboardBuffer()
        for node in nodes:
            buffer.nodes.append({
                'x': node.x - min_x,
                'y': node.y - min_y,
                'name': node.name,
                'story': node.story,
                'reference': node.reference,
            })
        for connection in store.connections():
            if connection.start_node_id in local_index and connection.end_node_id in local_index:
                buffer.connections.append({
                    'startNodeId': local_index[connection.start_node_id],
                    'endNodeId': local_index[connection.end_node_id],
                    'description': connection.description,
                    'symbol': connection.symbol,
                })

        self.buffer = buffer
        logger.debug(f"Copied {len(buffer.nodes)} node(s), {len(buffer.connections)} connection(s)")
        return buffer

    def paste(self, store: GraphStore, selection: SelectionManager,
              anchor: Tuple[float, float]) -> List[Node]:
        """
        Instantiate the buffer with its top-left corner at `anchor`.

        Every pasted node and connection gets a fresh id. The selection is
        replaced by exactly the pasted nodes.
        """
        if not self.buffer:
            return []

        buffered = self.buffer.nodes
        min_x = min(n['x'] for n in buffered)
        min_y = min(n['y'] for n in buffered)
        offset_x = anchor[0] - min_x
        offset_y = anchor[1] - min_y

        with store.batch():
            new_nodes = [
                store.add_node(
                    (n['x'] + offset_x, n['y'] + offset_y),
                    name=n['name'],
                    story=n['story'],
                    reference=n['reference'],
                )
                for n in buffered
            ]
            for conn in self.buffer.connections:
                store.create_connection(
                    new_nodes[conn['startNodeId']].id,
                    new_nodes[conn['endNodeId']].id,
                    description=conn['description'],
                    symbol=conn['symbol'],
                )

        selection.set_selection([n.id for n in new_nodes])
        logger.debug(f"Pasted {len(new_nodes)} node(s) at {anchor}")
        return new_nodes
