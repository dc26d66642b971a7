"""
Serialization codec for graph documents.

Document format (JSON):
{
  "nodes": [
    {"id": "<uuid>", "x": 10.0, "y": 20.0, "name": "Intro", "story": "", "reference": ""}
  ],
  "connections": [
    {"startNodeId": "<uuid>", "endNodeId": "<uuid>", "description": "", "symbol": ""}
  ]
}

Connection endpoints are written as the stable id of the node. On load a
string endpoint is resolved against the ids in the document and an integer
endpoint is treated as a position in the node list, which is how older
documents referenced nodes. Unresolvable endpoints drop that one connection
(MalformedReferenceError is logged, never raised); the rest of the document
still loads. Loading always assigns fresh ids.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from storymap.errors import MalformedReferenceError, StoryMapError, ValidationError
from storymap.events import EventBus
from storymap.graph_store import GraphStore

logger = logging.getLogger(__name__)

NODE_FIELDS = ('name', 'story', 'reference')
CONNECTION_FIELDS = ('description', 'symbol')


def serialize(store: GraphStore) -> Dict[str, Any]:
    """Emit nodes in store order and connections referencing node ids."""
    return {
        'nodes': [
            {
                'id': node.id,
                'x': node.x,
                'y': node.y,
                'name': node.name,
                'story': node.story or '',
                'reference': node.reference or '',
            }
            for node in store.nodes()
        ],
        'connections': [
            {
                'startNodeId': connection.start_node_id,
                'endNodeId': connection.end_node_id,
                'description': connection.description or '',
                'symbol': connection.symbol or '',
            }
            for connection in store.connections()
        ],
    }


def validate_document(document: Any) -> Dict[str, Any]:
    """
    Check the structural shape of a graph document.

    Raises:
        ValidationError if nodes/connections are missing or not lists, or if
        an entry is not an object, or a coordinate is not a number.
    """
    if not isinstance(document, dict):
        raise ValidationError("Invalid canvas data format: expected an object.")
    nodes = document.get('nodes')
    connections = document.get('connections')
    if not isinstance(nodes, list) or not isinstance(connections, list):
        raise ValidationError("Invalid canvas data format: 'nodes' and 'connections' must be lists.")

    for i, node in enumerate(nodes):
        if not isinstance(node, dict):
            raise ValidationError(f"Invalid canvas data format: node #{i} is not an object.")
        for axis in ('x', 'y'):
            value = node.get(axis, 0)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValidationError(f"Invalid canvas data format: node #{i} has a non-numeric '{axis}'.")
    for i, connection in enumerate(connections):
        if not isinstance(connection, dict):
            raise ValidationError(f"Invalid canvas data format: connection #{i} is not an object.")
    return document


def parse_document(text: str) -> Dict[str, Any]:
    """Parse and validate an imported JSON document."""
    try:
        document = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise ValidationError(f"Error parsing JSON file: {e}") from e
    return validate_document(document)


def export_document(store: GraphStore) -> str:
    return json.dumps(serialize(store), indent=2, ensure_ascii=False)


def _resolve(reference: Any, field: str, index: int, by_id: Dict[str, str],
             by_position: List[str]) -> str:
    if isinstance(reference, bool):
        raise MalformedReferenceError(reference, field, index)
    if isinstance(reference, int):
        if 0 <= reference < len(by_position):
            return by_position[reference]
        raise MalformedReferenceError(reference, field, index)
    if isinstance(reference, str) and reference in by_id:
        return by_id[reference]
    raise MalformedReferenceError(reference, field, index)


def load_document(store: GraphStore, document: Dict[str, Any]) -> List[StoryMapError]:
    """
    Replace the contents of `store` with the document.

    The document is validated before the store is touched. Returns the
    errors for connections that were skipped.
    """
    validate_document(document)
    skipped: List[StoryMapError] = []

    with store.batch():
        store.clear()
        by_id: Dict[str, str] = {}
        by_position: List[str] = []
        for entry in document['nodes']:
            node = store.add_node(
                (entry.get('x', 0), entry.get('y', 0)),
                **{f: str(entry.get(f) or '') for f in NODE_FIELDS},
            )
            by_position.append(node.id)
            if entry.get('id') is not None:
                by_id[str(entry['id'])] = node.id

        for i, entry in enumerate(document['connections']):
            try:
                start = _resolve(entry.get('startNodeId'), 'startNodeId', i, by_id, by_position)
                end = _resolve(entry.get('endNodeId'), 'endNodeId', i, by_id, by_position)
                store.create_connection(
                    start, end,
                    **{f: str(entry.get(f) or '') for f in CONNECTION_FIELDS},
                )
            except StoryMapError as e:
                logger.warning(f"Skipping connection while loading: {e}")
                skipped.append(e)

    logger.info(f"Loaded {len(store)} nodes, {len(store.connections())} connections"
                f" ({len(skipped)} skipped)")
    return skipped


def deserialize(document: Dict[str, Any], events: Optional[EventBus] = None) -> GraphStore:
    """Build a fresh GraphStore from a document."""
    store = GraphStore(events)
    load_document(store, document)
    return store
