"""
Tests for the graph document codec: serialization, validation and loading.
"""

import json

import pytest

from storymap import codec
from storymap.errors import MalformedReferenceError, SelfConnectionError, ValidationError
from storymap.graph_store import GraphStore


@pytest.fixture
def store():
    return GraphStore()


def names_of(store, connection):
    return (store.get_node(connection.start_node_id).name,
            store.get_node(connection.end_node_id).name)


class TestSerialize:

    def test_document_shape(self, store):
        a = store.add_node((1, 2), name='A', story='s', reference='r')
        b = store.add_node((3, 4), name='B')
        store.create_connection(a.id, b.id, description='d', symbol='*')
        document = codec.serialize(store)
        assert document['nodes'][0] == {
            'id': a.id, 'x': 1.0, 'y': 2.0, 'name': 'A', 'story': 's', 'reference': 'r',
        }
        assert document['connections'] == [
            {'startNodeId': a.id, 'endNodeId': b.id, 'description': 'd', 'symbol': '*'},
        ]

    def test_reload_preserves_graph_shape(self, store):
        a = store.add_node((0, 0), name='A')
        b = store.add_node((100, 0), name='B')
        c = store.add_node((0, 100), name='C')
        store.create_connection(a.id, b.id)
        store.create_connection(b.id, a.id)
        store.create_connection(b.id, c.id, symbol='?')

        loaded = codec.deserialize(json.loads(codec.export_document(store)))

        assert [n.name for n in loaded.nodes()] == ['A', 'B', 'C']
        assert [names_of(loaded, c) for c in loaded.connections()] == [
            ('A', 'B'), ('B', 'A'), ('B', 'C'),
        ]
        assert [c.start_binding for c in loaded.connections()] == ['left', 'right', 'center']

    def test_references_survive_deleting_earlier_nodes(self, store):
        a = store.add_node((0, 0), name='A')
        b = store.add_node((100, 0), name='B')
        c = store.add_node((200, 0), name='C')
        store.delete_node(a.id)
        store.create_connection(b.id, c.id)

        loaded = codec.deserialize(codec.serialize(store))
        assert [names_of(loaded, conn) for conn in loaded.connections()] == [('B', 'C')]


class TestLoad:

    def test_positional_references_from_older_documents(self, store):
        document = {
            'nodes': [{'x': 0, 'y': 0, 'name': 'A'}, {'x': 10, 'y': 0, 'name': 'B'}],
            'connections': [{'startNodeId': 1, 'endNodeId': 0, 'symbol': '#'}],
        }
        assert codec.load_document(store, document) == []
        [connection] = store.connections()
        assert names_of(store, connection) == ('B', 'A')

    def test_unresolvable_connection_is_skipped(self, store):
        document = {
            'nodes': [{'id': 'n1', 'x': 0, 'y': 0}, {'id': 'n2', 'x': 10, 'y': 0}],
            'connections': [
                {'startNodeId': 'n1', 'endNodeId': 'ghost'},
                {'startNodeId': 'n1', 'endNodeId': 7},
                {'startNodeId': 'n1', 'endNodeId': 'n2'},
            ],
        }
        skipped = codec.load_document(store, document)
        assert [type(e) for e in skipped] == [MalformedReferenceError, MalformedReferenceError]
        assert skipped[0].field == 'endNodeId'
        assert len(store.connections()) == 1

    def test_self_connection_in_document_is_skipped(self, store):
        document = {
            'nodes': [{'id': 'n1', 'x': 0, 'y': 0}],
            'connections': [{'startNodeId': 'n1', 'endNodeId': 'n1'}],
        }
        skipped = codec.load_document(store, document)
        assert isinstance(skipped[0], SelfConnectionError)
        assert store.connections() == []

    def test_missing_fields_default(self, store):
        codec.load_document(store, {'nodes': [{}], 'connections': []})
        [node] = store.nodes()
        assert (node.x, node.y, node.name, node.story, node.reference) == (0.0, 0.0, '', '', '')

    def test_load_replaces_existing_content(self, store):
        store.add_node((0, 0), name='Old')
        codec.load_document(store, {'nodes': [{'name': 'New'}], 'connections': []})
        assert [n.name for n in store.nodes()] == ['New']


class TestValidation:

    @pytest.mark.parametrize("document", [
        [],
        {'nodes': 'not-an-array', 'connections': []},
        {'nodes': [], 'connections': {}},
        {'nodes': []},
        {'nodes': ['x'], 'connections': []},
        {'nodes': [{'x': 'left', 'y': 0}], 'connections': []},
        {'nodes': [{'x': True, 'y': 0}], 'connections': []},
        {'nodes': [], 'connections': [3]},
    ])
    def test_invalid_documents_are_rejected(self, document):
        with pytest.raises(ValidationError):
            codec.validate_document(document)

    def test_invalid_document_leaves_store_untouched(self, store):
        store.add_node((0, 0), name='Keep')
        with pytest.raises(ValidationError):
            codec.load_document(store, {'nodes': 'not-an-array', 'connections': []})
        assert [n.name for n in store.nodes()] == ['Keep']

    def test_parse_document_wraps_json_errors(self):
        with pytest.raises(ValidationError, match="Error parsing JSON file"):
            codec.parse_document('{not json')
