"""
Tests for GraphStore: node/connection lifecycle, cascades and binding packing.
"""

import pytest

from storymap import events as ev
from storymap.bindings import BINDING_LAYOUTS, MAX_CONNECTIONS_PER_PAIR
from storymap.errors import NameConflictError, SelfConnectionError, TooManyConnectionsError
from storymap.graph_store import GraphStore


@pytest.fixture
def store():
    return GraphStore()


@pytest.fixture
def pair(store):
    a = store.add_node((0, 0), name='A')
    b = store.add_node((200, 0), name='B')
    return a, b


def record(store, event):
    seen = []
    store.events.on(event, seen.append)
    return seen


class TestNodes:

    def test_add_node_assigns_unique_ids_in_creation_order(self, store):
        nodes = [store.add_node((i, i)) for i in range(5)]
        assert len({n.id for n in nodes}) == 5
        assert store.node_ids() == [n.id for n in nodes]

    def test_new_node_is_sized_from_its_label(self, store):
        node = store.add_node((10, 20))
        assert node.label == 'Name'
        assert (node.width, node.height) == (56.0, 36.0)

    def test_duplicate_names_are_allowed_on_create(self, store):
        store.add_node((0, 0), name='Same')
        store.add_node((10, 0), name='Same')
        assert len(store.find_by_name('Same')) == 2

    def test_delete_unknown_node_is_a_noop(self, store):
        assert store.delete_node('missing') is False

    def test_node_at_prefers_latest_node(self, store):
        store.add_node((0, 0))
        top = store.add_node((10, 10))
        assert store.node_at((20, 20)).id == top.id
        assert store.node_at((500, 500)) is None

    def test_move_node(self, store, pair):
        a, _ = pair
        store.move_node(a.id, (40, 50))
        assert store.get_node(a.id).position == (40.0, 50.0)

    def test_update_node_fields(self, store, pair):
        a, _ = pair
        updates = record(store, ev.NODE_UPDATED)
        store.update_node(a.id, story='Once upon a time', reference='ch. 1')
        assert (a.story, a.reference) == ('Once upon a time', 'ch. 1')
        assert updates == [a]
        # No change, no event
        store.update_node(a.id, story='Once upon a time')
        assert len(updates) == 1


class TestRename:

    def test_rename_strips_and_resizes(self, store, pair):
        a, _ = pair
        store.rename_node(a.id, '  The Long Prologue  ')
        assert a.name == 'The Long Prologue'
        assert a.width == 17 * 9 + 20

    def test_rename_conflict_leaves_node_unchanged(self, store, pair):
        a, b = pair
        with pytest.raises(NameConflictError) as exc:
            store.rename_node(b.id, 'A')
        assert str(exc.value) == "A node with this name already exists."
        assert b.name == 'B'

    def test_rename_to_own_name_is_allowed(self, store, pair):
        a, _ = pair
        assert store.rename_node(a.id, 'A') is a

    def test_rename_unknown_node(self, store):
        with pytest.raises(KeyError):
            store.rename_node('missing', 'X')

    def test_rename_moves_binding_points(self, store, pair):
        a, b = pair
        conn = store.create_connection(a.id, b.id)
        start_before, _ = store.endpoints(conn)
        rebound = record(store, ev.CONNECTION_REBOUND)
        store.rename_node(a.id, 'A much longer name')
        start_after, _ = store.endpoints(conn)
        assert start_after[0] > start_before[0]
        assert rebound == [conn]


class TestConnections:

    def test_self_connection_is_rejected(self, store, pair):
        a, _ = pair
        with pytest.raises(SelfConnectionError):
            store.create_connection(a.id, a.id)
        assert store.connections() == []

    def test_unknown_endpoint_is_rejected(self, store, pair):
        a, _ = pair
        with pytest.raises(KeyError):
            store.create_connection(a.id, 'missing')
        assert store.connections() == []

    def test_fourth_connection_between_a_pair_is_rejected(self, store, pair):
        a, b = pair
        for _ in range(3):
            store.create_connection(a.id, b.id)
        with pytest.raises(TooManyConnectionsError) as exc:
            store.create_connection(a.id, b.id)
        assert str(exc.value) == "Maximum of 3 connections between two nodes allowed."
        assert len(store.connections_between(a.id, b.id)) == 3

    def test_limit_counts_both_directions(self, store, pair):
        a, b = pair
        store.create_connection(a.id, b.id)
        store.create_connection(b.id, a.id)
        store.create_connection(a.id, b.id)
        with pytest.raises(TooManyConnectionsError):
            store.create_connection(b.id, a.id)

    def test_connections_between_keeps_insertion_order(self, store, pair):
        a, b = pair
        first = store.create_connection(a.id, b.id)
        second = store.create_connection(b.id, a.id)
        assert store.connections_between(b.id, a.id) == [first, second]

    def test_bindings_follow_pair_count(self, store, pair):
        a, b = pair
        c1 = store.create_connection(a.id, b.id)
        assert c1.start_binding == 'center'
        c2 = store.create_connection(a.id, b.id)
        assert (c1.start_binding, c2.start_binding) == ('left', 'right')
        c3 = store.create_connection(a.id, b.id)
        assert [c.end_binding for c in (c1, c2, c3)] == ['left', 'center', 'right']

    def test_deleting_a_connection_repacks_its_pair(self, store, pair):
        a, b = pair
        c1, c2, c3 = (store.create_connection(a.id, b.id) for _ in range(3))
        store.delete_connection(c1.id)
        assert (c2.start_binding, c3.start_binding) == ('left', 'right')
        store.delete_connection(c2.id)
        assert c3.start_binding == 'center'

    def test_update_connection(self, store, pair):
        a, b = pair
        conn = store.create_connection(a.id, b.id)
        store.update_connection(conn.id, description='betrayal', symbol='!')
        assert (conn.description, conn.symbol) == ('betrayal', '!')

    def test_midpoint(self, store, pair):
        a, b = pair
        conn = store.create_connection(a.id, b.id)
        # "A" and "B" are 29 wide, so the centre bindings are (14.5, 18) and (214.5, 18)
        assert store.midpoint(conn) == (114.5, 18.0)


def assert_pairs_packed(store):
    """Every pair holds at most three connections, laid out by count in creation order."""
    by_pair = {}
    for connection in store.connections():
        by_pair.setdefault(connection.pair, []).append(connection)
    for connections in by_pair.values():
        assert len(connections) <= MAX_CONNECTIONS_PER_PAIR
        layout = list(BINDING_LAYOUTS[len(connections)])
        assert [c.start_binding for c in connections] == layout
        assert [c.end_binding for c in connections] == layout
        assert store.connections_between(*tuple(connections[0].pair)) == connections


class TestMixedEditSequence:

    def test_bindings_stay_packed_through_mixed_edits(self, store, pair):
        a, b = pair
        c = store.add_node((0, 200), name='C')

        ab1 = store.create_connection(a.id, b.id)
        assert_pairs_packed(store)
        ab2 = store.create_connection(b.id, a.id)
        bc1 = store.create_connection(b.id, c.id)
        assert_pairs_packed(store)
        ab3 = store.create_connection(a.id, b.id)
        assert_pairs_packed(store)

        with pytest.raises(TooManyConnectionsError):
            store.create_connection(b.id, a.id)
        assert_pairs_packed(store)

        store.delete_connection(ab2.id)
        assert store.connections_between(a.id, b.id) == [ab1, ab3]
        assert_pairs_packed(store)

        ab4 = store.create_connection(a.id, b.id)
        assert store.connections_between(a.id, b.id) == [ab1, ab3, ab4]
        assert_pairs_packed(store)

        ac1 = store.create_connection(a.id, c.id)
        bc2 = store.create_connection(c.id, b.id)
        assert_pairs_packed(store)

        store.delete_node(c.id)
        assert store.connections() == [ab1, ab3, ab4]
        assert store.get_connection(ac1.id) is None
        assert store.get_connection(bc1.id) is None
        assert store.get_connection(bc2.id) is None
        assert_pairs_packed(store)

        store.delete_connection(ab1.id)
        store.delete_connection(ab4.id)
        assert ab3.start_binding == 'center'
        assert_pairs_packed(store)


class TestDeleteCascade:

    def test_deleting_a_node_removes_its_connections(self, store, pair):
        a, b = pair
        c = store.add_node((0, 200), name='C')
        store.create_connection(a.id, b.id)
        kept = store.create_connection(b.id, c.id)
        store.delete_node(a.id)
        assert store.connections() == [kept]
        assert store.neighbors(b.id) == [c.id]

    def test_cascade_emits_connection_removals_before_node_removal(self, store, pair):
        a, b = pair
        store.create_connection(a.id, b.id)
        order = []
        store.events.on(ev.CONNECTION_REMOVED, lambda c: order.append('connection'))
        store.events.on(ev.NODE_REMOVED, lambda n: order.append('node'))
        store.delete_node(b.id)
        assert order == ['connection', 'node']

    def test_clear_empties_everything(self, store, pair):
        a, b = pair
        store.create_connection(a.id, b.id)
        store.clear()
        assert len(store) == 0
        assert store.connections() == []


class TestGraphChanged:

    def test_each_mutation_notifies_once(self, store):
        changes = record(store, ev.GRAPH_CHANGED)
        store.add_node((0, 0))
        assert len(changes) == 1

    def test_batch_notifies_once_at_the_end(self, store):
        changes = record(store, ev.GRAPH_CHANGED)
        with store.batch():
            a = store.add_node((0, 0))
            b = store.add_node((100, 0))
            store.create_connection(a.id, b.id)
            assert changes == []
        assert len(changes) == 1

    def test_delete_node_with_connections_notifies_once(self, store, pair):
        a, b = pair
        store.create_connection(a.id, b.id)
        changes = record(store, ev.GRAPH_CHANGED)
        store.delete_node(a.id)
        assert len(changes) == 1

    def test_rejected_operation_does_not_notify(self, store, pair):
        a, _ = pair
        changes = record(store, ev.GRAPH_CHANGED)
        with pytest.raises(SelfConnectionError):
            store.create_connection(a.id, a.id)
        assert changes == []
