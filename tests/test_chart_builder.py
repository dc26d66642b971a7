import pytest

from storymap.chart_builder import (
    MOVE_EVENT_KEYS,
    WHEEL_EVENT_KEYS,
    build_echart_options,
    normalize_event_payload,
    pointer_from_payload,
)
from storymap.graph_store import GraphStore
from storymap.viewport import Viewport


@pytest.fixture
def store():
    s = GraphStore()
    a = s.add_node((0, 0), name='A')
    b = s.add_node((200, 0), name='B')
    s.create_connection(a.id, b.id, symbol='!')
    s.create_connection(a.id, b.id)
    return s


def series_by_id(options):
    return {s['id']: s for s in options['series']}


class TestBuildEchartOptions:

    def test_base_series(self, store):
        options = build_echart_options(store)
        assert [s['id'] for s in options['series']] == ['connections', 'symbols', 'nodes']

    def test_nodes_are_named_by_id(self, store):
        nodes = series_by_id(build_echart_options(store))['nodes']['data']
        assert [d['name'] for d in nodes] == store.node_ids()
        assert nodes[0]['value'] == [14.5, 18.0, 'A']

    def test_connection_lines_use_binding_points(self, store):
        links = series_by_id(build_echart_options(store))['connections']['data']
        assert len(links) == 2
        # Two connections on one pair: left and right bindings
        assert links[0]['coords'] == [[5.0, 18.0], [205.0, 18.0]]
        assert links[1]['coords'] == [[24.0, 18.0], [224.0, 18.0]]

    def test_only_connections_with_a_symbol_get_a_marker(self, store):
        symbols = series_by_id(build_echart_options(store))['symbols']['data']
        assert [d['value'][2] for d in symbols] == ['!']

    def test_selected_nodes_get_a_border(self, store):
        selected = store.node_ids()[1]
        nodes = series_by_id(build_echart_options(store, selected_ids=[selected]))['nodes']['data']
        assert nodes[0]['itemStyle']['borderWidth'] == 0
        assert nodes[1]['itemStyle']['borderColor'] == '#FFFF00'

    def test_guide_and_marquee_overlays(self, store):
        options = build_echart_options(
            store, guide=((0, 0), (50, 60)), marquee=(0, 0, 10, 20),
        )
        series = series_by_id(options)
        assert series['guide']['data'][0]['coords'] == [[0, 0], [50, 60]]
        assert series['marquee']['data'][0]['coords'][2] == [10, 20]

    def test_axes_follow_viewport(self, store):
        viewport = Viewport(x=-100, y=-50, scale=2.0)
        options = build_echart_options(store, viewport=viewport, stage_size=(200, 100))
        assert (options['xAxis']['min'], options['xAxis']['max']) == (50.0, 150.0)
        assert (options['yAxis']['min'], options['yAxis']['max']) == (25.0, 75.0)
        assert options['yAxis']['inverse'] is True

    def test_dark_mode(self, store):
        assert build_echart_options(store, dark_mode=True)['backgroundColor'] == '#1e1e1e'


def test_normalize_event_payload_handles_dict():
    payload = {'offsetX': 1, 'offsetY': 2}
    assert normalize_event_payload(payload) is payload


def test_normalize_event_payload_handles_list():
    assert normalize_event_payload([10, 20, 0, True]) == {
        'offsetX': 10, 'offsetY': 20, 'button': 0, 'ctrlKey': True,
    }
    assert normalize_event_payload([1, 2, -120], WHEEL_EVENT_KEYS)['deltaY'] == -120
    assert normalize_event_payload([1, 2, 0], MOVE_EVENT_KEYS)['buttons'] == 0


def test_normalize_event_payload_handles_garbage():
    assert normalize_event_payload('node-3') == {}


def test_pointer_from_payload():
    assert pointer_from_payload({'offsetX': '12', 'offsetY': 7}) == (12.0, 7.0)
    assert pointer_from_payload({'offsetX': 12}) is None
