"""
ECharts options builder for the story map canvas.

This module converts the engine state into an ECharts option dict. The chart
is a pure view: a hidden cartesian grid is fitted to the current viewport so
world coordinates land exactly where the engine thinks they are, and all hit
testing happens in the engine, not in ECharts.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple

from storymap.constants import LABEL_FONT_SIZE, STAGE_HEIGHT, STAGE_WIDTH, SYMBOL_RADIUS
from storymap.graph_store import GraphStore
from storymap.viewport import Viewport

# Keys we request from DOM mouse events on the canvas element
REQUESTED_EVENT_KEYS = ['offsetX', 'offsetY', 'button', 'ctrlKey', 'shiftKey']
WHEEL_EVENT_KEYS = ['offsetX', 'offsetY', 'deltaY']
MOVE_EVENT_KEYS = ['offsetX', 'offsetY', 'buttons']

GRID_SIZE = 50
CONNECTION_WIDTH = 4
GUIDE_COLOR = '#555'
SELECTED_BORDER = '#FFFF00'
MARQUEE_COLOR = 'rgba(0, 123, 255, 0.8)'
NODE_GRADIENT = ('#007bff', '#0056b3')

THEMES = {
    False: {'background': '#f8f9fa', 'gridline': '#e0e0e0', 'stroke': '#000', 'inverted': '#fff'},
    True: {'background': '#1e1e1e', 'gridline': '#333333', 'stroke': '#fff', 'inverted': '#000'},
}

Point = Tuple[float, float]


def _axis(lo: float, hi: float, gridline: str, inverse: bool = False) -> Dict[str, Any]:
    return {
        'type': 'value',
        'min': lo,
        'max': hi,
        'inverse': inverse,
        'interval': GRID_SIZE,
        'axisLine': {'show': False},
        'axisTick': {'show': False},
        'axisLabel': {'show': False},
        'splitLine': {'show': True, 'lineStyle': {'color': gridline, 'width': 1}},
    }


def build_echart_options(
    store: GraphStore,
    selected_ids: Sequence[str] = (),
    viewport: Optional[Viewport] = None,
    stage_size: Point = (STAGE_WIDTH, STAGE_HEIGHT),
    guide: Optional[Tuple[Point, Point]] = None,
    marquee: Optional[Tuple[float, float, float, float]] = None,
    dark_mode: bool = False,
) -> Dict[str, Any]:
    """
    Build ECharts options from the graph store.

    Args:
        store: GraphStore to draw
        selected_ids: Node ids drawn with the selection border
        viewport: Current pan/zoom (identity if omitted)
        stage_size: Canvas size in pixels
        guide: Connection guide line (start, end) in world coordinates
        marquee: Marquee rectangle (x0, y0, x1, y1) in world coordinates
        dark_mode: Use the dark palette

    Returns:
        ECharts options dict ready for ui.echart()
    """
    viewport = viewport or Viewport()
    theme = THEMES[bool(dark_mode)]
    scale = viewport.scale
    x0, y0, x1, y1 = viewport.visible_world_rect(stage_size)
    selected = set(selected_ids)

    e_nodes = []
    for node in store.nodes():
        cx, cy = node.center
        is_selected = node.id in selected
        e_nodes.append({
            'name': node.id,
            'value': [cx, cy, node.label],
            'symbol': 'roundRect',
            'symbolSize': [node.width * scale, node.height * scale],
            'itemStyle': {
                'color': {
                    'type': 'linear', 'x': 0, 'y': 0, 'x2': 0, 'y2': 1,
                    'colorStops': [
                        {'offset': 0, 'color': NODE_GRADIENT[0]},
                        {'offset': 1, 'color': NODE_GRADIENT[1]},
                    ],
                },
                'borderColor': SELECTED_BORDER if is_selected else 'transparent',
                'borderWidth': 2 if is_selected else 0,
                'shadowColor': 'rgba(0,0,0,0.1)',
                'shadowBlur': 10,
                'shadowOffsetY': 4,
            },
            'label': {
                'show': True,
                'position': 'inside',
                'formatter': '{@[2]}',
                'color': '#fff',
                'fontSize': LABEL_FONT_SIZE * scale,
            },
        })

    e_links = []
    e_symbols = []
    for connection in store.connections():
        (sx, sy), (ex, ey) = store.endpoints(connection)
        e_links.append({
            'name': connection.id,
            'coords': [[sx, sy], [ex, ey]],
        })
        if connection.symbol:
            mx, my = (sx + ex) / 2, (sy + ey) / 2
            e_symbols.append({
                'name': connection.id,
                'value': [mx, my, connection.symbol[0]],
            })

    series: List[Dict[str, Any]] = [
        {
            'id': 'connections',
            'type': 'lines',
            'coordinateSystem': 'cartesian2d',
            'silent': True,
            'lineStyle': {'color': theme['stroke'], 'width': CONNECTION_WIDTH * scale, 'opacity': 1},
            'data': e_links,
            'z': 1,
        },
        {
            'id': 'symbols',
            'type': 'scatter',
            'symbol': 'circle',
            'symbolSize': 2 * SYMBOL_RADIUS * scale,
            'itemStyle': {'color': theme['inverted'], 'borderColor': theme['stroke'], 'borderWidth': 1},
            'label': {'show': True, 'formatter': '{@[2]}', 'color': theme['stroke'],
                      'fontSize': 12 * scale},
            'data': e_symbols,
            'z': 2,
        },
        {
            'id': 'nodes',
            'type': 'scatter',
            'data': e_nodes,
            'z': 3,
        },
    ]

    if guide is not None:
        (gx0, gy0), (gx1, gy1) = guide
        series.append({
            'id': 'guide',
            'type': 'lines',
            'coordinateSystem': 'cartesian2d',
            'silent': True,
            'lineStyle': {'color': GUIDE_COLOR, 'width': 2, 'type': [4, 4]},
            'data': [{'coords': [[gx0, gy0], [gx1, gy1]]}],
            'z': 4,
        })

    if marquee is not None:
        mx0, my0, mx1, my1 = marquee
        series.append({
            'id': 'marquee',
            'type': 'lines',
            'coordinateSystem': 'cartesian2d',
            'polyline': True,
            'silent': True,
            'lineStyle': {'color': MARQUEE_COLOR, 'width': 1},
            'data': [{'coords': [[mx0, my0], [mx1, my0], [mx1, my1], [mx0, my1], [mx0, my0]]}],
            'z': 5,
        })

    return {
        'backgroundColor': theme['background'],
        'animation': False,
        'tooltip': {'show': False},
        'grid': {'left': 0, 'right': 0, 'top': 0, 'bottom': 0},
        'xAxis': _axis(x0, x1, theme['gridline']),
        'yAxis': _axis(y0, y1, theme['gridline'], inverse=True),
        'series': series,
    }


def normalize_event_payload(raw_payload: Any, keys: Sequence[str] = REQUESTED_EVENT_KEYS) -> Dict[str, Any]:
    """Normalize NiceGUI DOM event payloads into a dictionary for easier parsing."""
    if isinstance(raw_payload, dict):
        return raw_payload
    if isinstance(raw_payload, (list, tuple)):
        return {
            keys[i]: raw_payload[i]
            for i in range(min(len(raw_payload), len(keys)))
        }
    return {}


def pointer_from_payload(payload: Dict[str, Any]) -> Optional[Point]:
    """Return the (x, y) pixel position of a normalized payload, or None."""
    try:
        return (float(payload['offsetX']), float(payload['offsetY']))
    except (KeyError, TypeError, ValueError):
        return None
