"""
Shared constants for the story map editor.

These values are used by both the engine (bindings, edit controller) and the
ECharts adapter (chart_builder). Keep them in sync!
"""

# Node label metrics (world units)
LABEL_FONT_SIZE = 16
LABEL_PADDING = 10
# Average glyph advance for the label font
LABEL_CHAR_WIDTH = 9.0
PLACEHOLDER_NAME = 'Name'

# Horizontal inset of the left/right binding points from the node edge
BINDING_INSET = 5

# Symbol badge radius in pixels
SYMBOL_RADIUS = 10

# Gesture modes (mutually exclusive)
MODE_MARQUEE = 'marquee'
MODE_CONNECT = 'connect'
MODE_SWEEP_DELETE = 'sweep_delete'

# Keys
KEY_CANCEL = 'Escape'
DELETE_KEYS = ('Delete', 'Backspace')

# Storage keys for the two persisted documents
GRAPH_DOCUMENT_KEY = 'canvasData'
VIEW_DOCUMENT_KEY = 'canvasViewState'

# Default stage size used before the browser reports one
STAGE_WIDTH = 1280.0
STAGE_HEIGHT = 720.0
