"""
StoryMap - an infinite canvas for mapping stories as nodes and connections.

The engine (graph store, selection, clipboard, codec, persistence) has no UI
dependency; storymap.edit and storymap.chart_builder adapt it to NiceGUI.
"""

__version__ = "0.1.0"
