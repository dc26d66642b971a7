"""
Interactive editing for the story map canvas.

This package turns pointer and keyboard input into graph edits:
- ConnectionCreator: The two-click connection state machine
- EditorSession: Gesture routing, error surfacing and persistence wiring
- setup_editor_handlers: NiceGUI event handlers for app.py integration

Usage:
    from storymap.edit import EditorSession
    from storymap.edit.handlers import setup_editor_handlers
"""

from storymap.edit.connector import ConnectionCreator, ConnectorState
from storymap.edit.controller import EditorSession
from storymap.edit.handlers import setup_editor_handlers

__all__ = [
    'ConnectionCreator',
    'ConnectorState',
    'EditorSession',
    'setup_editor_handlers',
]
