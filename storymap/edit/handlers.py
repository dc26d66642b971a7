"""
Editor Handlers - Event handlers for canvas editing in app.py

This module extracts all the pointer/keyboard event handling from app.py
to keep the main application file focused on layout. Handlers only decode
the NiceGUI payloads; every decision is made by EditorSession.
"""

from nicegui import ui
from typing import Any, Callable, Dict

from storymap.chart_builder import (
    MOVE_EVENT_KEYS,
    WHEEL_EVENT_KEYS,
    normalize_event_payload,
    pointer_from_payload,
)
from storymap.edit.controller import EditorSession
from storymap.graph_store import Node


def _payload(event: Any, keys=None) -> Dict[str, Any]:
    raw = event.args if hasattr(event, 'args') else event
    if keys is None:
        return normalize_event_payload(raw)
    return normalize_event_payload(raw, keys)


def setup_editor_handlers(
    session: EditorSession,
    refresh_canvas: Callable[[], None],
    show_node_info: Callable[[Node], None],
):
    """
    Set up all canvas event handlers.

    Args:
        session: EditorSession instance
        refresh_canvas: Function to redraw the chart
        show_node_info: Function to show a node in the right sidebar

    Returns:
        Dict with handler functions for binding to UI events
    """

    def handle_keyboard(e):
        """Global shortcuts: Escape, Delete/Backspace, Ctrl+A/C/V."""
        if not e.action.keydown:
            return
        key = getattr(e.key, 'name', str(e.key))
        ctrl = bool(e.modifiers.ctrl or e.modifiers.meta)
        if session.handle_key(key, ctrl=ctrl):
            if ctrl and key.lower() == 'c' and not session.clipboard.is_empty:
                ui.notify(f'Copied {len(session.clipboard.buffer.nodes)} node(s)',
                          position='bottom', timeout=800)
            refresh_canvas()

    def handle_mouse_down(event):
        payload = _payload(event)
        pos = pointer_from_payload(payload)
        if pos is None:
            return
        session.pointer_down(
            pos,
            button=int(payload.get('button') or 0),
            ctrl=bool(payload.get('ctrlKey')),
            shift=bool(payload.get('shiftKey')),
        )
        refresh_canvas()

    def handle_mouse_move(event):
        payload = _payload(event, MOVE_EVENT_KEYS)
        pos = pointer_from_payload(payload)
        if pos is None:
            return
        buttons = payload.get('buttons')
        was_busy = session.is_busy
        session.pointer_move(pos, buttons=None if buttons is None else int(buttons))
        # Plain hovering changes nothing on screen
        if was_busy or session.is_busy:
            refresh_canvas()

    def handle_mouse_up(event):
        payload = _payload(event)
        pos = pointer_from_payload(payload)
        if pos is None:
            return
        session.pointer_up(pos, button=int(payload.get('button') or 0))
        refresh_canvas()

    def handle_click(event):
        payload = _payload(event)
        pos = pointer_from_payload(payload)
        if pos is None:
            return
        result = session.click(pos, ctrl=bool(payload.get('ctrlKey')))
        if isinstance(result, Node) and session.current_node_id == result.id:
            show_node_info(result)
        refresh_canvas()

    def handle_wheel(event):
        payload = _payload(event, WHEEL_EVENT_KEYS)
        pos = pointer_from_payload(payload)
        if pos is None:
            return
        session.wheel(pos, float(payload.get('deltaY') or 0))
        refresh_canvas()

    return {
        'handle_keyboard': handle_keyboard,
        'handle_mouse_down': handle_mouse_down,
        'handle_mouse_move': handle_mouse_move,
        'handle_mouse_up': handle_mouse_up,
        'handle_click': handle_click,
        'handle_wheel': handle_wheel,
    }
