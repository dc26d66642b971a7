"""
Main NiceGUI application for StoryMap.

Renders the story map with ui.echart and wires pointer/keyboard input to an
EditorSession. Layout:
- full-screen canvas (ECharts, redrawn from the engine state)
- left drawer: every node, click to focus it
- right drawer: name / story / reference of the current node
- annotation dialog for a clicked connection
- toolbar: add node, import, export, clear, preferences
"""

import logging
import sys

from dotenv import load_dotenv
from nicegui import ui

load_dotenv()

from storymap import events as ev
from storymap.chart_builder import (
    MOVE_EVENT_KEYS,
    REQUESTED_EVENT_KEYS,
    WHEEL_EVENT_KEYS,
    build_echart_options,
)
from storymap.config import get_data_dir, get_settings, set_setting
from storymap.edit import EditorSession, setup_editor_handlers
from storymap.storage import create_store

settings = get_settings()
logging.basicConfig(
    level=getattr(logging, str(settings['log_level']).upper(), logging.INFO),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)
logger = logging.getLogger(__name__)

ui.add_head_html('''
    <style>
        body { overflow: hidden; }
        .storymap-canvas { cursor: default; }
    </style>
''', shared=True)


def show_error(title: str, message: str) -> None:
    ui.notify(f'{title}: {message}', type='negative', position='top')


@ui.page('/')
def main_page():
    settings = get_settings()
    dark = ui.dark_mode(settings['dark_mode'])

    kv_store = create_store(settings['storage_backend'], get_data_dir())
    session = EditorSession(kv_store=kv_store, settings=settings, on_error=show_error)
    session.load()

    state = {
        'chart': None,
        'annotation_id': None,
    }

    # --- Canvas ---

    def get_current_options():
        marquee = session.selection.marquee_rect
        return build_echart_options(
            session.store,
            selected_ids=session.selection.selected_ids,
            viewport=session.viewport,
            stage_size=session.stage_size,
            guide=session.connector.state.guide,
            marquee=marquee,
            dark_mode=session.settings['dark_mode'],
        )

    def refresh_canvas():
        chart = state['chart']
        if chart is None:
            return
        chart.options.clear()
        chart.options.update(get_current_options())
        chart.update()

    # --- Node info panel ---

    @ui.refreshable
    def node_info():
        node = session.current_node
        if node is None:
            ui.label('Click a node to see its details.').classes('text-sm text-gray-500')
            return

        node_id = node.id

        def commit_name(e=None):
            if not session.rename_node(node_id, name_input.value):
                # Rejected: show the name that is actually stored
                current = session.store.get_node(node_id)
                name_input.value = current.name if current else ''
            refresh_canvas()

        name_input = ui.input('Name', value=node.name).classes('w-full')
        name_input.on('blur', commit_name)
        name_input.on('keydown.enter', commit_name)

        ui.textarea(
            'Story', value=node.story,
            on_change=lambda e: session.update_node(node_id, story=e.value),
        ).props('autogrow').classes('w-full')
        ui.input(
            'Reference', value=node.reference,
            on_change=lambda e: session.update_node(node_id, reference=e.value),
        ).classes('w-full')

        connections = session.store.connections_for_node(node_id)
        if connections:
            ui.label(f'Connections ({len(connections)})').classes('text-xs text-gray-500 mt-2')
            for connection in connections:
                other_id = connection.end_node_id if connection.start_node_id == node_id else connection.start_node_id
                other = session.store.get_node(other_id)
                label = f"{connection.symbol or '-'}  {other.label if other else '?'}"
                ui.button(label, on_click=lambda c=connection: open_annotation(c.id)) \
                    .props('flat dense no-caps align=left').classes('w-full')

        with ui.row().classes('w-full justify-end'):
            ui.button('Delete node', on_click=lambda: delete_node(node_id)) \
                .props('flat color=negative icon=delete')

    def show_node_info(node):
        node_info.refresh()
        if session.settings.get('auto_open_sidebar'):
            set_drawer_open('right_sidebar_open', True)

    def delete_node(node_id):
        session.delete_node(node_id)
        node_info.refresh()
        refresh_canvas()

    # --- Node list ---

    @ui.refreshable
    def node_list():
        entries = session.node_list()
        if not entries:
            ui.label('No nodes yet.').classes('text-sm text-gray-500')
            return
        for node_id, label in entries:
            ui.button(label.split('\n')[0], on_click=lambda nid=node_id: focus_node(nid)) \
                .props('flat dense no-caps align=left').classes('w-full')

    def focus_node(node_id):
        if session.focus_node(node_id) is not None:
            node_info.refresh()
            set_drawer_open('right_sidebar_open', True)
            refresh_canvas()

    # --- Annotation dialog ---

    annotation_dialog = ui.dialog()

    def open_annotation(connection_id):
        session.open_annotation(connection_id)

    def render_annotation(connection_id):
        connection = session.store.get_connection(connection_id)
        if connection is None:
            return
        state['annotation_id'] = connection_id
        start = session.store.get_node(connection.start_node_id)
        end = session.store.get_node(connection.end_node_id)

        def save_symbol(e):
            session.update_connection(connection_id, symbol=(e.value or '')[:1])
            refresh_canvas()

        def remove():
            session.delete_connection(connection_id)
            refresh_canvas()
            node_info.refresh()

        annotation_dialog.clear()
        with annotation_dialog, ui.card().classes('w-96'):
            ui.label(f'{start.label}  ↔  {end.label}').classes('text-lg font-bold')
            ui.input('Symbol', value=connection.symbol, on_change=save_symbol) \
                .props('maxlength=1').classes('w-24')
            ui.textarea(
                'Description', value=connection.description,
                on_change=lambda e: session.update_connection(connection_id, description=e.value),
            ).props('autogrow').classes('w-full')
            with ui.row().classes('w-full justify-between'):
                ui.button('Delete', on_click=remove).props('flat color=negative icon=delete')
                ui.button('Close', on_click=lambda: session.close_annotation(connection_id)).props('flat')
        annotation_dialog.open()

    def on_annotation_closed(connection_id):
        if state['annotation_id'] == connection_id:
            state['annotation_id'] = None
            annotation_dialog.close()

    def on_dialog_hidden():
        if state['annotation_id'] is not None:
            session.close_annotation(state['annotation_id'])

    annotation_dialog.on('hide', on_dialog_hidden)

    session.events.on(ev.ANNOTATION_OPENED, render_annotation)
    session.events.on(ev.ANNOTATION_CLOSED, on_annotation_closed)
    session.events.on(ev.GRAPH_CHANGED, lambda _store: node_list.refresh())
    # Whatever deleted it (key, sweep, import, clear), a dead node leaves the info panel
    session.events.on(ev.NODE_REMOVED, lambda _node: node_info.refresh())

    # --- Event wiring ---

    edit_handlers = setup_editor_handlers(
        session=session,
        refresh_canvas=refresh_canvas,
        show_node_info=show_node_info,
    )

    ui.keyboard(on_key=edit_handlers['handle_keyboard'])

    # --- Toolbar actions ---

    def add_node():
        node = session.add_node_at_view_center()
        session.current_node_id = node.id
        show_node_info(node)
        refresh_canvas()

    def export_canvas():
        ui.download(session.export_text().encode('utf-8'), 'storymap.json')

    def handle_upload(e):
        text = e.content.read().decode('utf-8')
        if session.import_text(text):
            ui.notify(f'Imported {len(session.store)} node(s)', type='positive')
            node_info.refresh()
            refresh_canvas()
        import_dialog.close()

    def clear_canvas():
        session.clear_canvas()
        node_info.refresh()
        refresh_canvas()
        clear_dialog.close()

    def toggle_setting(name, value):
        session.settings[name] = value
        set_setting(name, value)

    def set_drawer_open(name, value):
        drawer = left_drawer if name == 'left_sidebar_open' else right_drawer
        drawer.set_value(value)
        toggle_setting(name, value)

    def set_right_width(e):
        if not e.value:
            return
        width = int(e.value)
        toggle_setting('right_sidebar_width', width)
        right_drawer.props(f'width={width}')

    def toggle_dark(e):
        toggle_setting('dark_mode', e.value)
        dark.set_value(e.value)
        refresh_canvas()

    with ui.dialog() as import_dialog, ui.card():
        ui.label('Import a story map (.json)').classes('font-bold')
        ui.label('The current canvas will be replaced.').classes('text-sm text-gray-500')
        ui.upload(on_upload=handle_upload, auto_upload=True).props('accept=.json')

    with ui.dialog() as clear_dialog, ui.card():
        ui.label('Delete every node and connection?')
        with ui.row().classes('w-full justify-end'):
            ui.button('Cancel', on_click=clear_dialog.close).props('flat')
            ui.button('Clear', on_click=clear_canvas).props('color=negative')

    # --- Layout Construction ---

    with ui.header().classes('items-center gap-2 py-1'):
        ui.button(on_click=lambda: set_drawer_open('left_sidebar_open', not left_drawer.value)).props('flat dense color=white icon=menu')
        ui.label('StoryMap').classes('text-lg font-bold')
        ui.space()
        ui.button(on_click=add_node).props('flat dense color=white icon=add').tooltip('Add node')
        ui.button(on_click=import_dialog.open).props('flat dense color=white icon=upload').tooltip('Import')
        ui.button(on_click=export_canvas).props('flat dense color=white icon=download').tooltip('Export')
        ui.button(on_click=clear_dialog.open).props('flat dense color=white icon=delete_sweep').tooltip('Clear canvas')
        with ui.button().props('flat dense color=white icon=settings'):
            with ui.menu(), ui.column().classes('p-2 gap-0'):
                ui.switch('Dark mode', value=session.settings['dark_mode'], on_change=toggle_dark)
                ui.switch('Open sidebar on node click', value=session.settings['auto_open_sidebar'],
                          on_change=lambda e: toggle_setting('auto_open_sidebar', e.value))
                ui.switch('Close panels on canvas click',
                          value=session.settings['close_objects_on_canvas_click'],
                          on_change=lambda e: toggle_setting('close_objects_on_canvas_click', e.value))
                ui.number('Sidebar width', value=session.settings['right_sidebar_width'],
                          min=200, max=800, step=20, on_change=set_right_width).props('dense')

    with ui.left_drawer(value=session.settings['left_sidebar_open']).classes('p-2') as left_drawer:
        ui.label('Nodes').classes('text-xs uppercase text-gray-500')
        node_list()

    with ui.right_drawer(value=session.settings['right_sidebar_open']) \
            .props(f"width={int(session.settings['right_sidebar_width'])}").classes('p-4') as right_drawer:
        node_info()

    # Drawers can also be closed on the client (overlay click, swipe)
    left_drawer.on('update:model-value', lambda e: toggle_setting('left_sidebar_open', bool(e.args)))
    right_drawer.on('update:model-value', lambda e: toggle_setting('right_sidebar_open', bool(e.args)))

    width, height = session.stage_size
    state['chart'] = ui.echart(get_current_options()).classes('storymap-canvas')
    state['chart'].style(f'width: {width}px; height: {height}px;')

    chart = state['chart']
    chart.on('mousedown', edit_handlers['handle_mouse_down'], REQUESTED_EVENT_KEYS)
    chart.on('mousemove', edit_handlers['handle_mouse_move'], MOVE_EVENT_KEYS, throttle=0.03)
    chart.on('mouseup', edit_handlers['handle_mouse_up'], REQUESTED_EVENT_KEYS)
    chart.on('click', edit_handlers['handle_click'], REQUESTED_EVENT_KEYS)
    chart.on('wheel.prevent', edit_handlers['handle_wheel'], WHEEL_EVENT_KEYS, throttle=0.05)
    # Right button is the sweep-delete gesture, not the browser menu
    chart.on('contextmenu.prevent', lambda e: None)

    ui.context.client.on_disconnect(session.close)
    logger.info(f"Session started with {len(session.store)} nodes ({kv_store.backend_type} storage)")


if __name__ in {"__main__", "__mp_main__"}:
    ui.run(
        title='StoryMap',
        port=8081,
        reload=not getattr(sys, 'frozen', False),
    )
