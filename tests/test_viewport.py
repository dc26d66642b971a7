import pytest

from storymap.viewport import ZOOM_FACTOR, Viewport, to_screen, to_world


def test_to_world_applies_pan_then_scale():
    assert to_world((110, 220), (10, 20), 2.0) == (50.0, 100.0)


def test_to_screen_inverts_to_world():
    world = to_world((333, 47), (-12.5, 80), 1.5)
    sx, sy = to_screen(world, (-12.5, 80), 1.5)
    assert sx == pytest.approx(333)
    assert sy == pytest.approx(47)


class TestZoom:
    """Wheel zoom keeps the world point under the pointer fixed."""

    def test_scroll_up_zooms_in(self):
        vp = Viewport()
        assert vp.zoom_at((100, 100), -120) == pytest.approx(ZOOM_FACTOR)

    def test_scroll_down_zooms_out(self):
        vp = Viewport()
        assert vp.zoom_at((100, 100), 120) == pytest.approx(1 / ZOOM_FACTOR)

    @pytest.mark.parametrize("delta", [-1, 1])
    def test_anchor_point_stays_under_pointer(self, delta):
        vp = Viewport(x=40, y=-25, scale=1.3)
        pointer = (250, 175)
        before = vp.to_world(pointer)
        vp.zoom_at(pointer, delta)
        after = vp.to_world(pointer)
        assert after[0] == pytest.approx(before[0])
        assert after[1] == pytest.approx(before[1])


def test_focus_centres_rect_on_stage():
    vp = Viewport()
    vp.focus((0, 0, 100, 50), (1280, 720))
    assert vp.pan == (590, 335)
    # The rect centre now maps to the stage centre
    assert vp.to_screen((50, 25)) == (640, 360)


def test_visible_world_rect_follows_pan_and_scale():
    vp = Viewport(x=-100, y=-50, scale=2.0)
    assert vp.visible_world_rect((200, 100)) == (50.0, 25.0, 150.0, 75.0)


class TestViewDocument:

    def test_document_shape(self):
        vp = Viewport(x=3, y=4, scale=0.5)
        assert vp.to_document() == {'scale': 0.5, 'position': {'x': 3, 'y': 4}}

    def test_from_document(self):
        vp = Viewport.from_document({'scale': 2, 'position': {'x': -5, 'y': 7}})
        assert (vp.x, vp.y, vp.scale) == (-5.0, 7.0, 2.0)

    @pytest.mark.parametrize("document", [
        None,
        "not a dict",
        {'scale': 0},
        {'scale': -1},
        {'scale': 'big'},
        {'scale': 1, 'position': {'x': 'left'}},
    ])
    def test_unusable_document_changes_nothing(self, document):
        vp = Viewport(x=1, y=2, scale=3)
        assert vp.apply_document(document) is False
        assert (vp.x, vp.y, vp.scale) == (1, 2, 3)
