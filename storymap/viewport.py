"""
Coordinate mapping between pointer (device) space and world (canvas) space.

The canvas is infinite: the viewport is just a pan offset plus one uniform
scale. Pointer positions arrive in device pixels; everything stored in the
graph is in world units.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

Point = Tuple[float, float]

# Wheel zoom step, one notch multiplies/divides the scale by this
ZOOM_FACTOR = 1.05


def to_world(pointer: Point, pan: Point, scale: float) -> Point:
    """worldPos = (pointerPos - panOffset) / scale"""
    return ((pointer[0] - pan[0]) / scale, (pointer[1] - pan[1]) / scale)


def to_screen(world: Point, pan: Point, scale: float) -> Point:
    """Inverse of to_world."""
    return (world[0] * scale + pan[0], world[1] * scale + pan[1])


@dataclass
class Viewport:
    """Current pan offset and scale of the canvas."""
    x: float = 0.0
    y: float = 0.0
    scale: float = 1.0

    @property
    def pan(self) -> Point:
        return (self.x, self.y)

    def to_world(self, pointer: Point) -> Point:
        return to_world(pointer, self.pan, self.scale)

    def to_screen(self, world: Point) -> Point:
        return to_screen(world, self.pan, self.scale)

    def pan_by(self, dx: float, dy: float) -> None:
        self.x += dx
        self.y += dy

    def set_pan(self, x: float, y: float) -> None:
        self.x = x
        self.y = y

    def zoom_at(self, pointer: Point, delta_y: float) -> float:
        """
        Zoom one wheel step around the pointer.

        Scrolling down (positive delta) zooms out. The world point under the
        pointer stays under the pointer.
        """
        anchor = self.to_world(pointer)
        if delta_y > 0:
            new_scale = self.scale / ZOOM_FACTOR
        else:
            new_scale = self.scale * ZOOM_FACTOR
        self.scale = new_scale
        self.x = pointer[0] - anchor[0] * new_scale
        self.y = pointer[1] - anchor[1] * new_scale
        return new_scale

    def focus(self, world_rect: Tuple[float, float, float, float], stage_size: Point) -> None:
        """Pan so that the centre of world_rect (x, y, w, h) sits in the middle of the stage."""
        x, y, w, h = world_rect
        self.x = -x * self.scale + stage_size[0] / 2 - w / 2 * self.scale
        self.y = -y * self.scale + stage_size[1] / 2 - h / 2 * self.scale

    def visible_world_rect(self, stage_size: Point) -> Tuple[float, float, float, float]:
        """World-space (x0, y0, x1, y1) currently covered by a stage of the given pixel size."""
        x0, y0 = self.to_world((0, 0))
        x1, y1 = self.to_world(stage_size)
        return (x0, y0, x1, y1)

    # --- View document ---

    def to_document(self) -> Dict[str, Any]:
        return {'scale': self.scale, 'position': {'x': self.x, 'y': self.y}}

    @classmethod
    def from_document(cls, document: Optional[Dict[str, Any]]) -> 'Viewport':
        viewport = cls()
        viewport.apply_document(document)
        return viewport

    def apply_document(self, document: Optional[Dict[str, Any]]) -> bool:
        """Apply a stored view document. Returns False (and changes nothing) if it is unusable."""
        if not isinstance(document, dict):
            return False
        position = document.get('position') or {}
        try:
            scale = float(document.get('scale', 1.0))
            x = float(position.get('x', 0.0))
            y = float(position.get('y', 0.0))
        except (TypeError, ValueError, AttributeError):
            return False
        if scale <= 0:
            return False
        self.scale, self.x, self.y = scale, x, y
        return True
