"""
Quad editing model.

Pure functions behind the interactive editor: which handle a pointer
grabs, and how a drag reshapes the quad. All points are in normalised
image coordinates.
"""

import math
from enum import Enum
from typing import Optional

from droste.core.geometry import Point, Quad


class EditMode(str, Enum):
    # Drags move, rotate or uniformly scale the whole quad
    TRANSFORM = "transform"
    # Drags move single corners
    CORNER = "corner"


class DragTarget(Enum):
    P1 = 0
    P2 = 1
    P3 = 2
    P4 = 3
    MOVE = "move"
    ROTATE = "rotate"


CORNER_TARGETS = (DragTarget.P1, DragTarget.P2, DragTarget.P3, DragTarget.P4)


def rotation_handle(quad: Quad, width: float, height: float, offset: float) -> Point:
    """
    Position of the rotation handle.

    It sits ``offset`` pixels beyond the middle of the top edge, along the
    line from the quad centre, measured in an image of ``width x height``.
    """
    top_mid = Point((quad.p1.x + quad.p2.x) / 2.0, (quad.p1.y + quad.p2.y) / 2.0)
    centre = quad.centroid()
    dx = (top_mid.x - centre.x) * width
    dy = (top_mid.y - centre.y) * height
    length = math.hypot(dx, dy) or 1.0
    return Point(
        top_mid.x + (dx / length) * (offset / width),
        top_mid.y + (dy / length) * (offset / height),
    )


def hit_test(
    quad: Quad,
    point: Point,
    threshold: float,
    mode: EditMode,
    rotate_handle: Optional[Point] = None,
) -> Optional[DragTarget]:
    """
    Find the drag target under ``point``.

    Corners win over the rotation handle, which wins over the body. The
    body test uses the quad's axis-aligned extent.
    """
    for target, corner in zip(CORNER_TARGETS, quad):
        if math.hypot(corner.x - point.x, corner.y - point.y) < threshold:
            return target

    if mode is EditMode.TRANSFORM and rotate_handle is not None:
        if math.hypot(rotate_handle.x - point.x, rotate_handle.y - point.y) < threshold:
            return DragTarget.ROTATE

    min_x = min(quad.p1.x, quad.p4.x)
    max_x = max(quad.p2.x, quad.p3.x)
    min_y = min(quad.p1.y, quad.p2.y)
    max_y = max(quad.p3.y, quad.p4.y)
    if min_x < point.x < max_x and min_y < point.y < max_y:
        return DragTarget.MOVE
    return None


def _rotate(p: Point, centre: Point, angle: float) -> Point:
    px = p.x - centre.x
    py = p.y - centre.y
    cos_a = math.cos(angle)
    sin_a = math.sin(angle)
    return Point(px * cos_a - py * sin_a + centre.x, px * sin_a + py * cos_a + centre.y)


def apply_drag(
    quad: Quad,
    target: DragTarget,
    mode: EditMode,
    point: Point,
    original: Optional[Quad] = None,
) -> Quad:
    """
    Reshape ``quad`` for a pointer at ``point`` dragging ``target``.

    Args:
        quad: Quad as of the previous pointer event.
        target: What is being dragged.
        mode: Editor mode.
        point: Pointer position.
        original: Quad at drag start; corner scaling measures against it.
            Defaults to ``quad``.

    Returns:
        The new quad.
    """
    if mode is EditMode.CORNER:
        if target in CORNER_TARGETS:
            corners = list(quad)
            corners[target.value] = point
            return Quad(*corners)
        if target is DragTarget.MOVE:
            centre = quad.centroid()
            return quad.translate(point.x - centre.x, point.y - centre.y)
        return quad

    centre = Point((quad.p1.x + quad.p3.x) / 2.0, (quad.p1.y + quad.p3.y) / 2.0)

    if target is DragTarget.MOVE:
        return quad.translate(point.x - centre.x, point.y - centre.y)

    if target is DragTarget.ROTATE:
        top_mid = Point((quad.p1.x + quad.p2.x) / 2.0, (quad.p1.y + quad.p2.y) / 2.0)
        old_angle = math.atan2(top_mid.y - centre.y, top_mid.x - centre.x)
        new_angle = math.atan2(point.y - centre.y, point.x - centre.x)
        rot = new_angle - old_angle
        return Quad(*(_rotate(p, centre, rot) for p in quad))

    # Corner drag in transform mode scales uniformly about the centre
    reference = (original or quad)[target.value]
    dist_old = math.hypot(reference.x - centre.x, reference.y - centre.y) or 1.0
    dist_new = math.hypot(point.x - centre.x, point.y - centre.y)
    scale = dist_new / dist_old
    return Quad(*(
        Point(centre.x + (p.x - centre.x) * scale, centre.y + (p.y - centre.y) * scale)
        for p in quad
    ))
