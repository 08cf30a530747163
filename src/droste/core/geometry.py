"""
Geometry primitives shared by the compositor, loop controller and editor.

Points carry no unit of their own. A ``Quad`` in a session is always in
normalised [0, 1] image space; ``Quad.to_pixels`` is the one place that
scales it into pixel space.
"""

from typing import Iterable, NamedTuple


class Point(NamedTuple):
    """2D coordinate."""

    x: float
    y: float


class Quad(NamedTuple):
    """Four ordered corners: top-left, top-right, bottom-right, bottom-left."""

    p1: Point
    p2: Point
    p3: Point
    p4: Point

    @classmethod
    def from_points(cls, points: Iterable[Iterable[float]]) -> "Quad":
        """Build a quad from four ``(x, y)`` pairs."""
        corners = [Point(float(x), float(y)) for x, y in points]
        if len(corners) != 4:
            raise ValueError(f"A quad needs exactly 4 points, got {len(corners)}")
        return cls(*corners)

    @classmethod
    def rectangle(cls, width: float, height: float) -> "Quad":
        """The ``[0, width] x [0, height]`` rectangle."""
        return cls(
            Point(0.0, 0.0),
            Point(float(width), 0.0),
            Point(float(width), float(height)),
            Point(0.0, float(height)),
        )

    def to_pixels(self, width: float, height: float) -> "Quad":
        """Scale normalised coordinates into an image of the given size."""
        return Quad(*(Point(p.x * width, p.y * height) for p in self))

    def centroid(self) -> Point:
        return Point(
            sum(p.x for p in self) / 4.0,
            sum(p.y for p in self) / 4.0,
        )

    def translate(self, dx: float, dy: float) -> "Quad":
        return Quad(*(Point(p.x + dx, p.y + dy) for p in self))

    def to_list(self) -> list[list[float]]:
        return [[p.x, p.y] for p in self]


# Centred half-size window, the starting quad for every new image
DEFAULT_QUAD = Quad(
    Point(0.25, 0.25),
    Point(0.75, 0.25),
    Point(0.75, 0.75),
    Point(0.25, 0.75),
)


def quad_area(quad: Quad) -> float:
    """Unsigned shoelace area of the quad."""
    twice = 0.0
    for i in range(4):
        a = quad[i]
        b = quad[(i + 1) % 4]
        twice += a.x * b.y - b.x * a.y
    return 0.5 * abs(twice)


def lerp_point(a: Point, b: Point, t: float) -> Point:
    return Point(a.x + (b.x - a.x) * t, a.y + (b.y - a.y) * t)


def lerp_quad(a: Quad, b: Quad, t: float) -> Quad:
    """Per-corner linear interpolation between two quads."""
    return Quad(*(lerp_point(pa, pb, t) for pa, pb in zip(a, b)))
