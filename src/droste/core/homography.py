"""
Perspective mappings between the image rectangle and a quad.

Matrices are 9-tuples in row-major order with the bottom-right element
normalised to 1. Every function here substitutes the identity (or an
undivided point) for degenerate input instead of raising, so one bad frame
can never poison the layers chained after it.
"""

import math
from typing import Optional, Sequence

from droste.core.geometry import Point, Quad
from droste.core.linalg import solve_linear_system

Matrix3 = tuple[float, float, float, float, float, float, float, float, float]

IDENTITY: Matrix3 = (1.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 1.0)

# Below this |w| the raw transform skips the perspective divide
W_EPSILON = 1e-8

# transform_point_safe rejects points at or behind the horizon
SAFE_W_MIN = 1e-4
SAFE_COORDINATE_LIMIT = 50000.0

FIXED_POINT_ITERATIONS = 20


def _is_finite(values: Sequence[float]) -> bool:
    return all(math.isfinite(v) for v in values)


def finite_or_identity(m: Sequence[float]) -> Matrix3:
    """Return ``m`` unchanged if every entry is finite, else the identity."""
    if _is_finite(m):
        return tuple(m)
    return IDENTITY


def compute_homography(src_width: float, src_height: float, dest_quad: Quad) -> Matrix3:
    """
    Solve the homography taking ``[0, w] x [0, h]`` onto ``dest_quad``.

    The rectangle corners (0,0), (w,0), (w,h), (0,h) map to p1..p4.

    Args:
        src_width: Source rectangle width.
        src_height: Source rectangle height.
        dest_quad: Destination corners, same winding as the rectangle.

    Returns:
        Row-major 3x3 matrix, or the identity if the system is singular.
    """
    w = float(src_width)
    h = float(src_height)
    corners = ((0.0, 0.0), (w, 0.0), (w, h), (0.0, h))

    a: list[list[float]] = []
    b: list[float] = []
    for (sx, sy), dst in zip(corners, dest_quad):
        a.append([sx, sy, 1.0, 0.0, 0.0, 0.0, -sx * dst.x, -sy * dst.x])
        b.append(dst.x)
        a.append([0.0, 0.0, 0.0, sx, sy, 1.0, -sx * dst.y, -sy * dst.y])
        b.append(dst.y)

    x = solve_linear_system(a, b)
    if not _is_finite(x):
        return IDENTITY
    # An all-zero solution is the solver's singular signal
    if not any(x):
        return IDENTITY
    return (*x, 1.0)


def multiply_matrix(a: Sequence[float], b: Sequence[float]) -> Matrix3:
    """Row-major 3x3 product ``a · b``."""
    return tuple(
        a[i * 3] * b[j] + a[i * 3 + 1] * b[3 + j] + a[i * 3 + 2] * b[6 + j]
        for i in range(3)
        for j in range(3)
    )


def invert_matrix(m: Sequence[float]) -> Matrix3:
    """Closed-form cofactor inverse; a zero determinant yields the identity."""
    m00, m01, m02, m10, m11, m12, m20, m21, m22 = m

    b01 = m22 * m11 - m12 * m21
    b11 = -m22 * m10 + m12 * m20
    b21 = m21 * m10 - m11 * m20

    det = m00 * b01 + m01 * b11 + m02 * b21
    if det == 0:
        return IDENTITY

    inv = (
        b01 / det,
        (-m22 * m01 + m02 * m21) / det,
        (m12 * m01 - m02 * m11) / det,
        b11 / det,
        (m22 * m00 - m02 * m20) / det,
        (-m12 * m00 + m02 * m10) / det,
        b21 / det,
        (-m21 * m00 + m01 * m20) / det,
        (m11 * m00 - m01 * m10) / det,
    )
    return finite_or_identity(inv)


def transform_point(h: Sequence[float], x: float, y: float) -> Point:
    """
    Apply ``h`` to ``(x, y)`` with a perspective divide.

    Near the horizon (``|w| < 1e-8``) the undivided coordinates come back.
    Meant for analytic use such as fixed-point search; drawing code uses
    ``transform_point_safe``.
    """
    px = h[0] * x + h[1] * y + h[2]
    py = h[3] * x + h[4] * y + h[5]
    w = h[6] * x + h[7] * y + h[8]
    if abs(w) < W_EPSILON:
        return Point(px, py)
    return Point(px / w, py / w)


def transform_point_safe(h: Sequence[float], x: float, y: float) -> Optional[Point]:
    """
    Apply ``h`` for rendering.

    Returns None for points whose ``w`` is below a small positive threshold
    (at or behind the horizon), and clamps the result to
    ``±SAFE_COORDINATE_LIMIT`` so drawing primitives never see unbounded
    coordinates.
    """
    px = h[0] * x + h[1] * y + h[2]
    py = h[3] * x + h[4] * y + h[5]
    w = h[6] * x + h[7] * y + h[8]
    # NaN compares false, so reject it explicitly
    if not w >= SAFE_W_MIN:
        return None

    rx = px / w
    ry = py / w
    if math.isnan(rx) or math.isnan(ry):
        return None
    limit = SAFE_COORDINATE_LIMIT
    return Point(
        max(-limit, min(limit, rx)),
        max(-limit, min(limit, ry)),
    )


def find_fixed_point(h: Sequence[float], width: float, height: float) -> Point:
    """
    Locate the attracting fixed point of ``h`` by iteration.

    Starts at the centre of a ``width x height`` image; a non-finite
    iterate aborts back to the centre.
    """
    centre = Point(width / 2.0, height / 2.0)
    p = centre
    for _ in range(FIXED_POINT_ITERATIONS):
        p = transform_point(h, p.x, p.y)
        if not (math.isfinite(p.x) and math.isfinite(p.y)):
            return centre
    return p
