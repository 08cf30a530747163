"""
Recursive layer compositor.

Draws one frame of the Droste zoom: the image rectangle is interpolated
toward the inner quad by the loop phase to form the viewport, and every
visible recursion layer is drawn through a chain of homographies relative
to that viewport. Each layer is split into a triangle grid whose density
follows the layer's projected size, and each triangle is drawn with a
slightly inflated affine texture map so neighbouring triangles overlap
instead of leaving seams.

Nothing is kept between frames; each ``render`` call starts from the quad
and phase alone.
"""

import math
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
from PIL import Image

from droste.core.geometry import Point, Quad, lerp_quad
from droste.core.homography import (
    IDENTITY,
    compute_homography,
    find_fixed_point,
    finite_or_identity,
    invert_matrix,
    multiply_matrix,
    transform_point_safe,
)
from droste.core.matrix_power import matrix_power_2x2
from droste.render.surface import Affine, Surface
from droste.util.logging_setup import get_logger

INTERPOLATIONS = ("linear", "spiral")


@dataclass
class RenderConfig:
    """Tuning for the layer walk and triangle grid."""

    # Outward layers drawn beyond the base image
    start_layer: int = -2

    # Grid cells per axis
    base_grid_size: int = 10
    export_grid_size: int = 20
    warped_grid_size: int = 10
    export_warped_grid_size: int = 16
    min_grid_size: int = 2
    pixels_per_cell: float = 150.0

    # A layer narrower than this (local units) ends the walk
    min_layer_extent: float = 0.5

    # Cells whose centre lies further than this outside the view are skipped
    cull_margin: float = 5000.0

    # Destination triangles are scaled by this about their centroid
    seam_padding: float = 1.03

    # Fraction of the limiting surface dimension the image occupies
    fit_margin: float = 0.9

    background: tuple[int, int, int] = (0, 0, 0)
    interpolation: str = "linear"  # "linear" or "spiral"


@dataclass
class FrameStats:
    """What one ``render`` call drew."""

    phase: float = 0.0
    layers_drawn: int = 0
    triangles_drawn: int = 0
    triangles_skipped: int = 0
    stopped_early: bool = False


def affine_from_triangles(
    src: Sequence[Point],
    dst: Sequence[Point],
) -> Optional[Affine]:
    """
    Closed-form affine map taking the three ``src`` points onto ``dst``.

    Returns:
        ``(a, b, c, d, e, f)`` with ``x' = a·u + c·v + e`` and
        ``y' = b·u + d·v + f``, or None if either triangle is degenerate.
    """
    u0, v0 = src[0]
    du1, dv1 = src[1].x - u0, src[1].y - v0
    du2, dv2 = src[2].x - u0, src[2].y - v0

    det = du1 * dv2 - du2 * dv1
    if abs(det) < 1e-6:
        return None

    x0, y0 = dst[0]
    dx1, dy1 = dst[1].x - x0, dst[1].y - y0
    dx2, dy2 = dst[2].x - x0, dst[2].y - y0

    inv_det = 1.0 / det
    a = (dx1 * dv2 - dx2 * dv1) * inv_det
    c = (du1 * dx2 - du2 * dx1) * inv_det
    e = x0 - a * u0 - c * v0

    b = (dy1 * dv2 - dy2 * dv1) * inv_det
    d = (du1 * dy2 - du2 * dy1) * inv_det
    f = y0 - b * u0 - d * v0

    if abs(a * d - b * c) < 1e-12:
        return None
    if not all(math.isfinite(v) for v in (a, b, c, d, e, f)):
        return None
    return (a, b, c, d, e, f)


def inflate_triangle(points: Sequence[Point], factor: float) -> list[Point]:
    """Scale a triangle about its centroid."""
    cx = sum(p.x for p in points) / 3.0
    cy = sum(p.y for p in points) / 3.0
    return [Point(cx + (p.x - cx) * factor, cy + (p.y - cy) * factor) for p in points]


def draw_padded_triangle(
    surface: Surface,
    texture: Image.Image,
    screen_pts: Sequence[Point],
    image_pts: Sequence[Point],
    padding: float = 1.03,
) -> bool:
    """
    Draw one textured triangle with seam mitigation.

    The destination triangle is inflated before the affine fit, so shared
    edges between neighbours overlap slightly.

    Returns:
        False if the triangle was degenerate and skipped.
    """
    padded = inflate_triangle(screen_pts, padding) if padding > 0 else list(screen_pts)
    affine = affine_from_triangles(image_pts, padded)
    if affine is None:
        return False
    surface.draw_image_triangle(texture, padded, affine)
    return True


def grid_size_for_layer(
    corners: Sequence[Optional[Point]],
    export_mode: bool,
    config: RenderConfig,
) -> int:
    """
    Choose the grid density for a layer from its projected corners.

    Layers with a corner past the horizon are strongly warped and get the
    fixed dense grid; the rest scale with their on-screen size.
    """
    valid = [p for p in corners if p is not None]
    if len(valid) < 4:
        return config.export_warped_grid_size if export_mode else config.warped_grid_size

    extent = max(
        max(p.x for p in valid) - min(p.x for p in valid),
        max(p.y for p in valid) - min(p.y for p in valid),
    )
    base = config.export_grid_size if export_mode else config.base_grid_size
    calculated = int(math.floor(extent / config.pixels_per_cell))
    return max(config.min_grid_size, min(base, calculated))


def _fit_affine(src: Quad, dst: Quad) -> tuple[np.ndarray, np.ndarray]:
    """Least-squares ``x → A·x + b`` taking the corners of ``src`` onto ``dst``."""
    lhs = np.array([[p.x, p.y, 1.0] for p in src], dtype=np.float64)
    rhs = np.array([[p.x, p.y] for p in dst], dtype=np.float64)
    sol, *_ = np.linalg.lstsq(lhs, rhs, rcond=None)
    return sol[:2].T, sol[2]


class LayerCompositor:
    """
    Renders Droste frames onto a ``Surface``.

    Args:
        config: Layer walk and grid tuning. Uses defaults if None.
    """

    def __init__(self, config: RenderConfig | None = None):
        self.cfg = config or RenderConfig()
        if self.cfg.interpolation not in INTERPOLATIONS:
            raise ValueError(
                f"interpolation must be one of {INTERPOLATIONS}, got {self.cfg.interpolation!r}"
            )

    def viewport_quad(self, q_points: Quad, width: float, height: float, phase: float) -> Quad:
        """
        The quad the full image is mapped into at ``phase``.

        ``phase`` 0 is the image rectangle itself and 1 is ``q_points``.
        """
        rect = Quad.rectangle(width, height)
        if self.cfg.interpolation == "spiral":
            spiral = self._spiral_viewport(rect, q_points, width, height, phase)
            if spiral is not None:
                return spiral
            get_logger().debug("Spiral viewport not finite at phase=%.4f, using linear", phase)
        return lerp_quad(rect, q_points, phase)

    def _spiral_viewport(
        self,
        rect: Quad,
        q_points: Quad,
        width: float,
        height: float,
        phase: float,
    ) -> Optional[Quad]:
        lin, _ = _fit_affine(rect, q_points)
        power = matrix_power_2x2(lin[0, 0], lin[0, 1], lin[1, 0], lin[1, 1], phase)
        if not all(math.isfinite(v) for v in power):
            return None
        pw = np.array(power, dtype=np.float64).reshape(2, 2)

        # Spiral about the inner-quad homography's attracting fixed point
        h = compute_homography(width, height, q_points)
        centre = np.array(find_fixed_point(h, width, height), dtype=np.float64)

        corners = []
        for r, q in zip(rect, q_points):
            offset = np.array(r, dtype=np.float64) - centre
            # Residual keeps phase 1 exact for quads that are not parallelograms
            residual = np.array(q, dtype=np.float64) - (centre + lin @ offset)
            p = centre + pw @ offset + phase * residual
            if not np.all(np.isfinite(p)):
                return None
            corners.append(Point(float(p[0]), float(p[1])))
        return Quad(*corners)

    def render(
        self,
        surface: Surface,
        texture: Image.Image,
        quad: Quad,
        depth: int,
        phase: float,
        export_mode: bool = False,
    ) -> FrameStats:
        """
        Draw one frame.

        Args:
            surface: Target surface; cleared first.
            texture: RGB source image.
            quad: Inner window in normalised image coordinates.
            depth: Number of inward layers.
            phase: Loop phase; only its fractional part is used.
            export_mode: Use the denser export grids.

        Returns:
            FrameStats for the frame.
        """
        cfg = self.cfg
        logger = get_logger()

        p = phase - math.floor(phase)
        stats = FrameStats(phase=p)

        surface.clear(cfg.background)
        iw, ih = texture.size
        if iw == 0 or ih == 0:
            return stats

        q_points = quad.to_pixels(iw, ih)
        viewport = self.viewport_quad(q_points, iw, ih, p)

        m = compute_homography(iw, ih, viewport)
        k = invert_matrix(m)
        h = compute_homography(iw, ih, q_points)
        h_inv = invert_matrix(h)

        width, height = surface.size
        scale_to_fit = min(width / iw, height / ih) * cfg.fit_margin
        offset_x = (width - iw * scale_to_fit) / 2.0
        offset_y = (height - ih * scale_to_fit) / 2.0
        surface.set_view(scale_to_fit, offset_x, offset_y)

        # Visible surface in local coordinates
        cull_x = -offset_x / scale_to_fit
        cull_y = -offset_y / scale_to_fit
        cull_w = width / scale_to_fit
        cull_h = height / scale_to_fit
        margin = cfg.cull_margin

        current_h = IDENTITY
        for _ in range(max(0, -cfg.start_layer)):
            current_h = finite_or_identity(multiply_matrix(current_h, h_inv))

        for layer in range(cfg.start_layer, depth):
            layer_matrix = finite_or_identity(multiply_matrix(k, current_h))

            corners = [
                transform_point_safe(layer_matrix, 0.0, 0.0),
                transform_point_safe(layer_matrix, iw, 0.0),
                transform_point_safe(layer_matrix, iw, ih),
                transform_point_safe(layer_matrix, 0.0, ih),
            ]
            valid = [c for c in corners if c is not None]
            if valid:
                extent_x = max(c.x for c in valid) - min(c.x for c in valid)
                extent_y = max(c.y for c in valid) - min(c.y for c in valid)
                if extent_x < cfg.min_layer_extent or extent_y < cfg.min_layer_extent:
                    logger.debug(
                        "Layer %d is sub-pixel (%.3fx%.3f), stopping walk",
                        layer, extent_x, extent_y,
                    )
                    stats.stopped_early = True
                    break

            grid = grid_size_for_layer(corners, export_mode, cfg)

            # Project the (grid+1)^2 vertices once
            us = [iw * i / grid for i in range(grid + 1)]
            vs = [ih * j / grid for j in range(grid + 1)]
            projected = [
                [transform_point_safe(layer_matrix, u, v) for u in us]
                for v in vs
            ]

            for gy in range(grid):
                for gx in range(grid):
                    p1 = projected[gy][gx]
                    p2 = projected[gy][gx + 1]
                    p3 = projected[gy + 1][gx]
                    p4 = projected[gy + 1][gx + 1]

                    finite = [pt for pt in (p1, p2, p3, p4) if pt is not None]
                    if not finite:
                        continue
                    cx = sum(pt.x for pt in finite) / len(finite)
                    cy = sum(pt.y for pt in finite) / len(finite)
                    if (
                        cx < cull_x - margin
                        or cx > cull_x + cull_w + margin
                        or cy < cull_y - margin
                        or cy > cull_y + cull_h + margin
                    ):
                        continue

                    t1 = Point(us[gx], vs[gy])
                    t2 = Point(us[gx + 1], vs[gy])
                    t3 = Point(us[gx], vs[gy + 1])
                    t4 = Point(us[gx + 1], vs[gy + 1])

                    for screen, image in (
                        ((p1, p2, p3), (t1, t2, t3)),
                        ((p2, p4, p3), (t2, t4, t3)),
                    ):
                        if any(pt is None for pt in screen):
                            continue
                        if draw_padded_triangle(surface, texture, screen, image, cfg.seam_padding):
                            stats.triangles_drawn += 1
                        else:
                            stats.triangles_skipped += 1

            stats.layers_drawn += 1
            current_h = finite_or_identity(multiply_matrix(current_h, h))

        return stats
