"""
Pillow-backed drawing surface.

The compositor needs exactly one primitive from a surface: fill a
triangle, clipped to its outline, with an affine-transformed sample of a
texture. ``PillowSurface`` implements it with ``Image.transform`` and a
polygon mask, on top of a simple scale+offset view transform that maps
image-local coordinates to device pixels.
"""

import math
from typing import Protocol, Sequence

import numpy as np
from PIL import Image, ImageDraw

from droste.core.geometry import Point

# (a, b, c, d, e, f): x' = a·u + c·v + e, y' = b·u + d·v + f
Affine = tuple[float, float, float, float, float, float]


class Surface(Protocol):
    """What the layer compositor draws on."""

    @property
    def size(self) -> tuple[int, int]: ...

    def clear(self, color: tuple[int, int, int]) -> None: ...

    def set_view(self, scale: float, offset_x: float, offset_y: float) -> None: ...

    def draw_image_triangle(
        self,
        texture: Image.Image,
        triangle: Sequence[Point],
        affine: Affine,
    ) -> bool: ...


class PillowSurface:
    """
    RGB raster surface.

    Args:
        width: Surface width in pixels.
        height: Surface height in pixels.
        background: Initial fill colour.
    """

    def __init__(
        self,
        width: int,
        height: int,
        background: tuple[int, int, int] = (0, 0, 0),
    ):
        if width <= 0 or height <= 0:
            raise ValueError(f"Surface size must be positive, got {width}x{height}")
        self.image = Image.new("RGB", (int(width), int(height)), background)
        self._scale = 1.0
        self._offset = (0.0, 0.0)

    @property
    def size(self) -> tuple[int, int]:
        return self.image.size

    def clear(self, color: tuple[int, int, int] = (0, 0, 0)):
        self.image.paste(color, (0, 0, *self.image.size))

    def set_view(self, scale: float, offset_x: float, offset_y: float):
        """Local → device: ``device = local * scale + offset``."""
        self._scale = float(scale)
        self._offset = (float(offset_x), float(offset_y))

    def to_device(self, p: Point) -> Point:
        ox, oy = self._offset
        return Point(p.x * self._scale + ox, p.y * self._scale + oy)

    def draw_image_triangle(
        self,
        texture: Image.Image,
        triangle: Sequence[Point],
        affine: Affine,
    ) -> bool:
        """
        Fill ``triangle`` (local coordinates) with ``texture`` mapped by ``affine``.

        Args:
            texture: Source RGB image.
            triangle: Three destination vertices in local coordinates.
            affine: Texture pixel → local coordinate map.

        Returns:
            True if any pixels were touched.
        """
        width, height = self.image.size
        s = self._scale
        ox, oy = self._offset
        a, b, c, d, e, f = affine

        # Texture → device
        da, db, dc, dd = a * s, b * s, c * s, d * s
        de, df = e * s + ox, f * s + oy

        det = da * dd - db * dc
        if abs(det) < 1e-12 or not math.isfinite(det):
            return False

        pts = [self.to_device(p) for p in triangle]
        x0 = max(0, int(math.floor(min(p.x for p in pts))))
        y0 = max(0, int(math.floor(min(p.y for p in pts))))
        x1 = min(width, int(math.ceil(max(p.x for p in pts))))
        y1 = min(height, int(math.ceil(max(p.y for p in pts))))
        if x1 <= x0 or y1 <= y0:
            return False
        bw, bh = x1 - x0, y1 - y0

        # Inverse map for Image.transform: patch pixel → texture pixel
        ia = dd / det
        ib = -dc / det
        ic = -db / det
        idd = da / det
        tx = x0 - de
        ty = y0 - df
        data = (
            ia, ib, ia * tx + ib * ty,
            ic, idd, ic * tx + idd * ty,
        )

        patch = texture.transform((bw, bh), Image.AFFINE, data, resample=Image.BILINEAR)

        mask = Image.new("L", (bw, bh), 0)
        ImageDraw.Draw(mask).polygon(
            [(p.x - x0, p.y - y0) for p in pts],
            fill=255,
        )
        self.image.paste(patch, (x0, y0), mask)
        return True

    def to_array(self) -> np.ndarray:
        """Current contents as an (H, W, 3) uint8 array."""
        return np.asarray(self.image, dtype=np.uint8).copy()
