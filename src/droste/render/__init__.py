"""
Layer compositing onto 2D raster surfaces.
"""

from droste.render.compositor import FrameStats, LayerCompositor, RenderConfig
from droste.render.surface import PillowSurface, Surface
