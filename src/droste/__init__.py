"""Infinite recursive Droste zoom loops from a single image."""

from droste.config import DrosteConfig, load_config
from droste.core.geometry import Point, Quad
from droste.io.encoder import ExportError
from droste.loop import Direction, LoopController, plan_export
from droste.render.compositor import LayerCompositor, RenderConfig
from droste.render.surface import PillowSurface
from droste.session import DrosteSession

__version__ = "0.1.0"
__all__ = [
    "Direction",
    "DrosteConfig",
    "DrosteSession",
    "ExportError",
    "LayerCompositor",
    "LoopController",
    "PillowSurface",
    "Point",
    "Quad",
    "RenderConfig",
    "load_config",
    "plan_export",
]
