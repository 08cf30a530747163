"""
Session configuration.

``DrosteConfig`` holds the user-facing settings of a session. It can be
read from a JSON object whose keys match the dataclass fields, e.g.::

    {
        "depth": 12,
        "zoom_speed": 0.8,
        "constant_speed": true,
        "desired_direction": "out",
        "quad": [[0.3, 0.2], [0.8, 0.25], [0.75, 0.7], [0.25, 0.75]]
    }

Depth and speed are clamped to the ranges the controls allow.
"""

import json
import math
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

from droste.core.geometry import DEFAULT_QUAD, Quad
from droste.loop import EXPORT_FPS, Direction
from droste.render.compositor import INTERPOLATIONS

MIN_DEPTH, MAX_DEPTH = 1, 20
MIN_SPEED, MAX_SPEED = 0.1, 5.0

# Export size caps per profile (longer side, pixels)
PROFILES = {
    "low": 320,
    "medium": 500,
    "high": 1024,
}


@dataclass
class DrosteConfig:
    """Settings of one Droste session."""

    depth: int = 10
    zoom_speed: float = 1.0
    constant_speed: bool = False

    # Current playback state and the direction play resumes in
    direction: Direction = Direction.STOP
    desired_direction: Direction = Direction.IN

    quad: Quad = field(default_factory=lambda: DEFAULT_QUAD)

    export_fps: int = EXPORT_FPS
    max_export_dimension: int = 500
    interpolation: str = "linear"  # "linear" or "spiral"


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def _parse_direction(value: Any, name: str) -> Direction:
    try:
        return Direction(str(value).lower())
    except ValueError:
        raise ValueError(
            f"{name} must be one of {[d.value for d in Direction]}, got {value!r}"
        ) from None


def _parse_quad(value: Any) -> Quad:
    if isinstance(value, Quad):
        return value
    if not (isinstance(value, (list, tuple)) and len(value) == 4):
        raise ValueError("quad must be a list of 4 [x, y] points.")
    for pt in value:
        if not (isinstance(pt, (list, tuple)) and len(pt) == 2):
            raise ValueError("quad must be a list of 4 [x, y] points.")
    try:
        quad = Quad.from_points(value)
    except (TypeError, ValueError):
        raise ValueError(f"quad coordinates must be numbers, got {value!r}") from None
    if not all(math.isfinite(c) for p in quad for c in p):
        raise ValueError(f"quad coordinates must be finite, got {value!r}")
    return quad


def _coerce(raw: Dict[str, Any], key: str, kind: type, description: str):
    value = raw[key]
    # bool is an int subclass; JSON true/false is never a number here
    if isinstance(value, bool):
        raise ValueError(f"{key} must be {description}, got {value!r}")
    try:
        return kind(value)
    except (TypeError, ValueError, OverflowError):
        raise ValueError(f"{key} must be {description}, got {value!r}") from None


def normalise_config(raw: Dict[str, Any]) -> DrosteConfig:
    """
    Validate a raw mapping and build a ``DrosteConfig``.

    Raises:
        ValueError: For unknown keys or malformed values.
    """
    known = {f.name for f in fields(DrosteConfig)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ValueError(f"Unknown config field(s): {', '.join(unknown)}")

    cfg = DrosteConfig()
    if "depth" in raw:
        cfg.depth = int(_clamp(_coerce(raw, "depth", int, "an integer"), MIN_DEPTH, MAX_DEPTH))
    if "zoom_speed" in raw:
        speed = _coerce(raw, "zoom_speed", float, "a number")
        if not math.isfinite(speed):
            raise ValueError(f"zoom_speed must be finite, got {speed!r}")
        cfg.zoom_speed = float(_clamp(speed, MIN_SPEED, MAX_SPEED))
    if "constant_speed" in raw:
        if not isinstance(raw["constant_speed"], bool):
            raise ValueError(f"constant_speed must be true or false, got {raw['constant_speed']!r}")
        cfg.constant_speed = raw["constant_speed"]
    if "direction" in raw:
        cfg.direction = _parse_direction(raw["direction"], "direction")
    if "desired_direction" in raw:
        cfg.desired_direction = _parse_direction(raw["desired_direction"], "desired_direction")
        if cfg.desired_direction is Direction.STOP:
            raise ValueError("desired_direction must be 'in' or 'out'.")
    if "quad" in raw:
        cfg.quad = _parse_quad(raw["quad"])
    if "export_fps" in raw:
        cfg.export_fps = _coerce(raw, "export_fps", int, "an integer")
        if cfg.export_fps <= 0:
            raise ValueError("export_fps must be positive.")
    if "max_export_dimension" in raw:
        cfg.max_export_dimension = _coerce(raw, "max_export_dimension", int, "an integer")
        if cfg.max_export_dimension <= 0:
            raise ValueError("max_export_dimension must be positive.")
    if "interpolation" in raw:
        if raw["interpolation"] not in INTERPOLATIONS:
            raise ValueError(f"interpolation must be one of {list(INTERPOLATIONS)}.")
        cfg.interpolation = raw["interpolation"]
    return cfg


def load_config(config_path: Optional[str | Path]) -> DrosteConfig:
    """Read a JSON config file, or return defaults when no path is given."""
    if not config_path:
        return DrosteConfig()
    with open(config_path, "r", encoding="utf-8") as f:
        try:
            raw = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {config_path}: {e}") from e
    if not isinstance(raw, dict):
        raise ValueError("Config JSON must be an object.")
    return normalise_config(raw)
