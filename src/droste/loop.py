"""
Zoom-loop animation model.

A single scalar zoom level in ``[1, loop_scale)`` drives everything: its
logarithm relative to ``log(loop_scale)`` is the recursion phase, and
wrapping it at ``loop_scale`` is what makes playback loop forever without
a visible jump. Export uses the same phase relationship evaluated at fixed
times, so an exported sequence matches what live playback would show.
"""

import math
from dataclasses import dataclass
from enum import Enum

from droste.core.geometry import Quad, quad_area

EXPORT_FPS = 30

# Loops shorter than this (in log space) have no usable phase
MIN_LOG_SCALE = 1e-4

MIN_EXPORT_DURATION = 0.2
MAX_EXPORT_DURATION = 10.0
MIN_EXPORT_FRAMES = 10

# Fraction of the loop covered per second per unit of speed in constant mode
CONSTANT_SPEED_RATE = 0.5


class Direction(str, Enum):
    IN = "in"
    OUT = "out"
    STOP = "stop"


@dataclass
class ZoomState:
    """Live zoom state, owned by one controller."""

    zoom_level: float = 1.0
    loop_scale: float = 1.0


@dataclass(frozen=True)
class ExportPlan:
    """Frame count, timing and per-frame phase of an export."""

    duration: float
    fps: int
    total_frames: int
    delay_ms: int
    phases: tuple[float, ...]


def compute_loop_scale(quad_px: Quad, width: float, height: float) -> float:
    """
    Zoom factor after which the recursion repeats exactly.

    Args:
        quad_px: Inner quad in pixel coordinates.
        width: Image width in pixels.
        height: Image height in pixels.
    """
    return math.sqrt((width * height) / max(1.0, quad_area(quad_px)))


def phase_for_zoom(zoom_level: float, loop_scale: float) -> float:
    """Recursion phase in ``[0, 1)`` for a zoom level."""
    log_s = math.log(loop_scale) if loop_scale > 0 else 0.0
    if log_s <= MIN_LOG_SCALE:
        return 0.0
    p = math.log(max(1.0, zoom_level)) / log_s
    return p - math.floor(p)


def advance_zoom(
    state: ZoomState,
    dt: float,
    speed: float,
    direction: Direction,
    constant_speed: bool = False,
) -> float:
    """
    Step the zoom level by one tick and return the new phase.

    Multiplicative mode scales the zoom by ``1 + speed·dt`` per tick, which
    feels like natural exponential flow. Constant-speed mode moves it
    linearly by a step proportional to ``loop_scale - 1`` so the visible
    flow rate stays even. Both wrap within ``[1, loop_scale)``.
    """
    limit = state.loop_scale
    if math.log(max(limit, 1.0)) <= MIN_LOG_SCALE:
        state.zoom_level = 1.0
        return 0.0

    if direction is Direction.STOP or dt <= 0:
        return phase_for_zoom(state.zoom_level, limit)

    z = state.zoom_level
    if constant_speed:
        span = limit - 1.0
        step = speed * dt * CONSTANT_SPEED_RATE * span
        z = z + step if direction is Direction.IN else z - step
        z = 1.0 + math.fmod(z - 1.0, span)
        if z < 1.0:
            z += span
    else:
        step = 1.0 + speed * dt
        z = z * step if direction is Direction.IN else z / step
        log_s = math.log(limit)
        frac = math.fmod(math.log(max(z, 1e-300)), log_s)
        if frac < 0.0:
            frac += log_s
        z = math.exp(frac)

    # Rounding can land exactly on the limit
    if z >= limit:
        z = 1.0
    state.zoom_level = z
    return phase_for_zoom(z, limit)


def plan_export(
    loop_scale: float,
    speed: float,
    constant_speed: bool,
    direction: Direction,
    fps: int = EXPORT_FPS,
) -> ExportPlan:
    """
    Deterministic frame schedule for exporting one loop.

    Args:
        loop_scale: Current loop scale.
        speed: Zoom speed; non-positive values fall back to 1.
        constant_speed: Linear zoom (True) or multiplicative flow (False).
        direction: ``OUT`` plays the loop backwards; anything else forwards.
        fps: Export frame rate.

    Returns:
        ExportPlan with one phase per frame.
    """
    if speed <= 0:
        speed = 1.0

    if constant_speed:
        duration = 2.0 / speed
    else:
        duration = math.log(max(1.1, loop_scale)) / speed
    duration = max(MIN_EXPORT_DURATION, min(duration, MAX_EXPORT_DURATION))

    total = max(MIN_EXPORT_FRAMES, int(math.floor(duration * fps)))
    delay_ms = int(math.floor(1000 / fps))

    log_s = math.log(loop_scale) if loop_scale > 0 else 0.0
    phases = []
    for i in range(total):
        t = i / total
        if constant_speed and log_s > MIN_LOG_SCALE:
            p = math.log(1.0 + (loop_scale - 1.0) * t) / log_s
        else:
            p = t
        if direction is Direction.OUT:
            p = 1.0 - p
        phases.append(p)

    return ExportPlan(
        duration=duration,
        fps=fps,
        total_frames=total,
        delay_ms=delay_ms,
        phases=tuple(phases),
    )


class LoopController:
    """
    Owns the live zoom state.

    The host reads the latest speed/direction settings each tick and
    passes them to ``advance``; export never touches this state.
    """

    def __init__(self, state: ZoomState | None = None):
        self.state = state or ZoomState()

    @property
    def zoom_level(self) -> float:
        return self.state.zoom_level

    @property
    def loop_scale(self) -> float:
        return self.state.loop_scale

    def reset(self):
        """Back to the start of the loop (new image or edited quad)."""
        self.state.zoom_level = 1.0

    def update_loop_scale(self, quad: Quad, width: float, height: float) -> float:
        """Recompute the loop scale from a normalised quad and image size."""
        self.state.loop_scale = compute_loop_scale(quad.to_pixels(width, height), width, height)
        return self.state.loop_scale

    def advance(
        self,
        dt: float,
        speed: float,
        direction: Direction,
        constant_speed: bool = False,
    ) -> float:
        return advance_zoom(self.state, dt, speed, direction, constant_speed)

    def phase(self) -> float:
        return phase_for_zoom(self.state.zoom_level, self.state.loop_scale)
