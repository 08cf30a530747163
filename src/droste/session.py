"""
Droste session: one image, its quad, the live zoom loop and export.

The session is what a host drives. A live host calls ``tick`` once per
display refresh; an export renders the loop's fixed phase schedule on an
offscreen surface and hands the frames to an encoder. An ``is_exporting``
flag keeps the two from running at once, and export never reads or writes
the live zoom level.
"""

import time
from dataclasses import replace
from pathlib import Path
from typing import Callable, Iterator, Optional

import numpy as np
from PIL import Image

from droste.config import DrosteConfig
from droste.core.geometry import Quad
from droste.io.encoder import ExportError, encode_gif, encode_video, encoder_for_path
from droste.loop import Direction, ExportPlan, LoopController, plan_export
from droste.render.compositor import FrameStats, LayerCompositor, RenderConfig
from droste.render.surface import PillowSurface, Surface
from droste.util.logging_setup import get_logger


class ExportCancelled(Exception):
    """Raised inside the export frame loop when a cancel was requested."""


def prepare_texture(image: Image.Image, background: tuple[int, int, int] = (0, 0, 0)) -> Image.Image:
    """RGB copy of ``image``; transparency is flattened onto ``background``."""
    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        base = Image.new("RGBA", rgba.size, (*background, 255))
        return Image.alpha_composite(base, rgba).convert("RGB")
    return image.convert("RGB")


class DrosteSession:
    """
    Live and export orchestration for one image.

    Args:
        image: Source image.
        config: Session settings. Uses defaults if None.
        render_config: Compositor tuning. Uses defaults if None; its
            interpolation is taken from ``config``.
    """

    def __init__(
        self,
        image: Image.Image | None = None,
        config: DrosteConfig | None = None,
        render_config: RenderConfig | None = None,
    ):
        self.config = config or DrosteConfig()
        render_config = replace(
            render_config or RenderConfig(),
            interpolation=self.config.interpolation,
        )
        self.compositor = LayerCompositor(render_config)
        self.loop = LoopController()
        self.texture: Image.Image | None = None
        self.is_exporting = False
        self.export_progress = 0.0
        self._cancel_requested = False
        if image is not None:
            self.load_image(image, keep_quad=True)

    # --- State changes ---

    def load_image(self, image: Image.Image, keep_quad: bool = False):
        """Use a new image. Unless ``keep_quad``, the quad resets and playback stops."""
        self.texture = prepare_texture(image, self.compositor.cfg.background)
        if not keep_quad:
            self.config.quad = DrosteConfig().quad
            self.config.direction = Direction.STOP
        self._refresh_loop_scale()
        self.loop.reset()

    def set_quad(self, quad: Quad):
        """Replace the inner quad; the loop scale changes, so the zoom restarts."""
        self.config.quad = quad
        self._refresh_loop_scale()
        self.loop.reset()

    def toggle_play(self):
        if self.config.direction is Direction.STOP:
            self.config.direction = self.config.desired_direction
        else:
            self.config.direction = Direction.STOP

    def toggle_direction(self):
        new_dir = Direction.OUT if self.config.desired_direction is Direction.IN else Direction.IN
        self.config.desired_direction = new_dir
        if self.config.direction is not Direction.STOP:
            self.config.direction = new_dir

    def _refresh_loop_scale(self) -> float:
        if self.texture is None:
            return self.loop.loop_scale
        iw, ih = self.texture.size
        return self.loop.update_loop_scale(self.config.quad, iw, ih)

    # --- Live ---

    def render(
        self,
        surface: Surface,
        export_mode: bool = False,
        phase: Optional[float] = None,
    ) -> FrameStats:
        """Draw one frame, at the live phase unless ``phase`` is given."""
        if self.texture is None:
            surface.clear(self.compositor.cfg.background)
            return FrameStats()
        self._refresh_loop_scale()
        if phase is None:
            phase = self.loop.phase()
        return self.compositor.render(
            surface,
            self.texture,
            self.config.quad,
            self.config.depth,
            phase,
            export_mode=export_mode,
        )

    def tick(self, dt: float, surface: Surface) -> Optional[FrameStats]:
        """
        One display refresh: advance the zoom and draw.

        Does nothing while an export is running.
        """
        if self.is_exporting:
            return None
        if self.texture is not None:
            self._refresh_loop_scale()
            self.loop.advance(
                dt,
                self.config.zoom_speed,
                self.config.direction,
                self.config.constant_speed,
            )
        return self.render(surface)

    # --- Export ---

    def export_size(self) -> tuple[int, int]:
        """Export canvas size: the image size, capped on its longer side."""
        if self.texture is None:
            raise ValueError("No image loaded")
        iw, ih = self.texture.size
        cap = self.config.max_export_dimension
        if iw <= cap and ih <= cap:
            return iw, ih
        aspect = iw / ih
        if iw > ih:
            return cap, max(1, round(cap / aspect))
        return max(1, round(cap * aspect)), cap

    def export_plan(self) -> ExportPlan:
        loop_scale = self._refresh_loop_scale()
        return plan_export(
            loop_scale,
            self.config.zoom_speed,
            self.config.constant_speed,
            self.config.desired_direction,
            fps=self.config.export_fps,
        )

    def iter_export_frames(
        self,
        plan: ExportPlan,
        size: tuple[int, int] | None = None,
    ) -> Iterator[np.ndarray]:
        """Render each phase of ``plan`` offscreen and yield (H, W, 3) uint8 frames."""
        width, height = size or self.export_size()
        surface = PillowSurface(width, height, self.compositor.cfg.background)
        for phase in plan.phases:
            if self._cancel_requested:
                raise ExportCancelled()
            self.render(surface, export_mode=True, phase=phase)
            yield surface.to_array()

    def cancel_export(self):
        """Ask a running export to stop before its next frame."""
        if self.is_exporting:
            self._cancel_requested = True

    def export(
        self,
        output_path: str | Path,
        progress_callback: Callable[[float], None] | None = None,
        quality: str = "medium",
    ) -> Optional[Path]:
        """
        Export one seamless loop to GIF or MP4 (chosen by suffix).

        Args:
            output_path: Destination file.
            progress_callback: Optional callback(fraction in [0, 1]).
            quality: MP4 quality preset.

        Returns:
            The written path, or None if the export was cancelled.

        Raises:
            ExportError: The encoder failed; ``is_exporting`` is cleared.
        """
        if self.texture is None:
            raise ValueError("No image loaded")
        if self.is_exporting:
            raise ExportError("An export is already running")

        logger = get_logger()
        output_path = Path(output_path)
        fmt = encoder_for_path(output_path)

        plan = self.export_plan()
        width, height = self.export_size()
        if fmt == "mp4":
            # libx264 with yuv420p needs even dimensions
            width -= width % 2
            height -= height % 2

        def on_progress(current: int, total: int):
            self.export_progress = current / total
            if progress_callback:
                progress_callback(self.export_progress)

        logger.info(
            "Export start %s: %d frames at %dx%d, %dms delay, duration=%.2fs",
            output_path, plan.total_frames, width, height, plan.delay_ms, plan.duration,
        )
        t0 = time.time()
        self.is_exporting = True
        self._cancel_requested = False
        self.export_progress = 0.0
        try:
            frames = self.iter_export_frames(plan, (width, height))
            if fmt == "gif":
                result = encode_gif(
                    frames,
                    output_path,
                    delay_ms=plan.delay_ms,
                    total_frames=plan.total_frames,
                    progress_callback=on_progress,
                )
            else:
                result = encode_video(
                    frames,
                    output_path,
                    width=width,
                    height=height,
                    fps=plan.fps,
                    quality=quality,
                    total_frames=plan.total_frames,
                    progress_callback=on_progress,
                )
        except ExportCancelled:
            logger.info("Export cancelled, discarding %s", output_path)
            if fmt == "mp4":
                # ffmpeg finalises whatever it received before stdin closed
                output_path.unlink(missing_ok=True)
            return None
        except ExportError as e:
            logger.error("Export failed: %s", e)
            raise
        finally:
            self.is_exporting = False
            self._cancel_requested = False

        self.export_progress = 1.0
        logger.info("Export finished in %.1fs: %s", time.time() - t0, result)
        return result
