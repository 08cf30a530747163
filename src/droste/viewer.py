"""
Live preview window.

A pygame clock drives ``DrosteSession.tick`` once per refresh; frames are
rendered on a Pillow surface the size of the window and blitted. While
playback is stopped the quad outline and its handles are drawn on top and
can be dragged with the mouse.

Keys:
    space   play / pause
    d       toggle zoom direction
    c       toggle constant speed
    + / -   zoom speed
    [ / ]   recursion depth
    m       toggle edit mode (transform / corner)
    e       export a loop to the configured path
    esc     quit
"""

from pathlib import Path
from typing import Optional

import pygame

from droste.config import MAX_DEPTH, MAX_SPEED, MIN_DEPTH, MIN_SPEED
from droste.core.geometry import Point
from droste.editing import DragTarget, EditMode, apply_drag, hit_test, rotation_handle
from droste.io.encoder import ExportError
from droste.loop import Direction
from droste.render.surface import PillowSurface
from droste.session import DrosteSession
from droste.util.logging_setup import get_logger

HANDLE_RADIUS = 8
ROTATION_HANDLE_OFFSET = 30
QUAD_COLOR = (59, 130, 246)
HANDLE_COLOR = (255, 255, 255)
ROTATE_COLOR = (239, 68, 68)


class DrosteViewer:
    """
    Interactive pygame host for a session.

    Args:
        session: Session to display.
        width: Window width.
        height: Window height.
        export_path: Where ``e`` writes the loop.
        fps: Refresh cap.
    """

    def __init__(
        self,
        session: DrosteSession,
        width: int = 1280,
        height: int = 720,
        export_path: Optional[Path] = None,
        fps: int = 60,
    ):
        self.session = session
        self.width = width
        self.height = height
        self.export_path = export_path or Path("droste_loop.gif")
        self.fps = fps
        self.mode = EditMode.TRANSFORM
        self._drag: Optional[DragTarget] = None
        self._quit_requested = False
        self._surface = PillowSurface(width, height, session.compositor.cfg.background)

    # --- Coordinate mapping ---

    def _fit(self) -> tuple[float, float, float]:
        iw, ih = self.session.texture.size
        scale = min(self.width / iw, self.height / ih) * self.session.compositor.cfg.fit_margin
        return scale, (self.width - iw * scale) / 2.0, (self.height - ih * scale) / 2.0

    def _to_normalised(self, pos: tuple[int, int]) -> Point:
        iw, ih = self.session.texture.size
        scale, ox, oy = self._fit()
        return Point((pos[0] - ox) / scale / iw, (pos[1] - oy) / scale / ih)

    def _to_screen(self, p: Point) -> tuple[float, float]:
        iw, ih = self.session.texture.size
        scale, ox, oy = self._fit()
        return (p.x * iw * scale + ox, p.y * ih * scale + oy)

    def _rotate_handle(self) -> Point:
        iw, ih = self.session.texture.size
        scale, _, _ = self._fit()
        return rotation_handle(self.session.config.quad, iw, ih, ROTATION_HANDLE_OFFSET / scale)

    # --- Events ---

    def _on_key(self, key: int):
        cfg = self.session.config
        if key == pygame.K_SPACE:
            self.session.toggle_play()
        elif key == pygame.K_d:
            self.session.toggle_direction()
        elif key == pygame.K_c:
            cfg.constant_speed = not cfg.constant_speed
        elif key in (pygame.K_PLUS, pygame.K_EQUALS, pygame.K_KP_PLUS):
            cfg.zoom_speed = min(MAX_SPEED, round(cfg.zoom_speed + 0.1, 2))
        elif key in (pygame.K_MINUS, pygame.K_KP_MINUS):
            cfg.zoom_speed = max(MIN_SPEED, round(cfg.zoom_speed - 0.1, 2))
        elif key == pygame.K_RIGHTBRACKET:
            cfg.depth = min(MAX_DEPTH, cfg.depth + 1)
        elif key == pygame.K_LEFTBRACKET:
            cfg.depth = max(MIN_DEPTH, cfg.depth - 1)
        elif key == pygame.K_m:
            self.mode = EditMode.CORNER if self.mode is EditMode.TRANSFORM else EditMode.TRANSFORM
        elif key == pygame.K_e:
            self._export()

    def _export(self):
        logger = get_logger()
        pygame.display.set_caption("droste - exporting...")
        try:
            self.session.export(self.export_path, progress_callback=self._export_progress)
        except ExportError as e:
            logger.error("Could not export loop: %s", e)
        pygame.display.set_caption("droste")

    def _export_progress(self, fraction: float):
        pygame.display.set_caption(f"droste - exporting {fraction * 100:.0f}%")
        # Keep the window responsive; closing it cancels the export and quits
        if pygame.event.get(pygame.QUIT):
            self._quit_requested = True
            self.session.cancel_export()

    def _on_mouse_down(self, pos: tuple[int, int]):
        if self.session.config.direction is not Direction.STOP:
            return
        iw = self.session.texture.size[0]
        scale, _, _ = self._fit()
        threshold = (HANDLE_RADIUS * 2) / scale / iw
        self._drag = hit_test(
            self.session.config.quad,
            self._to_normalised(pos),
            threshold,
            self.mode,
            rotate_handle=self._rotate_handle(),
        )

    def _on_mouse_move(self, pos: tuple[int, int]):
        if self._drag is None:
            return
        quad = apply_drag(self.session.config.quad, self._drag, self.mode, self._to_normalised(pos))
        self.session.set_quad(quad)

    # --- Drawing ---

    def _draw_overlay(self, screen: pygame.Surface):
        quad = self.session.config.quad
        pts = [self._to_screen(p) for p in quad]
        pygame.draw.polygon(screen, QUAD_COLOR, pts, width=2)
        for p in pts:
            pygame.draw.circle(screen, HANDLE_COLOR, p, HANDLE_RADIUS)
            pygame.draw.circle(screen, QUAD_COLOR, p, HANDLE_RADIUS, width=2)

        if self.mode is EditMode.TRANSFORM:
            top_mid = ((pts[0][0] + pts[1][0]) / 2.0, (pts[0][1] + pts[1][1]) / 2.0)
            handle = self._to_screen(self._rotate_handle())
            pygame.draw.line(screen, HANDLE_COLOR, top_mid, handle, 2)
            pygame.draw.circle(screen, ROTATE_COLOR, handle, HANDLE_RADIUS)

    def run(self):
        logger = get_logger()
        pygame.init()
        screen = pygame.display.set_mode((self.width, self.height))
        pygame.display.set_caption("droste")
        clock = pygame.time.Clock()
        logger.info("Preview started at %dx%d", self.width, self.height)

        running = True
        try:
            while running and not self._quit_requested:
                dt = clock.tick(self.fps) / 1000.0
                for event in pygame.event.get():
                    if event.type == pygame.QUIT:
                        running = False
                    elif event.type == pygame.KEYDOWN:
                        if event.key == pygame.K_ESCAPE:
                            running = False
                        else:
                            self._on_key(event.key)
                    elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
                        self._on_mouse_down(event.pos)
                    elif event.type == pygame.MOUSEMOTION:
                        self._on_mouse_move(event.pos)
                    elif event.type == pygame.MOUSEBUTTONUP and event.button == 1:
                        self._drag = None

                self.session.tick(dt, self._surface)
                frame = pygame.image.frombuffer(
                    self._surface.image.tobytes(), self._surface.size, "RGB"
                )
                screen.blit(frame, (0, 0))
                if self.session.config.direction is Direction.STOP:
                    self._draw_overlay(screen)
                pygame.display.flip()
        finally:
            pygame.quit()
            logger.info("Preview closed")
