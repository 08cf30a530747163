"""
CLI entry point for the Droste loop renderer.

Usage:
    droste export <image> [-o out.gif] [options]
    droste preview <image> [options]
    python -m droste export <image> [options]
"""

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError

from droste.config import PROFILES, load_config, normalise_config
from droste.io.encoder import ExportError
from droste.session import DrosteSession
from droste.util.logging_setup import configure_logging, get_logger


class _ProgressBar:
    """Print export progress to stdout; one line per 5% step when not a tty."""

    def __init__(self, width: int = 35, step_pct: int = 5):
        self.width = width
        self.step_pct = step_pct
        self._last_bucket = -1

    def __call__(self, fraction: float):
        fraction = max(0.0, min(1.0, fraction))
        pct = fraction * 100
        filled = int(self.width * fraction)
        bar = "#" * filled + "-" * (self.width - filled)
        if sys.stdout.isatty():
            sys.stdout.write(f"\r[{bar}] {pct:5.1f}%")
            sys.stdout.flush()
            if fraction >= 1.0:
                sys.stdout.write("\n")
        else:
            bucket = int(pct) // self.step_pct
            if bucket > self._last_bucket:
                self._last_bucket = bucket
                print(f"{bucket * self.step_pct:5.1f}%", flush=True)


def _parse_quad(text: str) -> list[list[float]]:
    """``"x1,y1 x2,y2 x3,y3 x4,y4"`` → list of points."""
    try:
        points = [[float(v) for v in pair.split(",")] for pair in text.split()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid quad: {text!r}") from None
    if len(points) != 4 or any(len(p) != 2 for p in points):
        raise argparse.ArgumentTypeError("Quad needs 4 points written as 'x,y x,y x,y x,y'")
    return points


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="droste",
        description="Infinite recursive Droste zoom loops from a single image",
    )
    parser.add_argument("--log-level", type=str, default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Log level.")
    parser.add_argument("--log-file", type=str, default="",
                        help="Rotating log file path (default: no file logging).")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("image", type=Path, help="Input image (png, jpg, webp, ...)")
    common.add_argument("--config", type=Path, default=None, help="Session config JSON.")
    common.add_argument(
        "--quad", type=_parse_quad, default=None,
        help="Inner window as normalised corners 'x,y x,y x,y x,y' (TL TR BR BL)",
    )
    common.add_argument("--depth", type=int, default=None, help="Recursion depth (1-20)")
    common.add_argument("--speed", type=float, default=None, help="Zoom speed (0.1-5.0)")
    common.add_argument("--constant-speed", action=argparse.BooleanOptionalAction, default=None,
                        help="Linear zoom with a constant visual flow rate")
    common.add_argument("--direction", type=str, default=None, choices=["in", "out"],
                        help="Zoom direction")
    common.add_argument("--interpolation", type=str, default=None, choices=["linear", "spiral"],
                        help="Viewport interpolation between loop keyframes")

    sub = parser.add_subparsers(dest="cmd", required=True)

    e = sub.add_parser("export", parents=[common], help="Export one seamless loop (GIF or MP4).")
    e.add_argument("-o", "--output", type=Path, default=None,
                   help="Output path (default: <image>_droste.gif)")
    e.add_argument("-p", "--profile", type=str, default=None, choices=list(PROFILES),
                   help="Export size cap (low: 320px, medium: 500px, high: 1024px)")
    e.add_argument("--max-dimension", type=int, default=None,
                   help="Longest export side in pixels (overrides profile)")
    e.add_argument("-q", "--quality", type=str, default="medium",
                   choices=["high", "medium", "fast"], help="MP4 encoding quality")

    v = sub.add_parser("preview", parents=[common], help="Open the interactive preview window.")
    v.add_argument("--width", type=int, default=1280, help="Window width")
    v.add_argument("--height", type=int, default=720, help="Window height")
    v.add_argument("-o", "--output", type=Path, default=None,
                   help="Export path used by the 'e' key (default: <image>_droste.gif)")

    return parser


def _session_config(args: argparse.Namespace):
    cfg = load_config(args.config)
    overrides = {}
    if args.quad is not None:
        overrides["quad"] = args.quad
    if args.depth is not None:
        overrides["depth"] = args.depth
    if args.speed is not None:
        overrides["zoom_speed"] = args.speed
    if args.constant_speed is not None:
        overrides["constant_speed"] = args.constant_speed
    if args.direction is not None:
        overrides["desired_direction"] = args.direction
    if args.interpolation is not None:
        overrides["interpolation"] = args.interpolation
    if getattr(args, "profile", None):
        overrides["max_export_dimension"] = PROFILES[args.profile]
    if getattr(args, "max_dimension", None) is not None:
        overrides["max_export_dimension"] = args.max_dimension
    if not overrides:
        return cfg

    # Validate flags the same way as file values, then layer them on top
    merged = normalise_config(overrides)
    for name in overrides:
        setattr(cfg, name, getattr(merged, name))
    return cfg


def main(argv: Optional[list] = None) -> int:
    args = build_arg_parser().parse_args(argv)

    log_level = getattr(logging, args.log_level.upper(), logging.INFO)
    log_file = args.log_file.strip() or None
    configure_logging(level=log_level, console=True, log_file=log_file)
    logger = get_logger()

    if not args.image.exists():
        print(f"Error: Image file not found: {args.image}", file=sys.stderr)
        return 1

    try:
        cfg = _session_config(args)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    try:
        with Image.open(args.image) as img:
            img.load()
            session = DrosteSession(img, cfg)
    except (OSError, UnidentifiedImageError) as e:
        print(f"Error: Could not read image {args.image}: {e}", file=sys.stderr)
        return 1

    output = args.output or args.image.with_name(f"{args.image.stem}_droste.gif")
    iw, ih = session.texture.size
    logger.info(
        "Loaded %s (%dx%d) loop_scale=%.3f depth=%d",
        args.image, iw, ih, session.loop.loop_scale, cfg.depth,
    )

    if args.cmd == "preview":
        from droste.viewer import DrosteViewer

        DrosteViewer(session, width=args.width, height=args.height, export_path=output).run()
        return 0

    plan = session.export_plan()
    mode = "locked" if cfg.constant_speed else "flow"
    print(f"Exporting {plan.total_frames} frames ({plan.duration:.2f}s, {mode}, "
          f"{cfg.desired_direction.value}) -> {output}")
    t0 = time.time()
    try:
        session.export(output, progress_callback=_ProgressBar(), quality=args.quality)
    except (ExportError, ValueError) as e:
        print(f"\nError: Export failed: {e}", file=sys.stderr)
        return 1

    elapsed = time.time() - t0
    size_kb = output.stat().st_size / 1024
    print(f"\nDone! {size_kb:.1f} KB in {elapsed:.1f}s")
    print(f"  Output: {output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
