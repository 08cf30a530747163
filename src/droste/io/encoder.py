"""
Frame sequence encoders.

GIF frames are collected and written by Pillow as a looping animation.
MP4 frames are piped as raw RGB to ffmpeg via stdin, with no intermediate
files. Both take an iterator of (H, W, 3) uint8 numpy arrays and report
progress through an optional ``callback(current, total)``.
"""

import shutil
import subprocess
from pathlib import Path
from typing import Callable, Iterator, Optional

import numpy as np
from PIL import Image

from droste.util.logging_setup import get_logger


# Quality presets: (preset, crf, pix_fmt)
QUALITY_PRESETS = {
    "high": ("slow", "18", "yuv444p"),
    "medium": ("medium", "23", "yuv420p"),
    "fast": ("ultrafast", "28", "yuv420p"),
}

ProgressCallback = Callable[[int, int], None]


class ExportError(RuntimeError):
    """An encoder could not start or could not finish writing."""


def _prepare_output(output_path: Path) -> Path:
    output_path = Path(output_path)
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ExportError(f"Cannot create output directory {output_path.parent}: {e}") from e
    return output_path


def encode_gif(
    frame_iterator: Iterator[np.ndarray],
    output_path: Path,
    delay_ms: int = 33,
    total_frames: int | None = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> Path:
    """
    Encode frames to a looping animated GIF.

    Nothing is written until the iterator is exhausted, so an exception
    raised by the iterator leaves no partial file behind.

    Args:
        frame_iterator: Yields (H, W, 3) uint8 numpy arrays.
        output_path: Output GIF path.
        delay_ms: Delay between frames in milliseconds.
        total_frames: Total frame count for progress reporting.
        progress_callback: Optional callback(current_frame, total_frames).

    Returns:
        Path to the output file.
    """
    output_path = _prepare_output(output_path)

    frames: list[Image.Image] = []
    for frame in frame_iterator:
        frames.append(Image.fromarray(np.ascontiguousarray(frame, dtype=np.uint8)))
        if progress_callback and total_frames:
            progress_callback(len(frames), total_frames)

    if not frames:
        raise ExportError("No frames to encode")

    try:
        frames[0].save(
            output_path,
            format="GIF",
            save_all=True,
            append_images=frames[1:],
            duration=delay_ms,
            loop=0,
            optimize=False,
        )
    except OSError as e:
        raise ExportError(f"Failed to write GIF {output_path}: {e}") from e

    get_logger().info("GIF written: %s (%d frames @ %dms)", output_path, len(frames), delay_ms)
    return output_path


def encode_video(
    frame_iterator: Iterator[np.ndarray],
    output_path: Path,
    width: int,
    height: int,
    fps: int = 30,
    quality: str = "high",
    total_frames: int | None = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> Path:
    """
    Encode frames to MP4 with ffmpeg.

    Args:
        frame_iterator: Yields (H, W, 3) uint8 numpy arrays.
        output_path: Output MP4 path.
        width: Frame width (must be even for yuv420p).
        height: Frame height.
        fps: Frames per second.
        quality: "high", "medium", or "fast".
        total_frames: Total frame count for progress reporting.
        progress_callback: Optional callback(current_frame, total_frames).

    Returns:
        Path to the output file.
    """
    ffmpeg = shutil.which("ffmpeg")
    if ffmpeg is None:
        raise ExportError("ffmpeg not found on PATH")

    preset, crf, pix_fmt = QUALITY_PRESETS.get(quality, QUALITY_PRESETS["high"])
    output_path = _prepare_output(output_path)

    cmd = [
        ffmpeg, "-y",
        "-loglevel", "error",
        # Raw video input from pipe
        "-f", "rawvideo",
        "-pix_fmt", "rgb24",
        "-s", f"{width}x{height}",
        "-r", str(fps),
        "-i", "pipe:0",
        # Video encoding
        "-c:v", "libx264",
        "-preset", preset,
        "-crf", crf,
        "-pix_fmt", pix_fmt,
        "-movflags", "+faststart",
        str(output_path),
    ]

    try:
        proc = subprocess.Popen(
            cmd,
            stdin=subprocess.PIPE,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
        )
    except OSError as e:
        raise ExportError(f"Failed to start ffmpeg: {e}") from e

    frame_count = 0
    try:
        for frame in frame_iterator:
            proc.stdin.write(np.ascontiguousarray(frame, dtype=np.uint8).tobytes())
            frame_count += 1

            if progress_callback and total_frames:
                progress_callback(frame_count, total_frames)

    except BrokenPipeError:
        pass
    finally:
        if proc.stdin:
            proc.stdin.close()
        proc.wait()

    if proc.returncode != 0:
        stderr = proc.stderr.read().decode("utf-8", errors="replace")
        # Filter out common non-error ffmpeg messages
        error_lines = [
            line for line in stderr.split("\n")
            if "error" in line.lower() or "invalid" in line.lower()
        ]
        error_msg = "\n".join(error_lines[-5:]) if error_lines else stderr[-500:]
        raise ExportError(
            f"ffmpeg exited with code {proc.returncode}: {error_msg}"
        )

    get_logger().info("Video written: %s (%d frames @ %dfps)", output_path, frame_count, fps)
    return output_path


def encoder_for_path(output_path: Path) -> str:
    """Pick ``"gif"`` or ``"mp4"`` from the output suffix."""
    suffix = Path(output_path).suffix.lower()
    if suffix == ".gif":
        return "gif"
    if suffix in (".mp4", ".m4v", ".mov"):
        return "mp4"
    raise ValueError(f"Unsupported output format: {suffix or '(none)'} (use .gif or .mp4)")
