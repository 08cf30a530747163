"""Pytest configuration and shared fixtures."""

import numpy as np
import pytest
from PIL import Image

from droste.core.geometry import DEFAULT_QUAD, Quad

# Small enough that a full-depth render stays fast
TEST_WIDTH = 64
TEST_HEIGHT = 48


def _gradient(width: int, height: int) -> Image.Image:
    xs = np.linspace(0, 255, width, dtype=np.float32)
    ys = np.linspace(0, 255, height, dtype=np.float32)
    r = np.tile(xs, (height, 1))
    g = np.tile(ys[:, None], (1, width))
    b = np.full((height, width), 128, dtype=np.float32)
    rgb = np.stack([r, g, b], axis=-1).astype(np.uint8)
    return Image.fromarray(rgb)


@pytest.fixture
def texture() -> Image.Image:
    """
    Horizontal/vertical colour gradient.

    Returns:
        64x48 RGB image.
    """
    return _gradient(TEST_WIDTH, TEST_HEIGHT)


@pytest.fixture
def large_texture() -> Image.Image:
    """800x600 gradient, the size used for loop timing checks."""
    return _gradient(800, 600)


@pytest.fixture
def rgba_texture() -> Image.Image:
    """Fully transparent left half, opaque red right half."""
    rgba = np.zeros((TEST_HEIGHT, TEST_WIDTH, 4), dtype=np.uint8)
    rgba[:, TEST_WIDTH // 2:] = (255, 0, 0, 255)
    return Image.fromarray(rgba)


@pytest.fixture
def centred_quad() -> Quad:
    """Axis-aligned half-size quad centred in the image."""
    return DEFAULT_QUAD


@pytest.fixture
def tilted_quad() -> Quad:
    """Slightly rotated and perspective-skewed inner window."""
    return Quad.from_points([[0.3, 0.2], [0.8, 0.25], [0.75, 0.7], [0.25, 0.75]])
