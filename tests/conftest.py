"""
Pytest configuration and fixtures
"""
import os
import sys
from io import BytesIO

import numpy as np
import pytest
from PIL import Image

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from enhancer.models.image_model import ImageBuffer


REFERENCE_PIXELS = [
    (0, 0, 0, 255),
    (255, 255, 255, 255),
    (128, 128, 128, 255),
    (64, 192, 32, 255),
]


@pytest.fixture
def reference_buffer():
    """Known 2x2 image used by the end-to-end checks"""
    return ImageBuffer.from_pixels(2, 2, REFERENCE_PIXELS)


@pytest.fixture
def gradient_buffer():
    """Colourful 12x8 image with a horizontal red and vertical green ramp"""
    h, w = 8, 12
    arr = np.zeros((h, w, 4), dtype=np.uint8)
    arr[..., 0] = np.linspace(0, 255, w, dtype=np.uint8)[np.newaxis, :]
    arr[..., 1] = np.linspace(30, 220, h, dtype=np.uint8)[:, np.newaxis]
    arr[..., 2] = 90
    arr[..., 3] = 255
    return ImageBuffer.from_array(arr)


@pytest.fixture
def png_bytes():
    """Factory: encode a list of RGBA pixels (row-major) as PNG bytes"""
    def _make(width, height, pixels):
        arr = np.array(pixels, dtype=np.uint8).reshape(height, width, 4)
        out = BytesIO()
        Image.fromarray(arr).save(out, format="PNG")
        return out.getvalue()
    return _make


@pytest.fixture
def reference_png(png_bytes):
    return png_bytes(2, 2, REFERENCE_PIXELS)


@pytest.fixture
def noise_png():
    """64x64 pseudo-random RGB image as PNG (poorly compressible)"""
    rng = np.random.default_rng(1234)
    arr = rng.integers(0, 256, size=(64, 64, 3), dtype=np.uint8)
    out = BytesIO()
    Image.fromarray(arr).save(out, format="PNG")
    return out.getvalue()


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
