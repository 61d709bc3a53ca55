"""
Pytest configuration and shared fixtures for Open Cutout tests.

This module provides shared test images, buffers and view settings
used across multiple test modules.
"""

import numpy as np
import pytest
from PIL import Image

from OC_Libs.ImageEditingLib.image_models import ViewTransform
from OC_Libs.ImageEditingLib.pixel_buffer import PixelBuffer


GRAY = (100, 100, 100, 255)
RED = (255, 0, 0, 255)
BLUE = (0, 0, 255, 255)


@pytest.fixture
def gray_image():
    """
    Provide a 4x4 opaque gray image.

    Returns:
        PIL RGBA Image filled with (100, 100, 100, 255)
    """
    return Image.new("RGBA", (4, 4), GRAY)


@pytest.fixture
def gray_buffer(gray_image):
    """PixelBuffer over the 4x4 gray image."""
    return PixelBuffer(gray_image)


@pytest.fixture
def split_image():
    """
    Provide a 10x10 image: red left half (x < 5), blue right half.

    Returns:
        PIL RGBA Image
    """
    pixels = np.zeros((10, 10, 4), dtype=np.uint8)
    pixels[:, :5] = RED
    pixels[:, 5:] = BLUE
    return Image.fromarray(pixels)


@pytest.fixture
def identity_view():
    """
    View settings where screen and image coordinates coincide for a 10x10 image.

    Returns:
        (view_size, transform) tuple
    """
    return (10, 10), ViewTransform(scale=1.0, pan_x=0.0, pan_y=0.0)
