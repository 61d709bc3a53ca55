"""
Image editing data models for Open Cutout.

This module defines core data structures used throughout the editing engine.

Classes:
    Rect: Integer pixel region (origin + size)
    ViewTransform: Zoom scale and pan offset of the editor viewport
    BrushMode: Erase or restore for the manual brush

Type Aliases:
    RgbaColor: A tuple of 4 integers representing RGBA color values (0-255)
    Point: An (x, y) pair of floats or ints
    Size: A (width, height) pair

Functions:
    to_rgba_array: Convert a Pillow image or array to an (H, W, 4) uint8 array
    to_pil_image: Convert an (H, W, 4) uint8 array to a Pillow RGBA image
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple

import numpy as np
from PIL import Image

from OC_Libs.constants import IMAGE_MODE, RGBA_CHANNELS

RgbaColor = Tuple[int, int, int, int]
Point = Tuple[float, float]
Size = Tuple[float, float]


class BrushMode(Enum):
    ERASE = "erase"
    RESTORE = "restore"


@dataclass(frozen=True)
class ViewTransform:
    """Zoom and pan of the viewport; owned by the caller, never mutated here.

    Attributes:
        scale: Zoom factor (> 0)
        pan_x: Horizontal pan offset in screen pixels
        pan_y: Vertical pan offset in screen pixels
    """

    scale: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0

    def __post_init__(self):
        if not self.scale > 0:
            raise ValueError(f"scale must be > 0, got {self.scale}")


@dataclass(frozen=True)
class Rect:
    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def intersect(self, width: int, height: int) -> "Rect":
        """Clamp this rect to an image of the given size (may become empty)."""
        left = max(0, self.x)
        top = max(0, self.y)
        right = min(width, self.right)
        bottom = min(height, self.bottom)
        return Rect(left, top, max(0, right - left), max(0, bottom - top))


def to_rgba_array(image: Any) -> np.ndarray:
    """
    Convert an image to the engine's pixel format.

    Args:
        image: A PIL Image (any mode) or an array of shape (H, W, 4)

    Returns:
        A new C-contiguous uint8 array of shape (H, W, 4)

    Raises:
        TypeError: If image is neither a PIL Image nor an array
        ValueError: If the array shape is wrong or the image is empty
    """
    if isinstance(image, Image.Image):
        if image.mode != IMAGE_MODE:
            image = image.convert(IMAGE_MODE)
        pixels = np.array(image, dtype=np.uint8)
    elif isinstance(image, np.ndarray):
        if image.ndim != 3 or image.shape[2] != RGBA_CHANNELS:
            raise ValueError(f"Expected array of shape (H, W, 4), got {image.shape}")
        pixels = np.array(image, dtype=np.uint8, copy=True)
    else:
        raise TypeError(f"Expected PIL Image or numpy array, got {type(image)}")

    if pixels.shape[0] == 0 or pixels.shape[1] == 0:
        raise ValueError(f"Image must have non-zero size, got {pixels.shape[1]}x{pixels.shape[0]}")

    return np.ascontiguousarray(pixels)


def to_pil_image(pixels: np.ndarray) -> Any:
    """Wrap an (H, W, 4) uint8 array as a new Pillow RGBA image."""
    return Image.fromarray(np.array(pixels, dtype=np.uint8, copy=True))


def as_color(value: Optional[np.ndarray]) -> Optional[RgbaColor]:
    if value is None:
        return None
    r, g, b, a = (int(channel) for channel in value)
    return r, g, b, a
