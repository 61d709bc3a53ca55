"""
Pixel buffer for Open Cutout.

A PixelBuffer owns the mutable "current" RGBA raster being edited and an
immutable "backing" copy of the image as it was loaded, which the restore
brush reads from. The two never share storage.

Classes:
    PixelBuffer: Current + backing rasters with bounded region access
"""

import logging
import math
from typing import Any, Optional, Tuple

import numpy as np

from OC_Libs.ImageEditingLib.image_models import (
    Rect,
    RgbaColor,
    as_color,
    to_pil_image,
    to_rgba_array,
)

logger = logging.getLogger(__name__)


class PixelBuffer:
    """
    Current and backing RGBA rasters for one loaded image.

    Pixels are stored as (H, W, 4) uint8 arrays indexed [y, x]. Every
    coordinate-taking method treats out-of-bounds input as a no-op.

    Example:
        >>> buffer = PixelBuffer(Image.new("RGBA", (4, 4), (100, 100, 100, 255)))
        >>> buffer.read(0, 0)
        (100, 100, 100, 255)
        >>> buffer.read(10, 10) is None
        True
    """

    def __init__(self, image: Any):
        """
        Create a buffer from a Pillow image or (H, W, 4) array.

        Args:
            image: Source image; converted to RGBA and copied

        Raises:
            TypeError: If image is not a PIL Image or numpy array
            ValueError: If the image is empty or has the wrong shape
        """
        self._current: np.ndarray = to_rgba_array(image)
        self._backing: np.ndarray = self._freeze(self._current)

    @staticmethod
    def _freeze(pixels: np.ndarray) -> np.ndarray:
        backing = pixels.copy()
        backing.setflags(write=False)
        return backing

    @property
    def width(self) -> int:
        return int(self._current.shape[1])

    @property
    def height(self) -> int:
        return int(self._current.shape[0])

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    @property
    def pixels(self) -> np.ndarray:
        """The mutable current raster (edited in place by the tools)."""
        return self._current

    @property
    def backing(self) -> Optional[np.ndarray]:
        """Read-only copy of the image as loaded."""
        return self._backing

    def contains(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def read(self, x: float, y: float) -> Optional[RgbaColor]:
        """Return the pixel at (x, y), or None if outside the image. Fractional coordinates are floored."""
        x, y = math.floor(x), math.floor(y)
        if not self.contains(x, y):
            return None
        return as_color(self._current[y, x])

    def read_region(self, rect: Rect) -> np.ndarray:
        """
        Copy the in-bounds part of a region.

        Args:
            rect: Requested region; may extend past the image edges

        Returns:
            A (h, w, 4) copy of the clamped region; shape (0, 0, 4) when the
            region lies entirely outside the image
        """
        clamped = rect.intersect(self.width, self.height)
        if clamped.is_empty:
            return np.zeros((0, 0, 4), dtype=np.uint8)
        return self._current[clamped.y:clamped.bottom, clamped.x:clamped.right].copy()

    def write_region(self, rect: Rect, pixels: np.ndarray) -> bool:
        """
        Write a block of pixels back into the current image.

        Only the part of the block that falls inside the image is written.
        An origin outside the image is a no-op.

        Args:
            rect: Destination region; width/height must match pixels
            pixels: (rect.height, rect.width, 4) block

        Returns:
            True if any pixel was written

        Raises:
            ValueError: If pixels do not match the rect's size
        """
        block = np.asarray(pixels, dtype=np.uint8)
        if block.shape != (rect.height, rect.width, 4):
            raise ValueError(
                f"pixels shape {block.shape} does not match rect {rect.width}x{rect.height}"
            )
        if not self.contains(rect.x, rect.y):
            logger.debug(f"write_region origin ({rect.x}, {rect.y}) outside image, ignored")
            return False

        clamped = rect.intersect(self.width, self.height)
        if clamped.is_empty:
            return False
        self._current[clamped.y:clamped.bottom, clamped.x:clamped.right] = block[
            : clamped.height, : clamped.width
        ]
        return True

    def replace(self, image: Any, keep_backing: bool = False) -> None:
        """
        Swap in a whole new current image.

        Args:
            image: Replacement image (PIL Image or array)
            keep_backing: Keep the existing backing copy instead of
                          recreating it from the new image. Only allowed when
                          the dimensions are unchanged.

        Raises:
            ValueError: If keep_backing is set and the size changed
        """
        pixels = to_rgba_array(image)
        if keep_backing:
            if pixels.shape != self._current.shape:
                raise ValueError(
                    f"Cannot keep backing image of size {self.size} for "
                    f"replacement of size {pixels.shape[1]}x{pixels.shape[0]}"
                )
            self._current = pixels
            return

        self._current = pixels
        self._backing = self._freeze(pixels)
        logger.debug(f"Buffer replaced with new {self.width}x{self.height} image")

    def install(self, pixels: np.ndarray) -> None:
        """Install a same-sized raster as current, keeping the backing copy."""
        if pixels.shape != self._current.shape:
            raise ValueError(
                f"Snapshot shape {pixels.shape} does not match buffer {self._current.shape}"
            )
        self._current = np.array(pixels, dtype=np.uint8, copy=True)

    def snapshot(self) -> np.ndarray:
        """Deep copy of the current raster."""
        return self._current.copy()

    def to_image(self) -> Any:
        """The current raster as a new Pillow RGBA image."""
        return to_pil_image(self._current)
