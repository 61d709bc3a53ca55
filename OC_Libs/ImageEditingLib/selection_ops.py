"""
Selection and erase algorithms for Open Cutout.

All functions operate on a PixelBuffer in place and return True when at least
one pixel changed. Geometry outside the image is never an error: it simply
has no effect. A missing buffer raises TypeError so the caller can skip the
edit.

Functions:
    tolerance_to_threshold: Convert a 0-100 tolerance to a squared RGB distance
    flood_fill: Magic wand, erase the connected region around a seed
    flood_fill_image: Flood fill on a detached raster (worker-thread friendly)
    apply_brush: Circular erase/restore brush
    init_tolerance_brush: Capture the magic brush reference color
    apply_tolerance_brush: Erase only reference-colored pixels under the brush
    apply_polygon: Erase the interior of an image-space polygon
    apply_lasso: Erase the interior of a screen-space freehand path
"""

import logging
import math
from typing import Any, Optional, Sequence, Tuple

import numpy as np
from PIL import Image, ImageDraw
from scipy import ndimage

from OC_Libs.constants import (
    ALPHA_CHANNEL,
    COLOR_CHANNEL_COUNT,
    MAX_TOLERANCE,
    MIN_TOLERANCE,
    TOLERANCE_CHANNEL_SCALE,
    TRANSPARENT_ALPHA,
)
from OC_Libs.ImageEditingLib.coordinate_mapper import screen_to_image_float
from OC_Libs.ImageEditingLib.image_models import (
    BrushMode,
    Point,
    RgbaColor,
    Size,
    ViewTransform,
)
from OC_Libs.ImageEditingLib.pixel_buffer import PixelBuffer

logger = logging.getLogger(__name__)


def _require_buffer(buffer: Any) -> PixelBuffer:
    if not isinstance(buffer, PixelBuffer):
        raise TypeError(f"Expected PixelBuffer, got {type(buffer)}")
    return buffer


def tolerance_to_threshold(tolerance: float) -> float:
    """
    Convert a user tolerance to a squared Euclidean RGB distance bound.

    The 0-100 tolerance is scaled to the 0-255 channel range, squared and
    summed over the three color channels, so comparisons need no sqrt.

    Args:
        tolerance: 0-100 (clamped)

    Returns:
        (tolerance * 2.55)^2 * 3
    """
    tolerance = max(MIN_TOLERANCE, min(MAX_TOLERANCE, float(tolerance)))
    scaled = tolerance * TOLERANCE_CHANNEL_SCALE
    return scaled * scaled * COLOR_CHANNEL_COUNT


def _squared_distance(pixels: np.ndarray, reference: Sequence[int]) -> np.ndarray:
    """Squared RGB distance of every pixel in a (..., 4) block to reference."""
    diff = pixels[..., :3].astype(np.int32) - np.asarray(reference[:3], dtype=np.int32)
    return np.sum(diff * diff, axis=-1)


# ============================================================================
# Flood Fill (magic wand)
# ============================================================================

def flood_fill_image(pixels: np.ndarray, seed: Point, tolerance: float) -> bool:
    """
    Erase the 4-connected region of similar color around seed, in place.

    Candidate pixels (opaque and within tolerance of the seed color) are
    found in one vectorised pass, then split into 4-connected components
    with scipy.ndimage.label; the component holding the seed is erased.

    Args:
        pixels: (H, W, 4) uint8 raster, modified in place
        seed: (x, y) start position; fractional values are floored
        tolerance: 0-100 color tolerance

    Returns:
        True if any pixel was erased
    """
    height, width = pixels.shape[:2]
    sx, sy = math.floor(seed[0]), math.floor(seed[1])
    if not (0 <= sx < width and 0 <= sy < height):
        logger.debug(f"Flood fill seed ({sx}, {sy}) outside {width}x{height}, ignored")
        return False

    alpha = pixels[..., ALPHA_CHANNEL]
    if alpha[sy, sx] == TRANSPARENT_ALPHA:
        return False

    threshold = tolerance_to_threshold(tolerance)
    reference = pixels[sy, sx, :3].copy()
    candidates = (alpha != TRANSPARENT_ALPHA) & (_squared_distance(pixels, reference) <= threshold)

    # default structuring element is 4-connected
    labels, _ = ndimage.label(candidates)
    region = labels == labels[sy, sx]

    pixels[region, ALPHA_CHANNEL] = TRANSPARENT_ALPHA
    logger.debug(f"Flood fill from ({sx}, {sy}) erased {int(region.sum())} pixels")
    return True


def flood_fill(buffer: PixelBuffer, seed: Point, tolerance: float) -> bool:
    """
    Magic wand: erase every pixel connected to seed within tolerance.

    Neighbours are included when they are not already transparent and their
    squared RGB distance to the seed color is within
    tolerance_to_threshold(tolerance). Only alpha is changed.

    Args:
        buffer: Buffer to edit in place
        seed: (x, y) image-space start pixel
        tolerance: 0-100 color tolerance

    Returns:
        True if any pixel was erased; False when the seed is outside the
        image or already transparent

    Raises:
        TypeError: If buffer is not a PixelBuffer
    """
    buffer = _require_buffer(buffer)
    return flood_fill_image(buffer.pixels, seed, tolerance)


# ============================================================================
# Circular Brushes
# ============================================================================

def _brush_window(
    buffer: PixelBuffer,
    center: Point,
    radius: float,
) -> Optional[Tuple[slice, slice, np.ndarray]]:
    """
    Bounding box of the brush circle clamped to the image, plus the circle mask.

    Returns None when the brush cannot touch the image.
    """
    if radius <= 0:
        return None
    cx, cy = float(center[0]), float(center[1])
    width, height = buffer.size
    if cx < -radius or cx > width + radius or cy < -radius or cy > height + radius:
        return None

    left = max(0, int(math.floor(cx - radius)))
    right = min(width - 1, int(math.ceil(cx + radius)))
    top = max(0, int(math.floor(cy - radius)))
    bottom = min(height - 1, int(math.ceil(cy + radius)))
    if left > right or top > bottom:
        return None

    ys, xs = np.ogrid[top:bottom + 1, left:right + 1]
    inside = (xs - cx) ** 2 + (ys - cy) ** 2 <= radius * radius
    if not inside.any():
        return None
    return slice(top, bottom + 1), slice(left, right + 1), inside


def apply_brush(buffer: PixelBuffer, center: Point, radius: float, mode: BrushMode) -> bool:
    """
    Erase or restore every pixel within radius of center.

    Erase sets alpha to 0. Restore copies all four channels from the
    buffer's backing image. Work is limited to the circle's bounding box.

    Args:
        buffer: Buffer to edit in place
        center: (x, y) image-space brush center
        radius: Brush radius in image pixels
        mode: BrushMode.ERASE or BrushMode.RESTORE

    Returns:
        True if the brush touched the image

    Raises:
        TypeError: If buffer is not a PixelBuffer
        ValueError: If mode is not a BrushMode
    """
    buffer = _require_buffer(buffer)
    if not isinstance(mode, BrushMode):
        raise ValueError(f"Unknown brush mode: {mode}")

    window = _brush_window(buffer, center, radius)
    if window is None:
        return False
    rows, cols, inside = window

    region = buffer.pixels[rows, cols]
    if mode is BrushMode.ERASE:
        region[inside, ALPHA_CHANNEL] = TRANSPARENT_ALPHA
        return True

    backing = buffer.backing
    if backing is None:
        return False
    region[inside] = backing[rows, cols][inside]
    return True


def init_tolerance_brush(buffer: PixelBuffer, point: Point) -> Optional[RgbaColor]:
    """
    Capture the magic brush reference color under the initial touch point.

    Returns:
        The pixel color, or None when the point is outside the image
    """
    buffer = _require_buffer(buffer)
    return buffer.read(math.floor(point[0]), math.floor(point[1]))


def apply_tolerance_brush(
    buffer: PixelBuffer,
    center: Point,
    radius: float,
    tolerance: float,
    reference: Optional[RgbaColor],
) -> bool:
    """
    Magic brush: erase pixels under the brush that match the reference color.

    Pixels inside the circle whose RGB distance to reference is outside the
    tolerance (the subject's edge, typically) are left untouched.

    Args:
        buffer: Buffer to edit in place
        center: (x, y) image-space brush center
        radius: Brush radius in image pixels
        tolerance: 0-100 color tolerance
        reference: Color captured by init_tolerance_brush; None is a no-op

    Returns:
        True if any pixel was erased
    """
    buffer = _require_buffer(buffer)
    if reference is None:
        return False

    window = _brush_window(buffer, center, radius)
    if window is None:
        return False
    rows, cols, inside = window

    region = buffer.pixels[rows, cols]
    matches = (
        inside
        & (region[..., ALPHA_CHANNEL] != TRANSPARENT_ALPHA)
        & (_squared_distance(region, reference) <= tolerance_to_threshold(tolerance))
    )
    if not matches.any():
        return False
    region[matches, ALPHA_CHANNEL] = TRANSPARENT_ALPHA
    return True


# ============================================================================
# Polygon / Lasso
# ============================================================================

def apply_polygon(buffer: PixelBuffer, vertices: Sequence[Point]) -> bool:
    """
    Erase the interior of a closed image-space polygon.

    The path is closed automatically. Filling uses Pillow's polygon
    rasterizer (even-odd scanline), so self-intersecting paths are fine.

    Args:
        buffer: Buffer to edit in place
        vertices: Ordered (x, y) points in image coordinates

    Returns:
        True if any pixel was covered; False for an empty or degenerate path
    """
    buffer = _require_buffer(buffer)
    path = [(float(x), float(y)) for x, y in vertices]
    if path and path[0] != path[-1]:
        path.append(path[0])
    if len(set(path)) < 3:
        logger.debug(f"Polygon with {len(set(path))} distinct vertices ignored")
        return False

    mask_image = Image.new("L", buffer.size, 0)
    ImageDraw.Draw(mask_image).polygon(path, fill=255)
    mask = np.asarray(mask_image) > 0
    if not mask.any():
        return False

    buffer.pixels[mask, ALPHA_CHANNEL] = TRANSPARENT_ALPHA
    return True


def apply_lasso(
    buffer: PixelBuffer,
    screen_points: Sequence[Point],
    transform: ViewTransform,
    view_size: Size,
) -> bool:
    """
    Lasso cut: erase everything inside a freehand screen-space path.

    Args:
        buffer: Buffer to edit in place
        screen_points: Ordered points of the drag, in screen pixels
        transform: View transform in effect during the drag
        view_size: (width, height) of the viewport

    Returns:
        True if any pixel was erased
    """
    buffer = _require_buffer(buffer)
    if not screen_points:
        return False
    vertices = [
        screen_to_image_float(point, view_size, transform, buffer.size)
        for point in screen_points
    ]
    return apply_polygon(buffer, vertices)
