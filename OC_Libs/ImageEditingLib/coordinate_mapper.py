"""
Screen/image coordinate mapping for Open Cutout.

The image is drawn centered in the viewport, then panned and scaled. These
helpers convert between a screen-space point and image-space pixel
coordinates for a given view transform. They are pure and never clamp:
out-of-range results are valid input for the editing algorithms, which ignore
coordinates outside the image.

Functions:
    screen_to_image_float: Screen point to fractional image coordinates
    screen_to_image: Screen point to the integer pixel containing it
    image_to_screen: Image coordinates back to a screen point
"""

import math
from typing import Tuple

from OC_Libs.ImageEditingLib.image_models import Point, Size, ViewTransform


def screen_to_image_float(
    point: Point,
    view_size: Size,
    transform: ViewTransform,
    image_size: Size,
) -> Tuple[float, float]:
    """
    Map a screen point to fractional image coordinates.

    Args:
        point: (x, y) in screen pixels
        view_size: (width, height) of the viewport
        transform: Current zoom/pan of the viewport
        image_size: (width, height) of the image

    Returns:
        (x, y) in image pixels, not rounded and not clamped
    """
    view_w, view_h = view_size
    image_w, image_h = image_size
    x = (point[0] - (view_w / 2.0 + transform.pan_x)) / transform.scale + image_w / 2.0
    y = (point[1] - (view_h / 2.0 + transform.pan_y)) / transform.scale + image_h / 2.0
    return x, y


def screen_to_image(
    point: Point,
    view_size: Size,
    transform: ViewTransform,
    image_size: Size,
) -> Tuple[int, int]:
    """Map a screen point to the image pixel that contains it."""
    x, y = screen_to_image_float(point, view_size, transform, image_size)
    # floor keeps points just left/above the image at -1 instead of 0
    return math.floor(x), math.floor(y)


def image_to_screen(
    point: Point,
    view_size: Size,
    transform: ViewTransform,
    image_size: Size,
) -> Tuple[float, float]:
    """Inverse of screen_to_image_float; used for cursor feedback."""
    view_w, view_h = view_size
    image_w, image_h = image_size
    x = (point[0] - image_w / 2.0) * transform.scale + view_w / 2.0 + transform.pan_x
    y = (point[1] - image_h / 2.0) * transform.scale + view_h / 2.0 + transform.pan_y
    return x, y
