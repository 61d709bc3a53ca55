"""
ImageEditingLib - Core raster editing functionality

This module provides the pixel buffer, coordinate mapping, selection
algorithms and undo history for the Open Cutout project.
"""

from OC_Libs.ImageEditingLib.image_models import (
    BrushMode,
    Rect,
    RgbaColor,
    ViewTransform,
    to_pil_image,
    to_rgba_array,
)
from OC_Libs.ImageEditingLib.coordinate_mapper import (
    image_to_screen,
    screen_to_image,
    screen_to_image_float,
)
from OC_Libs.ImageEditingLib.pixel_buffer import PixelBuffer
from OC_Libs.ImageEditingLib.selection_ops import (
    tolerance_to_threshold,
    flood_fill,
    flood_fill_image,
    apply_brush,
    init_tolerance_brush,
    apply_tolerance_brush,
    apply_polygon,
    apply_lasso,
)
from OC_Libs.ImageEditingLib.history_stack import HistoryStack

__all__ = [
    "BrushMode",
    "Rect",
    "RgbaColor",
    "ViewTransform",
    "to_pil_image",
    "to_rgba_array",
    "image_to_screen",
    "screen_to_image",
    "screen_to_image_float",
    "PixelBuffer",
    "tolerance_to_threshold",
    "flood_fill",
    "flood_fill_image",
    "apply_brush",
    "init_tolerance_brush",
    "apply_tolerance_brush",
    "apply_polygon",
    "apply_lasso",
    "HistoryStack",
]
