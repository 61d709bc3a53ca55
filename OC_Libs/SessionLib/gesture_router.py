"""
Gesture routing for Open Cutout.

The UI reports drags as start / move* / end events in screen coordinates,
together with the selected tool, brush size, tolerance and the current view
transform. GestureRouter maps those events onto EditSession calls:

- ERASE / RESTORE / MAGIC_BRUSH: one history snapshot at drag start, then a
  brush application per move sample
- LASSO: points are collected and the cut is made at drag end
- MAGIC_WAND: the flood fill runs at the last touched point on drag end
- PAN_ZOOM: never edits

Classes:
    ToolKind: The editor tools
    GestureRouter: Drag event dispatcher for one EditSession
"""

import concurrent.futures
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from OC_Libs.constants import DEFAULT_BRUSH_SIZE, DEFAULT_TOLERANCE
from OC_Libs.ImageEditingLib.coordinate_mapper import screen_to_image
from OC_Libs.ImageEditingLib.image_models import BrushMode, Point, Size, ViewTransform
from OC_Libs.SessionLib.edit_session import EditSession

logger = logging.getLogger(__name__)


class ToolKind(Enum):
    PAN_ZOOM = "pan_zoom"
    ERASE = "erase"
    RESTORE = "restore"
    MAGIC_BRUSH = "magic_brush"
    MAGIC_WAND = "magic_wand"
    LASSO = "lasso"


BRUSH_TOOLS = (ToolKind.ERASE, ToolKind.RESTORE, ToolKind.MAGIC_BRUSH)


@dataclass
class _Drag:
    tool: ToolKind
    view_size: Size
    transform: ViewTransform
    brush_size: float
    tolerance: float
    last_point: Point
    lasso_points: List[Point] = field(default_factory=list)


class GestureRouter:
    """
    Turns drag events into session edits.

    Brush size is the on-screen brush diameter; the image-space radius is
    brush_size / 2 / scale so the brush looks the same size at any zoom.

    Example:
        >>> router = GestureRouter(session)
        >>> router.drag_start(ToolKind.ERASE, (200, 300), (800, 600), ViewTransform(2.0))
        >>> router.drag_move((210, 305))
        >>> router.drag_end()
    """

    def __init__(self, session: EditSession, touch_offset_y: Optional[float] = None):
        self.session = session
        self.touch_offset_y = (
            float(touch_offset_y) if touch_offset_y is not None
            else float(session.config.touch_offset_y)
        )
        self._drag: Optional[_Drag] = None

    @property
    def active_tool(self) -> Optional[ToolKind]:
        return self._drag.tool if self._drag is not None else None

    def _action_point(self, point: Point) -> Point:
        return float(point[0]), float(point[1]) - self.touch_offset_y

    def _to_image(self, drag: _Drag, point: Point) -> Tuple[int, int]:
        image_size = self.session.image_size or (0, 0)
        return screen_to_image(point, drag.view_size, drag.transform, image_size)

    @staticmethod
    def _radius(drag: _Drag) -> float:
        return drag.brush_size / 2.0 / drag.transform.scale

    def drag_start(
        self,
        tool: ToolKind,
        point: Point,
        view_size: Size,
        transform: ViewTransform,
        brush_size: float = DEFAULT_BRUSH_SIZE,
        tolerance: float = DEFAULT_TOLERANCE,
    ) -> None:
        """Begin a drag; brush tools start a history stroke here."""
        if self._drag is not None:
            logger.debug(f"drag_start while {self._drag.tool.value} drag active, previous drag dropped")

        action = self._action_point(point)
        drag = _Drag(
            tool=tool,
            view_size=view_size,
            transform=transform,
            brush_size=float(brush_size),
            tolerance=float(tolerance),
            last_point=action,
        )
        self._drag = drag

        if tool is ToolKind.LASSO:
            drag.lasso_points.append(action)
        elif tool in BRUSH_TOOLS:
            self.session.begin_stroke()
            if tool is ToolKind.MAGIC_BRUSH:
                self.session.init_magic_brush(self._to_image(drag, action))

    def drag_move(self, point: Point) -> bool:
        """
        Handle one drag sample.

        Returns:
            True if the sample changed the image
        """
        drag = self._drag
        if drag is None:
            return False
        action = self._action_point(point)
        drag.last_point = action

        if drag.tool is ToolKind.LASSO:
            drag.lasso_points.append(action)
            return False
        if drag.tool not in BRUSH_TOOLS:
            return False

        center = self._to_image(drag, action)
        radius = self._radius(drag)
        if drag.tool is ToolKind.MAGIC_BRUSH:
            return self.session.apply_magic_brush(center, radius, drag.tolerance)
        mode = BrushMode.ERASE if drag.tool is ToolKind.ERASE else BrushMode.RESTORE
        return self.session.apply_manual_brush(center, radius, mode)

    def drag_end(self) -> Optional[concurrent.futures.Future]:
        """
        Finish the drag.

        Returns:
            The magic wand future for MAGIC_WAND drags, otherwise None
        """
        drag = self._drag
        self._drag = None
        if drag is None:
            return None

        if drag.tool is ToolKind.LASSO:
            self.session.apply_lasso(drag.lasso_points, drag.transform, drag.view_size)
        elif drag.tool is ToolKind.MAGIC_WAND:
            return self.session.magic_wand(self._to_image(drag, drag.last_point), drag.tolerance)
        return None

    def cancel(self) -> None:
        """Forget the active drag without finishing it (lasso points are discarded)."""
        self._drag = None
