"""
Edit session orchestration for Open Cutout.

An EditSession owns one PixelBuffer and its HistoryStack for the lifetime of
an editing session. It dispatches tool invocations, runs the heavy operations
(automatic background removal and the magic wand) on a worker thread, and
publishes the current image and an IDLE/BUSY status to observers.

Classes:
    SessionStatus: IDLE or BUSY
    SessionConfig: Tunable session settings
    EditSession: The editing state machine

Functions:
    default_providers: The default segmentation fallback chain
"""

import concurrent.futures
import logging
import math
import threading
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from OC_Libs.constants import (
    ALPHA_CHANNEL,
    DEFAULT_HISTORY_CAPACITY,
    DEFAULT_MAX_WORKERS,
    DEFAULT_TOUCH_OFFSET_Y,
    PRIMARY_REMBG_MODEL,
    SECONDARY_REMBG_MODEL,
    TRANSPARENT_ALPHA,
    WORKER_THREAD_PREFIX,
)
from OC_Libs.ImageEditingLib.history_stack import HistoryStack
from OC_Libs.ImageEditingLib.image_models import (
    BrushMode,
    Point,
    RgbaColor,
    Size,
    ViewTransform,
)
from OC_Libs.ImageEditingLib.pixel_buffer import PixelBuffer
from OC_Libs.ImageEditingLib.selection_ops import (
    apply_brush,
    apply_lasso,
    apply_tolerance_brush,
    flood_fill_image,
    init_tolerance_brush,
)
from OC_Libs.SessionLib.segmentation import (
    RembgProvider,
    SegmentationProvider,
    SegmentationResult,
    remove_background_with_fallback,
)

logger = logging.getLogger(__name__)

StatusListener = Callable[["SessionStatus"], None]
ImageListener = Callable[[Any], None]


class SessionStatus(Enum):
    IDLE = "idle"
    BUSY = "busy"


@dataclass
class SessionConfig:
    """Settings for an edit session.

    Attributes:
        history_capacity: Maximum number of undo entries
        max_workers: Worker threads for background operations
        refresh_backing_on_auto_remove: Make the auto-removed image the new
            restore source. By default the restore brush keeps restoring
            from the image as loaded.
        touch_offset_y: Vertical offset subtracted from touch points by the
            gesture router (keeps the edit point visible above a finger)
    """

    history_capacity: int = DEFAULT_HISTORY_CAPACITY
    max_workers: int = DEFAULT_MAX_WORKERS
    refresh_backing_on_auto_remove: bool = False
    touch_offset_y: float = DEFAULT_TOUCH_OFFSET_Y

    def __post_init__(self):
        if int(self.history_capacity) < 1:
            raise ValueError(f"history_capacity must be >= 1, got {self.history_capacity}")
        if int(self.max_workers) < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionConfig":
        """Create from dictionary, ignoring unknown keys."""
        normalized = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**normalized)


def default_providers() -> List[SegmentationProvider]:
    """Primary and secondary local models, tried in that order."""
    return [RembgProvider(PRIMARY_REMBG_MODEL), RembgProvider(SECONDARY_REMBG_MODEL)]


def _completed(value: Any) -> concurrent.futures.Future:
    future: concurrent.futures.Future = concurrent.futures.Future()
    future.set_result(value)
    return future


class EditSession:
    """
    One interactive cut-out editing session.

    All buffer mutations are serialized by a lock. While an asynchronous
    operation is in flight the session is BUSY and every other mutating call
    is rejected (it returns False, or an already-completed future).

    Example:
        >>> with EditSession(providers=[my_provider]) as session:
        ...     session.load_image(Image.open("photo.jpg"))
        ...     session.auto_remove().result()
        ...     session.begin_stroke()
        ...     session.apply_manual_brush((120, 80), 15, BrushMode.RESTORE)
        ...     session.undo()
        ...     cutout = session.current_image()
    """

    def __init__(
        self,
        providers: Optional[Sequence[SegmentationProvider]] = None,
        config: Optional[SessionConfig] = None,
        executor: Optional[concurrent.futures.Executor] = None,
    ):
        """
        Args:
            providers: Segmentation fallback chain (default: default_providers())
            config: Session settings (default: SessionConfig())
            executor: Worker pool to use; the session creates and owns one
                      when not given
        """
        self.config = config or SessionConfig()
        self._providers: List[SegmentationProvider] = (
            list(providers) if providers is not None else default_providers()
        )
        self._owns_executor = executor is None
        self._executor = executor or concurrent.futures.ThreadPoolExecutor(
            max_workers=self.config.max_workers,
            thread_name_prefix=WORKER_THREAD_PREFIX,
        )

        self._lock = threading.RLock()
        self._buffer: Optional[PixelBuffer] = None
        self._history = HistoryStack(self.config.history_capacity)
        self._status = SessionStatus.IDLE
        self._magic_reference: Optional[RgbaColor] = None
        self._stroke_before: Optional[Any] = None
        self._closed = False

        self._status_listeners: List[StatusListener] = []
        self._image_listeners: List[ImageListener] = []

    # ------------------------------------------------------------------
    # Context manager / teardown
    # ------------------------------------------------------------------

    def __enter__(self) -> "EditSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        """End the session: wait for in-flight work, then drop the buffer."""
        if self._closed:
            return
        self._closed = True
        if self._owns_executor:
            self._executor.shutdown(wait=True)
        with self._lock:
            self._buffer = None
            self._history.clear()
            self._magic_reference = None
            self._stroke_before = None
        self._status_listeners.clear()
        self._image_listeners.clear()
        logger.debug("Edit session closed")

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def is_busy(self) -> bool:
        return self._status is SessionStatus.BUSY

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def has_image(self) -> bool:
        return self._buffer is not None

    @property
    def image_size(self) -> Optional[Size]:
        buffer = self._buffer
        return buffer.size if buffer is not None else None

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo

    @property
    def history(self) -> HistoryStack:
        return self._history

    def current_image(self) -> Optional[Any]:
        """A Pillow RGBA copy of the current image, or None before loading."""
        with self._lock:
            if self._buffer is None:
                return None
            return self._buffer.to_image()

    def subscribe_status(self, listener: StatusListener) -> Callable[[], None]:
        """Call listener(status) on every IDLE/BUSY change; returns an unsubscribe function."""
        self._status_listeners.append(listener)
        return lambda: self._unsubscribe(self._status_listeners, listener)

    def subscribe_image(self, listener: ImageListener) -> Callable[[], None]:
        """Call listener(image) whenever the current image changes; returns an unsubscribe function."""
        self._image_listeners.append(listener)
        return lambda: self._unsubscribe(self._image_listeners, listener)

    @staticmethod
    def _unsubscribe(listeners: List[Any], listener: Any) -> None:
        if listener in listeners:
            listeners.remove(listener)

    def _notify(self, listeners: List[Any], value: Any) -> None:
        for listener in list(listeners):
            try:
                listener(value)
            except Exception:
                logger.exception(f"Session listener {listener!r} raised")

    def _publish_image(self) -> None:
        if not self._image_listeners:
            return
        image = self.current_image()
        if image is not None:
            self._notify(self._image_listeners, image)

    def _set_status(self, status: SessionStatus) -> None:
        with self._lock:
            if self._status is status:
                return
            self._status = status
        logger.debug(f"Session status -> {status.value}")
        self._notify(self._status_listeners, status)

    def _editable(self, operation: str) -> Optional[PixelBuffer]:
        """The buffer if a mutating operation may run now, else None. Call with the lock held."""
        if self._closed or self._buffer is None:
            logger.debug(f"{operation}: no image loaded, ignored")
            return None
        if self._status is SessionStatus.BUSY:
            logger.debug(f"{operation}: session busy, rejected")
            return None
        return self._buffer

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_image(self, image: Any) -> bool:
        """
        Start editing a new image; resets history and the restore source.

        Args:
            image: PIL Image or (H, W, 4) array

        Returns:
            False if the session is busy or closed

        Raises:
            TypeError, ValueError: If image is not a usable RGBA source
        """
        return self._install_image(image, "load_image")

    def replace_image(self, image: Any) -> bool:
        """Swap in an externally produced image (e.g. a crop result); same rules as load_image."""
        return self._install_image(image, "replace_image")

    def _install_image(self, image: Any, operation: str) -> bool:
        with self._lock:
            if self._closed or self._status is SessionStatus.BUSY:
                logger.debug(f"{operation}: session unavailable, rejected")
                return False
            buffer = PixelBuffer(image)
            self._buffer = buffer
            self._history.clear()
            self._magic_reference = None
            self._stroke_before = None
        logger.info(f"{operation}: editing {buffer.width}x{buffer.height} image")
        self._publish_image()
        return True

    # ------------------------------------------------------------------
    # Asynchronous operations
    # ------------------------------------------------------------------

    def auto_remove(self) -> concurrent.futures.Future:
        """
        Remove the background with the segmentation fallback chain.

        Returns:
            Future resolving to the SegmentationResult once the result has
            been applied and the session is IDLE again. On failure the image
            is left unchanged and nothing is added to history.
        """
        with self._lock:
            buffer = self._editable("auto_remove")
            if buffer is None:
                return _completed(
                    SegmentationResult(image=None, ok=False, reason="session unavailable")
                )
            source = buffer.to_image()
            self._stroke_before = None
            self._status = SessionStatus.BUSY
        logger.debug("Session status -> busy")
        self._notify(self._status_listeners, SessionStatus.BUSY)
        return self._executor.submit(self._run_auto_remove, source)

    def _run_auto_remove(self, source: Any) -> SegmentationResult:
        try:
            result = remove_background_with_fallback(source, self._providers)
            if result.ok:
                with self._lock:
                    if self._buffer is not None:
                        self._history.snapshot_before(self._buffer)
                        self._buffer.replace(
                            result.image,
                            keep_backing=not self.config.refresh_backing_on_auto_remove,
                        )
                logger.info(f"Background removed by '{result.provider}'")
        finally:
            self._set_status(SessionStatus.IDLE)
        if result.ok:
            self._publish_image()
        return result

    def magic_wand(self, seed: Point, tolerance: float) -> concurrent.futures.Future:
        """
        Flood-fill erase from an image-space seed on the worker thread.

        Returns:
            Future resolving to True if pixels were erased. Seeds outside the
            image or on transparent pixels resolve to False immediately.
        """
        with self._lock:
            buffer = self._editable("magic_wand")
            if buffer is None:
                return _completed(False)
            x, y = math.floor(seed[0]), math.floor(seed[1])
            pixel = buffer.read(x, y)
            if pixel is None or pixel[ALPHA_CHANNEL] == TRANSPARENT_ALPHA:
                logger.debug(f"magic_wand: seed ({x}, {y}) outside image or transparent")
                return _completed(False)
            working = buffer.snapshot()
            self._stroke_before = None
            self._status = SessionStatus.BUSY
        logger.debug("Session status -> busy")
        self._notify(self._status_listeners, SessionStatus.BUSY)
        return self._executor.submit(self._run_magic_wand, working, (x, y), tolerance)

    def _run_magic_wand(self, working: Any, seed: Any, tolerance: float) -> bool:
        try:
            changed = flood_fill_image(working, seed, tolerance)
            if changed:
                with self._lock:
                    if self._buffer is not None:
                        self._history.snapshot_before(self._buffer)
                        self._buffer.install(working)
        finally:
            self._set_status(SessionStatus.IDLE)
        if changed:
            self._publish_image()
        return changed

    # ------------------------------------------------------------------
    # Synchronous tools
    # ------------------------------------------------------------------

    def begin_stroke(self) -> bool:
        """
        Start a brush drag.

        The image as it is now is held back and pushed to history by the
        first brush sample of the drag that changes pixels, so a drag that
        changes nothing leaves history untouched.
        """
        with self._lock:
            buffer = self._editable("begin_stroke")
            if buffer is None:
                return False
            self._stroke_before = buffer.snapshot()
            return True

    def _commit_stroke(self) -> None:
        """Record the pending pre-stroke image once. Call with the lock held."""
        if self._stroke_before is not None:
            self._history.push(self._stroke_before)
            self._stroke_before = None

    def init_magic_brush(self, point: Point) -> bool:
        """
        Capture the magic brush reference color under the first touch point.

        Returns:
            True if a reference color was captured
        """
        with self._lock:
            buffer = self._editable("init_magic_brush")
            if buffer is None:
                return False
            reference = init_tolerance_brush(buffer, point)
            if reference is not None:
                self._magic_reference = reference
            return reference is not None

    def apply_magic_brush(self, center: Point, radius: float, tolerance: float) -> bool:
        """Erase reference-colored pixels under the brush; no-op before init_magic_brush."""
        with self._lock:
            buffer = self._editable("apply_magic_brush")
            if buffer is None:
                return False
            changed = apply_tolerance_brush(
                buffer, center, radius, tolerance, self._magic_reference
            )
            if changed:
                self._commit_stroke()
        if changed:
            self._publish_image()
        return changed

    def apply_manual_brush(self, center: Point, radius: float, mode: BrushMode) -> bool:
        """Erase or restore a disc of pixels around an image-space center."""
        with self._lock:
            buffer = self._editable("apply_manual_brush")
            if buffer is None:
                return False
            changed = apply_brush(buffer, center, radius, mode)
            if changed:
                self._commit_stroke()
        if changed:
            self._publish_image()
        return changed

    def apply_lasso(
        self,
        points: Sequence[Point],
        transform: ViewTransform,
        view_size: Size,
    ) -> bool:
        """
        Erase the inside of a screen-space freehand path.

        The pre-cut image is recorded in history only if the cut changed
        something.
        """
        with self._lock:
            buffer = self._editable("apply_lasso")
            if buffer is None or not points:
                return False
            self._stroke_before = None
            before = buffer.snapshot()
            changed = apply_lasso(buffer, points, transform, view_size)
            if changed:
                self._history.push(before)
        if changed:
            self._publish_image()
        return changed

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def undo(self) -> bool:
        with self._lock:
            buffer = self._editable("undo")
            if buffer is None:
                return False
            self._stroke_before = None
            changed = self._history.undo(buffer)
        if changed:
            self._publish_image()
        return changed

    def redo(self) -> bool:
        with self._lock:
            buffer = self._editable("redo")
            if buffer is None:
                return False
            self._stroke_before = None
            changed = self._history.redo(buffer)
        if changed:
            self._publish_image()
        return changed
