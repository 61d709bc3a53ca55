"""
Bounded undo/redo history for Open Cutout.

Every entry is a full deep copy of the buffer's current raster. The undo
sequence holds at most `capacity` entries; pushing past that silently drops
the oldest one. Any new snapshot clears the redo sequence.

Classes:
    HistoryStack: Linear undo/redo history of raster snapshots
"""

import logging
from collections import deque
from typing import Deque

import numpy as np

from OC_Libs.constants import DEFAULT_HISTORY_CAPACITY
from OC_Libs.ImageEditingLib.pixel_buffer import PixelBuffer

logger = logging.getLogger(__name__)


class HistoryStack:
    """
    Undo/redo history of PixelBuffer snapshots.

    Example:
        >>> history = HistoryStack(capacity=5)
        >>> history.snapshot_before(buffer)
        >>> apply_brush(buffer, (1, 1), 1, BrushMode.ERASE)
        >>> history.undo(buffer)
        True
    """

    def __init__(self, capacity: int = DEFAULT_HISTORY_CAPACITY):
        """
        Args:
            capacity: Maximum number of undo entries (>= 1)

        Raises:
            ValueError: If capacity < 1
        """
        if int(capacity) < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._capacity = int(capacity)
        # deque(maxlen) evicts from the left (oldest) on overflow
        self._undo: Deque[np.ndarray] = deque(maxlen=self._capacity)
        self._redo: Deque[np.ndarray] = deque(maxlen=self._capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def undo_depth(self) -> int:
        return len(self._undo)

    @property
    def redo_depth(self) -> int:
        return len(self._redo)

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    def push(self, snapshot: np.ndarray) -> None:
        """Record a snapshot taken by the caller and start a new branch."""
        if len(self._undo) == self._capacity:
            logger.debug(f"History full ({self._capacity}), dropping oldest entry")
        self._undo.append(np.array(snapshot, dtype=np.uint8, copy=True))
        self._redo.clear()

    def snapshot_before(self, buffer: PixelBuffer) -> None:
        """Record the buffer's current image before a mutating operation."""
        self.push(buffer.snapshot())

    def undo(self, buffer: PixelBuffer) -> bool:
        """
        Restore the most recent snapshot.

        The buffer's current image moves to the redo sequence.

        Returns:
            True if a snapshot was restored, False if there was nothing to undo
        """
        if not self._undo:
            return False
        previous = self._undo.pop()
        self._redo.append(buffer.snapshot())
        buffer.install(previous)
        return True

    def redo(self, buffer: PixelBuffer) -> bool:
        """Mirror of undo(); returns False if there was nothing to redo."""
        if not self._redo:
            return False
        following = self._redo.pop()
        self._undo.append(buffer.snapshot())
        buffer.install(following)
        return True

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()
