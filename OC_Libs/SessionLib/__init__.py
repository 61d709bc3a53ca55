"""
SessionLib - Edit session orchestration

This module ties the editing engine together: the EditSession state machine,
the segmentation fallback chain and drag gesture routing.
"""

from OC_Libs.SessionLib.segmentation import (
    SegmentationProvider,
    SegmentationResult,
    ProviderFailure,
    CallableProvider,
    RembgProvider,
    MaskModelProvider,
    apply_confidence_mask,
    is_empty_foreground,
    remove_background_with_fallback,
)
from OC_Libs.SessionLib.edit_session import (
    EditSession,
    SessionConfig,
    SessionStatus,
    default_providers,
)
from OC_Libs.SessionLib.gesture_router import GestureRouter, ToolKind

__all__ = [
    "SegmentationProvider",
    "SegmentationResult",
    "ProviderFailure",
    "CallableProvider",
    "RembgProvider",
    "MaskModelProvider",
    "apply_confidence_mask",
    "is_empty_foreground",
    "remove_background_with_fallback",
    "EditSession",
    "SessionConfig",
    "SessionStatus",
    "default_providers",
    "GestureRouter",
    "ToolKind",
]
