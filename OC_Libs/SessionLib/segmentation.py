"""
Automatic background removal for Open Cutout.

Segmentation is an external capability: given an image, a provider returns the
foreground-only image or fails. This module wraps providers behind a small
protocol and runs them as an ordered fallback chain that reports the outcome
as a SegmentationResult instead of raising.

Classes:
    SegmentationProvider: Protocol every provider implements
    ProviderFailure: One failed provider attempt
    SegmentationResult: Outcome of the fallback chain
    CallableProvider: Adapts a plain function to the provider protocol
    RembgProvider: Local model provider backed by rembg
    MaskModelProvider: Provider for models that predict a low-res confidence mask

Functions:
    is_empty_foreground: Whether a provider result carries no foreground
    apply_confidence_mask: Map a square confidence mask onto an image's alpha
    run_provider: Run one provider, capturing failures
    remove_background_with_fallback: Run providers in order until one succeeds
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Protocol, Sequence, Tuple

import numpy as np
from PIL import Image

from OC_Libs.constants import (
    ALPHA_CHANNEL,
    IMAGE_MODE,
    MASK_MODEL_INPUT_SIZE,
    PRIMARY_REMBG_MODEL,
    TRANSPARENT_ALPHA,
)

logger = logging.getLogger(__name__)


class SegmentationProvider(Protocol):
    name: str

    def remove_background(self, image: Any) -> Any:
        """Return the foreground-only RGBA image, or raise on failure."""
        ...


@dataclass(frozen=True)
class ProviderFailure:
    provider: str
    reason: str


@dataclass(frozen=True)
class SegmentationResult:
    """Outcome of a background-removal attempt.

    Attributes:
        image: The foreground image on success, otherwise the original image
        ok: True when a provider produced a usable foreground
        provider: Name of the provider whose result was used
        reason: Why the chain failed (empty on success)
        failures: Every provider attempt that failed, in order
    """

    image: Any
    ok: bool
    provider: Optional[str] = None
    reason: str = ""
    failures: Tuple[ProviderFailure, ...] = field(default_factory=tuple)


def is_empty_foreground(image: Any) -> bool:
    """
    Check whether a provider result is unusable.

    A result is empty when it is None, has zero size, or is fully
    transparent.
    """
    if image is None:
        return True
    width, height = image.size
    if width == 0 or height == 0:
        return True
    alpha = np.asarray(image.convert(IMAGE_MODE))[..., ALPHA_CHANNEL]
    return not bool((alpha != TRANSPARENT_ALPHA).any())


def run_provider(provider: SegmentationProvider, image: Any) -> SegmentationResult:
    """
    Run a single provider without letting it raise.

    Returns:
        ok=True with the RGBA foreground, or ok=False with the original
        image and a reason
    """
    name = getattr(provider, "name", type(provider).__name__)
    try:
        foreground = provider.remove_background(image)
    except Exception as e:
        reason = f"{type(e).__name__}: {e}"
        logger.warning(f"Segmentation provider '{name}' failed: {reason}")
        return SegmentationResult(image=image, ok=False, provider=name, reason=reason)

    if foreground is not None and not isinstance(foreground, Image.Image):
        reason = f"unsupported result type {type(foreground).__name__}"
        logger.warning(f"Segmentation provider '{name}': {reason}")
        return SegmentationResult(image=image, ok=False, provider=name, reason=reason)

    if is_empty_foreground(foreground):
        logger.warning(f"Segmentation provider '{name}' returned an empty foreground")
        return SegmentationResult(image=image, ok=False, provider=name, reason="empty foreground")

    if foreground.size != image.size:
        reason = f"result size {foreground.size} does not match input {image.size}"
        logger.warning(f"Segmentation provider '{name}': {reason}")
        return SegmentationResult(image=image, ok=False, provider=name, reason=reason)

    if foreground.mode != IMAGE_MODE:
        foreground = foreground.convert(IMAGE_MODE)
    return SegmentationResult(image=foreground, ok=True, provider=name)


def remove_background_with_fallback(
    image: Any,
    providers: Sequence[SegmentationProvider],
) -> SegmentationResult:
    """
    Try each provider in order and return the first usable foreground.

    With [primary, secondary] this is the editor's policy: the primary
    provider, then the local model on failure or an empty result, then the
    original image unchanged.

    Args:
        image: PIL Image to segment
        providers: Ordered providers; may be empty

    Returns:
        SegmentationResult; never raises for provider errors
    """
    failures: List[ProviderFailure] = []
    for provider in providers:
        result = run_provider(provider, image)
        if result.ok:
            if failures:
                logger.info(
                    f"Background removed by fallback provider '{result.provider}' "
                    f"after {len(failures)} failure(s)"
                )
            return SegmentationResult(
                image=result.image,
                ok=True,
                provider=result.provider,
                failures=tuple(failures),
            )
        failures.append(ProviderFailure(provider=result.provider or "", reason=result.reason))

    reason = "no segmentation providers configured" if not providers else "all segmentation providers failed"
    logger.warning(f"Background removal failed, keeping original image: {reason}")
    return SegmentationResult(image=image, ok=False, reason=reason, failures=tuple(failures))


# ============================================================================
# Providers
# ============================================================================

class CallableProvider:
    """Adapts a plain `func(image) -> image` to the provider protocol."""

    def __init__(self, name: str, func: Callable[[Any], Any]):
        if not callable(func):
            raise ValueError(f"func must be callable, got {type(func)}")
        self.name = str(name)
        self._func = func

    def remove_background(self, image: Any) -> Any:
        return self._func(image)


class RembgProvider:
    """
    Background removal with a local rembg model.

    The rembg session is created on first use and reused; model loading is
    slow and happens on the session's worker thread.

    Example:
        >>> provider = RembgProvider("silueta")
        >>> foreground = provider.remove_background(Image.open("photo.jpg"))
    """

    def __init__(self, model_name: str = PRIMARY_REMBG_MODEL):
        self.model_name = str(model_name)
        self.name = f"rembg:{self.model_name}"
        self._session: Optional[Any] = None

    def _get_session(self) -> Any:
        if self._session is None:
            from rembg import new_session

            logger.info(f"Loading rembg model '{self.model_name}'")
            self._session = new_session(self.model_name)
        return self._session

    def remove_background(self, image: Any) -> Any:
        from rembg import remove

        result = remove(image, session=self._get_session())
        return result.convert(IMAGE_MODE)


def apply_confidence_mask(image: Any, mask: np.ndarray) -> Any:
    """
    Use a model's confidence mask as the image's alpha channel.

    The mask may be smaller than the image; each image pixel samples the mask
    cell it maps to (nearest neighbour). Alpha is confidence * 255, clipped.

    Args:
        image: PIL Image (converted to RGBA)
        mask: 2D float array of confidences in [0, 1]

    Returns:
        New RGBA PIL Image
    """
    mask = np.asarray(mask, dtype=np.float32)
    if mask.ndim != 2 or mask.size == 0:
        raise ValueError(f"Expected a 2D confidence mask, got shape {mask.shape}")

    pixels = np.array(image.convert(IMAGE_MODE), dtype=np.uint8)
    height, width = pixels.shape[:2]
    mask_h, mask_w = mask.shape

    rows = (np.arange(height) * mask_h) // height
    cols = (np.arange(width) * mask_w) // width
    confidence = mask[rows[:, None], cols[None, :]]

    pixels[..., ALPHA_CHANNEL] = np.clip(confidence * 255.0, 0, 255).astype(np.uint8)
    return Image.fromarray(pixels)


class MaskModelProvider:
    """
    Provider for a saliency model that predicts a square confidence mask.

    The image is resized to input_size x input_size, normalized to 0-1 RGB
    and passed to `predict`, which must return input_size x input_size
    confidences (extra singleton axes are squeezed). The mask is then applied
    with apply_confidence_mask.
    """

    def __init__(
        self,
        predict: Callable[[np.ndarray], np.ndarray],
        input_size: int = MASK_MODEL_INPUT_SIZE,
        name: str = "mask-model",
    ):
        if not callable(predict):
            raise ValueError(f"predict must be callable, got {type(predict)}")
        if int(input_size) < 1:
            raise ValueError(f"input_size must be >= 1, got {input_size}")
        self._predict = predict
        self.input_size = int(input_size)
        self.name = str(name)

    def preprocess(self, image: Any) -> np.ndarray:
        scaled = image.convert("RGB").resize(
            (self.input_size, self.input_size), Image.Resampling.BILINEAR
        )
        return np.asarray(scaled, dtype=np.float32) / 255.0

    def remove_background(self, image: Any) -> Any:
        mask = np.squeeze(np.asarray(self._predict(self.preprocess(image)), dtype=np.float32))
        if mask.shape != (self.input_size, self.input_size):
            raise ValueError(
                f"Model returned mask of shape {mask.shape}, "
                f"expected ({self.input_size}, {self.input_size})"
            )
        return apply_confidence_mask(image, mask)
