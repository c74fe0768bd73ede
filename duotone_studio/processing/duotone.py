"""Duotone transform engine.

Rewrites an RGBA8 pixel buffer in place: every pixel's Rec. 709 luminance is
auto-contrast stretched to ``[0, 1]``, pushed through the contrast S-curve and
used to interpolate between the shadow and the highlight color. Alpha is never
touched.

The work happens in two passes because the normalization in the second pass
needs the global luminance range found by the first. Both passes walk the
buffer in fixed-size chunks so the float temporaries stay bounded for
multi-megapixel images.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Iterator, Tuple

import numpy as np

from ..config import HIGHLIGHT_COLOR, LUMA_WEIGHTS, RGB, SHADOW_COLOR
from ..errors import InvalidInputError
from .curve import enhance_contrast

log = logging.getLogger("duotone-studio")

CHUNK_PIXELS = 1 << 20


@dataclass(frozen=True)
class LuminanceRange:
    minimum: float
    maximum: float

    @property
    def span(self) -> float:
        # A flat image has no range; 1 keeps every pixel at n == 0.
        return (self.maximum - self.minimum) or 1.0


def _pixel_array(buffer) -> np.ndarray:
    if isinstance(buffer, np.ndarray):
        arr = buffer
        if arr.dtype != np.uint8:
            raise InvalidInputError(f"pixel buffer must be uint8, got {arr.dtype}")
        if arr.ndim > 1 and arr.shape[-1] != 4:
            raise InvalidInputError(f"pixel buffer must have 4 channels, got shape {arr.shape}")
    elif isinstance(buffer, (bytearray, memoryview)):
        if isinstance(buffer, memoryview) and buffer.readonly:
            raise InvalidInputError("pixel buffer is read-only")
        try:
            arr = np.frombuffer(buffer, dtype=np.uint8)
        except (TypeError, ValueError) as exc:
            raise InvalidInputError(f"unreadable pixel buffer: {exc}") from exc
    else:
        raise InvalidInputError(
            f"pixel buffer must be a bytearray, memoryview or numpy array, got {type(buffer).__name__}"
        )

    if arr.size == 0:
        raise InvalidInputError("pixel buffer is empty")
    if arr.size % 4:
        raise InvalidInputError(f"pixel buffer length {arr.size} is not a multiple of 4")
    if not arr.flags.writeable:
        raise InvalidInputError("pixel buffer is read-only")
    return arr


def _chunks(pixels: np.ndarray) -> Iterator[np.ndarray]:
    for start in range(0, len(pixels), CHUNK_PIXELS):
        yield pixels[start:start + CHUNK_PIXELS]


def _luminance(chunk: np.ndarray) -> np.ndarray:
    rgb = chunk[:, :3].astype(np.float64)
    wr, wg, wb = LUMA_WEIGHTS
    return wr * rgb[:, 0] + wg * rgb[:, 1] + wb * rgb[:, 2]


def _scan_range(pixels: np.ndarray) -> LuminanceRange:
    minimum = float("inf")
    maximum = float("-inf")
    for chunk in _chunks(pixels):
        lum = _luminance(chunk)
        minimum = min(minimum, float(lum.min()))
        maximum = max(maximum, float(lum.max()))
    return LuminanceRange(minimum, maximum)


def luminance_range(buffer) -> LuminanceRange:
    """Return the darkest and brightest luminance found in ``buffer``."""

    pixels = _pixel_array(buffer).reshape(-1, 4)
    return _scan_range(pixels)


def endpoint_colors(reverse: bool = False) -> Tuple[RGB, RGB]:
    """Return ``(shadow_side, highlight_side)`` for the given orientation."""

    if reverse:
        return HIGHLIGHT_COLOR, SHADOW_COLOR
    return SHADOW_COLOR, HIGHLIGHT_COLOR


def apply_duotone(buffer, reverse: bool = False) -> None:
    """Map ``buffer`` onto the duotone ramp in place.

    ``buffer`` holds RGBA8 pixels in row-major order and may be a
    ``bytearray``, a writable ``memoryview`` or a ``uint8`` numpy array
    (flat, ``(N, 4)`` or ``(H, W, 4)``). It is validated before anything is
    written, so an :class:`InvalidInputError` leaves it untouched.
    """

    arr = _pixel_array(buffer)
    started = time.perf_counter()

    pixels = arr.reshape(-1, 4)
    lum_range = _scan_range(pixels)
    span = lum_range.span

    shadow, highlight = endpoint_colors(reverse)
    low = np.asarray(shadow, dtype=np.float64)
    delta = np.asarray(highlight, dtype=np.float64) - low

    for chunk in _chunks(pixels):
        normalized = np.clip((_luminance(chunk) - lum_range.minimum) / span, 0.0, 1.0)
        weight = enhance_contrast(normalized)
        mapped = np.floor(low + weight[:, None] * delta + 0.5)
        chunk[:, :3] = np.clip(mapped, 0, 255).astype(np.uint8)

    if not np.may_share_memory(pixels, arr):
        np.copyto(arr, pixels.reshape(arr.shape))

    log.debug(
        "duotone: %d px, luminance %.3f..%.3f, reverse=%s, %.1f ms",
        len(pixels),
        lum_range.minimum,
        lum_range.maximum,
        reverse,
        (time.perf_counter() - started) * 1000.0,
    )
