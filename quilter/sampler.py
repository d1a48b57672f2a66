"""Raw per-pixel aggregates over a square tile buffer.

Every function here is pure: it takes a ``(side, side, 3)`` uint8 RGB array
(see :func:`as_pixel_array`) and returns plain Python numbers or tuples, so
the descriptor built from them is fully determined by the source pixels.
"""

from typing import Optional, Tuple

import cv2
import numpy as np

from quilter.config import (
    GAUSSIAN_KERNEL_5X5,
    GAUSSIAN_KERNEL_SUM,
    HISTOGRAM_MAX_BUCKETS,
    HISTOGRAM_SHIFT,
    RGB,
    EdgeStrips,
)
from quilter.errors import MalformedInputError

_KERNEL = np.array(GAUSSIAN_KERNEL_5X5, dtype=np.float64) / GAUSSIAN_KERNEL_SUM


def _round_half_up(num: int, den: int) -> int:
    """Round ``num / den`` to the nearest integer, halves going up."""
    return (2 * num + den) // (2 * den)


def as_pixel_array(pixels, side: int, channels: Optional[int] = None) -> np.ndarray:
    """Coerce a decoded pixel buffer into a ``(side, side, 3)`` uint8 array.

    Args:
        pixels: Flat RGBA/RGB bytes (``bytes``, ``bytearray``, ``memoryview``),
                a flat sequence of ints, or an ndarray of shape
                ``(side, side, 3|4)``.
        side: Expected side length of the square buffer.
        channels: 3 or 4.  Inferred from the buffer length when omitted.

    Raises:
        MalformedInputError: if the buffer size does not match
            ``side * side * channels`` or holds values that are not whole
            numbers in 0-255.
    """
    if side < 1:
        raise MalformedInputError(f"Tile side must be positive, got {side}")
    if channels is not None and channels not in (3, 4):
        raise MalformedInputError(f"Expected 3 or 4 channels, got {channels}")

    if isinstance(pixels, np.ndarray) and pixels.ndim == 3:
        h, w, c = pixels.shape
        if h != side or w != side or c not in (3, 4) or (channels and c != channels):
            raise MalformedInputError(
                f"Pixel array shape {pixels.shape} does not match side={side}"
            )
        arr = pixels
    else:
        if isinstance(pixels, (bytes, bytearray, memoryview)):
            flat = np.frombuffer(pixels, dtype=np.uint8)
        else:
            flat = np.asarray(pixels).reshape(-1)
        n = side * side
        if channels is None:
            if flat.size == n * 4:
                channels = 4
            elif flat.size == n * 3:
                channels = 3
            else:
                raise MalformedInputError(
                    f"Buffer of {flat.size} values is neither RGBA nor RGB "
                    f"for a {side}x{side} tile"
                )
        if flat.size != n * channels:
            raise MalformedInputError(
                f"Buffer of {flat.size} values does not match "
                f"{side}x{side}x{channels}"
            )
        arr = flat.reshape(side, side, channels)

    if arr.dtype != np.uint8:
        if arr.dtype.kind not in "biuf":
            raise MalformedInputError(f"Unsupported pixel dtype {arr.dtype}")
        if arr.size and (arr.min() < 0 or arr.max() > 255):
            raise MalformedInputError("Pixel values must lie in 0-255")
        if arr.dtype.kind == "f" and not np.array_equal(arr, np.floor(arr)):
            raise MalformedInputError("Pixel values must be whole numbers")
        arr = arr.astype(np.uint8)

    # alpha is ignored
    return np.ascontiguousarray(arr[:, :, :3])


def mean_color_and_brightness(rgb: np.ndarray) -> Tuple[RGB, int]:
    """Rounded per-channel mean and rounded mean of the per-pixel channel average."""
    n = rgb.shape[0] * rgb.shape[1]
    sums = rgb.reshape(-1, 3).sum(axis=0, dtype=np.int64)
    color = tuple(_round_half_up(int(s), n) for s in sums)
    # sum over pixels of (r + g + b) / 3 == total / 3, kept in integers
    brightness = _round_half_up(int(sums.sum()), 3 * n)
    return color, brightness


def color_histogram(rgb: np.ndarray,
                    max_buckets: int = HISTOGRAM_MAX_BUCKETS) -> Tuple[int, ...]:
    """Pixel counts per 3-bit-per-channel colour bucket.

    Buckets are ordered by the first pixel (row-major) that lands in them
    and only the first ``max_buckets`` are kept.
    """
    q = (rgb >> HISTOGRAM_SHIFT).astype(np.int32)
    keys = ((q[:, :, 0] << 6) | (q[:, :, 1] << 3) | q[:, :, 2]).reshape(-1)
    _, first_seen, counts = np.unique(keys, return_index=True, return_counts=True)
    order = np.argsort(first_seen, kind="stable")
    return tuple(int(c) for c in counts[order][:max_buckets])


def gaussian_blur(rgb: np.ndarray) -> np.ndarray:
    """5x5 Gaussian smoothing with replicated borders, returned as float64."""
    return cv2.filter2D(rgb.astype(np.float64), -1, _KERNEL,
                        borderType=cv2.BORDER_REPLICATE)


def blurred_mean_color(rgb: np.ndarray) -> RGB:
    blurred = gaussian_blur(rgb)
    means = blurred.reshape(-1, 3).mean(axis=0)
    return tuple(int(np.clip(np.floor(m + 0.5), 0, 255)) for m in means)


def neighbor_variance(rgb: np.ndarray) -> Tuple[float, float]:
    """Summed absolute brightness steps to the right and downward neighbour.

    Only pixels that have both neighbours (``x < side - 1`` and
    ``y < side - 1``) contribute.
    """
    gray = rgb.astype(np.float64).sum(axis=2) / 3.0
    core = gray[:-1, :-1]
    horizontal = float(np.abs(core - gray[:-1, 1:]).sum())
    vertical = float(np.abs(core - gray[1:, :-1]).sum())
    return horizontal, vertical


def edge_strips(rgb: np.ndarray) -> EdgeStrips:
    """Border samples, left-to-right for rows and top-to-bottom for columns."""
    def strip(line: np.ndarray):
        return tuple(tuple(int(v) for v in px) for px in line)

    return EdgeStrips(
        top=strip(rgb[0, :]),
        right=strip(rgb[:, -1]),
        bottom=strip(rgb[-1, :]),
        left=strip(rgb[:, 0]),
    )
