"""Build tile descriptors from fabric photos.

Detects: dominant colour (raw and blurred), brightness, coarse colour
histogram, pattern type and border colour strips.  The descriptor core is
pure; decoding and resampling image files lives in the helpers at the
bottom of this module.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
from PIL import Image, UnidentifiedImageError

from quilter.config import (
    FLORAL_MIN_VARIANCE,
    GEOMETRIC_MIN_VARIANCE,
    SOLID_MAX_VARIANCE,
    STRIPE_ANISOTROPY,
    TILE_SIDE,
    Descriptor,
    PatternType,
)
from quilter.errors import DecodeFailure
from quilter.sampler import (
    as_pixel_array,
    blurred_mean_color,
    color_histogram,
    edge_strips,
    mean_color_and_brightness,
    neighbor_variance,
)

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".bmp", ".gif", ".webp"}


# ---------------------------------------------------------------------------
# Pattern classification
# ---------------------------------------------------------------------------

def classify_pattern(horizontal: float, vertical: float, side: int) -> PatternType:
    """Map neighbour-difference sums onto a coarse pattern class.

    Rules are checked in order and the first match wins:
    low overall variation is solid, strongly direction-dependent variation
    is striped, then busy tiles are floral and moderately busy ones
    geometric.  Everything else is abstract.
    """
    total = horizontal + vertical
    avg_variance = total / (side * side * 2)

    if avg_variance < SOLID_MAX_VARIANCE:
        return PatternType.SOLID
    if abs(horizontal - vertical) > total * STRIPE_ANISOTROPY:
        return PatternType.STRIPED
    if avg_variance > FLORAL_MIN_VARIANCE:
        return PatternType.FLORAL
    if avg_variance > GEOMETRIC_MIN_VARIANCE:
        return PatternType.GEOMETRIC
    return PatternType.ABSTRACT


# ---------------------------------------------------------------------------
# Descriptor core
# ---------------------------------------------------------------------------

def build_descriptor(pixels, side: int, channels: Optional[int] = None) -> Descriptor:
    """Reduce a square RGB/RGBA buffer to a :class:`Descriptor`.

    Args:
        pixels: Decoded ``side x side`` pixels, flat bytes or an ndarray.
            Resample to the fixed tile side before calling.
        side: Side length of the buffer.
        channels: 3 or 4; inferred from the buffer size when omitted.

    Raises:
        MalformedInputError: if the buffer size does not match ``side``.
    """
    rgb = as_pixel_array(pixels, side, channels)

    dominant, brightness = mean_color_and_brightness(rgb)
    histogram = color_histogram(rgb)
    blurred = blurred_mean_color(rgb)

    horizontal, vertical = neighbor_variance(rgb)
    pattern = classify_pattern(horizontal, vertical, side)

    return Descriptor(
        dominant_color=dominant,
        blurred_dominant_color=blurred,
        brightness=brightness,
        color_histogram=histogram,
        pattern_type=pattern,
        edges=edge_strips(rgb),
        side=side,
    )


extract_descriptor = build_descriptor


# ---------------------------------------------------------------------------
# Image files
# ---------------------------------------------------------------------------

def load_tile_pixels(path: Union[str, Path], side: int = TILE_SIDE) -> np.ndarray:
    """Decode an image file and resample it to a ``side x side`` RGB array.

    Raises:
        DecodeFailure: if the file is missing or not a readable image.
    """
    try:
        with Image.open(path) as pil:
            rgb = pil.convert("RGB").resize((side, side), Image.Resampling.BILINEAR)
            return np.array(rgb)
    except (OSError, UnidentifiedImageError, ValueError) as e:
        raise DecodeFailure(f"Could not load image: {path}") from e


def describe_image(path: Union[str, Path], side: int = TILE_SIDE) -> Descriptor:
    return build_descriptor(load_tile_pixels(path, side), side)


def gather_images(inputs: Iterable[Union[str, Path]], recursive: bool = False) -> List[Path]:
    """Collect image paths from file/directory arguments, sorted and deduplicated."""
    seen = set()
    paths = []
    for inp in inputs:
        p = Path(inp)
        if p.is_dir():
            candidates = p.rglob("*") if recursive else p.iterdir()
            found = [c for c in candidates
                     if c.is_file() and c.suffix.lower() in IMAGE_EXTENSIONS]
        elif p.is_file() and p.suffix.lower() in IMAGE_EXTENSIONS:
            found = [p]
        else:
            logger.warning("Skipping %s (not an image or directory)", p)
            continue
        for c in sorted(found):
            resolved = c.resolve()
            if resolved not in seen:
                seen.add(resolved)
                paths.append(c)
    return paths


def batch_describe(
    inputs: Union[str, Path, Sequence[Union[str, Path]]],
    side: int = TILE_SIDE,
    workers: int = 1,
    recursive: bool = False,
) -> List[Tuple[Path, Descriptor]]:
    """Describe every image under ``inputs``.

    Extraction per tile is independent, so ``workers > 1`` runs it on a
    thread pool.  Results keep input order; unreadable files are skipped.

    Returns list of (path, Descriptor).
    """
    if isinstance(inputs, (str, Path)):
        inputs = [inputs]
    paths = gather_images(inputs, recursive=recursive)

    def describe_one(path: Path) -> Optional[Tuple[Path, Descriptor]]:
        try:
            descriptor = describe_image(path, side)
        except DecodeFailure as e:
            logger.warning("Failed to load %s: %s", path, e.__cause__ or e)
            return None
        logger.debug("Described %s: colour=%s brightness=%d pattern=%s",
                     path.name, descriptor.blurred_dominant_color,
                     descriptor.brightness, descriptor.pattern_type.value)
        return path, descriptor

    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as ex:
            described = list(ex.map(describe_one, paths))
    else:
        described = [describe_one(p) for p in paths]

    results = [r for r in described if r is not None]
    logger.info("Described %d of %d images", len(results), len(paths))
    return results
