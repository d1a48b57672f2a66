"""Shared helpers for the quilter tests."""

from __future__ import annotations

import numpy as np
import pytest

from quilter.config import Descriptor, EdgeStrips, PatternType, TileEntry


def make_descriptor(
    color=(128, 128, 128),
    brightness: int = 128,
    pattern: PatternType = PatternType.SOLID,
) -> Descriptor:
    """Hand-built descriptor for energy/optimizer tests (no pixels needed)."""
    return Descriptor(
        dominant_color=tuple(color),
        blurred_dominant_color=tuple(color),
        brightness=brightness,
        color_histogram=(),
        pattern_type=pattern,
        edges=EdgeStrips(top=(), right=(), bottom=(), left=()),
        side=200,
    )


@pytest.fixture
def dark_light_pool():
    """Dark solid tile and bright floral tile, eight cells each."""
    dark = make_descriptor((10, 10, 10), brightness=10, pattern=PatternType.SOLID)
    light = make_descriptor((250, 250, 250), brightness=250, pattern=PatternType.FLORAL)
    return [TileEntry(dark, count=8, name="dark"), TileEntry(light, count=8, name="light")]


@pytest.fixture
def varied_pool():
    """Six distinct tiles, two cells each (fills a 3x4 grid)."""
    tiles = [
        ((200, 30, 30), 87, PatternType.SOLID),
        ((30, 200, 30), 87, PatternType.STRIPED),
        ((30, 30, 200), 87, PatternType.FLORAL),
        ((240, 240, 200), 227, PatternType.GEOMETRIC),
        ((20, 20, 40), 27, PatternType.ABSTRACT),
        ((120, 90, 60), 90, PatternType.SOLID),
    ]
    return [
        TileEntry(make_descriptor(c, b, p), count=2, name=f"tile_{i}")
        for i, (c, b, p) in enumerate(tiles)
    ]


def make_stripes(side: int = 40, width: int = 4, vertical: bool = True) -> np.ndarray:
    """Black/white stripes as an RGB array."""
    img = np.zeros((side, side, 3), dtype=np.uint8)
    for i in range(side):
        if (i // width) % 2:
            if vertical:
                img[:, i] = 255
            else:
                img[i, :] = 255
    return img
