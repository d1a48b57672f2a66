"""Quilt configuration: descriptor schema, tuning constants, weight presets."""

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from quilter.errors import MalformedInputError


# ---------------------------------------------------------------------------
# Tile sampling
# ---------------------------------------------------------------------------
TILE_SIDE = 200             # every photo is resampled to TILE_SIDE x TILE_SIDE
HISTOGRAM_MAX_BUCKETS = 64  # first 64 buckets encountered, not the 64 largest
HISTOGRAM_SHIFT = 5         # keep the high 3 bits of each channel

GAUSSIAN_KERNEL_5X5: List[List[int]] = [
    [1, 4, 7, 4, 1],
    [4, 16, 26, 16, 4],
    [7, 26, 41, 26, 7],
    [4, 16, 26, 16, 4],
    [1, 4, 7, 4, 1],
]
GAUSSIAN_KERNEL_SUM = 273

# Pattern thresholds on the average neighbour difference.  Empirical, the
# order in which they are checked matters.
SOLID_MAX_VARIANCE = 10.0
STRIPE_ANISOTROPY = 0.3
FLORAL_MIN_VARIANCE = 40.0
GEOMETRIC_MIN_VARIANCE = 25.0


# ---------------------------------------------------------------------------
# Energy model constants
# ---------------------------------------------------------------------------
IDENTITY_PENALTY = 100.0
PATTERN_PENALTY = 10.0
REGULARITY_RADIUS = 2

# (window side, variance threshold); the large window is used once the grid
# is at least CLUSTER_LARGE_GRID_MIN cells on its short side
CLUSTER_LARGE_WINDOW = (3, 900.0)
CLUSTER_SMALL_WINDOW = (2, 400.0)
CLUSTER_LARGE_GRID_MIN = 5
CLUSTER_DIVISOR = 10.0


RGB = Tuple[int, int, int]


class PatternType(str, Enum):
    SOLID = "solid"
    STRIPED = "striped"
    GEOMETRIC = "geometric"
    FLORAL = "floral"
    ABSTRACT = "abstract"


@dataclass(frozen=True)
class EdgeStrips:
    """RGB samples along the four borders of a tile, reserved for edge matching."""
    top: Tuple[RGB, ...]
    right: Tuple[RGB, ...]
    bottom: Tuple[RGB, ...]
    left: Tuple[RGB, ...]

    def to_dict(self) -> dict:
        return {
            "top": [list(c) for c in self.top],
            "right": [list(c) for c in self.right],
            "bottom": [list(c) for c in self.bottom],
            "left": [list(c) for c in self.left],
        }

    @classmethod
    def from_dict(cls, d: dict) -> "EdgeStrips":
        def strip(key):
            return tuple(tuple(int(v) for v in c) for c in d.get(key, []))
        return cls(top=strip("top"), right=strip("right"),
                   bottom=strip("bottom"), left=strip("left"))


@dataclass(frozen=True)
class Descriptor:
    """Compact summary of one fabric tile photo.

    Built once per image and never mutated.  The energy model reads
    ``blurred_dominant_color``, ``brightness`` and ``pattern_type``; the
    histogram and edge strips are carried for later scoring terms.
    """
    dominant_color: RGB
    blurred_dominant_color: RGB
    brightness: int
    color_histogram: Tuple[int, ...]
    pattern_type: PatternType
    edges: EdgeStrips
    side: int = TILE_SIDE

    def to_dict(self) -> dict:
        return {
            "dominant_color": list(self.dominant_color),
            "blurred_dominant_color": list(self.blurred_dominant_color),
            "brightness": int(self.brightness),
            "color_histogram": list(self.color_histogram),
            "pattern_type": self.pattern_type.value,
            "edges": self.edges.to_dict(),
            "side": int(self.side),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Descriptor":
        return cls(
            dominant_color=tuple(int(v) for v in d["dominant_color"]),
            blurred_dominant_color=tuple(
                int(v) for v in d.get("blurred_dominant_color", d["dominant_color"])
            ),
            brightness=int(d["brightness"]),
            color_histogram=tuple(int(v) for v in d.get("color_histogram", [])),
            pattern_type=PatternType(d.get("pattern_type", "abstract")),
            edges=EdgeStrips.from_dict(d.get("edges", {})),
            side=int(d.get("side", TILE_SIDE)),
        )


@dataclass
class TileEntry:
    """A descriptor in the tile pool plus how many cells it should fill."""
    descriptor: Descriptor
    count: int = 1
    name: str = ""
    source_path: Optional[str] = None   # only used to render photos

    def __post_init__(self):
        try:
            whole = int(self.count) == self.count
        except (TypeError, ValueError):
            whole = False
        if not whole or self.count < 0:
            raise MalformedInputError(
                f"Tile count must be a non-negative integer, got {self.count!r}")
        self.count = int(self.count)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "path": self.source_path,
            "count": self.count,
            **self.descriptor.to_dict(),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "TileEntry":
        return cls(
            descriptor=Descriptor.from_dict(d),
            count=d.get("count", 1),
            name=d.get("name", ""),
            source_path=d.get("path"),
        )


@dataclass
class EnergyWeights:
    """Scalars for the energy terms.  ``spacing_weight`` scales both the
    identical-neighbour and the short-range regularity penalties;
    ``brightness_weight`` also scales brightness clustering."""
    color_weight: float = 2.0
    brightness_weight: float = 1.5
    pattern_weight: float = 2.5
    spacing_weight: float = 3.0

    def to_dict(self) -> dict:
        return dict(self.__dict__)

    @classmethod
    def from_dict(cls, d: dict) -> "EnergyWeights":
        return cls(**{k: float(v) for k, v in d.items() if k in cls.__dataclass_fields__})


@dataclass
class AnnealingSchedule:
    iterations: int = 5000
    temperature: float = 100.0
    cooling_rate: float = 0.995

    def to_dict(self) -> dict:
        return dict(self.__dict__)

    @classmethod
    def from_dict(cls, d: dict) -> "AnnealingSchedule":
        d = {k: v for k, v in d.items() if k in cls.__dataclass_fields__}
        if "iterations" in d:
            d["iterations"] = int(d["iterations"])
        for k in ("temperature", "cooling_rate"):
            if k in d:
                d[k] = float(d[k])
        return cls(**d)


@dataclass
class QuiltConfig:
    """Top-level run configuration, loadable from JSON."""
    rows: int = 4
    cols: int = 4
    tile_side: int = TILE_SIDE
    seed: Optional[int] = None
    weights: EnergyWeights = field(default_factory=EnergyWeights)
    schedule: AnnealingSchedule = field(default_factory=AnnealingSchedule)

    # Rendering
    render_tile_size: int = 200
    swatch_size: int = 40

    def to_dict(self) -> dict:
        d = {}
        for k, v in self.__dict__.items():
            if isinstance(v, (EnergyWeights, AnnealingSchedule)):
                d[k] = v.to_dict()
            else:
                d[k] = v
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "QuiltConfig":
        d = dict(d)
        if isinstance(d.get("weights"), dict):
            d["weights"] = EnergyWeights.from_dict(d["weights"])
        if isinstance(d.get("schedule"), dict):
            d["schedule"] = AnnealingSchedule.from_dict(d["schedule"])
        return cls(**{k: v for k, v in d.items() if k in cls.__dataclass_fields__})


def load_config(path: Path) -> QuiltConfig:
    with open(path) as f:
        try:
            data: Dict = json.load(f)
            return QuiltConfig.from_dict(data)
        except (TypeError, ValueError) as e:
            raise MalformedInputError(f"{path}: bad config: {e}") from e
