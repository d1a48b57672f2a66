"""Energy ("badness") of a grid assignment.

Each soft constraint is a plain function ``(grid, features, weights) ->
float`` and the total energy is the sum over :data:`ENERGY_TERMS`.  Adding
a rule means appending a function; the optimizer only ever calls
:func:`total_energy`.

Neighbour terms walk every cell and its in-bounds 4-neighbours, so each
adjacency is scored once from each side.  Lower energy is better; the
value has no absolute scale and is only compared within one run.
"""

import math
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from quilter.config import (
    CLUSTER_DIVISOR,
    CLUSTER_LARGE_GRID_MIN,
    CLUSTER_LARGE_WINDOW,
    CLUSTER_SMALL_WINDOW,
    IDENTITY_PENALTY,
    PATTERN_PENALTY,
    REGULARITY_RADIUS,
    Descriptor,
    EnergyWeights,
    PatternType,
    TileEntry,
)
from quilter.errors import InvalidLayoutError

_PATTERN_CODES = {p: i for i, p in enumerate(PatternType)}


@dataclass(frozen=True)
class TileFeatures:
    """Per-tile arrays indexed by tile-pool index."""
    colors: np.ndarray       # (n, 3) blurred dominant colours
    brightness: np.ndarray   # (n,)
    patterns: np.ndarray     # (n,) pattern codes

    def __len__(self) -> int:
        return len(self.brightness)


def tile_features(tile_pool: Sequence[Union[TileEntry, Descriptor]]) -> TileFeatures:
    descriptors = [t.descriptor if isinstance(t, TileEntry) else t for t in tile_pool]
    return TileFeatures(
        colors=np.array([d.blurred_dominant_color for d in descriptors],
                        dtype=np.float64).reshape(-1, 3),
        brightness=np.array([d.brightness for d in descriptors], dtype=np.float64),
        patterns=np.array([_PATTERN_CODES[d.pattern_type] for d in descriptors],
                          dtype=np.int64),
    )


def _adjacent_pairs(grid: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Tile indices on both sides of every horizontal and vertical adjacency."""
    a = np.concatenate([grid[:, :-1].ravel(), grid[:-1, :].ravel()])
    b = np.concatenate([grid[:, 1:].ravel(), grid[1:, :].ravel()])
    return a, b


# ---------------------------------------------------------------------------
# Terms
# ---------------------------------------------------------------------------

def identity_term(grid: np.ndarray, features: TileFeatures,
                  weights: EnergyWeights) -> float:
    """Identical tiles touching: the dominant penalty."""
    a, b = _adjacent_pairs(grid)
    touching = int(np.count_nonzero(a == b))
    return 2 * touching * IDENTITY_PENALTY * weights.spacing_weight


def color_term(grid: np.ndarray, features: TileFeatures,
               weights: EnergyWeights) -> float:
    """Similar blurred colours side by side; closer colours cost more."""
    a, b = _adjacent_pairs(grid)
    dist = np.linalg.norm(features.colors[a] - features.colors[b], axis=1)
    return 2 * float(np.sum(weights.color_weight / (dist + 1.0)))


def brightness_term(grid: np.ndarray, features: TileFeatures,
                    weights: EnergyWeights) -> float:
    a, b = _adjacent_pairs(grid)
    diff = np.abs(features.brightness[a] - features.brightness[b])
    return 2 * float(np.sum(weights.brightness_weight / (diff + 1.0)))


def pattern_term(grid: np.ndarray, features: TileFeatures,
                 weights: EnergyWeights) -> float:
    a, b = _adjacent_pairs(grid)
    same = int(np.count_nonzero(features.patterns[a] == features.patterns[b]))
    return 2 * same * PATTERN_PENALTY * weights.pattern_weight


def regularity_term(grid: np.ndarray, features: TileFeatures,
                    weights: EnergyWeights) -> float:
    """Same tile recurring within a 5x5 neighbourhood, weighted by 1/distance."""
    rows, cols = grid.shape
    total = 0.0
    for dr in range(-REGULARITY_RADIUS, REGULARITY_RADIUS + 1):
        r0, r1 = max(0, -dr), rows - max(0, dr)
        if r1 <= r0:
            continue
        for dc in range(-REGULARITY_RADIUS, REGULARITY_RADIUS + 1):
            if dr == 0 and dc == 0:
                continue
            c0, c1 = max(0, -dc), cols - max(0, dc)
            if c1 <= c0:
                continue
            centre = grid[r0:r1, c0:c1]
            other = grid[r0 + dr:r1 + dr, c0 + dc:c1 + dc]
            repeats = int(np.count_nonzero(centre == other))
            if repeats:
                total += repeats * weights.spacing_weight / math.hypot(dr, dc)
    return total


def brightness_clustering_term(grid: np.ndarray, features: TileFeatures,
                               weights: EnergyWeights) -> float:
    """Patches of uniform brightness.

    Slides a 3x3 window (2x2 on grids smaller than 5 on a side) and charges
    every window whose brightness variance falls under the threshold.
    """
    rows, cols = grid.shape
    if min(rows, cols) >= CLUSTER_LARGE_GRID_MIN:
        window, threshold = CLUSTER_LARGE_WINDOW
    else:
        window, threshold = CLUSTER_SMALL_WINDOW
    if rows < window or cols < window:
        return 0.0

    windows = sliding_window_view(features.brightness[grid], (window, window))
    variance = windows.reshape(windows.shape[0], windows.shape[1], -1).var(axis=2)
    low = variance < threshold
    clustering = float(np.sum((threshold - variance[low]) / CLUSTER_DIVISOR))
    return clustering * weights.brightness_weight


EnergyTerm = Callable[[np.ndarray, TileFeatures, EnergyWeights], float]

ENERGY_TERMS: List[EnergyTerm] = [
    identity_term,
    color_term,
    brightness_term,
    pattern_term,
    regularity_term,
    brightness_clustering_term,
]


# ---------------------------------------------------------------------------
# Totals
# ---------------------------------------------------------------------------

def total_energy(grid: np.ndarray, features: TileFeatures,
                 weights: EnergyWeights,
                 terms: Sequence[EnergyTerm] = ENERGY_TERMS) -> float:
    return float(sum(term(grid, features, weights) for term in terms))


def _as_grid(assignment, n_tiles: int) -> np.ndarray:
    grid = np.asarray(assignment, dtype=np.int64)
    if grid.ndim != 2 or grid.size == 0:
        raise InvalidLayoutError(
            f"Assignment must be a non-empty 2-D grid, got shape {grid.shape}")
    if grid.min() < 0 or grid.max() >= n_tiles:
        raise InvalidLayoutError(f"Assignment references tiles outside 0..{n_tiles - 1}")
    return grid


def energy(assignment, tile_pool: Sequence[Union[TileEntry, Descriptor]],
           weights: Optional[EnergyWeights] = None) -> float:
    """Total energy of ``assignment`` (rows x cols of tile-pool indices)."""
    features = tile_features(tile_pool)
    grid = _as_grid(assignment, len(features))
    return total_energy(grid, features, weights or EnergyWeights())


def energy_breakdown(assignment, tile_pool: Sequence[Union[TileEntry, Descriptor]],
                     weights: Optional[EnergyWeights] = None) -> Dict[str, float]:
    """Per-term contributions, keyed by term name without the ``_term`` suffix."""
    features = tile_features(tile_pool)
    grid = _as_grid(assignment, len(features))
    weights = weights or EnergyWeights()
    return {
        term.__name__[:-len("_term")]: float(term(grid, features, weights))
        for term in ENERGY_TERMS
    }
