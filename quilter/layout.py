"""Caller-side helpers around a grid assignment.

Capacity checks, manual cell swaps, statistics and JSON persistence.  None
of this is part of the annealing search itself.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from quilter.config import Descriptor, EnergyWeights, TileEntry
from quilter.energy import energy
from quilter.errors import CapacityMismatchError, InvalidLayoutError, MalformedInputError

logger = logging.getLogger(__name__)

Cell = Tuple[int, int]


def _count(entry: Union[TileEntry, Descriptor]) -> int:
    return entry.count if isinstance(entry, TileEntry) else 1


def validate_capacity(tile_pool: Sequence[Union[TileEntry, Descriptor]],
                      rows: int, cols: int) -> None:
    """Raise unless the pool fills a rows x cols grid exactly."""
    if rows < 1 or cols < 1:
        raise InvalidLayoutError(f"Grid must be at least 1x1, got {rows}x{cols}")
    available = sum(_count(t) for t in tile_pool)
    required = rows * cols
    if available != required:
        raise CapacityMismatchError(required=required, available=available)


def swap_cells(assignment, a: Cell, b: Cell) -> np.ndarray:
    """Copy of ``assignment`` with cells ``a`` and ``b`` exchanged."""
    grid = np.array(assignment, dtype=np.int64)
    rows, cols = grid.shape
    for r, c in (a, b):
        if not (0 <= r < rows and 0 <= c < cols):
            raise IndexError(f"Cell ({r}, {c}) is outside the {rows}x{cols} grid")
    grid[a], grid[b] = grid[b], grid[a]
    return grid


@dataclass
class LayoutStats:
    rows: int
    cols: int
    total_tiles: int
    unique_patterns: int          # distinct tile-pool entries placed
    identical_adjacencies: int    # unordered neighbour pairs holding the same tile
    energy: float

    def to_dict(self) -> dict:
        return dict(self.__dict__)


def layout_statistics(assignment, tile_pool: Sequence[Union[TileEntry, Descriptor]],
                      weights: Optional[EnergyWeights] = None) -> LayoutStats:
    grid = np.asarray(assignment, dtype=np.int64)
    rows, cols = grid.shape
    touching = (int(np.count_nonzero(grid[:, :-1] == grid[:, 1:]))
                + int(np.count_nonzero(grid[:-1, :] == grid[1:, :])))
    return LayoutStats(
        rows=rows,
        cols=cols,
        total_tiles=int(grid.size),
        unique_patterns=int(len(np.unique(grid))),
        identical_adjacencies=touching,
        energy=energy(grid, tile_pool, weights),
    )


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

def layout_to_dict(assignment, tile_names: Optional[Sequence[str]] = None,
                   seed: Optional[int] = None,
                   energy_value: Optional[float] = None) -> dict:
    grid = np.asarray(assignment, dtype=np.int64)
    return {
        "rows": int(grid.shape[0]),
        "cols": int(grid.shape[1]),
        "assignment": grid.tolist(),
        "tiles": list(tile_names) if tile_names is not None else [],
        "seed": seed,
        "energy": energy_value,
    }


def layout_from_dict(d: dict) -> np.ndarray:
    try:
        grid = np.array(d["assignment"], dtype=np.int64)
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidLayoutError(f"Layout has no usable assignment: {e}") from e
    if grid.ndim != 2 or grid.size == 0 or grid.shape != (
            d.get("rows", grid.shape[0]), d.get("cols", grid.shape[1])):
        raise InvalidLayoutError(f"Layout grid shape {grid.shape} does not match rows/cols")
    return grid


def save_layout(path: Path, assignment, tile_names: Optional[Sequence[str]] = None,
                seed: Optional[int] = None, energy_value: Optional[float] = None) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(layout_to_dict(assignment, tile_names, seed, energy_value), f, indent=2)
    logger.debug("Saved layout to %s", path)


def load_layout(path: Path) -> Tuple[np.ndarray, dict]:
    """Returns (assignment, raw document)."""
    with open(path) as f:
        try:
            doc = json.load(f)
        except json.JSONDecodeError as e:
            raise InvalidLayoutError(f"{path}: not a layout file: {e}") from e
    if not isinstance(doc, dict):
        raise InvalidLayoutError(f"{path}: not a layout file")
    return layout_from_dict(doc), doc


def tile_names(tile_pool: Sequence[TileEntry]) -> List[str]:
    return [t.name or f"tile_{i}" for i, t in enumerate(tile_pool)]


def save_tile_pool(path: Path, tile_pool: Sequence[TileEntry]) -> None:
    """Write one JSON object per tile (JSON Lines)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        for entry in tile_pool:
            f.write(json.dumps(entry.to_dict()) + "\n")


def load_tile_pool(path: Path) -> List[TileEntry]:
    pool = []
    with open(path) as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                pool.append(TileEntry.from_dict(json.loads(line)))
            except (KeyError, TypeError, ValueError) as e:
                raise MalformedInputError(f"{path}:{line_no}: bad tile entry: {e}") from e
    return pool
