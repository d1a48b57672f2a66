"""Visual output for finished quilt layouts.

Generates:
  - Full-resolution quilt composed from the tile photos
  - Flat colour swatch preview (blurred dominant colour per cell)
  - Annealing energy trace plot
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
from PIL import Image

from quilter.config import Descriptor, TileEntry

logger = logging.getLogger(__name__)

# Seam colour between cells
GAP_COLOR = (245, 240, 230)


def render_quilt(
    tile_images: Sequence[Union[np.ndarray, Image.Image]],
    assignment,
    tile_size: int = 200,
    gap: int = 0,
    gap_color: Tuple[int, int, int] = GAP_COLOR,
) -> np.ndarray:
    """Paste each cell's tile photo into one RGB canvas.

    Args:
        tile_images: One image per tile-pool entry (RGB arrays or PIL images).
        assignment: rows x cols grid of tile-pool indices.
        tile_size: Output side of every cell in pixels.
        gap: Seam width between cells.

    Returns:
        RGB numpy array of shape (rows * (tile_size + gap) - gap, cols * ..., 3).
    """
    grid = np.asarray(assignment)
    rows, cols = grid.shape
    step = tile_size + gap
    canvas = Image.new("RGB", (cols * step - gap, rows * step - gap), gap_color)

    # resize each distinct tile once
    resized = {}
    for index in np.unique(grid):
        img = tile_images[int(index)]
        pil = img if isinstance(img, Image.Image) else Image.fromarray(
            np.ascontiguousarray(np.asarray(img, dtype=np.uint8)[:, :, :3]))
        resized[int(index)] = pil.convert("RGB").resize(
            (tile_size, tile_size), Image.Resampling.BILINEAR)

    for r in range(rows):
        for c in range(cols):
            canvas.paste(resized[int(grid[r, c])], (c * step, r * step))

    return np.array(canvas)


def render_swatches(
    tile_pool: Sequence[Union[TileEntry, Descriptor]],
    assignment,
    tile_size: int = 40,
    gap: int = 1,
    gap_color: Tuple[int, int, int] = GAP_COLOR,
) -> np.ndarray:
    """Flat preview: every cell painted with its tile's blurred dominant colour."""
    descriptors = [t.descriptor if isinstance(t, TileEntry) else t for t in tile_pool]
    palette = np.array([d.blurred_dominant_color for d in descriptors], dtype=np.uint8)
    grid = np.asarray(assignment)
    rows, cols = grid.shape

    # nearest-neighbour upscale of the colour grid, then draw seams
    cells = palette[grid]
    step = tile_size + gap
    big = np.repeat(np.repeat(cells, step, axis=0), step, axis=1)
    if gap:
        for y in range(tile_size, big.shape[0], step):
            big[y:y + gap, :] = gap_color
        for x in range(tile_size, big.shape[1], step):
            big[:, x:x + gap] = gap_color
        big = big[:rows * step - gap, :cols * step - gap]
    return big


def save_image(image: np.ndarray, output_path: Path) -> Path:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(np.ascontiguousarray(image, dtype=np.uint8)).save(output_path)
    logger.info("Saved %dx%d image to %s", image.shape[1], image.shape[0], output_path)
    return output_path


def save_energy_trace(history: List[float], output_path: Path,
                      best_energy: Optional[float] = None) -> Path:
    """Plot the current energy after every iteration."""
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    fig, ax = plt.subplots(figsize=(8, 4))
    ax.plot(history, linewidth=0.8)
    if best_energy is not None:
        ax.axhline(best_energy, color="tab:red", linestyle="--", linewidth=0.8,
                   label=f"best {best_energy:.1f}")
        ax.legend()
    ax.set_xlabel("Iteration")
    ax.set_ylabel("Energy")
    ax.set_title("Annealing energy")
    fig.tight_layout()
    fig.savefig(output_path)
    plt.close(fig)
    logger.info("Saved energy trace to %s", output_path)
    return output_path
