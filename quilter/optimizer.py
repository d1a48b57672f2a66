"""Simulated annealing over tile-to-cell assignments.

The search starts from a shuffled layout, proposes random two-cell swaps,
and accepts them with the Metropolis rule against :mod:`quilter.energy`.
The best layout seen is returned, so the result is never worse than the
initial shuffle.

Randomness is an explicit argument: pass an :class:`LcgRandom` (or any
object with a ``random()`` method) to make a run reproducible.
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol, Sequence, Union

import numpy as np

from quilter.config import AnnealingSchedule, Descriptor, EnergyWeights, TileEntry
from quilter.energy import tile_features, total_energy
from quilter.layout import validate_capacity

logger = logging.getLogger(__name__)

_LCG_MULTIPLIER = 1664525
_LCG_INCREMENT = 1013904223
_LCG_MODULUS = 2 ** 32


class RandomSource(Protocol):
    def random(self) -> float: ...


class LcgRandom:
    """Seeded linear congruential generator yielding floats in [0, 1).

    ``state = (state * 1664525 + 1013904223) mod 2**32``; the seed is
    reduced modulo 2**32 first.
    """

    def __init__(self, seed: int):
        self.state = int(seed) % _LCG_MODULUS

    def random(self) -> float:
        self.state = (self.state * _LCG_MULTIPLIER + _LCG_INCREMENT) % _LCG_MODULUS
        return self.state / _LCG_MODULUS


def make_random(seed: Optional[int] = None) -> RandomSource:
    """LCG for a given seed, an unseeded ``random.Random`` otherwise."""
    if seed is None:
        return random.Random()
    return LcgRandom(seed)


def _randint(rng: RandomSource, upper: int) -> int:
    return int(math.floor(rng.random() * upper))


@dataclass
class AnnealingResult:
    """Outcome of one annealing run."""
    assignment: np.ndarray     # best layout found (rows x cols)
    energy: float              # energy of ``assignment``
    initial_energy: float
    iterations: int            # iterations actually run
    accepted: int = 0
    improvements: int = 0      # times the best-so-far was replaced
    aborted: bool = False
    history: List[float] = field(default_factory=list)  # current energy per iteration


# ---------------------------------------------------------------------------
# Initial layout
# ---------------------------------------------------------------------------

def expand_pool(tile_pool: Sequence[TileEntry]) -> List[int]:
    """Tile-pool indices, each repeated ``count`` times, in pool order."""
    expanded = []
    for index, entry in enumerate(tile_pool):
        expanded.extend([index] * entry.count)
    return expanded


def shuffle(items: List[int], rng: RandomSource) -> List[int]:
    """Fisher-Yates shuffle into a new list."""
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = _randint(rng, i + 1)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def initial_assignment(tile_pool: Sequence[TileEntry], rows: int, cols: int,
                       rng: RandomSource) -> np.ndarray:
    """Shuffled pool laid out row-major."""
    validate_capacity(tile_pool, rows, cols)
    flat = shuffle(expand_pool(tile_pool), rng)
    return np.array(flat, dtype=np.int64).reshape(rows, cols)


def _metropolis_accept(delta: float, temperature: float, rng: RandomSource) -> bool:
    if delta < 0:
        return True
    draw = rng.random()
    if temperature <= 0:
        return False
    return draw < math.exp(-delta / temperature)


# ---------------------------------------------------------------------------
# Annealing
# ---------------------------------------------------------------------------

def anneal(
    tile_pool: Sequence[Union[TileEntry, Descriptor]],
    rows: int,
    cols: int,
    weights: Optional[EnergyWeights] = None,
    rng: Optional[RandomSource] = None,
    schedule: Optional[AnnealingSchedule] = None,
    should_abort: Optional[Callable[[int], bool]] = None,
) -> AnnealingResult:
    """Search for a low-energy layout of ``tile_pool`` on a rows x cols grid.

    Args:
        tile_pool: Tile entries; bare descriptors count as one cell each.
        rows, cols: Grid dimensions.
        weights: Energy weights (defaults when omitted).
        rng: Random source used for the shuffle, swaps and acceptance.
        schedule: Iteration count and cooling schedule.
        should_abort: Called with the iteration number before each
            iteration; returning True stops the search early.

    Raises:
        CapacityMismatchError: if the summed counts differ from rows * cols.
    """
    pool = [t if isinstance(t, TileEntry) else TileEntry(t) for t in tile_pool]
    weights = weights or EnergyWeights()
    schedule = schedule or AnnealingSchedule()
    rng = rng if rng is not None else make_random()

    current = initial_assignment(pool, rows, cols, rng)
    features = tile_features(pool)

    current_energy = total_energy(current, features, weights)
    initial_energy = current_energy
    best = current.copy()
    best_energy = current_energy

    result = AnnealingResult(
        assignment=best,
        energy=best_energy,
        initial_energy=initial_energy,
        iterations=0,
    )

    temperature = float(schedule.temperature)
    for iteration in range(schedule.iterations):
        if should_abort is not None and should_abort(iteration):
            logger.info("Annealing aborted after %d iterations", iteration)
            result.aborted = True
            break

        r1 = _randint(rng, rows)
        c1 = _randint(rng, cols)
        r2 = _randint(rng, rows)
        c2 = _randint(rng, cols)

        candidate = current.copy()
        candidate[r1, c1], candidate[r2, c2] = current[r2, c2], current[r1, c1]

        candidate_energy = total_energy(candidate, features, weights)
        delta = candidate_energy - current_energy

        if _metropolis_accept(delta, temperature, rng):
            current = candidate
            current_energy = candidate_energy
            result.accepted += 1

            if current_energy < best_energy:
                best = current.copy()
                best_energy = current_energy
                result.improvements += 1
                logger.debug("Iteration %d: new best energy %.3f (T=%.4f)",
                             iteration, best_energy, temperature)

        temperature *= schedule.cooling_rate
        result.iterations = iteration + 1
        result.history.append(current_energy)

    result.assignment = best
    result.energy = best_energy

    logger.info(
        "Annealed %dx%d grid: energy %.2f -> %.2f (%d iterations, %d accepted)",
        rows, cols, initial_energy, best_energy, result.iterations, result.accepted,
    )
    return result


def optimize_layout(
    tile_pool: Sequence[Union[TileEntry, Descriptor]],
    rows: int,
    cols: int,
    weights: Optional[EnergyWeights] = None,
    seed: Optional[int] = None,
    schedule: Optional[AnnealingSchedule] = None,
) -> np.ndarray:
    """Best rows x cols assignment of tile-pool indices.

    A fixed ``seed`` makes the run reproducible; without one every call
    explores a different layout.
    """
    return anneal(tile_pool, rows, cols, weights=weights,
                  rng=make_random(seed), schedule=schedule).assignment
