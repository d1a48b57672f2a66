"""Command line interface for the quilt layout optimizer.

Usage:
    python -m quilter.cli describe  <input> -o <tiles.jsonl>  [--count 1] [--workers 4]
    python -m quilter.cli optimize  <tiles.jsonl> --rows 4 --cols 4 -o <layout.json>  [--seed 7]
    python -m quilter.cli swap      <layout.json> <row,col> <row,col>  [-o <out.json>]
    python -m quilter.cli stats     <layout.json> <tiles.jsonl>
    python -m quilter.cli run       <input> --rows 4 --cols 4 -o <dir>  [--seed 7]

Each subcommand corresponds to one step of building a quilt:
  describe — Extract a descriptor per tile photo; edit the ``count`` fields afterwards
  optimize — Anneal a layout for the described tiles and save it as JSON
  swap     — Manually exchange two cells of a saved layout
  stats    — Print layout statistics and the energy breakdown
  run      — describe → optimize → render in one go
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from quilter.config import (
    TILE_SIDE,
    AnnealingSchedule,
    EnergyWeights,
    QuiltConfig,
    TileEntry,
    load_config,
)
from quilter.descriptor import batch_describe, load_tile_pixels
from quilter.energy import energy_breakdown
from quilter.errors import QuiltError
from quilter.layout import (
    layout_statistics,
    load_layout,
    load_tile_pool,
    save_layout,
    save_tile_pool,
    swap_cells,
    tile_names,
)
from quilter.optimizer import anneal, make_random
from quilter.render import render_quilt, render_swatches, save_energy_trace, save_image

logger = logging.getLogger("quilter")


def _setup_logging(debug: bool = False):
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _parse_cell(text: str) -> Tuple[int, int]:
    try:
        row, col = (int(p) for p in text.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected ROW,COL, got {text!r}")
    return row, col


def _resolve_config(args) -> QuiltConfig:
    """Config file values, overridden by any flags given on the command line."""
    cfg = load_config(Path(args.config)) if getattr(args, "config", None) else QuiltConfig()

    for name in ("rows", "cols", "seed"):
        value = getattr(args, name, None)
        if value is not None:
            setattr(cfg, name, value)

    for name in EnergyWeights.__dataclass_fields__:
        value = getattr(args, name, None)
        if value is not None:
            setattr(cfg.weights, name, value)

    for name in AnnealingSchedule.__dataclass_fields__:
        value = getattr(args, name, None)
        if value is not None:
            setattr(cfg.schedule, name, value)
    return cfg


def _describe(inputs: List[str], side: int, count: int, workers: int,
              recursive: bool) -> List[TileEntry]:
    described = batch_describe(inputs, side=side, workers=workers, recursive=recursive)
    return [
        TileEntry(descriptor=d, count=count, name=path.stem, source_path=str(path))
        for path, d in described
    ]


def _optimize_and_save(pool: List[TileEntry], cfg: QuiltConfig, output: Path,
                       swatches: Optional[Path], render: Optional[Path],
                       trace: Optional[Path]):
    result = anneal(pool, cfg.rows, cfg.cols, weights=cfg.weights,
                    rng=make_random(cfg.seed), schedule=cfg.schedule)

    save_layout(output, result.assignment, tile_names(pool),
                seed=cfg.seed, energy_value=result.energy)
    logger.info("Layout (energy %.2f, initial %.2f) → %s",
                result.energy, result.initial_energy, output)

    if swatches:
        save_image(render_swatches(pool, result.assignment, tile_size=cfg.swatch_size),
                   swatches)
    if render:
        missing = [t.name for t in pool if not t.source_path]
        if missing:
            logger.warning("Not rendering %s: no photo path for %s", render, missing)
        else:
            images = [load_tile_pixels(t.source_path, cfg.tile_side) for t in pool]
            save_image(render_quilt(images, result.assignment,
                                    tile_size=cfg.render_tile_size), render)
    if trace:
        save_energy_trace(result.history, trace, best_energy=result.energy)
    return result


# ---- Subcommand: describe ----

def cmd_describe(args):
    pool = _describe(args.inputs, args.side, args.count, args.workers, args.recursive)
    if not pool:
        logger.error("No images found in %s", args.inputs)
        return 1

    output = Path(args.output)
    save_tile_pool(output, pool)
    logger.info("Described %d tiles → %s", len(pool), output)

    from collections import Counter
    patterns = Counter(t.descriptor.pattern_type.value for t in pool)
    logger.info("Pattern types: %s", dict(patterns))
    return 0


# ---- Subcommand: optimize ----

def cmd_optimize(args):
    pool = load_tile_pool(Path(args.inputs[0]))
    cfg = _resolve_config(args)
    _optimize_and_save(
        pool, cfg, Path(args.output),
        swatches=Path(args.swatches) if args.swatches else None,
        render=Path(args.render) if args.render else None,
        trace=Path(args.trace) if args.trace else None,
    )
    return 0


# ---- Subcommand: swap ----

def cmd_swap(args):
    path = Path(args.layout)
    assignment, doc = load_layout(path)
    try:
        swapped = swap_cells(assignment, args.first, args.second)
    except IndexError as e:
        logger.error("%s", e)
        return 1

    output = Path(args.output) if args.output else path
    # the stored energy no longer describes the edited layout
    save_layout(output, swapped, doc.get("tiles"), seed=doc.get("seed"))
    logger.info("Swapped %s and %s → %s", args.first, args.second, output)
    return 0


# ---- Subcommand: stats ----

def cmd_stats(args):
    assignment, _ = load_layout(Path(args.layout))
    pool = load_tile_pool(Path(args.tiles))
    weights = _resolve_config(args).weights

    stats = layout_statistics(assignment, pool, weights)
    print(f"Grid size:             {stats.rows}x{stats.cols}")
    print(f"Total tiles:           {stats.total_tiles}")
    print(f"Unique patterns:       {stats.unique_patterns}")
    print(f"Identical adjacencies: {stats.identical_adjacencies}")
    print(f"Energy:                {stats.energy:.2f}")
    for name, value in energy_breakdown(assignment, pool, weights).items():
        print(f"  {name:<22} {value:.2f}")
    return 0


# ---- Subcommand: run ----

def cmd_run(args):
    cfg = _resolve_config(args)
    base = Path(args.output)
    base.mkdir(parents=True, exist_ok=True)

    logger.info("=== Stage 1: Describe ===")
    pool = _describe(args.inputs, cfg.tile_side, args.count, args.workers, args.recursive)
    if not pool:
        logger.error("No images found in %s", args.inputs)
        return 1
    save_tile_pool(base / "tiles.jsonl", pool)

    logger.info("=== Stage 2: Optimize ===")
    _optimize_and_save(
        pool, cfg, base / "layout.json",
        swatches=base / "swatches.png",
        render=base / "quilt.png",
        trace=base / "energy.png" if args.trace else None,
    )
    return 0


def _add_tuning_args(p: argparse.ArgumentParser):
    p.add_argument("--config", default=None, help="JSON config file")
    p.add_argument("--seed", type=int, default=None,
                   help="Seed for a reproducible layout")
    p.add_argument("--iterations", type=int, default=None,
                   help="Annealing iterations (default: 5000)")
    p.add_argument("--temperature", type=float, default=None,
                   help="Initial temperature (default: 100)")
    p.add_argument("--cooling-rate", dest="cooling_rate", type=float, default=None,
                   help="Temperature multiplier per iteration (default: 0.995)")
    p.add_argument("--color-weight", dest="color_weight", type=float, default=None)
    p.add_argument("--brightness-weight", dest="brightness_weight", type=float, default=None)
    p.add_argument("--pattern-weight", dest="pattern_weight", type=float, default=None)
    p.add_argument("--spacing-weight", dest="spacing_weight", type=float, default=None)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="quilter",
        description="Arrange fabric tile photos into a quilt with repeated tiles spread apart",
    )
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    sub = parser.add_subparsers(dest="command", required=True)

    # -- describe --
    p_desc = sub.add_parser("describe", help="Extract tile descriptors from photos")
    p_desc.add_argument("inputs", nargs="+", help="Image files or directories")
    p_desc.add_argument("-o", "--output", required=True, help="Output JSONL path")
    p_desc.add_argument("--side", type=int, default=TILE_SIDE,
                        help=f"Resample side in pixels (default: {TILE_SIDE})")
    p_desc.add_argument("--count", type=int, default=1,
                        help="Initial count per tile (default: 1)")
    p_desc.add_argument("--workers", type=int, default=1,
                        help="Parallel extraction threads")
    p_desc.add_argument("--recursive", "-r", action="store_true")
    p_desc.set_defaults(func=cmd_describe)

    # -- optimize --
    p_opt = sub.add_parser("optimize", help="Anneal a layout for described tiles")
    p_opt.add_argument("inputs", nargs=1, help="Tiles JSONL path")
    p_opt.add_argument("--rows", type=int, default=None)
    p_opt.add_argument("--cols", type=int, default=None)
    p_opt.add_argument("-o", "--output", required=True, help="Output layout JSON")
    p_opt.add_argument("--swatches", default=None, help="Write a colour swatch PNG")
    p_opt.add_argument("--render", default=None,
                       help="Write the quilt PNG from the tile photos")
    p_opt.add_argument("--trace", default=None, help="Write an energy trace plot")
    _add_tuning_args(p_opt)
    p_opt.set_defaults(func=cmd_optimize)

    # -- swap --
    p_swap = sub.add_parser("swap", help="Exchange two cells of a saved layout")
    p_swap.add_argument("layout", help="Layout JSON path")
    p_swap.add_argument("first", type=_parse_cell, help="ROW,COL")
    p_swap.add_argument("second", type=_parse_cell, help="ROW,COL")
    p_swap.add_argument("-o", "--output", default=None,
                        help="Write here instead of editing in place")
    p_swap.set_defaults(func=cmd_swap)

    # -- stats --
    p_stats = sub.add_parser("stats", help="Print layout statistics")
    p_stats.add_argument("layout", help="Layout JSON path")
    p_stats.add_argument("tiles", help="Tiles JSONL path")
    _add_tuning_args(p_stats)
    p_stats.set_defaults(func=cmd_stats)

    # -- run --
    p_run = sub.add_parser("run", help="Describe, optimize and render in one go")
    p_run.add_argument("inputs", nargs="+", help="Image files or directories")
    p_run.add_argument("-o", "--output", required=True, help="Output directory")
    p_run.add_argument("--rows", type=int, default=None)
    p_run.add_argument("--cols", type=int, default=None)
    p_run.add_argument("--count", type=int, default=1,
                       help="Cells per tile (default: 1)")
    p_run.add_argument("--workers", type=int, default=1)
    p_run.add_argument("--recursive", "-r", action="store_true")
    p_run.add_argument("--trace", action="store_true",
                       help="Also write energy.png")
    _add_tuning_args(p_run)
    p_run.set_defaults(func=cmd_run)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.debug)
    try:
        return args.func(args)
    except (QuiltError, OSError) as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
