"""Tests for layout helpers, configuration and rendering."""

from __future__ import annotations

import json

import numpy as np
import pytest
from PIL import Image

from conftest import make_descriptor
from quilter.config import (
    AnnealingSchedule,
    EnergyWeights,
    QuiltConfig,
    TileEntry,
    load_config,
)
from quilter.errors import CapacityMismatchError, InvalidLayoutError, MalformedInputError
from quilter.layout import (
    layout_statistics,
    load_layout,
    load_tile_pool,
    save_layout,
    save_tile_pool,
    swap_cells,
    tile_names,
    validate_capacity,
)
from quilter.render import render_quilt, render_swatches, save_energy_trace, save_image


# ---------------------------------------------------------------------------
# Tests: manual editing
# ---------------------------------------------------------------------------


class TestSwapCells:
    def test_swap_exchanges_cells(self):
        grid = np.array([[0, 1], [2, 3]])
        swapped = swap_cells(grid, (0, 0), (1, 1))
        assert swapped.tolist() == [[3, 1], [2, 0]]

    def test_swap_does_not_mutate_input(self):
        grid = np.array([[0, 1], [2, 3]])
        swap_cells(grid, (0, 1), (1, 0))
        assert grid.tolist() == [[0, 1], [2, 3]]

    def test_swap_same_cell_is_noop(self):
        grid = [[0, 1], [2, 3]]
        assert swap_cells(grid, (1, 0), (1, 0)).tolist() == grid

    def test_swap_out_of_range(self):
        with pytest.raises(IndexError):
            swap_cells(np.zeros((2, 2), dtype=np.int64), (0, 0), (2, 0))


# ---------------------------------------------------------------------------
# Tests: capacity and statistics
# ---------------------------------------------------------------------------


class TestStatistics:
    def test_validate_capacity(self):
        pool = [TileEntry(make_descriptor(), count=c) for c in (2, 2, 2)]
        validate_capacity(pool, 2, 3)
        with pytest.raises(CapacityMismatchError):
            validate_capacity(pool, 3, 3)
        with pytest.raises(InvalidLayoutError):
            validate_capacity(pool, 0, 6)

    def test_layout_statistics(self, varied_pool):
        grid = np.array([
            [0, 0, 1, 2],
            [3, 4, 5, 1],
            [2, 3, 4, 5],
        ])
        stats = layout_statistics(grid, varied_pool)
        assert (stats.rows, stats.cols) == (3, 4)
        assert stats.total_tiles == 12
        assert stats.unique_patterns == 6
        assert stats.identical_adjacencies == 1
        assert stats.energy > 0
        assert stats.to_dict()["total_tiles"] == 12

    def test_tile_names_fall_back_to_index(self):
        pool = [TileEntry(make_descriptor(), name="linen"), TileEntry(make_descriptor())]
        assert tile_names(pool) == ["linen", "tile_1"]


# ---------------------------------------------------------------------------
# Tests: persistence
# ---------------------------------------------------------------------------


class TestPersistence:
    def test_layout_round_trip(self, tmp_path):
        grid = np.array([[0, 1, 2], [2, 1, 0]])
        path = tmp_path / "out" / "layout.json"
        save_layout(path, grid, ["a", "b", "c"], seed=7, energy_value=12.5)
        loaded, doc = load_layout(path)
        assert np.array_equal(loaded, grid)
        assert doc["seed"] == 7
        assert doc["tiles"] == ["a", "b", "c"]
        assert doc["energy"] == 12.5

    def test_layout_shape_mismatch_rejected(self, tmp_path):
        path = tmp_path / "layout.json"
        path.write_text(json.dumps({"rows": 3, "cols": 2, "assignment": [[0, 1]]}))
        with pytest.raises(InvalidLayoutError):
            load_layout(path)

    def test_tile_pool_round_trip(self, tmp_path, varied_pool):
        varied_pool[0].source_path = "photos/red.png"
        path = tmp_path / "tiles.jsonl"
        save_tile_pool(path, varied_pool)
        loaded = load_tile_pool(path)
        assert [t.count for t in loaded] == [t.count for t in varied_pool]
        assert [t.name for t in loaded] == [t.name for t in varied_pool]
        assert [t.descriptor for t in loaded] == [t.descriptor for t in varied_pool]
        assert loaded[0].source_path == "photos/red.png"

    def test_tile_pool_bad_line(self, tmp_path):
        path = tmp_path / "tiles.jsonl"
        path.write_text('{"count": 1}\n')
        with pytest.raises(MalformedInputError):
            load_tile_pool(path)

    def test_layout_without_assignment_rejected(self, tmp_path):
        path = tmp_path / "layout.json"
        path.write_text(json.dumps({"rows": 1, "cols": 1}))
        with pytest.raises(InvalidLayoutError):
            load_layout(path)

    def test_layout_not_json_rejected(self, tmp_path):
        path = tmp_path / "layout.json"
        path.write_text("[[0, 1]")
        with pytest.raises(InvalidLayoutError):
            load_layout(path)

    def test_negative_count_in_pool_file(self, tmp_path, varied_pool):
        path = tmp_path / "tiles.jsonl"
        entry = varied_pool[0].to_dict()
        entry["count"] = -2
        path.write_text(json.dumps(entry) + "\n")
        with pytest.raises(MalformedInputError):
            load_tile_pool(path)


# ---------------------------------------------------------------------------
# Tests: configuration
# ---------------------------------------------------------------------------


class TestConfig:
    def test_defaults(self):
        cfg = QuiltConfig()
        assert cfg.weights == EnergyWeights(2.0, 1.5, 2.5, 3.0)
        assert cfg.schedule == AnnealingSchedule(5000, 100.0, 0.995)

    def test_load_config_nested(self, tmp_path):
        path = tmp_path / "quilt.json"
        path.write_text(json.dumps({
            "rows": 6,
            "cols": 5,
            "seed": 3,
            "weights": {"color_weight": 4.0, "unknown": 1},
            "schedule": {"iterations": 100},
            "ignored": True,
        }))
        cfg = load_config(path)
        assert (cfg.rows, cfg.cols, cfg.seed) == (6, 5, 3)
        assert cfg.weights.color_weight == 4.0
        assert cfg.weights.spacing_weight == 3.0
        assert cfg.schedule.iterations == 100
        assert cfg.schedule.cooling_rate == 0.995

    def test_schedule_numbers_are_coerced(self, tmp_path):
        path = tmp_path / "quilt.json"
        path.write_text(json.dumps({"schedule": {"iterations": 250.0, "temperature": 10}}))
        schedule = load_config(path).schedule
        assert schedule.iterations == 250
        assert isinstance(schedule.iterations, int)
        assert isinstance(schedule.temperature, float)

    def test_bad_config_file(self, tmp_path):
        path = tmp_path / "quilt.json"
        path.write_text("{not json")
        with pytest.raises(MalformedInputError):
            load_config(path)

    def test_config_dict_round_trip(self):
        cfg = QuiltConfig(rows=2, cols=3, weights=EnergyWeights(pattern_weight=9.0))
        assert QuiltConfig.from_dict(cfg.to_dict()) == cfg


# ---------------------------------------------------------------------------
# Tests: rendering
# ---------------------------------------------------------------------------


class TestRender:
    def test_swatches_shape_and_colors(self, varied_pool):
        grid = np.array([[0, 1, 2], [3, 4, 5]])
        img = render_swatches(varied_pool, grid, tile_size=10, gap=1)
        assert img.shape == (2 * 11 - 1, 3 * 11 - 1, 3)
        assert tuple(img[5, 5]) == varied_pool[0].descriptor.blurred_dominant_color
        assert tuple(img[16, 27]) == varied_pool[5].descriptor.blurred_dominant_color

    def test_swatches_without_gap(self, varied_pool):
        grid = np.array([[0, 1], [2, 3]])
        img = render_swatches(varied_pool, grid, tile_size=8, gap=0)
        assert img.shape == (16, 16, 3)

    def test_render_quilt_places_photos(self):
        red = np.full((30, 30, 3), (255, 0, 0), dtype=np.uint8)
        blue = Image.new("RGB", (50, 50), (0, 0, 255))
        grid = np.array([[0, 1, 0], [1, 0, 1]])
        img = render_quilt([red, blue], grid, tile_size=20)
        assert img.shape == (40, 60, 3)
        assert tuple(img[10, 10]) == (255, 0, 0)
        assert tuple(img[10, 30]) == (0, 0, 255)
        assert tuple(img[30, 30]) == (255, 0, 0)

    def test_save_image_and_trace(self, tmp_path):
        img = np.zeros((10, 10, 3), dtype=np.uint8)
        out = save_image(img, tmp_path / "nested" / "q.png")
        assert out.exists()
        trace = save_energy_trace([10.0, 8.0, 8.0, 5.0], tmp_path / "trace.png", best_energy=5.0)
        assert trace.exists()
        assert Image.open(trace).size[0] > 0
