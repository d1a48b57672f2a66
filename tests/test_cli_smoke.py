"""
Smoke tests for the quilter CLI.

The goal is to exercise describe → optimize → swap → stats on a handful of
tiny synthetic tile photos so regressions in wiring or file formats are
caught early.
"""

from __future__ import annotations

import json
from pathlib import Path

import numpy as np
from PIL import Image

from conftest import make_stripes
from quilter.cli import main as cli_main


def _save_tiles(directory: Path) -> None:
    """Four tile-sized fabric photos: two solids, stripes and noise."""
    directory.mkdir()
    rng = np.random.RandomState(0)
    tiles = {
        "red.png": np.full((200, 200, 3), (200, 40, 40), dtype=np.uint8),
        "cream.png": np.full((200, 200, 3), (240, 230, 200), dtype=np.uint8),
        "stripes.png": make_stripes(side=200, width=2),
        "noise.png": rng.randint(0, 256, (200, 200, 3), dtype=np.uint8),
    }
    for name, pixels in tiles.items():
        Image.fromarray(pixels).save(directory / name)


def test_cli_run(tmp_path):
    input_dir = tmp_path / "tiles"
    output_dir = tmp_path / "quilt"
    _save_tiles(input_dir)

    code = cli_main([
        "run", str(input_dir),
        "-o", str(output_dir),
        "--rows", "2", "--cols", "4",
        "--count", "2",
        "--seed", "3",
        "--iterations", "200",
        "--trace",
    ])
    assert code == 0

    for name in ("tiles.jsonl", "layout.json", "quilt.png", "swatches.png", "energy.png"):
        assert (output_dir / name).exists(), f"run did not write {name}"

    doc = json.loads((output_dir / "layout.json").read_text())
    assert (doc["rows"], doc["cols"]) == (2, 4)
    assert sorted(sum(doc["assignment"], [])) == [0, 0, 1, 1, 2, 2, 3, 3]
    assert doc["tiles"] == ["cream", "noise", "red", "stripes"]
    assert doc["seed"] == 3

    assert Image.open(output_dir / "quilt.png").size == (4 * 200, 2 * 200)


def test_cli_describe_optimize_swap_stats(tmp_path, capsys):
    input_dir = tmp_path / "tiles"
    _save_tiles(input_dir)
    tiles_path = tmp_path / "tiles.jsonl"
    layout_path = tmp_path / "layout.json"

    assert cli_main(["describe", str(input_dir), "-o", str(tiles_path), "--workers", "2"]) == 0
    lines = tiles_path.read_text().splitlines()
    assert len(lines) == 4
    entries = [json.loads(line) for line in lines]
    assert {e["pattern_type"] for e in entries} >= {"solid", "striped"}
    assert all(e["count"] == 1 for e in entries)

    assert cli_main([
        "optimize", str(tiles_path),
        "--rows", "2", "--cols", "2",
        "--seed", "5", "--iterations", "100",
        "-o", str(layout_path),
        "--swatches", str(tmp_path / "swatches.png"),
    ]) == 0
    before = json.loads(layout_path.read_text())["assignment"]
    assert (tmp_path / "swatches.png").exists()

    assert cli_main(["swap", str(layout_path), "0,0", "1,1"]) == 0
    after = json.loads(layout_path.read_text())["assignment"]
    assert after[0][0] == before[1][1]
    assert after[1][1] == before[0][0]

    assert cli_main(["stats", str(layout_path), str(tiles_path)]) == 0
    out = capsys.readouterr().out
    assert "Grid size:             2x2" in out
    assert "identity" in out


def test_cli_capacity_mismatch(tmp_path):
    input_dir = tmp_path / "tiles"
    _save_tiles(input_dir)
    tiles_path = tmp_path / "tiles.jsonl"

    assert cli_main(["describe", str(input_dir), "-o", str(tiles_path)]) == 0
    code = cli_main([
        "optimize", str(tiles_path),
        "--rows", "3", "--cols", "3",
        "-o", str(tmp_path / "layout.json"),
    ])
    assert code == 1
    assert not (tmp_path / "layout.json").exists()


def _describe_tiles(tmp_path: Path) -> Path:
    input_dir = tmp_path / "tiles"
    _save_tiles(input_dir)
    tiles_path = tmp_path / "tiles.jsonl"
    assert cli_main(["describe", str(input_dir), "-o", str(tiles_path)]) == 0
    return tiles_path


def test_cli_empty_grid(tmp_path):
    tiles_path = _describe_tiles(tmp_path)
    code = cli_main([
        "optimize", str(tiles_path),
        "--rows", "0", "--cols", "4",
        "-o", str(tmp_path / "layout.json"),
    ])
    assert code == 1
    assert not (tmp_path / "layout.json").exists()


def test_cli_malformed_tile_pool(tmp_path):
    tiles_path = tmp_path / "tiles.jsonl"
    tiles_path.write_text('{"count": 1}\n')
    code = cli_main([
        "optimize", str(tiles_path),
        "--rows", "1", "--cols", "1",
        "-o", str(tmp_path / "layout.json"),
    ])
    assert code == 1


def test_cli_stats_layout_with_unknown_tile(tmp_path):
    tiles_path = _describe_tiles(tmp_path)
    layout_path = tmp_path / "layout.json"
    layout_path.write_text(json.dumps({"rows": 1, "cols": 2, "assignment": [[0, 9]]}))
    assert cli_main(["stats", str(layout_path), str(tiles_path)]) == 1


def test_cli_unreadable_layout(tmp_path):
    tiles_path = _describe_tiles(tmp_path)
    layout_path = tmp_path / "layout.json"
    layout_path.write_text("not json")
    assert cli_main(["stats", str(layout_path), str(tiles_path)]) == 1
    assert cli_main(["swap", str(layout_path), "0,0", "0,1"]) == 1


def test_cli_swap_outside_grid(tmp_path):
    layout_path = tmp_path / "layout.json"
    layout_path.write_text(json.dumps({"rows": 1, "cols": 2, "assignment": [[0, 1]]}))
    assert cli_main(["swap", str(layout_path), "0,0", "3,3"]) == 1
    assert json.loads(layout_path.read_text())["assignment"] == [[0, 1]]


def test_cli_negative_count(tmp_path):
    input_dir = tmp_path / "tiles"
    _save_tiles(input_dir)
    code = cli_main(["describe", str(input_dir), "-o", str(tmp_path / "t.jsonl"),
                     "--count", "-1"])
    assert code == 1


def test_cli_missing_tile_pool(tmp_path):
    code = cli_main([
        "optimize", str(tmp_path / "missing.jsonl"),
        "--rows", "1", "--cols", "1",
        "-o", str(tmp_path / "layout.json"),
    ])
    assert code == 1
