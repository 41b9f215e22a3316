"""
test_vox_batch.py
-----------------
Batch runner, filesystem gateway, preview cache, file log and CLI.
"""

from pathlib import Path

import pytest

import vox_batch
from vox_batch import (
    BatchRunner,
    FileGateway,
    PreviewSession,
    default_output_dir,
    file_logger,
    run_batch,
)
from vox_engine import VoxelConfig, count_shapes


# ---------------------------------------------------------------------------
# 1. Filesystem gateway
# ---------------------------------------------------------------------------

def test_list_svg_files_filters_by_suffix(icon_folder):
    names = FileGateway().list_svg_files(icon_folder)
    assert sorted(names) == ["a.svg", "b.SVG", "broken.svg"]


def test_list_svg_files_missing_folder(tmp_path):
    assert FileGateway().list_svg_files(tmp_path / "missing") == []


def test_write_text_creates_parents(tmp_path):
    target = tmp_path / "x" / "y" / "out.svg"
    FileGateway().write_text(target, "<svg/>")
    assert target.read_text(encoding="utf-8") == "<svg/>"


def test_default_output_dir(tmp_path):
    assert default_output_dir(tmp_path / "icons") == tmp_path / "icons_voxelized"


# ---------------------------------------------------------------------------
# 2. Batch
# ---------------------------------------------------------------------------

def test_batch_two_good_one_broken(icon_folder, fake_rasterizer, tmp_path):
    out = tmp_path / "fresh" / "out"
    assert not out.exists()
    lines = []

    names = FileGateway().list_svg_files(icon_folder)
    report = run_batch(names, icon_folder, out, VoxelConfig(grid_resolution=4),
                       rasterizer=fake_rasterizer, logfn=lines.append)

    assert report.processed == 3
    assert report.succeeded == 2
    assert report.failed == 1
    assert report.saved == 2
    assert out.is_dir()
    assert sorted(p.name for p in out.iterdir()) == ["a.svg", "b.SVG"]

    broken = [it for it in report.items if it.name == "broken.svg"][0]
    assert broken.status == "failed"
    assert "render failed" in broken.error
    assert any(l.startswith("ERR: broken.svg") for l in lines)
    assert lines[-1].startswith("Done. processed=3")

    written = (out / "a.svg").read_text(encoding="utf-8")
    assert count_shapes(written) == 16


def test_batch_keeps_listing_order(icon_folder, fake_rasterizer, tmp_path):
    names = ["broken.svg", "b.SVG", "a.svg"]
    report = run_batch(names, icon_folder, tmp_path / "o", VoxelConfig(), rasterizer=fake_rasterizer)
    assert [it.name for it in report.items] == names
    assert [it.status for it in report.items] == ["failed", "ok", "ok"]


def test_batch_read_failure_is_skipped(icon_folder, fake_rasterizer, tmp_path):
    report = run_batch(["a.svg", "ghost.svg"], icon_folder, tmp_path / "o", VoxelConfig(),
                       rasterizer=fake_rasterizer)
    assert report.saved == 1
    assert report.items[1].status == "failed"
    assert "read failed" in report.items[1].error


def test_batch_clamps_grid(icon_folder, tmp_path):
    seen = []

    def spy(markup, n):
        seen.append(n)
        return vox_batch.PixelBuffer.filled(n, (0, 0, 0, 255))

    run_batch(["a.svg"], icon_folder, tmp_path / "o", VoxelConfig(grid_resolution=1000), rasterizer=spy)
    assert seen == [64]


class _NoDirGateway(FileGateway):
    def ensure_dir(self, path):
        raise PermissionError("read-only volume")


def test_output_dir_failure_stops_save_phase(icon_folder, fake_rasterizer, tmp_path):
    lines = []
    report = run_batch(["a.svg", "b.SVG"], icon_folder, tmp_path / "o", VoxelConfig(),
                       gateway=_NoDirGateway(), rasterizer=fake_rasterizer, logfn=lines.append)
    assert report.succeeded == 2
    assert report.saved == 0
    assert not (tmp_path / "o").exists()
    assert any("Cannot create output directory" in l for l in lines)


class _FlakyWriteGateway(FileGateway):
    def write_text(self, path, content):
        if Path(path).name == "b.SVG":
            raise OSError("disk full")
        super().write_text(path, content)


def test_write_failure_excluded_from_saved(icon_folder, fake_rasterizer, tmp_path):
    report = run_batch(["a.svg", "b.SVG"], icon_folder, tmp_path / "o", VoxelConfig(),
                       gateway=_FlakyWriteGateway(), rasterizer=fake_rasterizer)
    assert report.saved == 1


def test_progress_callback(icon_folder, fake_rasterizer, tmp_path):
    calls = []
    run_batch(["a.svg", "b.SVG"], icon_folder, tmp_path / "o", VoxelConfig(),
              rasterizer=fake_rasterizer, progressfn=lambda i, t, n: calls.append((i, t, n)))
    assert calls == [(1, 2, "a.svg"), (2, 2, "b.SVG")]


def test_runner_refuses_second_start(icon_folder, fake_rasterizer, tmp_path):
    runner = BatchRunner(rasterizer=fake_rasterizer)
    runner.running = True
    assert runner.start(icon_folder, tmp_path / "o", VoxelConfig()) is None
    runner.running = False
    report = runner.start(icon_folder, tmp_path / "o", VoxelConfig())
    assert report.saved == 2
    assert runner.running is False
    assert runner.last_report is report


# ---------------------------------------------------------------------------
# 3. Preview cache
# ---------------------------------------------------------------------------

class _CountingRasterizer:
    def __init__(self, inner):
        self.inner = inner
        self.sizes = []

    def __call__(self, markup, n):
        self.sizes.append(n)
        return self.inner(markup, n)


def test_preview_reuses_buffer_for_style_changes(icon_folder, fake_rasterizer):
    spy = _CountingRasterizer(fake_rasterizer)
    session = PreviewSession(rasterizer=spy)
    assert session.render(VoxelConfig()) is None

    session.set_source(icon_folder / "a.svg")
    session.render(VoxelConfig(grid_resolution=8))
    session.render(VoxelConfig(grid_resolution=8, block_type="circle"))
    session.render(VoxelConfig(grid_resolution=8, block_color="#ff0000", invert_output=True))
    assert spy.sizes == [8]

    out = session.render(VoxelConfig(grid_resolution=12))
    assert spy.sizes == [8, 12]
    assert count_shapes(out) == 144


def test_preview_new_source_invalidates(icon_folder, fake_rasterizer):
    spy = _CountingRasterizer(fake_rasterizer)
    session = PreviewSession(rasterizer=spy)
    session.set_source(icon_folder / "a.svg")
    session.render(VoxelConfig())
    session.set_source(icon_folder / "a.svg")
    session.render(VoxelConfig())
    assert session.rasterize_count == 1

    session.set_source(icon_folder / "b.SVG")
    session.render(VoxelConfig())
    assert session.rasterize_count == 2


# ---------------------------------------------------------------------------
# 4. File log
# ---------------------------------------------------------------------------

def test_file_logger_appends_and_rotates(tmp_path):
    log_file = tmp_path / "logs" / "batch.log"
    log = file_logger(log_file, max_bytes=40)
    log("first line of the log")
    assert log_file.read_text(encoding="utf-8").startswith("[")
    log("second line pushes it over the limit")
    log("third")
    assert (tmp_path / "logs" / "batch.log.1").exists()
    assert "third" in log_file.read_text(encoding="utf-8")


# ---------------------------------------------------------------------------
# 5. CLI
# ---------------------------------------------------------------------------

def test_cli_runs_folder(icon_folder, fake_rasterizer, tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(vox_batch, "rasterize", fake_rasterizer)
    out = tmp_path / "cli_out"
    code = vox_batch._cli([str(icon_folder), "--out", str(out), "--grid", "6", "--block-type", "line"])
    assert code == 2  # broken.svg was not saved
    assert sorted(p.name for p in out.iterdir()) == ["a.svg", "b.SVG"]
    assert "<line" in (out / "a.svg").read_text(encoding="utf-8")
    assert "ERR: broken.svg" in capsys.readouterr().out


def test_cli_default_output_and_preset(icon_folder, fake_rasterizer, tmp_path, monkeypatch):
    monkeypatch.setattr(vox_batch, "rasterize", fake_rasterizer)
    (icon_folder / "broken.svg").unlink()
    preset = tmp_path / "p.json"
    preset.write_text('{"gridResolution": 5, "blockType": "circle"}', encoding="utf-8")

    code = vox_batch._cli([str(icon_folder), "--preset", str(preset), "--log-file", str(tmp_path / "run.log")])
    assert code == 0
    out = default_output_dir(icon_folder)
    text = (out / "a.svg").read_text(encoding="utf-8")
    assert count_shapes(text) == 25
    assert "<circle" in text
    assert "OK: a.svg" in (tmp_path / "run.log").read_text(encoding="utf-8")


def test_cli_bad_preset(icon_folder, tmp_path):
    preset = tmp_path / "p.json"
    preset.write_text("{", encoding="utf-8")
    assert vox_batch._cli([str(icon_folder), "--preset", str(preset)]) == 1


def test_config_from_args_overrides():
    ns = vox_batch._build_parser().parse_args(
        ["in", "--gradient", "#000", "#fff", "--invert", "--rotation", "400", "--size-variation", "0.3"]
    )
    cfg = vox_batch.config_from_args(ns, VoxelConfig())
    assert cfg.use_gradient is True
    assert (cfg.gradient_start, cfg.gradient_end) == ("#000", "#fff")
    assert cfg.invert_output is True
    assert cfg.block_rotation == 90
    assert cfg.size_variation == 0.3


def test_cli_non_utf8_preset(icon_folder, tmp_path, capsys):
    preset = tmp_path / "p.json"
    preset.write_bytes(b'{"gridResolution": \xff\xfe}')
    assert vox_batch._cli([str(icon_folder), "--preset", str(preset)]) == 1
    assert "Preset not loaded" in capsys.readouterr().err
