#!/usr/bin/env python3
# vox_batch.py — SVG Voxelizer batch runner (no UI)
#
# Goals:
# - Sequential folder conversion: read → rasterize → synthesize → save
# - One bad file never stops the batch; it is recorded and skipped
# - Output folder is created on demand (defaults to "<input>_voxelized")
# - Interactive preview re-uses the last rasterized grid while only
#   synthesis settings change
#
# Rendering lives in vox_raster, synthesis in vox_engine.

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple

from vox_engine import BLOCK_TYPES, PixelBuffer, RandomSource, VoxelConfig, synthesize
from vox_presets import ConfigParseError, load_preset
from vox_raster import RenderError, rasterize

__all__ = [
    "SVG_EXT",
    "OUTPUT_DIR_SUFFIX",
    "LogFn",
    "Rasterizer",
    "FileGateway",
    "BatchItem",
    "BatchReport",
    "default_output_dir",
    "run_batch",
    "BatchRunner",
    "PreviewSession",
    "file_logger",
]

SVG_EXT = ".svg"
OUTPUT_DIR_SUFFIX = "_voxelized"
LOG_MAX_BYTES = 2_000_000

LogFn = Optional[Callable[[str], None]]
Rasterizer = Callable[[str, int], PixelBuffer]

STATUS_PENDING = "pending"
STATUS_OK = "ok"
STATUS_FAILED = "failed"


# =========================
# Filesystem
# =========================

class FileGateway:
    """Plain local filesystem access used by the batch runner."""

    def list_svg_files(self, directory: Path) -> List[str]:
        """
        Names of *.svg files (any case) directly inside directory, in the
        order the OS lists them. Missing folder -> [].
        """
        d = Path(directory)
        if not d.is_dir():
            return []
        return [p.name for p in d.iterdir() if p.is_file() and p.suffix.lower() == SVG_EXT]

    def read_text(self, path: Path) -> str:
        return Path(path).read_text(encoding="utf-8")

    def write_text(self, path: Path, content: str) -> None:
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(content, encoding="utf-8")

    def ensure_dir(self, path: Path) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)


def default_output_dir(input_dir: Path) -> Path:
    """Sibling folder named "<input>_voxelized"."""
    p = Path(input_dir)
    return p.parent / f"{p.name}{OUTPUT_DIR_SUFFIX}"


# =========================
# Batch
# =========================

@dataclass
class BatchItem:
    name: str
    status: str = STATUS_PENDING
    content: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK

    def succeed(self, content: str) -> None:
        self.status = STATUS_OK
        self.content = content

    def fail(self, error: str) -> None:
        self.status = STATUS_FAILED
        self.error = error


@dataclass(frozen=True)
class BatchReport:
    processed: int
    succeeded: int
    failed: int
    saved: int
    output_dir: Path
    items: Tuple[BatchItem, ...] = field(default_factory=tuple)


def run_batch(
    names: Iterable[str],
    input_dir: Path,
    output_dir: Path,
    config: VoxelConfig,
    *,
    gateway: Optional[FileGateway] = None,
    rasterizer: Optional[Rasterizer] = None,
    rng: Optional[RandomSource] = None,
    logfn: LogFn = None,
    progressfn: Optional[Callable[[int, int, str], None]] = None,
) -> BatchReport:
    """
    Voxelize every named file of input_dir and save results into output_dir.

    Phase 1 processes files one by one; failures are recorded per item.
    Phase 2 creates output_dir and writes each successful item. If output_dir
    cannot be created nothing is written.
    """
    gateway = gateway or FileGateway()
    rasterizer = rasterizer or rasterize
    config = config.clamped()
    input_dir = Path(input_dir)
    output_dir = Path(output_dir)

    items = [BatchItem(name=n) for n in names]
    total = len(items)

    for i, item in enumerate(items, start=1):
        if progressfn:
            progressfn(i, total, item.name)
        try:
            markup = gateway.read_text(input_dir / item.name)
        except (OSError, UnicodeDecodeError) as e:
            item.fail(f"read failed: {e}")
            _emit(logfn, f"ERR: {item.name}: {item.error}")
            continue

        try:
            buffer = rasterizer(markup, config.grid_resolution)
        except RenderError as e:
            item.fail(f"render failed: {e}")
            _emit(logfn, f"ERR: {item.name}: {item.error}")
            continue

        item.succeed(synthesize(buffer, config, rng=rng))
        _emit(logfn, f"OK: {item.name} ({i}/{total})")

    good = [it for it in items if it.ok]
    saved = 0

    try:
        gateway.ensure_dir(output_dir)
    except OSError as e:
        _emit(logfn, f"ERR: Cannot create output directory {output_dir}: {e}")
        good = []

    for item in good:
        try:
            gateway.write_text(output_dir / item.name, item.content or "")
            saved += 1
        except OSError as e:
            _emit(logfn, f"ERR: Failed to write {item.name}: {e}")

    failed = sum(1 for it in items if it.status == STATUS_FAILED)
    succeeded = sum(1 for it in items if it.ok)
    _emit(logfn, f"Done. processed={total} ok={succeeded} errors={failed} saved={saved} -> {output_dir}")

    return BatchReport(
        processed=total,
        succeeded=succeeded,
        failed=failed,
        saved=saved,
        output_dir=output_dir,
        items=tuple(items),
    )


def _emit(logfn: LogFn, msg: str) -> None:
    if logfn:
        logfn(msg)


class BatchRunner:
    """
    Refuses to start a batch while another one is in flight.
    The UI keeps its Run button disabled while `running` is True.
    """

    def __init__(self, gateway: Optional[FileGateway] = None, rasterizer: Optional[Rasterizer] = None):
        self.gateway = gateway or FileGateway()
        self.rasterizer = rasterizer
        self.running = False
        self.last_report: Optional[BatchReport] = None

    def start(self, input_dir: Path, output_dir: Path, config: VoxelConfig, **kwargs) -> Optional[BatchReport]:
        if self.running:
            return None
        self.running = True
        try:
            names = self.gateway.list_svg_files(input_dir)
            self.last_report = run_batch(
                names,
                input_dir,
                output_dir,
                config,
                gateway=self.gateway,
                rasterizer=self.rasterizer,
                **kwargs,
            )
            return self.last_report
        finally:
            self.running = False


# =========================
# Preview
# =========================

class PreviewSession:
    """
    Live preview for one source file.

    The rasterized grid is cached per (source, grid_resolution); changing any
    other setting only re-runs synthesis.
    """

    def __init__(self, gateway: Optional[FileGateway] = None, rasterizer: Optional[Rasterizer] = None):
        self.gateway = gateway or FileGateway()
        self.rasterizer = rasterizer
        self.source: Optional[Path] = None
        self._key: Optional[Tuple[Path, int]] = None
        self._buffer: Optional[PixelBuffer] = None
        self.rasterize_count = 0

    def set_source(self, path: Optional[Path]) -> None:
        new = Path(path) if path else None
        if new != self.source:
            self.source = new
            self.invalidate()

    def invalidate(self) -> None:
        self._key = None
        self._buffer = None

    def buffer_for(self, grid_resolution: int) -> Optional[PixelBuffer]:
        """Cached grid, re-rasterizing only when source or resolution changed."""
        if self.source is None:
            return None
        key = (self.source, int(grid_resolution))
        if self._key != key or self._buffer is None:
            markup = self.gateway.read_text(self.source)
            self._buffer = (self.rasterizer or rasterize)(markup, int(grid_resolution))
            self._key = key
            self.rasterize_count += 1
        return self._buffer

    def render(self, config: VoxelConfig, rng: Optional[RandomSource] = None) -> Optional[str]:
        """Synthesized SVG for the current source, or None without one."""
        config = config.clamped()
        buf = self.buffer_for(config.grid_resolution)
        if buf is None:
            return None
        return synthesize(buf, config, rng=rng)


# =========================
# File log
# =========================

def _rotate_log_if_needed(log_file: Path, max_bytes: int) -> None:
    if log_file.exists() and log_file.stat().st_size > max_bytes:
        bak = log_file.with_name(log_file.name + ".1")
        bak.unlink(missing_ok=True)
        log_file.rename(bak)


def file_logger(log_file: Path, max_bytes: int = LOG_MAX_BYTES) -> Callable[[str], None]:
    """
    logfn that appends "[timestamp] message" lines to log_file, keeping one
    rotated backup once the file grows past max_bytes.
    """
    log_file = Path(log_file)

    def _log(msg: str) -> None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        _rotate_log_if_needed(log_file, max_bytes)
        ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        with log_file.open("a", encoding="utf-8", errors="ignore") as f:
            f.write(f"[{ts}] {msg}\n")

    return _log


# =========================
# CLI
# =========================

def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="SVG Voxelizer — batch convert SVG icons into blocky SVGs")
    ap.add_argument("input", help="Folder containing .svg files")
    ap.add_argument("--out", default="", help="Output folder (default: <input>_voxelized)")
    ap.add_argument("--preset", default="", help="JSON preset to start from")
    ap.add_argument("--grid", type=int, default=None, help="Grid resolution (4..64)")
    ap.add_argument("--threshold", type=float, default=None, help="Alpha threshold (0..1)")
    ap.add_argument("--block-type", choices=list(BLOCK_TYPES), default=None, help="Shape per cell")
    ap.add_argument("--color", default=None, help="Solid block color, e.g. #111827")
    ap.add_argument("--gradient", nargs=2, metavar=("START", "END"), default=None,
                    help="Enable gradient between two hex colors")
    ap.add_argument("--invert", action="store_true", default=None, help="Draw empty cells instead of filled ones")
    ap.add_argument("--size-variation", type=float, default=None, help="Random shrink per cell (0..0.9)")
    ap.add_argument("--rotation", type=int, default=None, help="Shape rotation in degrees (0..90)")
    ap.add_argument("--log-file", default="", help="Also append log lines to this file")
    return ap


def config_from_args(ns: argparse.Namespace, base: VoxelConfig) -> VoxelConfig:
    changes = {}
    if ns.grid is not None:
        changes["grid_resolution"] = ns.grid
    if ns.threshold is not None:
        changes["threshold"] = ns.threshold
    if ns.block_type is not None:
        changes["block_type"] = ns.block_type
    if ns.color is not None:
        changes["block_color"] = ns.color
    if ns.gradient is not None:
        changes["use_gradient"] = True
        changes["gradient_start"], changes["gradient_end"] = ns.gradient
    if ns.invert:
        changes["invert_output"] = True
    if ns.size_variation is not None:
        changes["size_variation"] = ns.size_variation
    if ns.rotation is not None:
        changes["block_rotation"] = ns.rotation
    return replace(base, **changes).clamped()


def _cli(argv: Optional[List[str]] = None) -> int:
    ns = _build_parser().parse_args(argv)

    sinks: List[Callable[[str], None]] = [print]
    if ns.log_file:
        sinks.append(file_logger(Path(ns.log_file)))

    def _log(s: str) -> None:
        for sink in sinks:
            sink(s)

    config = VoxelConfig()
    if ns.preset:
        try:
            config = load_preset(Path(ns.preset), config)
        except (ConfigParseError, OSError) as e:
            print(f"ERR: Preset not loaded: {e}", file=sys.stderr)
            return 1
    config = config_from_args(ns, config)

    input_dir = Path(ns.input)
    if not input_dir.is_dir():
        print(f"ERR: Input folder does not exist: {input_dir}", file=sys.stderr)
        return 1
    output_dir = Path(ns.out) if ns.out else default_output_dir(input_dir)

    runner = BatchRunner()
    report = runner.start(input_dir, output_dir, config, logfn=_log)
    if report is None or report.processed == 0:
        _log("No SVG files found.")
        return 2
    return 0 if report.saved == report.processed else 2


if __name__ == "__main__":
    raise SystemExit(_cli())
