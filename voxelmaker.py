#!/usr/bin/env python3
"""
voxelmaker.py — SVG Voxelizer launcher
Runs:
    • the main window (vox_ui)
    • the headless batch CLI (vox_batch)

Supports modes:
    --mode ui (default)
    --mode cli <input> [options]
"""

from __future__ import annotations

import os
import sys
from pathlib import Path


# ============================================================
# Windows Cairo DLL patch
# ============================================================

def _patch_cairo_dll_path() -> None:
    """Ensure libcairo is discoverable on Windows."""
    if os.name != "nt":
        return

    cairo_bin = r"C:\msys64\ucrt64\bin"
    if not os.path.isdir(cairo_bin):
        return

    # Python 3.8+ DLL directory support
    if hasattr(os, "add_dll_directory"):
        os.add_dll_directory(cairo_bin)

    # Fallback PATH prepend
    os.environ["PATH"] = cairo_bin + os.pathsep + os.environ.get("PATH", "")


# ============================================================
# Qt plugin path patch
# ============================================================

def _patch_qt_plugin_path() -> None:
    """Ensure Qt can find platform plugins in dev & frozen runs."""
    from PySide6 import QtCore

    base: Path | None = None

    if getattr(sys, "frozen", False) and hasattr(sys, "_MEIPASS"):
        base = Path(sys._MEIPASS) / "PySide6" / "plugins"
    else:
        import PySide6
        base = Path(PySide6.__path__[0]) / "plugins"

    if base and base.exists():
        os.environ["QT_PLUGIN_PATH"] = str(base)

        paths = QtCore.QCoreApplication.libraryPaths()
        if str(base) not in paths:
            QtCore.QCoreApplication.setLibraryPaths([str(base), *paths])


# ============================================================
# Argument parsing
# ============================================================

def parse_mode(argv: list[str]) -> tuple[str, list[str]]:
    """Return (run mode, remaining args) from CLI args."""
    rest: list[str] = []
    mode = "ui"
    skip = False
    for i, arg in enumerate(argv):
        if skip:
            skip = False
            continue
        if arg == "--mode" and i + 1 < len(argv):
            m = argv[i + 1].lower().strip()
            if m in {"ui", "cli"}:
                mode = m
            skip = True
            continue
        rest.append(arg)
    return mode, rest


# ============================================================
# Run targets
# ============================================================

def run_ui() -> None:
    _patch_qt_plugin_path()

    from vox_ui import main as ui_main
    ui_main()


def run_cli(args: list[str]) -> int:
    from vox_batch import _cli
    return _cli(args)


def main() -> None:
    _patch_cairo_dll_path()

    mode, rest = parse_mode(sys.argv[1:])
    if mode == "cli":
        raise SystemExit(run_cli(rest))
    run_ui()


if __name__ == "__main__":
    main()
