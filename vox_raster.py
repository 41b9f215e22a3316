#!/usr/bin/env python3
# vox_raster.py — SVG → small RGBA grid (CairoSVG + Pillow)
#
# CairoSVG renders straight to the target grid size; Pillow decodes the PNG
# and hands back raw RGBA samples. No resampling happens on our side, so what
# you get is whatever Cairo's own rasterizer produced at that size.

from __future__ import annotations

import sys
from io import BytesIO
from pathlib import Path
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from vox_engine import PixelBuffer

__all__ = [
    "RenderError",
    "rasterize",
    "rasterize_file",
]


class RenderError(RuntimeError):
    """SVG markup could not be rendered to pixels."""


# =========================
# CairoSVG import handling
# =========================

def _try_import_cairosvg() -> Tuple[Optional[object], Optional[str]]:
    """
    Returns (cairosvg_module_or_None, error_message_or_None).
    CairoSVG needs the native cairo library too, so the import can fail with
    OSError as well as ImportError.
    """
    try:
        import cairosvg  # type: ignore
        return cairosvg, None
    except (ImportError, OSError) as e:
        msg = (
            "SVG rendering requires 'cairosvg' (and the cairo library) in the SAME Python "
            "environment as the running app.\n"
            f"Running Python: {sys.executable}\n"
            f"Import error: {type(e).__name__}: {e}"
        )
        return None, msg


# =========================
# Rasterization
# =========================

def rasterize(svg_markup: str, grid_resolution: int) -> PixelBuffer:
    """
    Render svg_markup onto a grid_resolution x grid_resolution surface and
    return its RGBA samples.

    The SVG viewBox is stretched onto the square surface (icons are assumed
    square). Raises RenderError when the markup cannot be rendered.
    """
    n = int(grid_resolution)
    if n < 1:
        raise ValueError(f"grid_resolution must be >= 1, got {grid_resolution}")

    cairosvg, err = _try_import_cairosvg()
    if cairosvg is None:
        raise RenderError(err or "CairoSVG not available")

    if not svg_markup or not svg_markup.strip():
        raise RenderError("Empty SVG markup")

    try:
        png_bytes = cairosvg.svg2png(  # type: ignore[attr-defined]
            bytestring=svg_markup.encode("utf-8"),
            output_width=n,
            output_height=n,
        )
    except Exception as e:
        # CairoSVG surfaces XML, value and cairo errors with no common base class.
        raise RenderError(f"CairoSVG failed: {type(e).__name__}: {e}") from e

    try:
        with Image.open(BytesIO(png_bytes)) as im:
            rgba = im.convert("RGBA")
            if rgba.size != (n, n):
                rgba = rgba.crop((0, 0, n, n))
            data = rgba.tobytes()
    except (UnidentifiedImageError, OSError) as e:
        raise RenderError(f"Failed to decode rendered PNG: {e}") from e

    return PixelBuffer.from_rgba_bytes(n, data)


def rasterize_file(path: Path, grid_resolution: int) -> PixelBuffer:
    """Read an SVG file as UTF-8 and rasterize it."""
    text = Path(path).read_text(encoding="utf-8")
    return rasterize(text, grid_resolution)
