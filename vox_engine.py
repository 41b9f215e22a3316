#!/usr/bin/env python3
# vox_engine.py — SVG Voxelizer synthesis engine (no UI, no I/O)
#
# Turns an RGBA pixel grid into a "blocky" SVG:
# - one shape per occupied cell (square / circle / line)
# - solid color or a diagonal two-stop gradient
# - optional per-shape rotation and random size jitter
#
# Output always lives in a 24x24 viewBox, the standard icon canvas.
# The grid resolution only changes how finely that canvas is cut.

from __future__ import annotations

import math
import random
import re
from dataclasses import dataclass, replace
from typing import List, Optional, Protocol, Sequence, Tuple

__all__ = [
    "VIEWPORT_SIZE",
    "SVG_NS",
    "BLOCK_TYPES",
    "GRID_RANGE",
    "THRESHOLD_RANGE",
    "SIZE_VARIATION_RANGE",
    "ROTATION_RANGE",
    "DEFAULT_BLOCK_COLOR",
    "ColorParseError",
    "RandomSource",
    "PixelBuffer",
    "VoxelConfig",
    "parse_hex_color",
    "to_hex",
    "lerp_color",
    "cell_brightness",
    "is_filled",
    "cell_color",
    "synthesize",
    "count_shapes",
]

# =========================
# Constants
# =========================

VIEWPORT_SIZE = 24
SVG_NS = "http://www.w3.org/2000/svg"

BLOCK_TYPES: Tuple[str, ...] = ("square", "circle", "line")

GRID_RANGE = (4, 64)
THRESHOLD_RANGE = (0.0, 1.0)
SIZE_VARIATION_RANGE = (0.0, 0.9)
ROTATION_RANGE = (0, 90)

# Line stroke width as a fraction of the cell size.
LINE_WIDTH_RATIO = 0.2

DEFAULT_BLOCK_COLOR = "#111827"

_HEX_RE = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")
_SHAPE_RE = re.compile(r"<(rect|circle|line)\b")

RGB = Tuple[int, int, int]
RGBA = Tuple[int, int, int, int]


class ColorParseError(ValueError):
    """A color string is not a usable #rgb / #rrggbb value."""


class RandomSource(Protocol):
    def uniform(self, a: float, b: float) -> float: ...


# =========================
# Data model
# =========================

@dataclass(frozen=True)
class PixelBuffer:
    """
    Square RGBA grid, row-major, origin top-left.
    pixels holds size*size (r, g, b, a) tuples with channels in 0..255.
    """
    size: int
    pixels: Tuple[RGBA, ...]

    def __post_init__(self) -> None:
        if self.size < 1:
            raise ValueError(f"Pixel buffer size must be >= 1, got {self.size}")
        if len(self.pixels) != self.size * self.size:
            raise ValueError(
                f"Pixel buffer expects {self.size * self.size} samples, got {len(self.pixels)}"
            )

    @classmethod
    def from_rgba_bytes(cls, size: int, data: bytes) -> "PixelBuffer":
        """Build from a raw RGBA byte string (4 bytes per pixel)."""
        px = tuple(
            (data[i], data[i + 1], data[i + 2], data[i + 3])
            for i in range(0, len(data), 4)
        )
        return cls(size=size, pixels=px)

    @classmethod
    def filled(cls, size: int, rgba: RGBA) -> "PixelBuffer":
        return cls(size=size, pixels=tuple([tuple(rgba)] * (size * size)))  # type: ignore[arg-type]

    def pixel(self, x: int, y: int) -> RGBA:
        return self.pixels[y * self.size + x]


@dataclass(frozen=True)
class VoxelConfig:
    grid_resolution: int = 16
    threshold: float = 0.3
    block_type: str = "square"          # "square" | "circle" | "line"
    block_color: str = DEFAULT_BLOCK_COLOR
    use_gradient: bool = False
    gradient_start: str = "#111827"
    gradient_end: str = "#3b82f6"
    invert_output: bool = False
    size_variation: float = 0.0
    block_rotation: int = 0

    @property
    def block_size(self) -> float:
        return VIEWPORT_SIZE / self.grid_resolution

    def clamped(self) -> "VoxelConfig":
        """
        Return a copy with every field forced into its valid range.
        Unknown block types fall back to "square".
        """
        block_type = (self.block_type or "").strip().lower()
        if block_type not in BLOCK_TYPES:
            block_type = "square"
        return replace(
            self,
            grid_resolution=int(_clamp(int(self.grid_resolution), *GRID_RANGE)),
            threshold=float(_clamp(float(self.threshold), *THRESHOLD_RANGE)),
            block_type=block_type,
            size_variation=float(_clamp(float(self.size_variation), *SIZE_VARIATION_RANGE)),
            block_rotation=int(_clamp(int(self.block_rotation), *ROTATION_RANGE)),
        )


def _clamp(v, lo, hi):
    return max(lo, min(hi, v))


# =========================
# Color helpers
# =========================

def parse_hex_color(text: str) -> RGB:
    """
    Parse "#rgb" or "#rrggbb" (leading # optional, any case).
    Raises ColorParseError on anything else.
    """
    m = _HEX_RE.match((text or "").strip())
    if not m:
        raise ColorParseError(f"Invalid hex color: {text!r}")
    digits = m.group(1)
    if len(digits) == 3:
        digits = "".join(c * 2 for c in digits)
    return int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16)


def to_hex(rgb: Sequence[int]) -> str:
    r, g, b = (int(_clamp(c, 0, 255)) for c in rgb)
    return f"#{r:02x}{g:02x}{b:02x}"


def _round_half_up(v: float) -> int:
    return int(math.floor(v + 0.5))


def lerp_color(start: RGB, end: RGB, t: float) -> RGB:
    """Per-channel linear blend, rounded to integers."""
    return tuple(_round_half_up(a + (b - a) * t) for a, b in zip(start, end))  # type: ignore[return-value]


def cell_brightness(rgba: RGBA) -> float:
    """Unweighted channel mean."""
    r, g, b, _a = rgba
    return (r + g + b) / 3


def is_filled(rgba: RGBA, threshold: float) -> bool:
    # Alpha only. The brightness test of the first release is not applied.
    return rgba[3] > threshold * 255


def _gradient_endpoints(config: VoxelConfig) -> Optional[Tuple[RGB, RGB]]:
    if not config.use_gradient:
        return None
    try:
        return parse_hex_color(config.gradient_start), parse_hex_color(config.gradient_end)
    except ColorParseError:
        return None


def _solid_color(config: VoxelConfig) -> str:
    try:
        return to_hex(parse_hex_color(config.block_color))
    except ColorParseError:
        # Only hex colors reach the fill attribute.
        return DEFAULT_BLOCK_COLOR


def cell_color(x: int, y: int, config: VoxelConfig) -> str:
    """Fill/stroke color for cell (x, y)."""
    ends = _gradient_endpoints(config)
    if ends is None:
        return _solid_color(config)
    n = config.grid_resolution
    span = 2 * n - 2
    t = (x + y) / span if span > 0 else 0.0
    return to_hex(lerp_color(ends[0], ends[1], t))


# =========================
# Shape emission
# =========================

def _num(v: float) -> str:
    s = f"{v:.3f}".rstrip("0").rstrip(".")
    return "0" if s in ("", "-0") else s


def _transform(rotation: int, cx: float, cy: float) -> str:
    if not rotation:
        return ""
    return f' transform="rotate({_num(rotation)} {_num(cx)} {_num(cy)})"'


def _shape(block_type: str, cx: float, cy: float, size: float, block_size: float,
           color: str, rotation: int) -> str:
    half = size / 2
    if block_type == "circle":
        return f'<circle cx="{_num(cx)}" cy="{_num(cy)}" r="{_num(half)}" fill="{color}"/>'
    if block_type == "line":
        return (
            f'<line x1="{_num(cx - half)}" y1="{_num(cy - half)}" '
            f'x2="{_num(cx + half)}" y2="{_num(cy + half)}" '
            f'stroke="{color}" stroke-width="{_num(block_size * LINE_WIDTH_RATIO)}"'
            f"{_transform(rotation, cx, cy)}/>"
        )
    return (
        f'<rect x="{_num(cx - half)}" y="{_num(cy - half)}" '
        f'width="{_num(size)}" height="{_num(size)}" fill="{color}"'
        f"{_transform(rotation, cx, cy)}/>"
    )


# =========================
# Synthesis
# =========================

def synthesize(buffer: PixelBuffer, config: VoxelConfig, rng: Optional[RandomSource] = None) -> str:
    """
    Rebuild an SVG document from an RGBA grid.

    The buffer must be grid_resolution x grid_resolution. When size_variation
    is 0 the random source is never consulted and the output is reproducible.
    """
    n = config.grid_resolution
    block_size = VIEWPORT_SIZE / n
    variation = config.size_variation
    if variation and rng is None:
        rng = random.Random()

    # Solid color is resolved once; gradient needs (x, y).
    ends = _gradient_endpoints(config)
    solid = _solid_color(config) if ends is None else ""

    parts: List[str] = []
    for y in range(n):
        for x in range(n):
            filled = is_filled(buffer.pixel(x, y), config.threshold)
            if filled == config.invert_output:
                continue

            cx = (x + 0.5) * block_size
            cy = (y + 0.5) * block_size

            size_factor = 1.0
            if variation:
                size_factor = 1 - rng.uniform(0, 1) * variation  # type: ignore[union-attr]
            final_size = block_size * size_factor

            color = solid or cell_color(x, y, config)
            parts.append(_shape(config.block_type, cx, cy, final_size, block_size,
                                color, config.block_rotation))

    return f'<svg viewBox="0 0 {VIEWPORT_SIZE} {VIEWPORT_SIZE}" xmlns="{SVG_NS}">{"".join(parts)}</svg>'


def count_shapes(svg_text: str) -> int:
    """Number of rect/circle/line elements in a synthesized document."""
    return len(_SHAPE_RE.findall(svg_text or ""))
