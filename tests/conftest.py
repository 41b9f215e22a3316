"""
-------
conftest.py
-------
Shared pytest fixtures for the voxelizer tests.
"""

import pytest

from vox_engine import PixelBuffer
from vox_raster import RenderError


# -----------------------------------------------------------------------------
# Random sources
# -----------------------------------------------------------------------------
class FixedRandom:
    """uniform() always lands on the same fraction of [a, b]."""

    def __init__(self, frac: float):
        self.frac = frac
        self.calls = 0

    def uniform(self, a, b):
        self.calls += 1
        return a + (b - a) * self.frac


class ExplodingRandom:
    def uniform(self, a, b):
        raise AssertionError("random source must not be used")


@pytest.fixture
def fixed_random():
    return FixedRandom


@pytest.fixture
def exploding_random():
    return ExplodingRandom()


# -----------------------------------------------------------------------------
# Buffers
# -----------------------------------------------------------------------------
def make_buffer(n, alpha_at=None, rgb=(0, 0, 0)):
    """
    n x n buffer; alpha_at(x, y) -> alpha (defaults to fully transparent).
    """
    px = []
    for y in range(n):
        for x in range(n):
            a = alpha_at(x, y) if alpha_at else 0
            px.append((rgb[0], rgb[1], rgb[2], a))
    return PixelBuffer(size=n, pixels=tuple(px))


@pytest.fixture
def buffer_factory():
    return make_buffer


@pytest.fixture
def checker_buffer():
    """8x8 checkerboard of opaque / transparent cells."""
    return make_buffer(8, lambda x, y: 255 if (x + y) % 2 == 0 else 0)


# -----------------------------------------------------------------------------
# Rasterizer stand-in
# -----------------------------------------------------------------------------
def fake_rasterize(markup, n):
    """Opaque grid for anything that looks like an SVG, RenderError otherwise."""
    if "<svg" not in markup:
        raise RenderError("not an svg")
    return make_buffer(n, lambda x, y: 255)


@pytest.fixture
def fake_rasterizer():
    return fake_rasterize


@pytest.fixture
def icon_folder(tmp_path):
    """Folder with two valid SVGs and one malformed file."""
    src = tmp_path / "icons"
    src.mkdir()
    square = (
        '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 24 24" width="24" height="24">'
        '<rect width="24" height="24" fill="#000"/></svg>'
    )
    (src / "a.svg").write_text(square, encoding="utf-8")
    (src / "b.SVG").write_text(square.replace("#000", "#f00"), encoding="utf-8")
    (src / "broken.svg").write_text("this is not an svg file", encoding="utf-8")
    (src / "notes.txt").write_text("ignored", encoding="utf-8")
    return src


def cairosvg_usable():
    try:
        import cairosvg  # noqa: F401
    except (ImportError, OSError):
        return False
    return True
