"""Shared test fixtures for the menu parser."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

import pytest
from PIL import Image

from svmenu.config import ParserConfig
from svmenu.models import GlyphBox, PlacedImage, Stroke

PAGE_HEIGHT = 600.0
PAGE_WIDTH = 800.0

# ── Helpers ────────────────────────────────────────────────────────────


def make_glyph(
    x0: float,
    y0: float,
    x1: float,
    y1: float,
    text: str = "",
    origin: str = "text",
) -> GlyphBox:
    """Create a GlyphBox with sane defaults."""
    return GlyphBox(x0=x0, y0=y0, x1=x1, y1=y1, text=text, origin=origin)


def make_cfg(**overrides) -> ParserConfig:
    """ParserConfig that never writes diagnostics unless asked to."""
    overrides.setdefault("write_diagnostics", False)
    return ParserConfig(**overrides)


def table_strokes(
    xs: Sequence[float],
    ys: Sequence[float],
    page_height: float = PAGE_HEIGHT,
    draw_right: bool = False,
) -> List[Stroke]:
    """Zero-width strokes drawing a table, given top-left line positions.

    Horizontal rules span ``xs[0]..xs[-1]``; vertical rules are drawn at
    every x except the right edge unless *draw_right* is set, which is how
    the menu PDFs leave their last column open.
    """
    strokes = [
        Stroke(x0=xs[0], y0=page_height - y, x1=xs[-1], y1=page_height - y)
        for y in ys
    ]
    verticals = xs if draw_right else xs[:-1]
    strokes += [
        Stroke(x0=x, y0=page_height - ys[-1], x1=x, y1=page_height - ys[0])
        for x in verticals
    ]
    return strokes


def pdf_rect(
    x0: float,
    y0: float,
    x1: float,
    y1: float,
    stroke: bool = True,
    fill: bool = False,
    object_type: str = "rect",
    pts: Optional[list] = None,
) -> Dict:
    """Build a dict matching pdfplumber's ``page.rects`` / ``page.lines`` output."""
    d = {
        "object_type": object_type,
        "x0": x0,
        "y0": y0,
        "x1": x1,
        "y1": y1,
        "stroke": stroke,
        "fill": fill,
    }
    if pts is not None:
        d["pts"] = pts
    return d


def solid(color, size=(20, 20)) -> Image.Image:
    """A single-colour RGB image."""
    return Image.new("RGB", size, color)


def two_tone(size=(20, 20)) -> Image.Image:
    """Left half black, right half white."""
    img = Image.new("RGB", size, (0, 0, 0))
    img.paste((255, 255, 255), (size[0] // 2, 0, size[0], size[1]))
    return img


def placed_at(
    image: Image.Image,
    x0: float,
    top: float,
    size: float = 10.0,
    page_height: float = PAGE_HEIGHT,
) -> PlacedImage:
    """PlacedImage whose top-left corner sits at ``(x0, top)`` on the page."""
    return PlacedImage(
        x=x0,
        y=page_height - top - size,
        width=size,
        height=size,
        image=image,
    )


class FakeTextLayer:
    """Stand-in for PdfTextLayer backed by fixed text and glyph lists.

    ``cells`` maps a cell bbox (top-left points) to its raw text; region
    queries return the text of every registered box that lies inside the
    queried region.
    """

    def __init__(
        self,
        header: str = "",
        cells: Optional[Dict[tuple, str]] = None,
        glyphs: Optional[List[GlyphBox]] = None,
        encoding: str = "latin-1",
    ) -> None:
        self.header = header
        self.cells = cells or {}
        self.glyphs = glyphs or []
        self.encoding = encoding
        self.region_queries: List[tuple] = []

    def header_line(self) -> str:
        return self.header

    @staticmethod
    def _inside(inner, outer) -> bool:
        return (
            inner[0] >= outer[0]
            and inner[1] >= outer[1]
            and inner[2] <= outer[2]
            and inner[3] <= outer[3]
        )

    def region_text(self, bbox) -> str:
        self.region_queries.append(tuple(bbox))
        return "\n".join(
            text for box, text in self.cells.items() if self._inside(box, bbox)
        )

    def region_glyphs(self, bbox) -> List[GlyphBox]:
        return [g for g in self.glyphs if self._inside(g.bbox(), bbox)]

    def unencodable_glyphs(self, bbox) -> List[GlyphBox]:
        out = []
        for g in self.region_glyphs(bbox):
            try:
                g.text.encode(self.encoding)
            except UnicodeEncodeError:
                out.append(g)
        return out


class FakeRecognizer:
    """TextRecognizer returning canned lines, optionally keyed by image size."""

    def __init__(self, lines=None, by_size=None, fail_sizes=()) -> None:
        self.lines = lines or []
        self.by_size = by_size or {}
        self.fail_sizes = set(fail_sizes)
        self.calls: List[tuple] = []

    def recognize(self, image, level="line"):
        self.calls.append((image.size, level))
        if image.size in self.fail_sizes:
            raise RuntimeError("recogniser crashed")
        return list(self.by_size.get(image.size, self.lines))


# ── Fixtures ───────────────────────────────────────────────────────────


@pytest.fixture
def default_cfg() -> ParserConfig:
    """Return a default ParserConfig with diagnostics disabled."""
    return make_cfg()


@pytest.fixture
def two_by_two_strokes() -> List[Stroke]:
    """Table with columns at x=0,100,200 and rows at y=0,50,100."""
    return table_strokes([0, 100, 200], [0, 50, 100])
