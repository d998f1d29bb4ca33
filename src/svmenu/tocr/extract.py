"""Text-layer extraction — cell text straight from the PDF's encoded text.

:class:`PdfTextLayer` wraps an open pdfplumber page and answers the three
questions the parser asks of the text layer: what is the header line, what
text lies inside a region, and where are the individual glyphs.  The
OCR fallback reuses the same adapter for glyph positions and body text.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from ..config import ParserConfig
from ..glyphs import GlyphRemapper, is_encodable
from ..models import BBox, GlyphBox, MenuGrid, RawCellText
from ..segment import split_cell_text

log = logging.getLogger(__name__)


class PdfTextLayer:
    """Region-scoped text access on a single pdfplumber page."""

    def __init__(self, page, encoding: str = "latin-1") -> None:
        self.page = page
        self.encoding = encoding
        self.width = float(page.width)
        self.height = float(page.height)

    def _clamp(self, bbox: BBox) -> Optional[BBox]:
        """Clip *bbox* to the page; None if nothing is left."""
        x0 = max(0.0, min(self.width, float(bbox[0])))
        top = max(0.0, min(self.height, float(bbox[1])))
        x1 = max(0.0, min(self.width, float(bbox[2])))
        bottom = max(0.0, min(self.height, float(bbox[3])))
        if x1 <= x0 or bottom <= top:
            return None
        return (x0, top, x1, bottom)

    def header_line(self) -> str:
        """First line of the page text (where the week range is printed)."""
        text = self.page.extract_text() or ""
        return text.split("\n", 1)[0]

    def region_text(self, bbox: BBox) -> str:
        """Text of every character inside *bbox* (top-left page points)."""
        clamped = self._clamp(bbox)
        if clamped is None:
            return ""
        return self.page.crop(clamped).extract_text() or ""

    def region_glyphs(self, bbox: BBox) -> List[GlyphBox]:
        """Per-character boxes inside *bbox*."""
        clamped = self._clamp(bbox)
        if clamped is None:
            return []
        glyphs: List[GlyphBox] = []
        for ch in self.page.crop(clamped).chars:
            x0 = float(ch.get("x0", 0.0))
            x1 = float(ch.get("x1", 0.0))
            y0 = float(ch.get("top", 0.0))
            y1 = float(ch.get("bottom", 0.0))
            if x1 <= x0 or y1 <= y0:
                continue
            glyphs.append(
                GlyphBox(
                    x0=x0,
                    y0=y0,
                    x1=x1,
                    y1=y1,
                    text=ch.get("text", ""),
                    origin="text",
                    fontname=ch.get("fontname", ""),
                )
            )
        return glyphs

    def unencodable_glyphs(self, bbox: BBox) -> List[GlyphBox]:
        """Glyphs in *bbox* that the narrow encoding cannot represent."""
        return [
            g for g in self.region_glyphs(bbox) if not is_encodable(g.text, self.encoding)
        ]


def extract_cell_texts(
    text_layer: PdfTextLayer,
    grid: MenuGrid,
    remapper: GlyphRemapper,
    cfg: ParserConfig,
) -> List[RawCellText]:
    """Split every grid cell's text-layer content into title and body.

    Raises
    ------
    TextStructureError
        When any cell lacks a usable title/body separator.
    """
    texts: List[RawCellText] = []
    for cell in grid.cells:
        raw = text_layer.region_text(cell.bbox())
        title, body = split_cell_text(raw, remapper, cfg.title_separator)
        texts.append(RawCellText(index=cell.index, title=title, body=body))
    log.info("Text layer: extracted %d cells", len(texts))
    return texts
