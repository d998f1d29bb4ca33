"""Menu parsing pipeline: strategy selection, stage timing, orchestration.

One document flows through four stages::

    ingest → grid → extract → segment

``extract`` takes one of two routes, chosen once per document from the
header line: the PDF text layer when titles are encodable (after glyph
remapping), otherwise OCR of the rendered page.  Every stage produces a
:class:`StageResult` that is attached to the returned
:class:`~svmenu.models.MenuWeek`.
"""

from __future__ import annotations

import logging
import time
import traceback
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Generator, List, Optional

import pdfplumber
from PIL import Image

from .config import ParserConfig
from .export import save_unknown_icon
from .glyphs import GlyphRemapper, is_encodable
from .grid import build_grid, collect_strokes
from .icons import (
    IconClassifier,
    UnknownIconPool,
    extract_page_images,
    load_label_references,
)
from .ingest import ingest_pdf, render_page
from .models import Diagnostic, MenuRecord, MenuWeek, PlacedImage, Stroke
from .segment import build_record
from .tocr import PdfTextLayer, extract_cell_texts
from .vocr import PaddleRecognizer, TextRecognizer, extract_cells_ocr, locate_week_date
from .weekdate import extract_week_date

logger = logging.getLogger("svmenu.pipeline")


# ── Extraction strategy ────────────────────────────────────────────────


class ExtractionStrategy(str, Enum):
    """Where cell text comes from for a whole document."""

    TEXT_LAYER = "text_layer"
    OCR = "ocr"


def select_strategy(
    header: str, remapper: GlyphRemapper, encoding: str = "latin-1"
) -> ExtractionStrategy:
    """Text layer if the remapped header fits *encoding*, else OCR."""
    if is_encodable(remapper.process(header), encoding):
        return ExtractionStrategy.TEXT_LAYER
    return ExtractionStrategy.OCR


# ── Stage result ───────────────────────────────────────────────────────


@dataclass
class StageResult:
    """Outcome record for a single pipeline stage."""

    stage: str
    status: str = "success"  # "success" | "failed"
    duration_ms: int = 0
    counts: Dict[str, Any] = field(default_factory=dict)
    error: Optional[Dict[str, str]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize stage result to a JSON-compatible dict."""
        d: Dict[str, Any] = {
            "stage": self.stage,
            "status": self.status,
            "duration_ms": self.duration_ms,
        }
        if self.counts:
            d["counts"] = self.counts
        if self.error is not None:
            d["error"] = self.error
        return d


@contextmanager
def run_stage(
    stage: str, stages: Optional[Dict[str, StageResult]] = None
) -> Generator[StageResult, None, None]:
    """Context manager that times a stage and records its outcome.

    Usage::

        with run_stage("grid", stages) as sr:
            grid = build_grid(...)
            sr.counts["cells"] = len(grid.cells)

    The result is stored in *stages* under its name.  Exceptions mark the
    stage failed and propagate to the caller.
    """
    sr = StageResult(stage=stage)
    if stages is not None:
        stages[stage] = sr
    t0 = time.perf_counter()
    try:
        yield sr
    except Exception as exc:
        sr.status = "failed"
        sr.error = {
            "type": type(exc).__name__,
            "message": str(exc),
            "stack": traceback.format_exc(),
        }
        raise
    finally:
        sr.duration_ms = int((time.perf_counter() - t0) * 1000)


# ── Page bundle ────────────────────────────────────────────────────────


@dataclass
class MenuPage:
    """What the parser needs from one PDF page.

    ``text_layer`` is a :class:`~svmenu.tocr.PdfTextLayer` (or anything
    with the same methods) and ``render`` rasterises the page at a DPI.
    """

    width: float
    height: float
    strokes: List[Stroke]
    images: List[PlacedImage]
    text_layer: Any
    render: Callable[[int], Image.Image]

    @classmethod
    def from_pdfplumber(cls, page, cfg: ParserConfig) -> "MenuPage":
        return cls(
            width=float(page.width),
            height=float(page.height),
            strokes=collect_strokes(page),
            images=extract_page_images(page, cfg.icon_background),
            text_layer=PdfTextLayer(page, cfg.encoding),
            render=lambda resolution: render_page(page, resolution),
        )


# ── Parser ─────────────────────────────────────────────────────────────


class MenuParser:
    """Parses weekly menu PDFs into :class:`~svmenu.models.MenuWeek` objects.

    Reference icons, the glyph table and the OCR engine are loaded once
    and shared by every document parsed with the same instance.  So is
    the pool of unknown icons, which therefore only grows.
    """

    def __init__(
        self,
        cfg: Optional[ParserConfig] = None,
        remapper: Optional[GlyphRemapper] = None,
        references=None,
        recognizer: Optional[TextRecognizer] = None,
    ) -> None:
        self.cfg = cfg or ParserConfig()
        if remapper is None:
            if self.cfg.glyph_map_path:
                remapper = GlyphRemapper.from_file(
                    self.cfg.glyph_map_path, self.cfg.encoding
                )
            else:
                remapper = GlyphRemapper(encoding=self.cfg.encoding)
        self.remapper = remapper
        if references is None:
            references = load_label_references(self.cfg.icons_dir)
        self.pool = UnknownIconPool()
        self.classifier = IconClassifier(references, self.cfg.label_accuracy, self.pool)
        self._recognizer = recognizer

    @property
    def recognizer(self) -> TextRecognizer:
        if self._recognizer is None:
            self._recognizer = PaddleRecognizer(self.cfg)
        return self._recognizer

    @property
    def unknown_icons(self) -> List[Image.Image]:
        """Distinct icons no reference matched, for manual review."""
        return list(self.pool.icons)

    def parse(self, pdf_path: Path | str) -> MenuWeek:
        """Parse the first page of the menu PDF at *pdf_path*.

        Raises
        ------
        IngestError
            When the file cannot be opened as a PDF.
        GridStructureError, TextStructureError, DateExtractionError
            When the document's structure cannot be understood.
        """
        stages: Dict[str, StageResult] = {}
        with run_stage("ingest", stages) as sr:
            meta = ingest_pdf(pdf_path)
            sr.counts["pages"] = meta.num_pages
        if meta.num_pages > 1:
            logger.warning(
                "%s has %d pages; only the first is parsed",
                meta.path.name,
                meta.num_pages,
            )
        with pdfplumber.open(meta.path) as pdf:
            page = MenuPage.from_pdfplumber(pdf.pages[0], self.cfg)
            return self.parse_page(page, stages)

    def parse_page(
        self, page: MenuPage, stages: Optional[Dict[str, StageResult]] = None
    ) -> MenuWeek:
        """Run grid inference, extraction and segmentation on *page*."""
        cfg = self.cfg
        stages = {} if stages is None else stages
        diagnostics: List[Diagnostic] = []

        with run_stage("grid", stages) as sr:
            grid = build_grid(page.strokes, page.height)
            sr.counts.update(
                {"strokes": len(page.strokes), "rows": grid.rows, "columns": grid.columns}
            )

        with run_stage("extract", stages) as sr:
            header = page.text_layer.header_line()
            strategy = select_strategy(header, self.remapper, cfg.encoding)
            logger.info("Extraction strategy: %s", strategy.value)
            if strategy is ExtractionStrategy.TEXT_LAYER:
                week_date = extract_week_date(self.remapper.process(header))
                texts = extract_cell_texts(page.text_layer, grid, self.remapper, cfg)
            else:
                page_image = page.render(cfg.render_resolution)
                week_date = locate_week_date(page_image, self.recognizer, cfg)
                texts, skipped = extract_cells_ocr(
                    page_image, page.text_layer, grid, self.remapper, self.recognizer, cfg
                )
                diagnostics.extend(skipped)
            sr.counts.update(
                {"strategy": strategy.value, "cells": len(texts), "skipped": len(diagnostics)}
            )

        menus: List[MenuRecord] = []
        with run_stage("segment", stages) as sr:
            for raw in texts:
                cell = grid.cell(raw.index)
                match = self.classifier.classify(cell, page.images, page.height)
                if match.unknown:
                    diagnostics.append(self._unknown_icon_diagnostic(raw.index, match))
                menus.append(build_record(raw, cell, grid.columns, week_date, match.label))
            sr.counts.update(
                {
                    "menus": len(menus),
                    "labelled": sum(1 for m in menus if m.label is not None),
                }
            )

        logger.info(
            "Week of %s: %d menus, %d diagnostics",
            week_date.isoformat(),
            len(menus),
            len(diagnostics),
        )
        return MenuWeek(
            week_date=week_date,
            strategy=strategy.value,
            menus=menus,
            diagnostics=diagnostics,
            unknown_icons=len(self.pool),
            stages=stages,
        )

    def _unknown_icon_diagnostic(self, cell_index: int, match) -> Diagnostic:
        artifact = None
        if match.new_unknown and self.cfg.write_diagnostics:
            artifact = str(
                save_unknown_icon(match.candidate, self.cfg.errors_dir, len(self.pool))
            )
        return Diagnostic(
            kind="unknown_icon",
            message=f"best label similarity {match.score:.3f} below "
            f"{self.cfg.label_accuracy:.2f}",
            cell_index=cell_index,
            artifact=artifact,
        )
