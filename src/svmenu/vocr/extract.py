"""OCR fallback — per-cell titles recognised from the page raster.

Used when the header shows that titles are set in the custom font and no
substitution table covers them.  Work is split in two phases:

1. *plan* (calling thread): locate each cell's title from its
   non-encodable glyphs, crop and upscale the title image, and read the
   body below it from the text layer.
2. *recognise* (worker pool): OCR the title images concurrently.

Results are re-joined by cell index, so output order is grid order no
matter which task finishes first.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import reduce
from typing import Dict, List, Tuple

from PIL import Image

from ..config import ParserConfig
from ..errors import TitleRegionNotFound
from ..export import save_snapshot
from ..glyphs import GlyphRemapper
from ..models import BBox, Cell, Diagnostic, GlyphBox, MenuGrid, RawCellText
from ..tocr import PdfTextLayer
from .recognize import PARAGRAPH, TextRecognizer

log = logging.getLogger(__name__)


@dataclass
class CellJob:
    """Everything needed to finish one cell once its title is recognised."""

    cell: Cell
    title_box: BBox  # page pixels
    title_image: Image.Image
    body: str


def title_bounds(glyphs: List[GlyphBox]) -> GlyphBox:
    """Union of the title's glyph boxes (top-left page points)."""
    return reduce(lambda a, b: a.union(b), glyphs)


def _pixel_box(bounds: GlyphBox, cfg: ParserConfig, size: Tuple[int, int]) -> BBox:
    """Scale *bounds* to page pixels, add the margin, clamp to the image."""
    s = cfg.render_scale
    m = cfg.title_margin_px
    return (
        max(0, int(bounds.x0 * s) - m),
        max(0, int(bounds.y0 * s) - m),
        min(size[0], int(bounds.x1 * s) + m),
        min(size[1], int(bounds.y1 * s) + m),
    )


def plan_cell_job(
    cell: Cell,
    page_image: Image.Image,
    text_layer: PdfTextLayer,
    remapper: GlyphRemapper,
    cfg: ParserConfig,
) -> CellJob:
    """Crop the title image and read the body of *cell*.

    Raises
    ------
    TitleRegionNotFound
        When the cell holds no non-encodable glyphs other than the
        title separator.
    """
    glyphs = [
        g
        for g in text_layer.unencodable_glyphs(cell.bbox())
        if g.text != cfg.title_separator
    ]
    if not glyphs:
        raise TitleRegionNotFound(cell.index)
    bounds = title_bounds(glyphs)

    box = _pixel_box(bounds, cfg, page_image.size)
    title_image = page_image.crop(box)
    if cfg.title_scale != 1:
        title_image = title_image.resize(
            (title_image.width * cfg.title_scale, title_image.height * cfg.title_scale),
            Image.LANCZOS,
        )

    body_top = bounds.y1 + cfg.body_gap_px / cfg.render_scale
    body = text_layer.region_text((cell.x0, body_top, cell.x1, cell.bottom))
    return CellJob(
        cell=cell,
        title_box=box,
        title_image=title_image,
        body=remapper.process(body.replace(cfg.title_separator, " ")),
    )


def recognize_title(recognizer: TextRecognizer, image: Image.Image) -> str:
    """Paragraph-level OCR of a title image, paragraphs joined by spaces."""
    paragraphs = recognizer.recognize(image, level=PARAGRAPH)
    return " ".join(p.text.strip() for p in paragraphs if p.text.strip())


def _notitle_diagnostic(
    exc: TitleRegionNotFound,
    cell: Cell,
    page_image: Image.Image,
    cfg: ParserConfig,
) -> Diagnostic:
    artifact = None
    if cfg.write_diagnostics:
        artifact = str(
            save_snapshot(
                page_image, cell.scaled(cfg.render_scale), cfg.errors_dir, "notitle"
            )
        )
    log.warning("Cell %d skipped: %s", cell.index, exc)
    return Diagnostic(
        kind="title_not_found",
        message=str(exc),
        cell_index=cell.index,
        artifact=artifact,
    )


def extract_cells_ocr(
    page_image: Image.Image,
    text_layer: PdfTextLayer,
    grid: MenuGrid,
    remapper: GlyphRemapper,
    recognizer: TextRecognizer,
    cfg: ParserConfig,
) -> Tuple[List[RawCellText], List[Diagnostic]]:
    """Title (OCR) and body (text layer) of every cell that can be read.

    Cells without title glyphs, or whose recognition fails, are omitted
    and reported as diagnostics; the document as a whole continues.
    """
    diagnostics: List[Diagnostic] = []
    jobs: List[CellJob] = []
    for cell in grid.cells:
        try:
            jobs.append(plan_cell_job(cell, page_image, text_layer, remapper, cfg))
        except TitleRegionNotFound as exc:
            diagnostics.append(_notitle_diagnostic(exc, cell, page_image, cfg))

    titles: Dict[int, str] = {}
    workers = min(cfg.ocr_max_workers, max(1, len(jobs)))
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = {
            job.cell.index: pool.submit(recognize_title, recognizer, job.title_image)
            for job in jobs
        }
        for index, future in futures.items():
            try:
                titles[index] = future.result()
            except Exception as exc:
                log.error("Cell %d: title recognition failed: %s", index, exc)
                diagnostics.append(
                    Diagnostic(
                        kind="ocr_failed",
                        message=f"title recognition failed: {exc}",
                        cell_index=index,
                    )
                )

    texts: List[RawCellText] = []
    for job in jobs:
        index = job.cell.index
        if index not in titles:
            continue
        if not titles[index]:
            log.warning("Cell %d skipped: no title text recognised", index)
            diagnostics.append(
                Diagnostic(
                    kind="ocr_failed",
                    message="no title text recognised",
                    cell_index=index,
                )
            )
            continue
        texts.append(RawCellText(index=index, title=titles[index], body=job.body))

    diagnostics.sort(key=lambda d: d.cell_index if d.cell_index is not None else -1)
    log.info(
        "OCR: %d of %d cells extracted, %d skipped",
        len(texts),
        len(grid.cells),
        len(grid.cells) - len(texts),
    )
    return texts, diagnostics
