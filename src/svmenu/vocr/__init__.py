"""Visual OCR (VOCR) — fallback extraction from the page raster.

Public API
----------
- :class:`PaddleRecognizer` — PaddleOCR adapter (line / paragraph level)
- :class:`TextRecognizer` — recogniser protocol, for substitute engines
- :func:`locate_week_date` — week date from the OCR'd page header
- :func:`extract_cells_ocr` — per-cell OCR titles with text-layer bodies
"""

from .extract import CellJob, extract_cells_ocr, plan_cell_job, recognize_title
from .header import extract_header_date, find_header_line, locate_week_date
from .recognize import (
    LINE,
    PARAGRAPH,
    PaddleRecognizer,
    TextLine,
    TextRecognizer,
    group_paragraphs,
)

__all__ = [
    "CellJob",
    "LINE",
    "PARAGRAPH",
    "PaddleRecognizer",
    "TextLine",
    "TextRecognizer",
    "extract_cells_ocr",
    "extract_header_date",
    "find_header_line",
    "group_paragraphs",
    "locate_week_date",
    "plan_cell_job",
    "recognize_title",
]
