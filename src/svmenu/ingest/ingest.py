"""Ingest stage — PDF file validation and page rendering.

Every other stage receives an already-open pdfplumber page; this module is
the one place that checks the input file before it is opened for parsing.

Public API
----------
- :func:`ingest_pdf` — validate a PDF, return a :class:`PdfMeta`
- :func:`render_page` — rasterise an open page at a given DPI
- :class:`PdfMeta` — resolved path and page count of a validated PDF
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import pdfplumber
from PIL import Image

from ..errors import MenuParseError

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data containers
# ---------------------------------------------------------------------------


@dataclass
class PdfMeta:
    """What :func:`ingest_pdf` learned about a PDF.

    The PDF handle is closed again before this is returned.
    """

    path: Path
    num_pages: int


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


class IngestError(MenuParseError):
    """Raised when a PDF cannot be ingested."""


def _validate_pdf_path(pdf_path: Path) -> None:
    """Raise :class:`IngestError` for missing / empty / wrong-extension files."""
    if not pdf_path.exists():
        raise IngestError(f"File not found: {pdf_path}")
    if not pdf_path.is_file():
        raise IngestError(f"Not a file: {pdf_path}")
    if pdf_path.stat().st_size == 0:
        raise IngestError(f"Empty file: {pdf_path}")
    if pdf_path.suffix.lower() != ".pdf":
        raise IngestError(f"Not a PDF (suffix={pdf_path.suffix!r}): {pdf_path}")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def ingest_pdf(pdf_path: Path | str) -> PdfMeta:
    """Validate a menu PDF and count its pages.

    Raises
    ------
    IngestError
        When the file is missing, empty, encrypted, has no pages, or
        cannot be opened as a PDF.
    """
    pdf_path = Path(pdf_path)
    _validate_pdf_path(pdf_path)

    try:
        with pdfplumber.open(pdf_path) as pdf:
            if hasattr(pdf, "doc") and hasattr(pdf.doc, "is_extractable"):
                if not pdf.doc.is_extractable:
                    raise IngestError(
                        f"PDF is password-protected or encrypted "
                        f"(text extraction not permitted): {pdf_path}"
                    )
            num_pages = len(pdf.pages)
    except IngestError:
        raise
    except Exception as exc:
        raise IngestError(f"Cannot open PDF: {exc}") from exc

    if num_pages == 0:
        raise IngestError(f"PDF has no pages: {pdf_path}")

    file_size = pdf_path.stat().st_size
    log.info(
        "Ingested %s: %d pages, %.1f KB", pdf_path.name, num_pages, file_size / 1024
    )
    return PdfMeta(path=pdf_path.resolve(), num_pages=num_pages)


def render_page(page, resolution: int = 216) -> Image.Image:
    """Rasterise an open pdfplumber *page* to an RGB image at *resolution* DPI."""
    img = page.to_image(resolution=resolution).original.copy()
    if img.mode != "RGB":
        img = img.convert("RGB")
    return img
