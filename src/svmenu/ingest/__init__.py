"""Ingest stage — PDF file validation and rendering.

Public API
----------
- :func:`ingest_pdf` — validate a PDF, return :class:`PdfMeta`
- :func:`render_page` — rasterise an open page at a given DPI
- :class:`PdfMeta` — resolved path and page count
- :class:`IngestError` — raised on validation failures
"""

from .ingest import IngestError, PdfMeta, ingest_pdf, render_page

__all__ = [
    "IngestError",
    "PdfMeta",
    "ingest_pdf",
    "render_page",
]
