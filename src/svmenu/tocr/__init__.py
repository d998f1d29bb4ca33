"""Text-layer OCR (TOCR) — cell text from the PDF's own text layer.

Public API
----------
- :class:`PdfTextLayer` — header / region text / glyph boxes of one page
- :func:`extract_cell_texts` — title/body pair for every grid cell
"""

from .extract import PdfTextLayer, extract_cell_texts

__all__ = [
    "PdfTextLayer",
    "extract_cell_texts",
]
