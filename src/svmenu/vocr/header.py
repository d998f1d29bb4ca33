"""Week date from the rasterised page header (OCR path).

The header is the highest recognised line that is clearly wider than it
is tall.  Every line starting above its bottom edge belongs to the header
as well (the date range is often split off to the right).
"""

from __future__ import annotations

import logging
import re
from datetime import date
from typing import List, Optional

from PIL import Image

from ..config import ParserConfig
from ..errors import DateExtractionError
from ..export import save_snapshot
from ..weekdate import find_end_date, parse_date, week_monday
from .recognize import LINE, TextLine, TextRecognizer

log = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def find_header_line(
    lines: List[TextLine], aspect_ratio: float = 3.0
) -> Optional[TextLine]:
    """Highest line wider than *aspect_ratio* times its height (widest wins ties)."""
    candidates = [ln for ln in lines if ln.width > aspect_ratio * ln.height]
    if not candidates:
        return None
    return min(candidates, key=lambda ln: (ln.y0, -ln.width))


def header_lines(lines: List[TextLine], header: TextLine) -> List[TextLine]:
    """Lines starting above the header's bottom edge, left to right."""
    return sorted((ln for ln in lines if ln.y0 < header.y1), key=lambda ln: ln.x0)


def clean_header_text(text: str) -> str:
    """Drop whitespace and read OCR'd commas as the dots they usually are."""
    return _WHITESPACE.sub("", text).replace(",", ".")


def extract_header_date(lines: List[TextLine]) -> Optional[date]:
    """Monday of the week named by the header *lines*, or None."""
    texts = [clean_header_text(ln.text) for ln in lines]
    for text in texts + ["".join(texts)]:
        end = find_end_date(text)
        if end is None:
            continue
        try:
            return week_monday(parse_date(end))
        except ValueError:
            log.debug("Header date %r is not a calendar date", end)
    return None


def locate_week_date(
    page_image: Image.Image,
    recognizer: TextRecognizer,
    cfg: ParserConfig,
) -> date:
    """Recognise the header of *page_image* and resolve its week date.

    Raises
    ------
    DateExtractionError
        When no header line or no date in it is found.  A snapshot of the
        page is written to ``cfg.errors_dir`` first when diagnostics are on.
    """
    factor = cfg.header_downscale
    small = page_image.resize(
        (max(1, int(page_image.width * factor)), max(1, int(page_image.height * factor)))
    )
    lines = recognizer.recognize(small, level=LINE)
    header = find_header_line(lines, cfg.header_aspect_ratio)

    week_date = None
    if header is not None:
        week_date = extract_header_date(header_lines(lines, header))
    if week_date is not None:
        log.info("OCR header: week of %s", week_date.isoformat())
        return week_date

    if header is None:
        message = "no header line recognised"
    else:
        message = f"no date in header {header.text!r}"
    if cfg.write_diagnostics:
        box = None
        if header is not None:
            box = (
                header.x0 / factor,
                header.y0 / factor,
                header.x1 / factor,
                header.y1 / factor,
            )
        save_snapshot(page_image, box, cfg.errors_dir, "nodate")
    raise DateExtractionError(message)
