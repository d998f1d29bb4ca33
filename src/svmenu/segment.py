"""Content segmentation and record building.

Turns a cell's raw text into a :class:`~svmenu.models.MenuRecord`:

- title / body split (text-layer path only; OCR splits geometrically)
- description = body up to the first price
- prices = every ``GROUP 12.50`` token of the body
- group and serving date from the cell's grid position
"""

from __future__ import annotations

import re
from datetime import date
from typing import List, Optional, Tuple

from .errors import TextStructureError
from .glyphs import GlyphRemapper
from .models import Cell, MenuLabel, MenuRecord, PriceEntry, RawCellText
from .weekdate import group_index, serving_date

# Customer group in capitals, a space, then a 1-2 digit amount with
# 1-2 decimals ("INT 7.50", "EXT 9,80").
PRICE_PATTERN = re.compile(r"([A-Z]+) (\d{1,2}[.,]\d{1,2})")

_SOFT_BREAK = re.compile(r"[-\u00ad]\r?\n")


def normalize_text(text: str) -> str:
    """Join hyphenated line breaks, flatten newlines, trim."""
    text = _SOFT_BREAK.sub("", text)
    text = text.replace("\u00ad", "").replace("\r", "")
    return text.replace("\n", " ").strip()


def title_case(text: str) -> str:
    """Capitalise the first letter of each word, lower-case the rest."""
    return " ".join(word[:1].upper() + word[1:].lower() for word in text.split())


def split_cell_text(
    raw: str,
    remapper: GlyphRemapper,
    separator: str = "\u2014",
) -> Tuple[str, str]:
    """Split text-layer cell content into ``(title, body)``.

    The title ends at the separator dash.  When font substitution dropped
    the dash, the title ends with the last custom-font glyph instead.

    Raises
    ------
    TextStructureError
        When the separator occurs more than once, or neither marker exists.
    """
    count = raw.count(separator)
    if count > 1:
        raise TextStructureError(f"{count} title separators in cell text {raw!r}")
    if count == 1:
        title, body = raw.split(separator)
        title = title_case(normalize_text(remapper.process(title)))
    else:
        last = remapper.last_unicode_index(raw)
        if last is None:
            raise TextStructureError(f"no title separator in cell text {raw!r}")
        title = normalize_text(remapper.process(raw[: last + 1]))
        body = raw[last + 1 :]
    return title, normalize_text(remapper.process(body))


def parse_prices(body: str) -> List[PriceEntry]:
    """All prices in *body*, decimal comma normalised to a period."""
    return [
        PriceEntry(group=m.group(1), price=m.group(2).replace(",", "."))
        for m in PRICE_PATTERN.finditer(body)
    ]


def description_of(body: str) -> str:
    """Body text before the first price."""
    m = PRICE_PATTERN.search(body)
    return (body[: m.start()] if m else body).strip()


def build_record(
    raw: RawCellText,
    cell: Cell,
    columns: int,
    week_date: date,
    label: Optional[MenuLabel] = None,
) -> MenuRecord:
    """Assemble the final record for one cell."""
    body = normalize_text(raw.body)
    return MenuRecord(
        title=normalize_text(raw.title),
        prices=tuple(parse_prices(body)),
        description=description_of(body),
        date=serving_date(week_date, cell.index, columns),
        group=group_index(cell.index, columns),
        label=label,
        cell_index=cell.index,
    )
