"""Week-date parsing and grid-position → calendar arithmetic."""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Optional

from .errors import DateExtractionError

# "10.03. - 16.03.2025": the week's first day (no year) and last day.
HEADER_WEEK_PATTERN = re.compile(
    r"\d{1,2}\.\d{1,2}\.\s*-\s*(\d{1,2}\.\d{1,2}\.\d{4})"
)
# A full date on its own, used on OCR'd headers where spacing is unreliable.
DATE_PATTERN = re.compile(r"\d{1,2}\.\d{1,2}\.\d{4}")


def parse_date(text: str) -> date:
    """Parse ``d.m.yyyy`` into a :class:`date`."""
    return datetime.strptime(text, "%d.%m.%Y").date()


def week_monday(day: date) -> date:
    """Monday of the week containing *day*."""
    return day - timedelta(days=day.weekday())


def find_end_date(text: str) -> Optional[str]:
    """Return the week's end-date string from a header, or None."""
    m = HEADER_WEEK_PATTERN.search(text)
    if m:
        return m.group(1)
    matches = DATE_PATTERN.findall(text)
    return matches[-1] if matches else None


def extract_week_date(header: str) -> date:
    """Resolve a header line to the Monday of the week it covers.

    Raises
    ------
    DateExtractionError
        When the header holds no recognisable date.
    """
    end = find_end_date(header)
    if end is None:
        raise DateExtractionError(f"no week date in header {header!r}")
    try:
        return week_monday(parse_date(end))
    except ValueError as exc:
        raise DateExtractionError(f"invalid week date {end!r}") from exc


def group_index(cell_index: int, columns: int) -> int:
    """Row of a cell, i.e. the menu group it belongs to."""
    return cell_index // columns


def serving_date(week_date: date, cell_index: int, columns: int) -> date:
    """Day a cell's menu is served: Monday plus its zero-based column."""
    offset = cell_index - columns * group_index(cell_index, columns)
    return week_date + timedelta(days=offset)
