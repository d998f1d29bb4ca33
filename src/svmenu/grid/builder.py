"""Stroke-to-grid builder.

The menu table is drawn as a set of thin stroked rectangles.  No table
structure is stored in the PDF, so rows and columns are inferred from the
geometry alone:

1. Flip every stroke into top-left coordinates and take the global extent.
2. Probe along the top edge (full width at min y) and the left edge (full
   height at min x).  Strokes touching the top probe mark column borders,
   strokes touching the left probe mark row borders.
3. The table's right border is not drawn, so a synthetic vertical line is
   added at the right edge of the extent.
4. Positions closer than :data:`MERGE_TOLERANCE` are one border drawn as
   a thin rectangle and are merged.
5. Consecutive line pairs bound the cells, enumerated row-major.
"""

from __future__ import annotations

import logging
from typing import List, Sequence, Tuple

from ..errors import GridStructureError
from ..models import BBox, Cell, GridLine, MenuGrid, Orientation, Stroke, bboxes_intersect

log = logging.getLogger(__name__)

# Integer bounds of one hairline border can land up to this far apart
# depending on which side of a whole point its edges fall.
MERGE_TOLERANCE = 2


def _flip(stroke: Stroke, page_height: float) -> Tuple[int, int, int, int]:
    """Integer ``(x, top, width, height)`` with the y axis pointing down."""
    x, y, w, h = stroke.bounds()
    return (x, int(page_height - y - h), w, h)


def _as_bbox(rect: Tuple[int, int, int, int]) -> BBox:
    x, y, w, h = rect
    return (x, y, x + w, y + h)


def _merge_close(positions, tolerance: int = MERGE_TOLERANCE) -> List[int]:
    """Sorted positions with near-duplicates collapsed onto the first."""
    merged: List[int] = []
    for pos in sorted(positions):
        if merged and pos - merged[-1] <= tolerance:
            continue
        merged.append(pos)
    return merged


def find_grid_lines(
    strokes: Sequence[Stroke],
    page_height: float,
) -> Tuple[List[GridLine], List[GridLine]]:
    """Infer sorted ``(horizontals, verticals)`` from stroke geometry.

    The returned verticals include the synthetic right border.

    Raises
    ------
    GridStructureError
        When there are no strokes or fewer than two lines on an axis.
    """
    if not strokes:
        raise GridStructureError("page contains no stroked paths")

    rects = [_flip(s, page_height) for s in strokes]
    min_x = min(r[0] for r in rects)
    min_y = min(r[1] for r in rects)
    max_x = max(r[0] + r[2] for r in rects)
    max_y = max(r[1] + r[3] for r in rects)
    width = max_x - min_x
    height = max_y - min_y

    x_probe = (min_x, min_y, min_x + width, min_y + 1)
    y_probe = (min_x, min_y, min_x + 1, min_y + height)

    xs: set[int] = set()
    ys: set[int] = set()
    for rect in rects:
        box = _as_bbox(rect)
        if bboxes_intersect(box, x_probe):
            xs.add(rect[0])
        if bboxes_intersect(box, y_probe):
            ys.add(rect[1])

    verticals = [
        GridLine(Orientation.vertical, position=x, start=min_y, span=height)
        for x in _merge_close(xs)
    ]
    horizontals = [
        GridLine(Orientation.horizontal, position=y, start=min_x, span=width)
        for y in _merge_close(ys)
    ]

    # Close the rightmost column unless its border was drawn at the edge.
    if not verticals or max_x - verticals[-1].position > MERGE_TOLERANCE:
        verticals.append(
            GridLine(
                Orientation.vertical,
                position=max_x,
                start=min_y,
                span=height,
                synthetic=True,
            )
        )

    if len(horizontals) < 2 or len(verticals) < 2:
        raise GridStructureError(
            f"expected at least 2 lines per axis, found "
            f"{len(horizontals)} horizontal and {len(verticals)} vertical"
        )
    return horizontals, verticals


def _intervals(lines: Sequence[GridLine]) -> List[Tuple[int, int]]:
    """Boundary pairs between consecutive lines."""
    return [(a.boundary, b.boundary) for a, b in zip(lines, lines[1:])]


def build_grid(strokes: Sequence[Stroke], page_height: float) -> MenuGrid:
    """Build the full :class:`MenuGrid` (lines + row-major cells)."""
    horizontals, verticals = find_grid_lines(strokes, page_height)
    rows = _intervals(horizontals)
    cols = _intervals(verticals)

    cells: List[Cell] = []
    for r, (top, bottom) in enumerate(rows):
        for c, (x0, x1) in enumerate(cols):
            cells.append(
                Cell(
                    index=len(cells),
                    row=r,
                    column=c,
                    x0=x0,
                    top=top,
                    x1=x1,
                    bottom=bottom,
                )
            )

    log.info(
        "Grid: %d rows x %d columns (%d cells)", len(rows), len(cols), len(cells)
    )
    return MenuGrid(horizontals=horizontals, verticals=verticals, cells=cells)
