"""Stroke collection from a pdfplumber page."""

from __future__ import annotations

import logging
from typing import Iterable, List

from ..models import Stroke

log = logging.getLogger(__name__)


def _is_axis_aligned(obj: dict, tol: float = 0.5) -> bool:
    """A line object is usable only if it is horizontal or vertical."""
    pts = obj.get("pts") or []
    if len(pts) < 2:
        return True
    (ax, ay), (bx, by) = pts[0], pts[-1]
    return abs(ax - bx) <= tol or abs(ay - by) <= tol


def strokes_from_objects(objects: Iterable[dict]) -> List[Stroke]:
    """Convert pdfplumber rect/line dicts into :class:`Stroke` bounds.

    Only stroked, unfilled paths count as table borders; filled shapes
    (backgrounds, fill+stroke) and slanted lines are ignored.
    """
    strokes: List[Stroke] = []
    for obj in objects:
        if not obj.get("stroke", False) or obj.get("fill", False):
            continue
        if obj.get("object_type") == "line" and not _is_axis_aligned(obj):
            continue
        strokes.append(
            Stroke(
                x0=float(obj["x0"]),
                y0=float(obj["y0"]),
                x1=float(obj["x1"]),
                y1=float(obj["y1"]),
            )
        )
    return strokes


def collect_strokes(page) -> List[Stroke]:
    """Return every stroked rectangle / straight line on a pdfplumber page.

    Coordinates stay in PDF space (origin bottom-left); flipping happens in
    :func:`~svmenu.grid.builder.build_grid`.
    """
    strokes = strokes_from_objects(list(page.rects) + list(page.lines))
    log.debug("Collected %d strokes from page", len(strokes))
    return strokes
