"""Grid stage — table geometry from vector strokes.

Public API
----------
- :func:`collect_strokes` — stroked rects/lines of a pdfplumber page
- :func:`build_grid` — infer grid lines and the row-major cell array
- :func:`find_grid_lines` — line inference only
"""

from .builder import build_grid, find_grid_lines
from .strokes import collect_strokes, strokes_from_objects

__all__ = [
    "build_grid",
    "collect_strokes",
    "find_grid_lines",
    "strokes_from_objects",
]
