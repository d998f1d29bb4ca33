"""Export stage — diagnostic images for failed or uncertain cells.

Public API
----------
- :func:`save_snapshot` — annotated page snapshot (``nodate-*``/``notitle-*``)
- :func:`save_unknown_icon` — icon that matched no reference label
- :func:`draw_menu_bounds` — page image with every cell outlined and numbered
"""

from .diagnostics import draw_menu_bounds, save_snapshot, save_unknown_icon

__all__ = [
    "draw_menu_bounds",
    "save_snapshot",
    "save_unknown_icon",
]
