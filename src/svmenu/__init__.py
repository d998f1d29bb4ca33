"""Weekly cafeteria-menu PDF parser.

Frequently-used symbols are re-exported here for convenience.  Stage
internals (stroke collection, icon decoding, OCR planning, etc.) are
imported from the relevant subpackage, e.g.::

    from svmenu.grid import find_grid_lines
    from svmenu.vocr import group_paragraphs
"""

# ── Core models & config ──────────────────────────────────────────────

from .config import ConfigValidationError, ParserConfig
from .errors import (
    DateExtractionError,
    GridStructureError,
    MenuParseError,
    TextStructureError,
    TitleRegionNotFound,
)
from .glyphs import GlyphRemapper
from .models import (
    Cell,
    Diagnostic,
    MenuGrid,
    MenuLabel,
    MenuRecord,
    MenuWeek,
    PriceEntry,
)

# ── Pipeline ──────────────────────────────────────────────────────────

from .pipeline import (
    ExtractionStrategy,
    MenuPage,
    MenuParser,
    StageResult,
    select_strategy,
)

# ── Ingest / diagnostics ──────────────────────────────────────────────

from .export import draw_menu_bounds
from .ingest import IngestError, ingest_pdf

__all__ = [
    "Cell",
    "ConfigValidationError",
    "DateExtractionError",
    "Diagnostic",
    "ExtractionStrategy",
    "GlyphRemapper",
    "GridStructureError",
    "IngestError",
    "MenuGrid",
    "MenuLabel",
    "MenuPage",
    "MenuParseError",
    "MenuParser",
    "MenuRecord",
    "MenuWeek",
    "ParserConfig",
    "PriceEntry",
    "StageResult",
    "TextStructureError",
    "TitleRegionNotFound",
    "draw_menu_bounds",
    "ingest_pdf",
    "select_strategy",
]
