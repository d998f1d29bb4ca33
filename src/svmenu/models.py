from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from PIL import Image

BBox = Tuple[float, float, float, float]


def bboxes_intersect(a: BBox, b: BBox) -> bool:
    """Closed-interval overlap test for ``(x0, top, x1, bottom)`` boxes.

    Touching edges count as intersecting so that zero-thickness strokes
    still hit a probe line.
    """
    return a[0] <= b[2] and b[0] <= a[2] and a[1] <= b[3] and b[1] <= a[3]


@dataclass
class GlyphBox:
    """A positioned piece of text in top-left page points."""

    x0: float
    y0: float
    x1: float
    y1: float
    text: str = ""
    origin: str = "text"  # "text" (PDF text layer) | "ocr"
    fontname: str = ""

    def width(self) -> float:
        return self.x1 - self.x0

    def height(self) -> float:
        return self.y1 - self.y0

    def area(self) -> float:
        return max(0.0, self.width()) * max(0.0, self.height())

    def bbox(self) -> BBox:
        return (self.x0, self.y0, self.x1, self.y1)

    def union(self, other: "GlyphBox") -> "GlyphBox":
        """Smallest box covering both; text is concatenated."""
        return GlyphBox(
            x0=min(self.x0, other.x0),
            y0=min(self.y0, other.y0),
            x1=max(self.x1, other.x1),
            y1=max(self.y1, other.y1),
            text=self.text + other.text,
            origin=self.origin,
            fontname=self.fontname,
        )


@dataclass(frozen=True)
class Stroke:
    """A stroked path's bounds in PDF space (origin bottom-left)."""

    x0: float
    y0: float
    x1: float
    y1: float

    def bounds(self) -> Tuple[int, int, int, int]:
        """Integer ``(x, y, width, height)`` enclosing the stroke."""
        x = math.floor(min(self.x0, self.x1))
        y = math.floor(min(self.y0, self.y1))
        right = math.ceil(max(self.x0, self.x1))
        top = math.ceil(max(self.y0, self.y1))
        return (x, y, right - x, top - y)


class Orientation(str, Enum):
    horizontal = "horizontal"
    vertical = "vertical"


@dataclass(frozen=True)
class GridLine:
    """One table border, 1 pt thick unless stated otherwise.

    *position* is the governing coordinate (y for horizontal lines,
    x for vertical lines); *start*/*span* run along the other axis.
    """

    orientation: Orientation
    position: int
    start: int
    span: int
    thickness: int = 1
    synthetic: bool = False

    @property
    def boundary(self) -> int:
        """Cell boundary through the middle of the line's thickness."""
        return int(self.position + self.thickness / 2)


@dataclass(frozen=True)
class Cell:
    """One menu slot of the table, bbox in top-left page points."""

    index: int
    row: int
    column: int
    x0: float
    top: float
    x1: float
    bottom: float

    def bbox(self) -> BBox:
        return (self.x0, self.top, self.x1, self.bottom)

    def width(self) -> float:
        return self.x1 - self.x0

    def height(self) -> float:
        return self.bottom - self.top

    def scaled(self, factor: float) -> BBox:
        """Bbox in pixel space of a page raster rendered at *factor*."""
        return (
            self.x0 * factor,
            self.top * factor,
            self.x1 * factor,
            self.bottom * factor,
        )


@dataclass
class MenuGrid:
    """Ordered grid lines plus the row-major cell array they bound."""

    horizontals: List[GridLine]
    verticals: List[GridLine]
    cells: List[Cell] = field(default_factory=list)

    @property
    def rows(self) -> int:
        return len(self.horizontals) - 1

    @property
    def columns(self) -> int:
        """Number of columns (vertical lines incl. the synthetic one, minus one)."""
        return len(self.verticals) - 1

    def cell(self, index: int) -> Cell:
        return self.cells[index]

    def extent(self) -> BBox:
        """Box spanned by the outermost cell boundaries."""
        return (
            self.verticals[0].boundary,
            self.horizontals[0].boundary,
            self.verticals[-1].boundary,
            self.horizontals[-1].boundary,
        )


@dataclass
class PlacedImage:
    """An embedded raster image and where the page draws it.

    ``x``/``y`` come from the CTM translation and ``width``/``height``
    from its scale, in PDF space (origin bottom-left).
    """

    x: float
    y: float
    width: float
    height: float
    image: Image.Image
    name: str = ""

    def flipped(self, page_height: float) -> BBox:
        """Placement as a top-left ``(x0, top, x1, bottom)`` box."""
        top = page_height - self.y - self.height
        return (self.x, top, self.x + self.width, top + self.height)


@dataclass
class RawCellText:
    """Title/body text of one cell as produced by an extraction path."""

    index: int
    title: str
    body: str


@dataclass(frozen=True)
class PriceEntry:
    """Price of a menu for one customer group (e.g. ``INT 7.50``)."""

    group: str
    price: str

    def to_dict(self) -> Dict[str, str]:
        return {"group": self.group, "price": self.price}


class MenuLabel(str, Enum):
    """Dietary labels; the value is the reference icon's file stem."""

    VEGETARIAN = "vegetarian"
    VEGAN = "vegan"
    ONECLIMATE = "oneclimate"


@dataclass(frozen=True)
class MenuRecord:
    """A finished menu: the unit of output."""

    title: str
    prices: Tuple[PriceEntry, ...]
    description: str
    date: date
    group: int
    label: Optional[MenuLabel] = None
    cell_index: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the record to a JSON-compatible dict."""
        return {
            "title": self.title,
            "prices": [p.to_dict() for p in self.prices],
            "description": self.description,
            "date": self.date.isoformat(),
            "group": self.group,
            "label": self.label.value if self.label else None,
            "cell_index": self.cell_index,
        }


@dataclass
class Diagnostic:
    """A recoverable problem met while parsing (cell skipped or unlabelled)."""

    kind: str  # "title_not_found" | "ocr_failed" | "unknown_icon" | ...
    message: str
    cell_index: Optional[int] = None
    artifact: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.cell_index is not None:
            d["cell_index"] = self.cell_index
        if self.artifact:
            d["artifact"] = self.artifact
        return d


@dataclass
class MenuWeek:
    """All menus parsed from one weekly document."""

    week_date: date
    strategy: str
    menus: List[MenuRecord] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    unknown_icons: int = 0  # size of the parser's unknown-icon pool
    stages: Dict[str, Any] = field(default_factory=dict)

    @property
    def degraded(self) -> bool:
        """True when at least one cell was skipped or left unlabelled."""
        return bool(self.diagnostics)

    def menus_for_day(self, weekday: int) -> List[MenuRecord]:
        """Menus served on ISO *weekday* (1 = Monday … 7 = Sunday)."""
        if weekday < 1 or weekday > 7:
            raise ValueError(f"weekday={weekday} must be a valid ISO day index")
        return [m for m in self.menus if m.date.isoweekday() == weekday]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the week to a JSON-compatible dict."""
        return {
            "week_date": self.week_date.isoformat(),
            "strategy": self.strategy,
            "menus": [m.to_dict() for m in self.menus],
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "unknown_icons": self.unknown_icons,
            "stages": {k: v.to_dict() for k, v in self.stages.items()},
        }
