"""Exception taxonomy for menu parsing.

Structural errors abort the whole document; :class:`TitleRegionNotFound`
is raised per cell and caught by the OCR stage.
"""


class MenuParseError(Exception):
    """Base class for failures while parsing a menu document."""


class GridStructureError(MenuParseError):
    """The stroke geometry does not form a usable table."""


class TextStructureError(MenuParseError):
    """A cell's text does not split into exactly one title and one body."""


class DateExtractionError(MenuParseError):
    """No week date could be found in the document header."""


class TitleRegionNotFound(MenuParseError):
    """A cell has no non-encodable glyphs marking its title (OCR path)."""

    def __init__(self, cell_index: int) -> None:
        super().__init__(f"no title glyphs found in cell {cell_index}")
        self.cell_index = cell_index
