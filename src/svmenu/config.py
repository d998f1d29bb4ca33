from dataclasses import dataclass
from typing import Optional, Tuple


class ConfigValidationError(ValueError):
    """Raised when a ParserConfig field has an invalid value."""


def _check_range(name: str, value: float, lo: float, hi: float) -> None:
    if not (lo <= value <= hi):
        raise ConfigValidationError(f"{name}={value} out of range [{lo}, {hi}]")


def _check_positive(name: str, value: float) -> None:
    if value <= 0:
        raise ConfigValidationError(f"{name}={value} must be > 0")


def _check_non_negative(name: str, value: float) -> None:
    if value < 0:
        raise ConfigValidationError(f"{name}={value} must be >= 0")


@dataclass
class ParserConfig:
    """Tunables for menu-table parsing."""

    # ── Text layer ─────────────────────────────────────────────────────
    # Narrow encoding the text layer must fit into; characters outside it
    # come from the vendor's custom title font.
    encoding: str = "latin-1"
    # Separator drawn between a cell's title and its body.
    title_separator: str = "\u2014"
    # Substitution table file ("<code> <letter>" per line).  None = empty table.
    glyph_map_path: Optional[str] = None

    # ── Rendering / OCR fallback ───────────────────────────────────────
    # Page raster scale (pixels per PDF point).  3 → 216 DPI.
    render_scale: int = 3
    # Upscale factor applied to a cropped title region before recognition.
    title_scale: int = 2
    # Page downscale factor used when locating the header line.
    header_downscale: float = 0.25
    # A header candidate must be wider than this multiple of its height.
    header_aspect_ratio: float = 3.0
    # Pixels added around the non-encodable glyph box of a title.
    title_margin_px: int = 10
    # Pixels between the bottom of the title and the start of the body.
    body_gap_px: int = 5
    # Upper bound on concurrent per-cell recognition tasks.  Planning and
    # result collection overlap, but PaddleRecognizer holds a per-engine
    # lock around predict, so at most one recognition runs at a time.
    ocr_max_workers: int = 4
    # Minimum recogniser confidence (0-1) for a text line to be kept.
    ocr_min_confidence: float = 0.3
    # PaddleOCR model tier ("mobile" | "server") and pipeline switches.
    vocr_model_tier: str = "mobile"
    vocr_use_orientation_classify: bool = False
    vocr_use_doc_unwarping: bool = False
    vocr_use_textline_orientation: bool = False

    # ── Labels ─────────────────────────────────────────────────────────
    # Directory holding one "<label>.png" reference icon per MenuLabel.
    icons_dir: Optional[str] = None
    # Minimum similarity (0-1) for an icon to be assigned a label.
    label_accuracy: float = 0.8
    # Opaque background transparent icon pixels are flattened onto.
    icon_background: Tuple[int, int, int] = (0, 0, 0)

    # ── Diagnostics ────────────────────────────────────────────────────
    # Write annotated snapshots / unknown icons when detection fails.
    write_diagnostics: bool = True
    errors_dir: str = "errors"

    @property
    def render_resolution(self) -> int:
        """DPI matching :attr:`render_scale` (72 pts per inch)."""
        return 72 * self.render_scale

    def __post_init__(self) -> None:
        """Validate field ranges to catch misconfiguration early."""
        for name in ("label_accuracy", "ocr_min_confidence"):
            _check_range(name, getattr(self, name), 0.0, 1.0)

        if not (0.0 < self.header_downscale <= 1.0):
            raise ConfigValidationError(
                f"header_downscale={self.header_downscale} out of range (0, 1]"
            )
        _check_positive("header_aspect_ratio", self.header_aspect_ratio)

        for name in ("render_scale", "title_scale", "ocr_max_workers"):
            val = getattr(self, name)
            if val < 1:
                raise ConfigValidationError(f"{name}={val} must be >= 1")

        for name in ("title_margin_px", "body_gap_px"):
            _check_non_negative(name, getattr(self, name))

        if len(self.title_separator) != 1:
            raise ConfigValidationError(
                f"title_separator={self.title_separator!r} must be one character"
            )

        try:
            "".encode(self.encoding)
        except LookupError as exc:
            raise ConfigValidationError(f"encoding={self.encoding!r} unknown") from exc

        if len(self.icon_background) != 3 or not all(
            0 <= c <= 255 for c in self.icon_background
        ):
            raise ConfigValidationError(
                f"icon_background={self.icon_background} must be an RGB triple"
            )

        if self.vocr_model_tier not in ("mobile", "server"):
            raise ConfigValidationError(
                f"vocr_model_tier={self.vocr_model_tier!r} must be 'mobile' or 'server'"
            )
