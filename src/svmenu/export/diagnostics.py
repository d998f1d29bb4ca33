"""Diagnostic artefacts written when a document or cell cannot be parsed.

All files land in ``cfg.errors_dir``:

- ``nodate-<ms>.png`` — page snapshot with the header candidate outlined
- ``notitle-<ms>.png`` — page snapshot with the failing cell outlined
- ``unknown-icon-<n>.png`` — an icon that matched no reference label
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional, Tuple

from PIL import Image, ImageDraw, ImageFont

from ..models import BBox, MenuGrid

log = logging.getLogger(__name__)

HIGHLIGHT_COLOR = (0x21, 0xF6, 0xF6)
HIGHLIGHT_WIDTH = 3


def _load_font(size: int):
    try:
        return ImageFont.truetype("arial.ttf", size)
    except (OSError, IOError):
        return ImageFont.load_default()


def _artifact_path(errors_dir: Path | str, name: str) -> Path:
    out = Path(errors_dir)
    out.mkdir(parents=True, exist_ok=True)
    return out / name


def save_snapshot(
    image: Image.Image,
    box: Optional[BBox],
    errors_dir: Path | str,
    prefix: str,
) -> Path:
    """Save *image* with *box* (pixel coords) outlined as ``<prefix>-<ms>.png``."""
    img = image.convert("RGB")
    if box is not None:
        draw = ImageDraw.Draw(img)
        draw.rectangle(
            [box[0], box[1], box[2], box[3]],
            outline=HIGHLIGHT_COLOR,
            width=HIGHLIGHT_WIDTH,
        )
    path = _artifact_path(errors_dir, f"{prefix}-{int(time.time() * 1000)}.png")
    img.save(path, format="PNG")
    log.warning("Wrote diagnostic snapshot %s", path)
    return path


def save_unknown_icon(image: Image.Image, errors_dir: Path | str, number: int) -> Path:
    """Save an unrecognised icon as ``unknown-icon-<number>.png``."""
    path = _artifact_path(errors_dir, f"unknown-icon-{number}.png")
    image.save(path, format="PNG")
    log.info("Wrote unknown icon %s", path)
    return path


def draw_menu_bounds(
    page_image: Image.Image,
    grid: MenuGrid,
    scale: float = 1.0,
    out_path: Path | str | None = None,
    color: Tuple[int, int, int] = HIGHLIGHT_COLOR,
) -> Image.Image:
    """Outline every cell of *grid* on *page_image* and number it "Menu i".

    *scale* converts page points to image pixels.  When *out_path* is given
    the annotated image is also written there.
    """
    img = page_image.convert("RGB")
    draw = ImageDraw.Draw(img)
    font_size = max(10, int(8 * scale))
    font = _load_font(font_size)
    for cell in grid.cells:
        x0, y0, x1, y1 = cell.scaled(scale)
        draw.rectangle([x0, y0, x1, y1], outline=color, width=HIGHLIGHT_WIDTH)
        draw.text((x0 + 4, y0 + 4), f"Menu {cell.index}", fill=color, font=font)
    if out_path is not None:
        Path(out_path).parent.mkdir(parents=True, exist_ok=True)
        img.save(out_path, format="PNG")
    return img
