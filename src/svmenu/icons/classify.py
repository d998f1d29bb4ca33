"""Icon classification — label a cell by comparing its icon to references.

Similarity is ``1 - sum(|ΔR| + |ΔG| + |ΔB|) / (765 * w * h)`` after the
smaller image is resized to the size of the larger one, so identical
bitmaps score 1.0 and the score does not depend on argument order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import numpy as np
from PIL import Image

from ..models import Cell, MenuLabel, PlacedImage, bboxes_intersect

log = logging.getLogger(__name__)

LabelReferences = Dict[MenuLabel, Image.Image]


def similarity(a: Image.Image, b: Image.Image) -> float:
    """Pixel similarity of two bitmaps in ``[0, 1]``."""
    a = a.convert("RGB")
    b = b.convert("RGB")
    area_a = a.width * a.height
    area_b = b.width * b.height
    # Resize the smaller to the larger; ties broken by size tuple so the
    # choice is the same whichever way round the images are passed.
    if (area_a, a.size) < (area_b, b.size):
        a = a.resize(b.size)
    elif (area_a, a.size) > (area_b, b.size):
        b = b.resize(a.size)
    w, h = a.size
    if w == 0 or h == 0:
        return 0.0
    diff = np.abs(
        np.asarray(a, dtype=np.int32) - np.asarray(b, dtype=np.int32)
    ).sum()
    return 1.0 - float(diff) / (765.0 * w * h)


def load_label_references(icons_dir) -> LabelReferences:
    """Load ``<label>.png`` for every :class:`MenuLabel` in *icons_dir*.

    Missing or unreadable files are logged and skipped; the label is then
    simply never assigned.
    """
    refs: LabelReferences = {}
    if icons_dir is None:
        return refs
    base = Path(icons_dir)
    for label in MenuLabel:
        path = base / f"{label.value}.png"
        if not path.is_file():
            log.warning("No reference icon for label %s at %s", label.value, path)
            continue
        try:
            with Image.open(path) as img:
                refs[label] = img.convert("RGB")
        except OSError as exc:
            log.warning("Cannot read reference icon %s: %s", path, exc)
    log.info("Loaded %d label reference icons", len(refs))
    return refs


class UnknownIconPool:
    """Distinct icons that matched no reference well enough.

    Owned by one parser and grows across documents, so each new icon is
    reported once rather than once per cell.
    """

    def __init__(self) -> None:
        self.icons: List[Image.Image] = []

    def __len__(self) -> int:
        return len(self.icons)

    def offer(self, image: Image.Image, threshold: float) -> bool:
        """Add *image* unless an entry already scores above *threshold*."""
        for known in self.icons:
            if similarity(known, image) > threshold:
                return False
        self.icons.append(image)
        return True


@dataclass
class LabelMatch:
    """Outcome of classifying one cell."""

    label: Optional[MenuLabel] = None
    score: Optional[float] = None
    candidate: Optional[Image.Image] = None
    new_unknown: bool = False

    @property
    def unknown(self) -> bool:
        """A candidate icon exists but matched no reference."""
        return self.label is None and self.candidate is not None


class IconClassifier:
    """Best-reference matcher for the icons placed inside a cell."""

    def __init__(
        self,
        references: LabelReferences,
        accuracy: float = 0.8,
        pool: Optional[UnknownIconPool] = None,
    ) -> None:
        self.references = references
        self.accuracy = accuracy
        self.pool = pool if pool is not None else UnknownIconPool()

    def classify(
        self, cell: Cell, images: Sequence[PlacedImage], page_height: float
    ) -> LabelMatch:
        best_score: Optional[float] = None
        best_label: Optional[MenuLabel] = None
        best_image: Optional[Image.Image] = None
        for placed in images:
            if not bboxes_intersect(placed.flipped(page_height), cell.bbox()):
                continue
            for label, ref in self.references.items():
                score = similarity(placed.image, ref)
                if best_score is None or score > best_score:
                    best_score, best_label, best_image = score, label, placed.image

        if best_score is None:
            return LabelMatch()
        if best_score >= self.accuracy:
            log.debug(
                "Cell %d: %s (%.3f)", cell.index, best_label.value, best_score
            )
            return LabelMatch(label=best_label, score=best_score, candidate=best_image)

        added = self.pool.offer(best_image, self.accuracy)
        if added:
            log.warning(
                "Cell %d: unknown icon (best %.3f < %.2f), pooled for review",
                cell.index,
                best_score,
                self.accuracy,
            )
        return LabelMatch(score=best_score, candidate=best_image, new_unknown=added)
