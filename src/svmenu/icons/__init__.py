"""Icon stage — embedded label icons and their classification.

Public API
----------
- :func:`extract_page_images` — decoded, flattened images with placement
- :func:`similarity` — normalised RGB difference score of two bitmaps
- :func:`load_label_references` — reference icon per dietary label
- :class:`IconClassifier` — label a cell from the icons drawn inside it
- :class:`UnknownIconPool` — deduplicated low-confidence icons
"""

from .classify import (
    IconClassifier,
    LabelMatch,
    UnknownIconPool,
    load_label_references,
    similarity,
)
from .extract import ImageEncoding, decode_image, extract_page_images, flatten

__all__ = [
    "IconClassifier",
    "ImageEncoding",
    "LabelMatch",
    "UnknownIconPool",
    "decode_image",
    "extract_page_images",
    "flatten",
    "load_label_references",
    "similarity",
]
