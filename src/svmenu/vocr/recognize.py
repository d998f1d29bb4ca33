"""Text recognition on rasterised regions.

:class:`PaddleRecognizer` adapts PaddleOCR's ``predict`` output (polygons,
texts and scores) to plain :class:`TextLine` boxes in image pixels.  Any
object with the same ``recognize`` signature can stand in for it.
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

import numpy as np
from PIL import Image

from ..config import ParserConfig

log = logging.getLogger(__name__)

LINE = "line"
PARAGRAPH = "paragraph"


@dataclass
class TextLine:
    """A recognised line (or merged paragraph) in image pixels."""

    x0: float
    y0: float
    x1: float
    y1: float
    text: str
    confidence: float = 1.0

    @property
    def width(self) -> float:
        return self.x1 - self.x0

    @property
    def height(self) -> float:
        return self.y1 - self.y0


class TextRecognizer(Protocol):
    def recognize(self, image: Image.Image, level: str = LINE) -> List[TextLine]:
        ...


def _result_field(page_result, name: str):
    if hasattr(page_result, "get"):
        return page_result.get(name)
    return getattr(page_result, name, None)


def _overlaps_horizontally(a: TextLine, b: TextLine) -> bool:
    return a.x0 <= b.x1 and b.x0 <= a.x1


def group_paragraphs(lines: List[TextLine], gap_factor: float = 0.75) -> List[TextLine]:
    """Merge vertically adjacent, horizontally overlapping lines.

    A line joins the paragraph above it when the gap between them is at
    most *gap_factor* times the line's height.  Texts are joined with a
    space in reading order.
    """
    paragraphs: List[TextLine] = []
    for line in sorted(lines, key=lambda ln: (ln.y0, ln.x0)):
        para = paragraphs[-1] if paragraphs else None
        if (
            para is not None
            and line.y0 - para.y1 <= gap_factor * line.height
            and _overlaps_horizontally(para, line)
        ):
            paragraphs[-1] = TextLine(
                x0=min(para.x0, line.x0),
                y0=para.y0,
                x1=max(para.x1, line.x1),
                y1=max(para.y1, line.y1),
                text=f"{para.text} {line.text}",
                confidence=min(para.confidence, line.confidence),
            )
        else:
            paragraphs.append(line)
    return paragraphs


# Menus are German/French: both tiers recognise with the latin model and
# differ only in the detector.
_DETECTION_MODELS: Dict[str, str] = {
    "mobile": "PP-OCRv5_mobile_det",
    "server": "PP-OCRv5_server_det",
}
RECOGNITION_MODEL = "latin_PP-OCRv5_mobile_rec"


def engine_options(cfg: ParserConfig) -> Dict[str, Any]:
    """Keyword arguments for ``PaddleOCR`` derived from *cfg*."""
    return {
        "text_detection_model_name": _DETECTION_MODELS[cfg.vocr_model_tier],
        "text_recognition_model_name": RECOGNITION_MODEL,
        "use_doc_orientation_classify": cfg.vocr_use_orientation_classify,
        "use_doc_unwarping": cfg.vocr_use_doc_unwarping,
        "use_textline_orientation": cfg.vocr_use_textline_orientation,
    }


class PaddleRecognizer:
    """PaddleOCR-backed :class:`TextRecognizer`.

    Engines are built on first use and shared by every recogniser with the
    same :func:`engine_options`, so loading models happens once per
    process.  An engine is not safe to call from several threads at once:
    ``predict`` runs under a per-engine lock, which also caps the OCR
    fan-out at one recognition in flight per engine.
    """

    _engines: Dict[tuple, Any] = {}
    _locks: Dict[tuple, threading.Lock] = {}
    _build_lock = threading.Lock()

    def __init__(self, cfg: Optional[ParserConfig] = None, engine=None) -> None:
        self.cfg = cfg or ParserConfig()
        self._engine = engine
        self._lock = threading.Lock() if engine is not None else None

    @property
    def engine(self):
        if self._engine is None:
            self._engine, self._lock = self._shared_engine(engine_options(self.cfg))
        return self._engine

    @classmethod
    def _shared_engine(cls, options: Dict[str, Any]):
        key = tuple(sorted(options.items()))
        with cls._build_lock:
            if key not in cls._engines:
                os.environ.setdefault("PADDLE_PDX_DISABLE_MODEL_SOURCE_CHECK", "True")
                from paddleocr import PaddleOCR

                log.info(
                    "Loading PaddleOCR (%s, %s)",
                    options["text_detection_model_name"],
                    options["text_recognition_model_name"],
                )
                cls._engines[key] = PaddleOCR(**options)
                cls._locks[key] = threading.Lock()
            return cls._engines[key], cls._locks[key]

    def _predict(self, image: Image.Image) -> List[TextLine]:
        if image.mode != "RGB":
            image = image.convert("RGB")
        arr = np.asarray(image)
        engine = self.engine
        with self._lock:
            results = list(engine.predict(arr))

        lines: List[TextLine] = []
        min_conf = self.cfg.ocr_min_confidence
        for page_result in results:
            polys = _result_field(page_result, "dt_polys")
            texts = _result_field(page_result, "rec_texts")
            scores = _result_field(page_result, "rec_scores")
            if polys is None or texts is None or scores is None:
                continue
            for poly, text, conf in zip(polys, texts, scores):
                if not text or conf < min_conf:
                    continue
                xs = [p[0] for p in poly]
                ys = [p[1] for p in poly]
                lines.append(
                    TextLine(
                        x0=float(min(xs)),
                        y0=float(min(ys)),
                        x1=float(max(xs)),
                        y1=float(max(ys)),
                        text=text,
                        confidence=float(conf),
                    )
                )
        return lines

    def recognize(self, image: Image.Image, level: str = LINE) -> List[TextLine]:
        """Recognise *image* at ``"line"`` or ``"paragraph"`` granularity."""
        if level not in (LINE, PARAGRAPH):
            raise ValueError(f"unknown recognition level {level!r}")
        lines = sorted(self._predict(image), key=lambda ln: (ln.y0, ln.x0))
        log.debug("Recognised %d lines", len(lines))
        if level == PARAGRAPH:
            return group_paragraphs(lines)
        return lines
