"""Tests for svmenu.vocr.recognize — PaddleOCR output parsing and paragraphs."""

from __future__ import annotations

import threading
from unittest.mock import MagicMock, patch

import pytest
from conftest import make_cfg
from PIL import Image

from svmenu.vocr import PARAGRAPH, PaddleRecognizer, TextLine, group_paragraphs
from svmenu.vocr.recognize import RECOGNITION_MODEL, engine_options


def _poly(x0, y0, x1, y1):
    return [[x0, y0], [x1, y0], [x1, y1], [x0, y1]]


def _engine(polys, texts, scores):
    engine = MagicMock()
    engine.predict.return_value = [
        {"dt_polys": polys, "rec_texts": texts, "rec_scores": scores}
    ]
    return engine


class TestPaddleRecognizer:
    def test_lines_parsed_and_sorted(self):
        engine = _engine(
            [_poly(10, 40, 90, 55), _poly(10, 5, 120, 20)],
            ["second", "first"],
            [0.9, 0.95],
        )
        lines = PaddleRecognizer(make_cfg(), engine).recognize(Image.new("RGB", (200, 100)))
        assert [ln.text for ln in lines] == ["first", "second"]
        assert (lines[0].x0, lines[0].y0, lines[0].x1, lines[0].y1) == (10, 5, 120, 20)
        assert lines[0].confidence == pytest.approx(0.95)

    def test_low_confidence_and_empty_dropped(self):
        engine = _engine(
            [_poly(0, 0, 10, 10), _poly(0, 20, 10, 30), _poly(0, 40, 10, 50)],
            ["keep", "", "noise"],
            [0.9, 0.9, 0.1],
        )
        lines = PaddleRecognizer(make_cfg(ocr_min_confidence=0.3), engine).recognize(
            Image.new("RGB", (20, 60))
        )
        assert [ln.text for ln in lines] == ["keep"]

    def test_attribute_style_results(self):
        result = MagicMock(spec=["dt_polys", "rec_texts", "rec_scores"])
        result.dt_polys = [_poly(0, 0, 10, 10)]
        result.rec_texts = ["attr"]
        result.rec_scores = [0.99]
        engine = MagicMock()
        engine.predict.return_value = [result]
        lines = PaddleRecognizer(make_cfg(), engine).recognize(Image.new("RGB", (20, 20)))
        assert [ln.text for ln in lines] == ["attr"]

    def test_image_passed_as_rgb_array(self):
        engine = _engine([], [], [])
        PaddleRecognizer(make_cfg(), engine).recognize(Image.new("L", (30, 20)))
        arr = engine.predict.call_args[0][0]
        assert arr.shape == (20, 30, 3)

    def test_paragraph_level_merges(self):
        engine = _engine(
            [_poly(0, 0, 100, 20), _poly(0, 24, 80, 44)],
            ["SPAGHETTI", "BOLOGNESE"],
            [0.9, 0.9],
        )
        paras = PaddleRecognizer(make_cfg(), engine).recognize(
            Image.new("RGB", (120, 60)), level=PARAGRAPH
        )
        assert [p.text for p in paras] == ["SPAGHETTI BOLOGNESE"]

    def test_unknown_level_rejected(self):
        with pytest.raises(ValueError, match="level"):
            PaddleRecognizer(make_cfg(), _engine([], [], [])).recognize(
                Image.new("RGB", (2, 2)), level="word"
            )

    def test_predict_calls_serialised(self):
        active = []
        overlap = []

        def predict(arr):
            active.append(1)
            if len(active) > 1:
                overlap.append(True)
            threading.Event().wait(0.01)
            active.pop()
            return []

        engine = MagicMock()
        engine.predict.side_effect = predict
        rec = PaddleRecognizer(make_cfg(), engine)
        threads = [
            threading.Thread(target=rec.recognize, args=(Image.new("RGB", (4, 4)),))
            for _ in range(4)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert engine.predict.call_count == 4
        assert overlap == []


class TestGroupParagraphs:
    def test_far_apart_lines_stay_separate(self):
        lines = [
            TextLine(0, 0, 100, 20, "A"),
            TextLine(0, 80, 100, 100, "B"),
        ]
        assert [p.text for p in group_paragraphs(lines)] == ["A", "B"]

    def test_non_overlapping_columns_stay_separate(self):
        lines = [
            TextLine(0, 0, 50, 20, "left"),
            TextLine(200, 22, 260, 42, "right"),
        ]
        assert len(group_paragraphs(lines)) == 2

    def test_merged_box_and_confidence(self):
        lines = [
            TextLine(10, 0, 100, 20, "A", 0.9),
            TextLine(0, 25, 90, 45, "B", 0.7),
        ]
        (para,) = group_paragraphs(lines)
        assert (para.x0, para.y0, para.x1, para.y1) == (0, 0, 100, 45)
        assert para.confidence == 0.7

    def test_empty(self):
        assert group_paragraphs([]) == []


@pytest.fixture
def fake_paddleocr():
    module = MagicMock()
    module.PaddleOCR.side_effect = lambda **kw: MagicMock(kwargs=kw)
    saved = dict(PaddleRecognizer._engines)
    PaddleRecognizer._engines.clear()
    PaddleRecognizer._locks.clear()
    with patch.dict("sys.modules", {"paddleocr": module}):
        yield module
    PaddleRecognizer._engines.clear()
    PaddleRecognizer._locks.clear()
    PaddleRecognizer._engines.update(saved)


class TestEngineOptions:
    def test_both_tiers_recognise_latin(self):
        mobile = engine_options(make_cfg())
        server = engine_options(make_cfg(vocr_model_tier="server"))
        assert mobile["text_recognition_model_name"] == RECOGNITION_MODEL
        assert server["text_recognition_model_name"] == RECOGNITION_MODEL
        assert RECOGNITION_MODEL.startswith("latin_")

    def test_tier_selects_detector(self):
        assert (
            engine_options(make_cfg(vocr_model_tier="server"))["text_detection_model_name"]
            == "PP-OCRv5_server_det"
        )
        assert (
            engine_options(make_cfg())["text_detection_model_name"]
            == "PP-OCRv5_mobile_det"
        )

    def test_pipeline_switches_passed_through(self):
        opts = engine_options(
            make_cfg(vocr_use_doc_unwarping=True, vocr_use_textline_orientation=True)
        )
        assert opts["use_doc_unwarping"] is True
        assert opts["use_textline_orientation"] is True
        assert opts["use_doc_orientation_classify"] is False


class TestSharedEngine:
    def test_engine_built_lazily(self, fake_paddleocr):
        rec = PaddleRecognizer(make_cfg())
        assert fake_paddleocr.PaddleOCR.call_count == 0
        assert rec.engine.kwargs["text_recognition_model_name"] == RECOGNITION_MODEL
        assert fake_paddleocr.PaddleOCR.call_count == 1

    def test_same_options_share_engine_and_lock(self, fake_paddleocr):
        a = PaddleRecognizer(make_cfg())
        b = PaddleRecognizer(make_cfg(label_accuracy=0.5))
        assert a.engine is b.engine
        assert a._lock is b._lock
        assert fake_paddleocr.PaddleOCR.call_count == 1

    def test_new_tier_gets_new_engine(self, fake_paddleocr):
        mobile = PaddleRecognizer(make_cfg()).engine
        server = PaddleRecognizer(make_cfg(vocr_model_tier="server")).engine
        assert mobile is not server
        assert fake_paddleocr.PaddleOCR.call_count == 2

    def test_recognize_uses_shared_engine(self, fake_paddleocr):
        rec = PaddleRecognizer(make_cfg())
        rec.engine.predict.return_value = []
        assert rec.recognize(Image.new("RGB", (4, 4))) == []
        rec.engine.predict.assert_called_once()
