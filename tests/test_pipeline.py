"""Tests for svmenu.pipeline — strategy selection, stages, and MenuParser."""

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from conftest import (
    PAGE_HEIGHT,
    PAGE_WIDTH,
    FakeRecognizer,
    FakeTextLayer,
    make_cfg,
    make_glyph,
    placed_at,
    solid,
    table_strokes,
)
from PIL import Image

from svmenu.errors import DateExtractionError, GridStructureError, TextStructureError
from svmenu.glyphs import GlyphRemapper
from svmenu.ingest import PdfMeta
from svmenu.models import MenuLabel
from svmenu.pipeline import (
    ExtractionStrategy,
    MenuPage,
    MenuParser,
    StageResult,
    run_stage,
    select_strategy,
)
from svmenu.vocr import TextLine

DASH = "\u2014"
CUSTOM = "\ue040"
GREEN = (0, 200, 0)
RED = (255, 0, 0)


def _page(text_layer, images=(), render=None, xs=(0, 100, 200)) -> MenuPage:
    return MenuPage(
        width=PAGE_WIDTH,
        height=PAGE_HEIGHT,
        strokes=table_strokes(list(xs), [0, 50]),
        images=list(images),
        text_layer=text_layer,
        render=render or (lambda resolution: Image.new("RGB", (600, 150), "white")),
    )


def _text_layer_page(images=()) -> MenuPage:
    layer = FakeTextLayer(
        header="10.03. - 16.03.2025 Wochenmenu",
        cells={
            (5, 5, 95, 45): f"SPAGHETTI {DASH} Tomato sauce\nINT 7.50 EXT 9,80",
            (105, 5, 195, 45): f"CURRY {DASH} Rice INT 8.00",
        },
    )
    return _page(layer, images)


def _parser(**kw) -> MenuParser:
    kw.setdefault("references", {MenuLabel.VEGAN: solid(GREEN)})
    kw.setdefault("recognizer", FakeRecognizer())
    return MenuParser(kw.pop("cfg", make_cfg()), **kw)


# ── Strategy ───────────────────────────────────────────────────────────


class TestSelectStrategy:
    def test_encodable_header_uses_text_layer(self):
        assert (
            select_strategy("10.03. - 16.03.2025 Menü", GlyphRemapper())
            is ExtractionStrategy.TEXT_LAYER
        )

    def test_custom_glyph_header_uses_ocr(self):
        assert select_strategy(f"{CUSTOM}enu", GlyphRemapper()) is ExtractionStrategy.OCR

    def test_remapped_header_uses_text_layer(self):
        remapper = GlyphRemapper({CUSTOM: "M"})
        assert select_strategy(f"{CUSTOM}enu", remapper) is ExtractionStrategy.TEXT_LAYER


# ── Stage bookkeeping ──────────────────────────────────────────────────


class TestRunStage:
    def test_success_recorded(self):
        stages = {}
        with run_stage("grid", stages) as sr:
            sr.counts["cells"] = 4
        assert stages["grid"].status == "success"
        assert stages["grid"].to_dict()["counts"] == {"cells": 4}

    def test_failure_recorded_and_reraised(self):
        stages = {}
        with pytest.raises(GridStructureError):
            with run_stage("grid", stages):
                raise GridStructureError("no strokes")
        sr = stages["grid"]
        assert sr.status == "failed"
        assert sr.error["type"] == "GridStructureError"
        assert "error" in sr.to_dict()

    def test_to_dict_minimal(self):
        d = StageResult(stage="segment").to_dict()
        assert d == {"stage": "segment", "status": "success", "duration_ms": 0}

    def test_stage_recorded_before_body_runs(self):
        stages = {}
        with run_stage("extract", stages) as sr:
            assert stages["extract"] is sr
        assert set(sr.to_dict()) == {"stage", "status", "duration_ms"}


# ── Text-layer path ────────────────────────────────────────────────────


class TestParseTextLayer:
    def test_records(self):
        week = _parser().parse_page(_text_layer_page())
        assert week.strategy == "text_layer"
        assert week.week_date == date(2025, 3, 10)
        assert [m.title for m in week.menus] == ["Spaghetti", "Curry"]
        first, second = week.menus
        assert first.description == "Tomato sauce"
        assert [(p.group, p.price) for p in first.prices] == [("INT", "7.50"), ("EXT", "9.80")]
        assert first.date == date(2025, 3, 10)
        assert second.date == date(2025, 3, 11)
        assert first.group == second.group == 0
        assert set(week.stages) == {"grid", "extract", "segment"}
        assert not week.degraded

    def test_labels_and_unknown_icons(self, tmp_path):
        cfg = make_cfg(write_diagnostics=True, errors_dir=str(tmp_path))
        icons = [placed_at(solid(GREEN), 10, 10), placed_at(solid(RED), 110, 10)]
        parser = _parser(cfg=cfg)
        week = parser.parse_page(_text_layer_page(icons))
        assert [m.label for m in week.menus] == [MenuLabel.VEGAN, None]
        assert [(d.kind, d.cell_index) for d in week.diagnostics] == [("unknown_icon", 1)]
        assert week.unknown_icons == 1
        assert len(parser.unknown_icons) == 1
        assert (tmp_path / "unknown-icon-1.png").exists()

    def test_unknown_pool_spans_documents(self):
        parser = _parser()
        icons = [placed_at(solid(RED), 10, 10), placed_at(solid(RED), 110, 10)]
        parser.parse_page(_text_layer_page(icons))
        week = parser.parse_page(_text_layer_page(icons))
        assert len(parser.unknown_icons) == 1
        assert week.unknown_icons == 1
        assert all(d.artifact is None for d in week.diagnostics)

    def test_bad_cell_fails_document(self):
        layer = FakeTextLayer(
            header="10.03. - 16.03.2025",
            cells={(5, 5, 95, 45): "SPAGHETTI", (105, 5, 195, 45): f"A {DASH} b"},
        )
        with pytest.raises(TextStructureError):
            _parser().parse_page(_page(layer))

    def test_missing_header_date(self):
        layer = FakeTextLayer(header="Wochenmenu", cells={})
        stages = {}
        with pytest.raises(DateExtractionError):
            _parser().parse_page(_page(layer), stages)
        assert stages["extract"].status == "failed"

    def test_no_strokes(self):
        page = _text_layer_page()
        page.strokes = []
        with pytest.raises(GridStructureError):
            _parser().parse_page(page)


# ── OCR path ──────────────────────────────────────────────────────────


class TestParseOcr:
    def _recognizer(self):
        return FakeRecognizer(
            by_size={
                (150, 37): [TextLine(5, 2, 140, 12, "KW 11: 10.03. - 16.03.2025")],
                (280, 100): [TextLine(0, 0, 200, 40, "PASTA")],
            }
        )

    def _layer(self):
        return FakeTextLayer(
            header=f"{CUSTOM}{CUSTOM} 10.03. - 16.03.2025",
            cells={(5, 20, 95, 40): "Tomato sauce INT 7.50"},
            glyphs=[make_glyph(10, 5, 50, 15, CUSTOM)],
        )

    def test_cell_without_title_skipped(self):
        rendered = []

        def render(resolution):
            rendered.append(resolution)
            return Image.new("RGB", (600, 150), "white")

        parser = _parser(recognizer=self._recognizer())
        week = parser.parse_page(_page(self._layer(), render=render))
        assert rendered == [216]
        assert week.strategy == "ocr"
        assert week.week_date == date(2025, 3, 10)
        assert len(week.menus) == 1
        menu = week.menus[0]
        assert (menu.title, menu.description, menu.cell_index) == ("PASTA", "Tomato sauce", 0)
        assert [(d.kind, d.cell_index) for d in week.diagnostics] == [("title_not_found", 1)]
        assert week.degraded
        assert week.stages["extract"].counts["skipped"] == 1

    def test_glyph_table_avoids_ocr(self):
        parser = _parser(remapper=GlyphRemapper({CUSTOM: "M"}))
        layer = self._layer()
        layer.cells = {
            (5, 5, 95, 45): f"{CUSTOM}ENU {DASH} Soup",
            (105, 5, 195, 45): f"PASTA {DASH} Tomato",
        }
        week = parser.parse_page(_page(layer))
        assert week.strategy == "text_layer"
        assert [m.title for m in week.menus] == ["Menu", "Pasta"]
        assert parser.recognizer.calls == []


# ── Construction and document entry point ─────────────────────────────


class TestMenuParser:
    def test_defaults_load_from_config(self, tmp_path):
        (tmp_path / "glyphs.txt").write_text(f"{CUSTOM} M\n", encoding="utf-8")
        solid(GREEN).save(tmp_path / "vegan.png")
        cfg = make_cfg(glyph_map_path=str(tmp_path / "glyphs.txt"), icons_dir=str(tmp_path))
        parser = MenuParser(cfg)
        assert parser.remapper.process(CUSTOM) == "M"
        assert set(parser.classifier.references) == {MenuLabel.VEGAN}
        assert parser.classifier.accuracy == cfg.label_accuracy

    def test_recognizer_created_lazily(self):
        parser = MenuParser(make_cfg(), references={})
        with patch("svmenu.pipeline.PaddleRecognizer") as cls:
            first = parser.recognizer
            second = parser.recognizer
        assert first is second
        cls.assert_called_once_with(parser.cfg)

    def test_parse_uses_first_page(self, caplog):
        meta = PdfMeta(path=Path("/data/menu.pdf"), num_pages=2)
        first, second = MagicMock(name="page0"), MagicMock(name="page1")
        mock_pdf = MagicMock()
        mock_pdf.pages = [first, second]
        mock_pdf.__enter__ = MagicMock(return_value=mock_pdf)
        mock_pdf.__exit__ = MagicMock(return_value=False)
        parser = _parser()

        with patch("svmenu.pipeline.ingest_pdf", return_value=meta), patch(
            "svmenu.pipeline.pdfplumber.open", return_value=mock_pdf
        ), patch.object(
            MenuPage, "from_pdfplumber", return_value=_text_layer_page()
        ) as from_page, caplog.at_level(logging.WARNING, logger="svmenu.pipeline"):
            week = parser.parse("/data/menu.pdf")

        from_page.assert_called_once_with(first, parser.cfg)
        assert "only the first is parsed" in caplog.text
        assert len(week.menus) == 2
        assert list(week.stages) == ["ingest", "grid", "extract", "segment"]
        assert week.to_dict()["stages"]["ingest"]["counts"] == {"pages": 2}


class TestMenuPage:
    def test_from_pdfplumber(self):
        page = MagicMock()
        page.width = PAGE_WIDTH
        page.height = PAGE_HEIGHT
        with patch("svmenu.pipeline.collect_strokes", return_value=["s"]), patch(
            "svmenu.pipeline.extract_page_images", return_value=["i"]
        ) as images, patch("svmenu.pipeline.render_page") as render:
            mp = MenuPage.from_pdfplumber(page, make_cfg(icon_background=(255, 255, 255)))
            mp.render(144)
        assert mp.strokes == ["s"]
        assert mp.images == ["i"]
        images.assert_called_once_with(page, (255, 255, 255))
        render.assert_called_once_with(page, 144)
        assert mp.text_layer.page is page
