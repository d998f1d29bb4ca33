"""Parse one weekly menu PDF and print the result as JSON.

Usage:
    python scripts/run_menu_pdf.py menu.pdf --icons icons/ --glyph-map glyphs.txt
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from svmenu import MenuParseError, MenuParser, ParserConfig, draw_menu_bounds
from svmenu.grid import build_grid
from svmenu.pipeline import MenuPage


def _dump_bounds(pdf_path: Path, cfg: ParserConfig, out_path: Path) -> None:
    import pdfplumber

    with pdfplumber.open(pdf_path) as pdf:
        page = MenuPage.from_pdfplumber(pdf.pages[0], cfg)
        grid = build_grid(page.strokes, page.height)
        draw_menu_bounds(
            page.render(cfg.render_resolution), grid, cfg.render_scale, out_path
        )


def main() -> int:
    parser = argparse.ArgumentParser(description="Parse a weekly menu PDF")
    parser.add_argument("pdf", type=Path, help="Path to the menu PDF")
    parser.add_argument(
        "--icons", type=Path, default=None, help="Directory of <label>.png icons"
    )
    parser.add_argument(
        "--glyph-map", type=Path, default=None, help="Glyph substitution table"
    )
    parser.add_argument(
        "--errors-dir", type=Path, default=Path("errors"), help="Diagnostics output"
    )
    parser.add_argument(
        "--workers", type=int, default=4, help="Concurrent OCR recognitions"
    )
    parser.add_argument(
        "--accuracy", type=float, default=0.8, help="Minimum icon similarity"
    )
    parser.add_argument(
        "--bounds",
        type=Path,
        default=None,
        help="Also write the page with every menu cell outlined to this PNG",
    )
    parser.add_argument("--day", type=int, default=None, help="Only ISO weekday N")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )

    cfg = ParserConfig(
        glyph_map_path=str(args.glyph_map) if args.glyph_map else None,
        icons_dir=str(args.icons) if args.icons else None,
        errors_dir=str(args.errors_dir),
        ocr_max_workers=args.workers,
        label_accuracy=args.accuracy,
    )
    menu_parser = MenuParser(cfg)
    try:
        week = menu_parser.parse(args.pdf)
    except MenuParseError as exc:
        logging.getLogger("run_menu_pdf").error("Cannot parse %s: %s", args.pdf, exc)
        return 1

    if args.bounds:
        _dump_bounds(args.pdf, cfg, args.bounds)

    result = week.to_dict()
    if args.day is not None:
        result["menus"] = [m.to_dict() for m in week.menus_for_day(args.day)]
    print(json.dumps(result, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
