#!/usr/bin/env python3
"""
Offline reconciliation runner.

Reads layout/read analysis JSON (or fetches both from the analysis service),
reconciles every page and writes:

- <stem>_regions.json          regions + metadata per document
- <stem>_regions.xlsx          with --xlsx
- <stem>_ANNOTATED_p<N>.png    with --annotate (needs --document)

Examples:
  python scripts/reconcile_files.py --layout scan.layout.json --read scan.read.json
  python scripts/reconcile_files.py --document scan.png --analyze --annotate
  python scripts/reconcile_files.py --document scan.png --layout scan.layout.json --local-read
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, List, Optional

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from dotenv import load_dotenv  # noqa: E402

from layout_engine import di_adapter  # noqa: E402
from layout_engine.analysis_client import AnalysisServiceError, DocumentAnalysisClient, ServiceSettings  # noqa: E402
from layout_engine.annotator import RenderStyle, render_regions  # noqa: E402
from layout_engine.image_utils import DEFAULT_PDF_DPI, is_pdf, load_page_images  # noqa: E402
from layout_engine.layout_types import PageAnalysis  # noqa: E402
from layout_engine.reconcile_pipeline import ReconcileConfig, reconcile_document  # noqa: E402
from layout_engine.region_export import regions_payload, regions_workbook  # noqa: E402
from layout_engine.tesseract_reader import read_lines_from_image  # noqa: E402
from layout_engine.text_fit import FitConfig, FitConfigError, fit_region  # noqa: E402


def _load_json(path: Optional[str]) -> Optional[Any]:
    if not path:
        return None
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _write_json(path: Path, obj: Any) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(obj, f, ensure_ascii=False, indent=2)


def _with_local_read(pages: List[PageAnalysis], images: list) -> List[PageAnalysis]:
    out: List[PageAnalysis] = []
    for page in pages:
        if 0 <= page.page_index < len(images):
            lines = read_lines_from_image(images[page.page_index], page_index=page.page_index)
            page = replace(page, read_lines=tuple(lines))
        else:
            print(f"[WARN] No image for page {page.page_index + 1}; keeping service read lines.")
        out.append(page)
    return out


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv(ROOT / ".env")

    ap = argparse.ArgumentParser(description="Reconcile layout and read analysis into display regions.")
    ap.add_argument("--document", type=str, help="Source image or PDF (needed for --analyze, --local-read, --annotate)")
    ap.add_argument("--layout", type=str, help="Layout analyzeResult JSON")
    ap.add_argument("--read", type=str, help="Read analyzeResult JSON")
    ap.add_argument("--analyze", action="store_true", help="Fetch layout + read from the analysis service")
    ap.add_argument("--local-read", action="store_true", help="Use Tesseract on the page images as the read source")
    ap.add_argument("--scale", type=float, default=None, help="Coordinate multiplier (default: PDF DPI for PDFs, else 1)")
    ap.add_argument("--out-dir", type=str, default=None, help="Output directory (default: next to the input)")
    ap.add_argument("--xlsx", action="store_true", help="Also write an Excel workbook")
    ap.add_argument("--annotate", action="store_true", help="Also write annotated page images")
    ap.add_argument("--fit", action="store_true", help="Include fitted font size and lines per region")
    ap.add_argument("--workers", type=int, default=1, help="Reconcile pages in parallel")
    ap.add_argument("--verbose", "-v", action="store_true")
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    doc_path = Path(args.document) if args.document else None
    if doc_path is not None and not doc_path.is_file():
        print(f"[ERR] Document not found: {doc_path}", file=sys.stderr)
        return 2
    if (args.analyze or args.local_read or args.annotate) and doc_path is None:
        print("[ERR] --analyze, --local-read and --annotate need --document.", file=sys.stderr)
        return 2
    if not args.analyze and not args.layout:
        print("[ERR] Provide --layout JSON or use --analyze.", file=sys.stderr)
        return 2

    stem_src = doc_path or Path(args.layout)
    stem = stem_src.stem
    out_dir = Path(args.out_dir) if args.out_dir else stem_src.parent
    out_dir.mkdir(parents=True, exist_ok=True)

    data = doc_path.read_bytes() if doc_path is not None else b""
    pdf = bool(data) and is_pdf(data, filename=doc_path.name)

    if args.analyze:
        try:
            client = DocumentAnalysisClient(ServiceSettings.from_env())
            layout, read = client.analyze_layout_and_read(data, "application/pdf" if pdf else "application/octet-stream")
        except AnalysisServiceError as e:
            print(f"[ERR] Analysis failed: {e}", file=sys.stderr)
            return 1
        _write_json(out_dir / f"{stem}.layout.json", layout)
        _write_json(out_dir / f"{stem}.read.json", read)
        print(f"[OK] Saved service results → {out_dir}")
    else:
        layout = _load_json(args.layout)
        read = _load_json(args.read)

    scale = args.scale if args.scale is not None else (float(DEFAULT_PDF_DPI) if pdf else 1.0)
    try:
        pages = di_adapter.pages_from_results(layout, read, scale=scale)
    except ValueError as e:
        print(f"[ERR] Malformed analysis JSON: {e}", file=sys.stderr)
        return 1

    images = load_page_images(data, filename=doc_path.name) if (args.local_read or args.annotate) else []
    if args.local_read:
        pages = _with_local_read(pages, images)

    try:
        fit_cfg = FitConfig.from_env()
    except FitConfigError as e:
        print(f"[ERR] {e}", file=sys.stderr)
        return 2

    results = reconcile_document(pages, ReconcileConfig.from_env(), max_workers=args.workers)
    regions = [r for page in results for r in page]
    fits = [fit_region(r, fit_cfg) for r in regions] if args.fit else None

    json_path = out_dir / f"{stem}_regions.json"
    _write_json(json_path, regions_payload(regions, source_name=stem_src.name, fits=fits))
    print(f"[OK] {len(regions)} regions across {len(pages)} page(s) → {json_path}")

    if args.xlsx:
        xlsx_path = out_dir / f"{stem}_regions.xlsx"
        regions_workbook(regions).save(xlsx_path)
        print(f"[OK] Saved workbook → {xlsx_path}")

    if args.annotate:
        style = RenderStyle.from_env()
        for page, page_regions in zip(pages, results):
            if not 0 <= page.page_index < len(images):
                print(f"[WARN] No image for page {page.page_index + 1}; skipping annotation.")
                continue
            img = render_regions(images[page.page_index], page_regions, fit_config=fit_cfg, style=style)
            png_path = out_dir / f"{stem}_ANNOTATED_p{page.page_index + 1}.png"
            img.save(png_path)
            print(f"[OK] Saved annotated page → {png_path}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
