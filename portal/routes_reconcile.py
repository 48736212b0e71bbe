# portal/routes_reconcile.py
"""
Reconciliation API.

  POST /api/reconcile     JSON {layout, read?, config?, fit?, scale?} → regions per page
  POST /api/export.xlsx   same body → workbook
  POST /api/analyze       multipart file → remote layout+read → regions per page
  POST /api/annotate      multipart file + layout (+ read) JSON → annotated PNG

All JSON responses carry "ok"; errors add "error".
"""

from __future__ import annotations

import json
from io import BytesIO
from typing import Any, Dict, List, Optional, Sequence, Tuple

from flask import Blueprint, current_app, jsonify, make_response, request, send_file
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from layout_engine import di_adapter
from layout_engine.analysis_client import AnalysisServiceError, DocumentAnalysisClient, ServiceSettings
from layout_engine.annotator import RenderStyle, render_regions
from layout_engine.image_utils import DEFAULT_PDF_DPI, image_to_png_bytes, is_pdf, load_page_images
from layout_engine.layout_types import FitResult, MergedRegion, PageAnalysis
from layout_engine.reconcile_pipeline import ReconcileConfig, reconcile_document, summarize_regions
from layout_engine.region_export import region_to_dict, regions_workbook, workbook_bytes
from layout_engine.text_fit import FitConfig, FitConfigError, fit_region

from portal.contracts import fit_config_from_payload, reconcile_config_from_payload, validate_reconcile_payload

reconcile_bp = Blueprint("reconcile", __name__)

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _error(msg: str, status: int = 400):
    return jsonify({"ok": False, "error": msg}), status


def _pages_payload(
    pages: Sequence[PageAnalysis],
    results: Sequence[Sequence[MergedRegion]],
    fit_cfg: Optional[FitConfig],
) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for page, regions in zip(pages, results):
        fits: List[Optional[FitResult]] = [None] * len(regions)
        if fit_cfg is not None:
            fits = [fit_region(r, fit_cfg) for r in regions]
        out.append({
            "pageIndex": page.page_index,
            "width": page.width,
            "height": page.height,
            "summary": summarize_regions(regions),
            "regions": [region_to_dict(r, f) for r, f in zip(regions, fits)],
        })
    return out


def _reconcile_json(payload: Dict[str, Any]) -> Tuple[List[PageAnalysis], List[List[MergedRegion]]]:
    pages = di_adapter.pages_from_results(
        payload["layout"], payload.get("read"), scale=float(payload.get("scale", 1.0)),
    )
    return pages, reconcile_document(pages, reconcile_config_from_payload(payload))


def _json_body() -> Tuple[Optional[Dict[str, Any]], Optional[Tuple[Any, int]]]:
    if not request.is_json:
        return None, _error("expected application/json body")
    payload = request.get_json(silent=True)
    ok, err = validate_reconcile_payload(payload)
    if not ok:
        return None, _error(err)
    return payload, None


@reconcile_bp.post("/api/reconcile")
def api_reconcile():
    payload, err = _json_body()
    if err:
        return err
    try:
        fit_cfg = fit_config_from_payload(payload)
    except FitConfigError as e:
        return _error(str(e))

    try:
        pages, results = _reconcile_json(payload)
    except ValueError as e:
        return _error(f"malformed analysis result: {e}")
    return jsonify({"ok": True, "pages": _pages_payload(pages, results, fit_cfg)})


@reconcile_bp.post("/api/export.xlsx")
def api_export_xlsx():
    payload, err = _json_body()
    if err:
        return err

    try:
        _, results = _reconcile_json(payload)
    except ValueError as e:
        return _error(f"malformed analysis result: {e}")
    regions = [r for page in results for r in page]

    resp = make_response(workbook_bytes(regions_workbook(regions)))
    resp.headers["Content-Type"] = XLSX_MIME
    resp.headers["Content-Disposition"] = 'attachment; filename="regions.xlsx"'
    return resp


def _uploaded_file() -> Optional[FileStorage]:
    f = request.files.get("file")
    if f is None or not f.filename:
        return None
    return f


def _json_field(name: str) -> Optional[Any]:
    """A form field or an uploaded file holding JSON."""
    if name in request.files:
        raw = request.files[name].read()
    else:
        raw = request.form.get(name)
    if not raw:
        return None
    return json.loads(raw)


@reconcile_bp.post("/api/analyze")
def api_analyze():
    f = _uploaded_file()
    if f is None:
        return _error("missing 'file' upload")
    data = f.read()
    content_type = f.mimetype or "application/octet-stream"

    try:
        client = DocumentAnalysisClient(ServiceSettings.from_env())
        layout, read = client.analyze_layout_and_read(data, content_type)
    except AnalysisServiceError as e:
        current_app.logger.warning("Analysis failed for %s: %s", secure_filename(f.filename), e)
        return _error(str(e), 502)

    scale = float(DEFAULT_PDF_DPI) if is_pdf(data, content_type, f.filename) else 1.0
    try:
        pages = di_adapter.pages_from_results(layout, read, scale=scale)
    except ValueError as e:
        current_app.logger.warning("Malformed analysis result for %s: %s", secure_filename(f.filename), e)
        return _error(f"malformed analysis result: {e}", 502)
    results = reconcile_document(pages, ReconcileConfig.from_env())
    return jsonify({
        "ok": True,
        "file": secure_filename(f.filename),
        "pages": _pages_payload(pages, results, None),
    })


@reconcile_bp.post("/api/annotate")
def api_annotate():
    f = _uploaded_file()
    if f is None:
        return _error("missing 'file' upload")
    try:
        layout = _json_field("layout")
        read = _json_field("read")
    except ValueError as e:
        return _error(f"invalid JSON field: {e}")
    payload = {"layout": layout, "read": read}
    ok, err = validate_reconcile_payload(payload)
    if not ok:
        return _error(err)

    try:
        page_no = int(request.args.get("page", "1"))
    except ValueError:
        return _error("page must be an integer")

    data = f.read()
    pdf = is_pdf(data, f.mimetype, f.filename)
    try:
        images = load_page_images(data, content_type=f.mimetype, filename=f.filename)
    except Exception as e:
        current_app.logger.warning("Could not decode %s: %s", secure_filename(f.filename), e)
        return _error(f"could not read page images: {e}")
    if not 1 <= page_no <= len(images):
        return _error(f"page {page_no} out of range (1..{len(images)})", 404)

    pages = di_adapter.pages_from_results(layout, read, scale=float(DEFAULT_PDF_DPI) if pdf else 1.0)
    results = reconcile_document(pages, ReconcileConfig.from_env())
    regions = next((r for p, r in zip(pages, results) if p.page_index == page_no - 1), [])

    try:
        annotated = render_regions(images[page_no - 1], regions, fit_config=FitConfig.from_env(), style=RenderStyle.from_env())
    except FitConfigError as e:
        current_app.logger.exception("Render configuration invalid")
        return _error(str(e), 500)

    buf = BytesIO(image_to_png_bytes(annotated))
    name = secure_filename(f.filename).rsplit(".", 1)[0] or "page"
    return send_file(buf, mimetype="image/png", download_name=f"{name}_ANNOTATED_p{page_no}.png")
