from __future__ import annotations
from flask import Blueprint, jsonify

from layout_engine.image_utils import check_poppler
from layout_engine.settings import env_str
from layout_engine.tesseract_reader import check_tesseract

bp = Blueprint("ocr_health", __name__)

@bp.route("/ocr/health", methods=["GET"])
def ocr_health():
    return jsonify({
        "tesseract": check_tesseract(),
        "poppler": check_poppler(),
        "docintel": {"configured": bool(env_str("DOCINTEL_ENDPOINT") and env_str("DOCINTEL_API_KEY"))},
    })
