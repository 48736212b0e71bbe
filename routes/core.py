# routes/core.py
from flask import Blueprint, jsonify
from datetime import datetime, timezone

core_bp = Blueprint("core", __name__)

@core_bp.get("/")
def index():
    return jsonify({
        "service": "layout-reconcile",
        "endpoints": ["/health", "/ocr/health", "/api/reconcile", "/api/analyze", "/api/annotate", "/api/export.xlsx"],
    })

@core_bp.get("/health")
def health():
    return jsonify({"status": "ok", "time": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")})
