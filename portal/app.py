# portal/app.py
from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

# --- Paths ---
ROOT = Path(__file__).resolve().parents[1]

# Make project root importable so layout_engine / routes resolve when run as a script
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

# --- Load .env (DOCINTEL_*, TESSERACT_CMD, POPPLER_PATH, display tuning) ---
load_dotenv(ROOT / ".env")

from portal.ocr_health import bp as ocr_health_bp  # noqa: E402
from portal.routes_reconcile import reconcile_bp  # noqa: E402
from routes.core import core_bp  # noqa: E402

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
log = logging.getLogger(__name__)

# ------------------------
# App & Config
# ------------------------
app = Flask(__name__)
app.config["MAX_CONTENT_LENGTH"] = 20 * 1024 * 1024        # ~20 MB
app.json.ensure_ascii = False

app.register_blueprint(core_bp)
app.register_blueprint(ocr_health_bp)
app.register_blueprint(reconcile_bp)


@app.errorhandler(RequestEntityTooLarge)
def _too_large(_e):
    return jsonify({"ok": False, "error": "File too large. Try a smaller file or raise MAX_CONTENT_LENGTH."}), 413


@app.errorhandler(HTTPException)
def _http_error(e: HTTPException):
    return jsonify({"ok": False, "error": e.description or e.name}), e.code


@app.errorhandler(Exception)
def _server_error(e: Exception):
    log.exception("Unhandled error")
    return jsonify({"ok": False, "error": f"Server error: {e}"}), 500


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", "5000")), debug=os.getenv("FLASK_DEBUG") == "1")
