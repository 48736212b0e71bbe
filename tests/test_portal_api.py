"""
Portal HTTP API.

Covers:
  GET  /health, /ocr/health
  POST /api/reconcile    happy path, fit output, config overrides, validation → 400
  POST /api/export.xlsx  workbook download
  POST /api/analyze      service errors → 502, fake client happy path
  POST /api/annotate     PNG out, bad page → 404

Run: python -m pytest tests/test_portal_api.py -v
"""

import io
import json
import os
import sys

import pytest
from openpyxl import load_workbook
from PIL import Image

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from portal import routes_reconcile
from portal.app import app


def _layout():
    return {
        "analyzeResult": {
            "pages": [{
                "pageNumber": 1,
                "width": 200,
                "height": 100,
                "unit": "pixel",
                "lines": [
                    {"content": "店舗名", "polygon": [10, 10, 90, 10, 90, 40, 10, 40],
                     "spans": [{"offset": 0, "length": 3}]},
                    {"content": "Notes", "polygon": [120, 10, 190, 10, 190, 30, 120, 30],
                     "spans": [{"offset": 4, "length": 5}]},
                ],
            }],
            "tables": [{"cells": [{
                "rowIndex": 0, "columnIndex": 0,
                "boundingRegions": [{"pageNumber": 1, "polygon": [0, 0, 100, 0, 100, 50, 0, 50]}],
            }]}],
            "styles": [],
        }
    }


def _read():
    return {"pages": [{"pageNumber": 1, "lines": [
        {"content": "店舗名", "polygon": [10, 12, 88, 12, 88, 38, 10, 38]},
        {"content": "Notes!", "polygon": [120, 10, 190, 10, 190, 30, 120, 30]},
    ]}]}


def _png(size=(200, 100)):
    buf = io.BytesIO()
    Image.new("RGB", size, "white").save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def client(monkeypatch):
    monkeypatch.delenv("OVERLAY_FONT_PATH", raising=False)
    app.config["TESTING"] = True
    with app.test_client() as c:
        yield c


class TestHealth:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "ok"

    def test_ocr_health_shape(self, client, monkeypatch):
        monkeypatch.delenv("DOCINTEL_ENDPOINT", raising=False)
        body = client.get("/ocr/health").get_json()
        assert set(body) == {"tesseract", "poppler", "docintel"}
        assert body["docintel"] == {"configured": False}


class TestReconcile:
    def test_happy_path(self, client):
        resp = client.post("/api/reconcile", json={"layout": _layout(), "read": _read()})
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["ok"] is True
        (page,) = body["pages"]
        assert page["pageIndex"] == 0
        texts = [r["displayText"] for r in page["regions"]]
        assert texts == ["店舗名", "Notes!"]
        assert page["regions"][0]["cell"] == {"tableIndex": 0, "rowIndex": 0, "columnIndex": 0}
        assert page["summary"]["total"] == 2
        assert "fit" not in page["regions"][0]

    def test_fit_included_when_requested(self, client):
        resp = client.post("/api/reconcile", json={
            "layout": _layout(), "read": _read(), "fit": {"maxFontSize": 30, "minFontSize": 8},
        })
        region = resp.get_json()["pages"][0]["regions"][0]
        assert 8 <= region["fit"]["fontSize"] <= 30
        assert region["fit"]["lines"]

    def test_config_override(self, client):
        resp = client.post("/api/reconcile", json={
            "layout": _layout(), "read": _read(), "config": {"iouThreshold": 0.99},
        })
        texts = [r["displayText"] for r in resp.get_json()["pages"][0]["regions"]]
        assert texts == ["店舗名", "Notes!"]

    def test_read_optional(self, client):
        resp = client.post("/api/reconcile", json={"layout": _layout()})
        texts = [r["displayText"] for r in resp.get_json()["pages"][0]["regions"]]
        assert texts == ["店舗名", "Notes"]

    @pytest.mark.parametrize("payload, fragment", [
        ({}, "layout"),
        ({"layout": []}, "layout"),
        ({"layout": {"pages": {}}}, "pages"),
        ({"layout": {"pages": []}, "scale": 0}, "scale"),
        ({"layout": {"pages": []}, "config": {"yThreshold": "40"}}, "yThreshold"),
        ({"layout": {"pages": []}, "fit": {"maxLines": 1.5}}, "maxLines"),
        ({"layout": {"pages": []}, "fit": {"forceHorizontal": 1}}, "forceHorizontal"),
    ])
    def test_validation_errors(self, client, payload, fragment):
        resp = client.post("/api/reconcile", json=payload)
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["ok"] is False
        assert fragment in body["error"]

    def test_min_font_above_max(self, client):
        resp = client.post("/api/reconcile", json={
            "layout": _layout(), "fit": {"maxFontSize": 10, "minFontSize": 20},
        })
        assert resp.status_code == 400
        assert "min_font_size" in resp.get_json()["error"]

    def test_non_json_body(self, client):
        resp = client.post("/api/reconcile", data="layout=1")
        assert resp.status_code == 400


class TestExport:
    def test_xlsx(self, client):
        resp = client.post("/api/export.xlsx", json={"layout": _layout(), "read": _read()})
        assert resp.status_code == 200
        assert resp.headers["Content-Type"].startswith("application/vnd.openxmlformats")
        wb = load_workbook(io.BytesIO(resp.data))
        assert wb.sheetnames == ["Regions", "P1 Table 1"]
        assert wb["P1 Table 1"]["A1"].value == "店舗名"


class _FakeClient:
    def __init__(self, settings):
        pass

    def analyze_layout_and_read(self, data, content_type):
        return _layout()["analyzeResult"], _read()


class _BrokenResultClient(_FakeClient):
    def analyze_layout_and_read(self, data, content_type):
        return {"pages": "not-a-list"}, _read()


class TestAnalyze:
    def test_missing_file(self, client):
        assert client.post("/api/analyze").status_code == 400

    def test_unconfigured_service_is_502(self, client, monkeypatch):
        monkeypatch.delenv("DOCINTEL_ENDPOINT", raising=False)
        monkeypatch.delenv("DOCINTEL_API_KEY", raising=False)
        resp = client.post("/api/analyze", data={"file": (io.BytesIO(_png()), "form.png")},
                           content_type="multipart/form-data")
        assert resp.status_code == 502
        assert resp.get_json()["ok"] is False

    def test_happy_path(self, client, monkeypatch):
        monkeypatch.setenv("DOCINTEL_ENDPOINT", "https://example.invalid")
        monkeypatch.setenv("DOCINTEL_API_KEY", "k")
        monkeypatch.setattr(routes_reconcile, "DocumentAnalysisClient", _FakeClient)
        resp = client.post("/api/analyze", data={"file": (io.BytesIO(_png()), "form.png")},
                           content_type="multipart/form-data")
        body = resp.get_json()
        assert resp.status_code == 200
        assert body["file"] == "form.png"
        assert [r["displayText"] for r in body["pages"][0]["regions"]] == ["店舗名", "Notes!"]

    def test_malformed_service_result_is_502(self, client, monkeypatch):
        monkeypatch.setenv("DOCINTEL_ENDPOINT", "https://example.invalid")
        monkeypatch.setenv("DOCINTEL_API_KEY", "k")
        monkeypatch.setattr(routes_reconcile, "DocumentAnalysisClient", _BrokenResultClient)
        resp = client.post("/api/analyze", data={"file": (io.BytesIO(_png()), "form.png")},
                           content_type="multipart/form-data")
        assert resp.status_code == 502
        body = resp.get_json()
        assert body["ok"] is False
        assert "malformed" in body["error"]


class TestAnnotate:
    def _post(self, client, query=""):
        return client.post(
            "/api/annotate" + query,
            data={
                "file": (io.BytesIO(_png()), "form.png"),
                "layout": json.dumps(_layout()),
                "read": json.dumps(_read()),
            },
            content_type="multipart/form-data",
        )

    def test_returns_png(self, client):
        resp = self._post(client)
        assert resp.status_code == 200
        assert resp.mimetype == "image/png"
        img = Image.open(io.BytesIO(resp.data))
        assert img.size == (200, 100)

    def test_page_out_of_range(self, client):
        assert self._post(client, "?page=3").status_code == 404

    def test_bad_layout_json(self, client):
        resp = client.post(
            "/api/annotate",
            data={"file": (io.BytesIO(_png()), "form.png"), "layout": "{not json"},
            content_type="multipart/form-data",
        )
        assert resp.status_code == 400
