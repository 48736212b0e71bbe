"""
Service adapter: analyzeResult JSON (layout + read) → PageAnalysis.

Run: python -m pytest tests/test_di_adapter.py -v
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from layout_engine.di_adapter import (
    pages_from_results,
    polygon_from_service,
    style_spans_from_result,
    table_cells_from_result,
)
from layout_engine.layout_types import BoundingBox, Point, StyleSpan, TextSpan


def _layout():
    return {
        "status": "succeeded",
        "analyzeResult": {
            "content": "店舗名\n山田",
            "pages": [
                {
                    "pageNumber": 1,
                    "width": 8.5,
                    "height": 11,
                    "unit": "inch",
                    "lines": [
                        {"content": "店舗名", "polygon": [10, 10, 90, 10, 90, 40, 10, 40],
                         "spans": [{"offset": 0, "length": 3}]},
                        {"content": "山田", "polygon": [10, 60, 90, 60, 90, 80, 10, 80],
                         "spans": [{"offset": 4, "length": 2}]},
                    ],
                },
                {"pageNumber": 2, "lines": [{"content": "p2", "polygon": [0, 0, 5, 0, 5, 5, 0, 5]}]},
            ],
            "tables": [
                {"cells": [
                    {"rowIndex": 0, "columnIndex": 0,
                     "boundingRegions": [{"pageNumber": 1, "polygon": [0, 0, 100, 0, 100, 50, 0, 50]}]},
                    {"rowIndex": 0, "columnIndex": 1,
                     "boundingRegions": [{"pageNumber": 2, "polygon": [0, 0, 9, 0, 9, 9, 0, 9]}]},
                ]},
            ],
            "styles": [
                {"isHandwritten": True, "spans": [{"offset": 4, "length": 2}]},
                {"isHandwritten": False, "spans": [{"offset": 0, "length": 3}]},
            ],
        },
    }


def _read():
    return {
        "pages": [
            {"pageNumber": 1, "lines": [
                {"content": "店舗名", "polygon": [{"x": 10, "y": 12}, {"x": 88, "y": 12},
                                                {"x": 88, "y": 38}, {"x": 10, "y": 38}],
                 "spans": [{"offset": 0, "length": 3}]},
            ]},
        ],
    }


class TestPolygons:
    def test_flat_form(self):
        assert polygon_from_service([1, 2, 3, 4]) == (Point(1, 2), Point(3, 4))

    def test_dict_form(self):
        assert polygon_from_service([{"x": 1, "y": 2}]) == (Point(1, 2),)

    def test_pair_form(self):
        assert polygon_from_service([[1, 2], [3, 4]]) == (Point(1, 2), Point(3, 4))

    def test_scale(self):
        assert polygon_from_service([1, 2], scale=10) == (Point(10, 20),)

    def test_missing(self):
        assert polygon_from_service(None) == ()
        assert polygon_from_service([]) == ()


class TestResultParts:
    def test_only_handwritten_styles_kept(self):
        assert style_spans_from_result(_layout()["analyzeResult"]) == (StyleSpan(4, 2, True),)

    def test_cells_keyed_by_page_number(self):
        cells = table_cells_from_result(_layout()["analyzeResult"])
        assert sorted(cells) == [1, 2]
        (c,) = cells[1]
        assert (c.table_index, c.row_index, c.column_index, c.page_index) == (0, 0, 0, 0)
        assert cells[2][0].page_index == 1


class TestPagesFromResults:
    def test_pairs_layout_and_read_by_page(self):
        pages = pages_from_results(_layout(), _read())
        assert [p.page_index for p in pages] == [0, 1]

        p1 = pages[0]
        assert [ln.text for ln in p1.layout_lines] == ["店舗名", "山田"]
        assert p1.layout_lines[0].bbox == BoundingBox(10, 10, 90, 40)
        assert p1.layout_lines[1].spans == (TextSpan(4, 2),)
        assert [ln.text for ln in p1.read_lines] == ["店舗名"]
        assert p1.read_lines[0].spans == ()
        assert len(p1.table_cells) == 1
        assert p1.style_spans == (StyleSpan(4, 2, True),)
        assert (p1.width, p1.height, p1.unit) == (8.5, 11.0, "inch")

        assert pages[1].read_lines == ()
        assert len(pages[1].table_cells) == 1

    def test_read_is_optional(self):
        pages = pages_from_results(_layout())
        assert all(p.read_lines == () for p in pages)

    def test_scale_applies_to_everything(self):
        pages = pages_from_results(_layout(), _read(), scale=2.0)
        assert pages[0].layout_lines[0].bbox == BoundingBox(20, 20, 180, 80)
        assert pages[0].read_lines[0].bbox == BoundingBox(20, 24, 176, 76)
        assert pages[0].width == 17.0

    def test_rejects_non_object(self):
        with pytest.raises(ValueError):
            pages_from_results(["not", "a", "result"])

    def test_rejects_non_list_pages(self):
        with pytest.raises(ValueError):
            pages_from_results({"pages": {"1": {}}})

    def test_no_pages(self):
        assert pages_from_results({"pages": []}) == []
