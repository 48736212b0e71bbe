"""
Region export: JSON payload shape and the Excel workbook (Regions sheet +
one grid sheet per table).

Run: python -m pytest tests/test_region_export.py -v
"""

import io
import os
import sys

import pytest
from openpyxl import load_workbook

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from layout_engine.geometry import polygon_from_bbox
from layout_engine.layout_types import BoundingBox, FitResult, MergedRegion
from layout_engine.region_export import (
    region_to_dict,
    regions_payload,
    regions_workbook,
    table_grids,
    workbook_bytes,
)


def _region(text, cell=None, hw=False, page=0):
    box = BoundingBox(10, 10, 90, 40)
    return MergedRegion(
        display_text=text, bbox=box, polygon=polygon_from_bbox(box), is_handwritten=hw,
        page_index=page, layout_text=text, line_count=1, cell=cell,
    )


class TestJson:
    def test_region_to_dict(self):
        d = region_to_dict(_region("店舗名", cell=(0, 1, 2)), FitResult(24, ("店舗名",)))
        assert d["displayText"] == "店舗名"
        assert d["bbox"] == [10, 10, 90, 40]
        assert d["cell"] == {"tableIndex": 0, "rowIndex": 1, "columnIndex": 2}
        assert d["fit"] == {"fontSize": 24, "lines": ["店舗名"]}
        assert len(d["polygon"]) == 4

    def test_optional_keys_absent(self):
        d = region_to_dict(_region("x"))
        assert "cell" not in d
        assert "fit" not in d

    def test_payload_counts_and_samples(self):
        regions = [_region("a" * 150, hw=True)] + [_region(str(i), cell=(0, i, 0)) for i in range(6)]
        p = regions_payload(regions, source_name="form.png")
        meta = p["metadata"]
        assert meta["sourceName"] == "form.png"
        assert meta["totalTextRegions"] == 7
        assert meta["handwrittenRegions"] == 1
        assert meta["printedRegions"] == 6
        assert meta["tableCellRegions"] == 6
        assert len(p["regions"]) == 7
        samples = p["summary"]["extractedTextSample"]
        assert len(samples) == 5
        assert samples[0]["text"].endswith("...")
        assert len(samples[0]["text"]) == 103

    def test_misaligned_fits_rejected(self):
        with pytest.raises(ValueError):
            regions_payload([_region("a")], fits=[])


class TestWorkbook:
    def test_table_grids(self):
        regions = [_region("A", cell=(0, 0, 0)), _region("B", cell=(0, 1, 1)), _region("free")]
        assert table_grids(regions) == {(0, 0): [["A", ""], ["", "B"]]}

    def test_workbook_sheets(self):
        regions = [
            _region("A", cell=(0, 0, 0)),
            _region("B", cell=(1, 0, 0), page=1),
            _region("free", hw=True),
        ]
        wb = load_workbook(io.BytesIO(workbook_bytes(regions_workbook(regions))))
        assert wb.sheetnames == ["Regions", "P1 Table 1", "P2 Table 2"]

        ws = wb["Regions"]
        assert ws.max_row == 4
        assert ws["B2"].value == "A"
        assert ws["C4"].value == "yes"
        assert wb["P1 Table 1"]["A1"].value == "A"
