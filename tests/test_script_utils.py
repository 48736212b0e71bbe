"""
Script classification (CJK share strictly above 30%) and display-text
normalization.

Run: python -m pytest tests/test_script_utils.py -v
"""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from layout_engine.layout_types import ScriptKind
from layout_engine.script_utils import (
    count_cjk_chars,
    is_script_cjk,
    normalize_display_text,
    script_kind,
)


class TestClassification:
    def test_pure_japanese(self):
        assert is_script_cjk("店舗名")
        assert script_kind("ひらがなカタカナ") is ScriptKind.CJK

    def test_pure_latin(self):
        assert not is_script_cjk("Store name")
        assert script_kind("ABC 123") is ScriptKind.LATIN

    def test_empty_is_latin(self):
        assert not is_script_cjk("")
        assert script_kind("") is ScriptKind.LATIN

    def test_ratio_is_strict(self):
        # 3 of 10 characters → exactly 0.3, not above
        assert not is_script_cjk("abcdefg店舗名")
        # 3 of 9 → 0.33
        assert is_script_cjk("abcdef店舗名")

    def test_count_cjk_chars(self):
        assert count_cjk_chars("2024年1月 Tokyo 東京") == 4


class TestNormalization:
    def test_cjk_drops_line_breaks(self):
        assert normalize_display_text("店舗\n名") == "店舗名"

    def test_cjk_drops_spaces_between_ideographs(self):
        assert normalize_display_text("店 舗 名") == "店舗名"

    def test_cjk_tightens_punctuation(self):
        assert normalize_display_text("ご連絡 、 ください 。") == "ご連絡、ください。"

    def test_cjk_keeps_space_next_to_latin(self):
        assert normalize_display_text("担当者名 Li 様") == "担当者名 Li 様"

    def test_latin_collapses_whitespace(self):
        assert normalize_display_text("Hello\n   world \t again ") == "Hello world again"

    def test_explicit_kind_wins(self):
        assert normalize_display_text("a\nb", ScriptKind.CJK) == "ab"
        assert normalize_display_text("店\n舗", ScriptKind.LATIN) == "店 舗"
