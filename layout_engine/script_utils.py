"""
Script classification + display-text normalization.

A fragment is CJK-dominant when CJK characters make up more than 30% of it.
The ratio tolerates embedded Latin tokens (dates, codes) inside Japanese text
without flipping the wrap strategy.
"""

from __future__ import annotations

import re
from typing import Optional

from .layout_types import ScriptKind

CJK_RATIO_THRESHOLD = 0.3

# Hiragana, Katakana, CJK Unified Ideographs (+ Ext A..G), compatibility ideographs
_CJK_CLASS = (
    "\u3040-\u309F"
    "\u30A0-\u30FF"
    "\u3400-\u4DBF"
    "\u4E00-\u9FFF"
    "\uF900-\uFAFF"
    "\U00020000-\U0002A6DF"
    "\U0002A700-\U0002EBEF"
    "\U0002F800-\U0002FA1F"
    "\U00030000-\U0003134F"
)
_CJK_CHAR_RX = re.compile(f"[{_CJK_CLASS}]")
_CJK_GAP_RX = re.compile(f"(?<=[{_CJK_CLASS}])\\s+(?=[{_CJK_CLASS}])")
_NEWLINE_RX = re.compile(r"\s*\n\s*")
_CJK_PUNCT_RX = re.compile(r"\s*([。、・「」『』（）〔〕［］])\s*")
_WS_RX = re.compile(r"\s+")


def count_cjk_chars(text: str) -> int:
    return len(_CJK_CHAR_RX.findall(text or ""))


def is_script_cjk(text: str) -> bool:
    """True iff CJK count is nonzero and strictly above 30% of all characters."""
    s = text or ""
    n = count_cjk_chars(s)
    return n > 0 and (n / len(s)) > CJK_RATIO_THRESHOLD


def script_kind(text: str) -> ScriptKind:
    return ScriptKind.CJK if is_script_cjk(text) else ScriptKind.LATIN


def normalize_display_text(text: str, kind: Optional[ScriptKind] = None) -> str:
    """
    CJK: drop line breaks and the whitespace between CJK characters or around
    Japanese punctuation. Latin: collapse all whitespace to single spaces.
    """
    base = text or ""
    if kind is None:
        kind = script_kind(base)

    if kind is ScriptKind.CJK:
        base = _NEWLINE_RX.sub("", base)
        base = _CJK_GAP_RX.sub("", base)
        base = _CJK_PUNCT_RX.sub(r"\1", base)
    else:
        base = _WS_RX.sub(" ", base)
    return base.strip()


__all__ = [
    "CJK_RATIO_THRESHOLD",
    "count_cjk_chars",
    "is_script_cjk",
    "script_kind",
    "normalize_display_text",
]
