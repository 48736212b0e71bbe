"""
Tunable defaults + env readers for the layout engine.

The thresholds below are empirical: they were tuned on ~300 DPI scans of the
hygiene forms and are not expected to carry over to other resolutions.
Override them through the environment (or a .env file loaded by the portal/CLI)
rather than editing code.

Env readers are evaluated at call time so config objects built with
from_env() always see the current environment.
"""

from __future__ import annotations

import os
from typing import Optional

# -----------------------------
# Reconciliation
# -----------------------------
DEFAULT_IOU_THRESHOLD = 0.1
DEFAULT_Y_THRESHOLD = 40.0   # px, vertical gap for adjacency grouping
DEFAULT_X_THRESHOLD = 30.0   # px, left/right/center alignment tolerance

# -----------------------------
# Text fit / wrap
# -----------------------------
DEFAULT_MAX_FONT_SIZE = 72
DEFAULT_MIN_FONT_SIZE = 12
DEFAULT_FILL_RATIO = 0.98
DEFAULT_LINE_HEIGHT_MULT = 1.15
DEFAULT_MAX_LINES = 0        # 0 → unlimited
FONT_STEP = 2

# -----------------------------
# Rendering
# -----------------------------
DEFAULT_PRINTED_FILL_COLOR = "#1976D2"
DEFAULT_HANDWRITTEN_FILL_COLOR = "#2E7D32"
DEFAULT_TEXT_COLOR = "#FFFFFF"
DEFAULT_TEXT_OUTLINE_COLOR = "#000000"
DEFAULT_BOX_ALPHA = 0.3
DEFAULT_BORDER_WIDTH = 3

# -----------------------------
# External service
# -----------------------------
DEFAULT_DOCINTEL_API_VERSION = "2024-11-30"
DEFAULT_DOCINTEL_TIMEOUT_S = 120.0
DEFAULT_DOCINTEL_POLL_S = 1.0


def env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    val = os.environ.get(name)
    if val is None or not val.strip():
        return default
    return val.strip()


def env_float(name: str, default: float) -> float:
    raw = env_str(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def env_int(name: str, default: int) -> int:
    raw = env_str(name)
    if raw is None:
        return default
    try:
        return int(raw, 10)
    except ValueError:
        return default


def env_bool(name: str, default: bool) -> bool:
    raw = env_str(name)
    if raw is None:
        return default
    return raw.lower() in ("1", "true", "yes", "on")


__all__ = [
    "DEFAULT_IOU_THRESHOLD",
    "DEFAULT_Y_THRESHOLD",
    "DEFAULT_X_THRESHOLD",
    "DEFAULT_MAX_FONT_SIZE",
    "DEFAULT_MIN_FONT_SIZE",
    "DEFAULT_FILL_RATIO",
    "DEFAULT_LINE_HEIGHT_MULT",
    "DEFAULT_MAX_LINES",
    "FONT_STEP",
    "DEFAULT_PRINTED_FILL_COLOR",
    "DEFAULT_HANDWRITTEN_FILL_COLOR",
    "DEFAULT_TEXT_COLOR",
    "DEFAULT_TEXT_OUTLINE_COLOR",
    "DEFAULT_BOX_ALPHA",
    "DEFAULT_BORDER_WIDTH",
    "DEFAULT_DOCINTEL_API_VERSION",
    "DEFAULT_DOCINTEL_TIMEOUT_S",
    "DEFAULT_DOCINTEL_POLL_S",
    "env_str",
    "env_float",
    "env_int",
    "env_bool",
]
