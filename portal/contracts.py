# portal/contracts.py
from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict, Optional, Tuple

from layout_engine.reconcile_pipeline import ReconcileConfig
from layout_engine.text_fit import FitConfig

_RECONCILE_KEYS = {"iouThreshold": "iou_threshold", "yThreshold": "y_threshold", "xThreshold": "x_threshold"}
_FIT_KEYS = {
    "maxFontSize": "max_font_size",
    "minFontSize": "min_font_size",
    "fillRatio": "fill_ratio",
    "lineHeightMultiplier": "line_height_multiplier",
    "maxLines": "max_lines",
    "forceHorizontal": "force_horizontal",
}
_INT_FIT_KEYS = {"maxFontSize", "minFontSize", "maxLines"}


def _is_number(x: Any) -> bool:
    return isinstance(x, (int, float)) and not isinstance(x, bool)


def _check_result(obj: Any, label: str) -> Tuple[bool, str]:
    if not isinstance(obj, dict):
        return False, f"{label} must be an object"
    inner = obj.get("analyzeResult", obj)
    if not isinstance(inner, dict):
        return False, f"{label}.analyzeResult must be an object"
    pages = inner.get("pages")
    if not isinstance(pages, list):
        return False, f"{label}.pages must be a list"
    return True, ""


def validate_reconcile_payload(payload: Any) -> Tuple[bool, str]:
    if not isinstance(payload, dict):
        return False, "body must be a JSON object"

    if "layout" not in payload:
        return False, "missing top-level key: layout"
    ok, err = _check_result(payload["layout"], "layout")
    if not ok:
        return ok, err

    if payload.get("read") is not None:
        ok, err = _check_result(payload["read"], "read")
        if not ok:
            return ok, err

    if "scale" in payload and (not _is_number(payload["scale"]) or payload["scale"] <= 0):
        return False, "scale must be a positive number"

    cfg = payload.get("config")
    if cfg is not None:
        if not isinstance(cfg, dict):
            return False, "config must be an object"
        for key in _RECONCILE_KEYS:
            if key in cfg and not _is_number(cfg[key]):
                return False, f"config.{key} must be a number"

    fit = payload.get("fit")
    if fit is not None:
        if not isinstance(fit, dict):
            return False, "fit must be an object"
        for key in _FIT_KEYS:
            if key not in fit:
                continue
            if key == "forceHorizontal":
                if not isinstance(fit[key], bool):
                    return False, "fit.forceHorizontal must be a boolean"
            elif key in _INT_FIT_KEYS:
                if not isinstance(fit[key], int) or isinstance(fit[key], bool):
                    return False, f"fit.{key} must be an integer"
            elif not _is_number(fit[key]):
                return False, f"fit.{key} must be a number"

    return True, ""


def reconcile_config_from_payload(payload: Dict[str, Any]) -> ReconcileConfig:
    base = ReconcileConfig.from_env()
    cfg = payload.get("config") or {}
    values = {attr: float(cfg[key]) for key, attr in _RECONCILE_KEYS.items() if key in cfg}
    return replace(base, **values)


def fit_config_from_payload(payload: Dict[str, Any]) -> Optional[FitConfig]:
    """None when the caller asked for no fit; raises FitConfigError on min > max."""
    fit = payload.get("fit")
    if fit is None:
        return None
    return FitConfig.from_env(**{attr: fit[key] for key, attr in _FIT_KEYS.items() if key in fit})
