from __future__ import annotations

import math
from typing import Dict, Optional

# key -> (priority, Korean label); priority orders metric chips in the sidebar
METRIC_LABELS: Dict[str, tuple] = {
    "marketcap": (1, "시총"),
    "per": (2, "PER"),
    "div": (3, "배당"),
    "dps": (4, "배당금"),
    "bps": (5, "BPS"),
    "pbr": (6, "PBR"),
    "eps": (7, "EPS"),
}

_LABEL_TO_KEY = {label: key for key, (_prio, label) in METRIC_LABELS.items()}

def metric_label(key: str) -> str:
    try:
        return METRIC_LABELS[key][1]
    except KeyError:
        raise ValueError(f"Unknown metric: {key}") from None

def metric_from_label(label: str) -> str:
    return _LABEL_TO_KEY.get(label, "per")

def format_marketcap(value: float) -> str:
    if value >= 1e12:
        return f"{value / 1e12:.1f}조"
    if value >= 1e11:
        return f"{value / 1e11:.1f}천억"
    if value >= 1e10:
        return f"{value / 1e10:.1f}백억"
    return f"{value / 1e8:.1f}억"

def format_metric_value(metric: str, value: Optional[float]) -> str:
    if value is None:
        return "—"
    if metric == "marketcap":
        return format_marketcap(value)
    if metric in ("per", "pbr"):
        return f"{value:.1f}배"
    if metric == "div":
        return f"{value:.1f}%"
    if metric == "bps":
        return f"{value / 10000:.1f}만원"
    if metric in ("eps", "dps"):
        # half-up, not banker's rounding
        return f"{math.floor(value / 1000 + 0.5)}천원"
    return str(value)
