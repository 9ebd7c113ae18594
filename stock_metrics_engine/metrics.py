"""Per-metric profiles and row -> TimePoint preparation.

Every valuation metric (PER, PBR, EPS, BPS, DIV, DPS) runs through the same
aggregation/summary code; only the profile differs:
  - field:         column in the metric history table
  - round_to:      decimals for the period report (ratios 2, currency amounts None)
  - yearly:        "calendar" buckets or 12-point "rolling" average for the year view
  - positive_only / non_negative: value filters applied while preparing the series
  - skip_zero:     ignore zero values inside lookback windows
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
from zoneinfo import ZoneInfo

from .analysis import PeriodWindow, default_windows, summarize
from .config import EngineConfig
from .periods import TimePoint, aggregate_by_period, normalize_unit

@dataclass(frozen=True)
class MetricProfile:
    key: str
    field: str
    label: str
    round_to: Optional[int] = None
    yearly: str = "calendar"
    positive_only: bool = False
    non_negative: bool = False
    skip_zero: bool = False
    windows: Tuple[PeriodWindow, ...] = ()

def _profile(key: str, label: str, **kw: Any) -> MetricProfile:
    return MetricProfile(key=key, field=key, label=label, windows=default_windows(f"최근 {label}"), **kw)

PROFILES: Dict[str, MetricProfile] = {
    "per": _profile("per", "PER", round_to=2, yearly="rolling"),
    "pbr": _profile("pbr", "PBR", round_to=2, yearly="rolling"),
    "bps": _profile("bps", "BPS", round_to=2, non_negative=True),
    "eps": _profile("eps", "EPS"),
    "div": _profile("div", "DIV", yearly="rolling"),
    "dps": _profile("dps", "DPS", positive_only=True, skip_zero=True),
}

METRIC_KEYS = tuple(PROFILES)

def get_profile(key: str) -> MetricProfile:
    try:
        return PROFILES[str(key).lower()]
    except KeyError:
        raise ValueError(f"Unknown metric: {key}") from None

def to_date(value: Any, tz: Optional[str] = None) -> Optional[date]:
    """Normalize a row date (date, datetime or ISO string) to a calendar date.

    Aware datetimes are converted to the market timezone first so a UTC
    timestamp of 15:00 on the previous day lands on the KST trading date.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(ZoneInfo(tz or EngineConfig().tz))
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None

def to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.replace(",", "").strip()
        if not value:
            return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None

def prepare_series(rows: Iterable[Mapping[str, Any]], profile: MetricProfile, tz: Optional[str] = None) -> List[TimePoint]:
    """Rows from the metric history -> sorted, de-duplicated TimePoints.

    Null / non-numeric / non-finite values are skipped. When one date shows up
    twice the larger value wins.
    """
    by_date: Dict[date, float] = {}
    skipped = 0
    for row in rows:
        d = to_date(row.get("date"), tz)
        v = to_float(row.get(profile.field))
        if d is None or v is None:
            skipped += 1
            continue
        if profile.positive_only and v <= 0:
            continue
        if profile.non_negative and v < 0:
            continue
        prev = by_date.get(d)
        if prev is None or v > prev:
            by_date[d] = v
    if skipped:
        logging.debug("%s: skipped %s rows without a usable date/value", profile.key, skipped)
    return [TimePoint(d, by_date[d]) for d in sorted(by_date)]

def dps_growth(series: Iterable[TimePoint]) -> List[Dict[str, Any]]:
    """Year-over-year style growth between consecutive dividend points (%)."""
    points = sorted(series, key=lambda p: p.date)
    out: List[Dict[str, Any]] = []
    for i, p in enumerate(points):
        growth: Optional[float] = None
        if i > 0:
            prev = points[i - 1].value
            if prev > 0 and p.value > 0:
                g = (p.value - prev) / prev * 100.0
                growth = 0.0 if abs(g) < 0.01 else round(g, 2)
        out.append({"date": p.date.isoformat(), "value": p.value, "growth_rate": growth})
    return out

def build_metric_view(
    rows: Iterable[Mapping[str, Any]],
    profile: MetricProfile,
    unit: str = "month",
    reference_date: Optional[date] = None,
    tz: Optional[str] = None,
) -> Dict[str, Any]:
    """Chart buckets + period report for one security and metric (JSON-ready)."""
    unit = normalize_unit(unit)
    series = prepare_series(rows, profile, tz)
    buckets = aggregate_by_period(series, unit, yearly=profile.yearly)
    report = summarize(
        series,
        profile.windows,
        reference_date=reference_date,
        round_to=profile.round_to,
        skip_zero=profile.skip_zero,
    )
    view: Dict[str, Any] = {
        "metric": profile.key,
        "label": profile.label,
        "unit": unit,
        "points": len(series),
        "buckets": [b.to_dict() for b in buckets],
        "report": report.to_dict() if report is not None else None,
    }
    if profile.key == "dps":
        view["growth"] = dps_growth(series)
    return view
