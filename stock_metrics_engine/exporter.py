from __future__ import annotations

import csv
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

def to_frame(rows: Sequence[Mapping[str, Any]], columns: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """List rows -> DataFrame; the first row's keys define the column order."""
    if not rows:
        return pd.DataFrame([], columns=list(columns or []))
    cols = list(columns) if columns else list(rows[0].keys())
    df = pd.DataFrame([{c: r.get(c) for c in cols} for r in rows], columns=cols, dtype=object)
    return df.replace([np.inf, -np.inf], np.nan)

def json_records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """DataFrame -> records with NaN/inf as None (safe for jsonify)."""
    df = df.replace([np.inf, -np.inf], np.nan)
    df = df.astype(object).where(pd.notnull(df), None)
    return df.to_dict(orient="records")

def rows_to_csv(rows: Sequence[Mapping[str, Any]], columns: Optional[Sequence[str]] = None) -> str:
    if not rows:
        return ""
    df = to_frame(rows, columns)
    return df.to_csv(index=False, lineterminator="\n", quoting=csv.QUOTE_MINIMAL, na_rep="")

def write_csv(rows: Sequence[Mapping[str, Any]], path: str, columns: Optional[Sequence[str]] = None) -> int:
    """Write rows as UTF-8 CSV with BOM (opens cleanly in Excel). Returns row count."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(rows_to_csv(rows, columns), encoding="utf-8-sig")
    return len(rows)

def export_filename(metric: str, page: int, latest_date: Optional[str]) -> str:
    return f"{metric}-page-{int(page)}-{latest_date or 'latest'}.csv"
