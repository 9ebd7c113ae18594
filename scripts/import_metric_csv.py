#!/usr/bin/env python3
from __future__ import annotations

import argparse
import csv
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional, Tuple

# Ensure repo root is on sys.path when executed from scripts/
REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

from stock_metrics_engine.config import EngineConfig  # noqa: E402
from stock_metrics_engine.db import HISTORY_FIELDS, init_schema, upsert_metric_rows  # noqa: E402
from stock_metrics_engine.metrics import to_date, to_float  # noqa: E402


def _norm_code(val: Optional[str]) -> str:
    text = (val or "").strip()
    return text.zfill(6) if text.isdigit() else text


def parse_row(row: dict, tz: str) -> Optional[Tuple]:
    """CSV row -> (security_id, date, ticker, exchange, bps, per, pbr, eps, div, dps)."""
    ticker = _norm_code(row.get("ticker"))
    exchange = (row.get("exchange") or "").strip().upper()
    security_id = (row.get("security_id") or "").strip() or (f"{exchange}.{ticker}" if exchange and ticker else "")
    d = to_date(row.get("date"), tz)
    if not security_id or d is None:
        return None
    return (security_id, d.isoformat(), ticker or None, exchange or None) + tuple(
        to_float(row.get(f)) for f in HISTORY_FIELDS
    )


def import_csv(csv_path: Path, db_path: str, table: str, tz: str, chunk_size: int = 20000) -> Tuple[int, int]:
    """Returns (imported, skipped)."""
    init_schema(db_path)
    total = 0
    skipped = 0
    batch: List[Tuple] = []
    with csv_path.open("r", encoding="utf-8-sig", newline="") as f:
        for row in csv.DictReader(f):
            rec = parse_row(row, tz)
            if rec is None:
                skipped += 1
                continue
            batch.append(rec)
            if len(batch) >= chunk_size:
                total += upsert_metric_rows(db_path, batch, table)
                batch = []
                logging.info("[import] rows=%s", total)
    if batch:
        total += upsert_metric_rows(db_path, batch, table)
    return total, skipped


def main():
    cfg = EngineConfig()
    ap = argparse.ArgumentParser(description="Import BPS/PER/PBR/EPS/DIV/DPS history CSV into SQLite with upsert.")
    ap.add_argument("--csv", required=True, help="CSV file path (columns: security_id|ticker+exchange, date, bps, per, pbr, eps, div, dps)")
    ap.add_argument("--db", default=cfg.db_path, help="SQLite DB path (default: STOCK_DB_PATH)")
    ap.add_argument("--table", default=cfg.metric_table)
    ap.add_argument("--chunk-size", type=int, default=20000, help="Rows per batch commit")
    args = ap.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    csv_path = Path(args.csv)
    if not csv_path.exists():
        raise SystemExit(f"CSV not found: {csv_path}")

    start_ts = time.time()
    total, skipped = import_csv(csv_path, args.db, args.table, cfg.tz, args.chunk_size)
    elapsed = int(time.time() - start_ts)
    if skipped:
        logging.warning("[import] skipped %s rows without security id or date", skipped)
    print(f"imported {total} rows in {elapsed}s")


if __name__ == "__main__":
    main()
