from __future__ import annotations

import argparse
import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import EngineConfig
from .db import (
    RANK_METRICS,
    count_ranks,
    fetch_metric_history,
    fetch_rank_page,
    get_security,
    list_company_ids,
    list_security_ids,
    search_securities,
)
from .exporter import write_csv
from .metrics import METRIC_KEYS, build_metric_view, get_profile
from .pagination import compute_total_pages_mixed
from .recent import RecentSecurities
from .sitemap import build_chunks, render_sitemap_index, render_urlset, sitemap_urls, with_base_url

def _p(obj: Any) -> None:
    print(json.dumps(obj, ensure_ascii=False, indent=2, default=str))

def _as_of(text: Optional[str]) -> Optional[date]:
    if not text:
        return None
    return date.fromisoformat(text)

def _view(args: argparse.Namespace, unit: str) -> Optional[Dict[str, Any]]:
    cfg = EngineConfig(db_path=args.db)
    profile = get_profile(args.metric)
    sec = get_security(cfg.db_path, args.security)
    if sec is None:
        _p({"ok": False, "error": "unknown_security", "security": args.security})
        return None
    rows = fetch_metric_history(cfg.db_path, args.security, table=cfg.metric_table)
    return build_metric_view(rows, profile, unit=unit, reference_date=_as_of(args.as_of), tz=cfg.tz)

def cmd_summary(args: argparse.Namespace) -> None:
    view = _view(args, "month")
    if view is None:
        return
    _p({"ok": True, "security": args.security, "metric": view["metric"], "points": view["points"], "report": view["report"]})

def cmd_chart(args: argparse.Namespace) -> None:
    view = _view(args, args.unit)
    if view is None:
        return
    _p({"ok": True, "security": args.security, **view})

def cmd_rank(args: argparse.Namespace) -> None:
    cfg = EngineConfig(db_path=args.db)
    rows, latest = fetch_rank_page(cfg.db_path, args.metric, page=args.page, order=args.order)
    total = count_ranks(cfg.db_path, args.metric)
    out: Dict[str, Any] = {
        "ok": True,
        "metric": args.metric,
        "page": args.page,
        "total_pages": compute_total_pages_mixed(total),
        "latest_date": latest,
        "items": rows,
    }
    if args.csv:
        out["csv_rows"] = write_csv(rows, args.csv)
        out["csv_path"] = args.csv
    _p(out)

def cmd_search(args: argparse.Namespace) -> None:
    cfg = EngineConfig(db_path=args.db)
    _p({"ok": True, "query": args.query, "items": search_securities(cfg.db_path, args.query, limit=args.limit or cfg.search_limit)})

def cmd_sitemap(args: argparse.Namespace) -> None:
    cfg = EngineConfig(db_path=args.db)
    base_url = args.base_url or cfg.site_url
    counts = {m: count_ranks(cfg.db_path, m) for m in RANK_METRICS}
    company_ids = list_company_ids(cfg.db_path)
    chunks = build_chunks(counts, len(company_ids), list_security_ids(cfg.db_path), company_ids, size=cfg.sitemap_chunk_size)

    now = datetime.now()
    out_dir = Path(args.out)
    written: List[str] = []
    for segment, parts in chunks.items():
        for n, paths in enumerate(parts, start=1):
            p = out_dir / "sitemaps" / segment / f"{n}.xml"
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_text(render_urlset(with_base_url(paths, now, base_url)), encoding="utf-8")
            written.append(str(p))
    index = out_dir / "sitemap.xml"
    index.parent.mkdir(parents=True, exist_ok=True)
    index.write_text(render_sitemap_index(sitemap_urls(chunks, base_url), now), encoding="utf-8")
    logging.info("sitemap: %s chunk files under %s", len(written), out_dir)
    _p({"ok": True, "index": str(index), "files": written, "urls": {k: sum(len(c) for c in v) for k, v in chunks.items()}})

def cmd_recent(args: argparse.Namespace) -> None:
    cfg = EngineConfig(db_path=args.db)
    store = RecentSecurities(args.store or cfg.recent_store_path, max_items=cfg.recent_max_items)
    if args.action == "list":
        _p({"ok": True, "items": store.list()})
    elif args.action == "add":
        if not args.security or not args.metric:
            raise ValueError("recent add needs --security and --metric")
        sec = get_security(cfg.db_path, args.security) or {}
        entry = store.add(
            {
                "sec_code": args.security,
                "name": sec.get("name"),
                "kor_name": sec.get("kor_name"),
                "ticker": sec.get("ticker"),
                "exchange": sec.get("exchange"),
            },
            args.metric,
            args.value if args.value is not None else sec.get(args.metric),
        )
        _p({"ok": True, "entry": entry})
    elif args.action == "remove":
        if not args.security:
            raise ValueError("recent remove needs --security")
        _p({"ok": True, "removed": store.remove(args.security)})
    else:
        store.clear()
        _p({"ok": True})

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="stock_metrics_engine", description="Valuation-metric charts, period reports and rankings (KRX).")
    p.add_argument("--db", default=EngineConfig().db_path, help="SQLite DB path (default: STOCK_DB_PATH or data/market_data.db)")

    sub = p.add_subparsers(dest="cmd", required=True)

    p_sum = sub.add_parser("summary", help="Period report (latest, 12M..20Y averages, min/max) for one security")
    p_sum.add_argument("--security", required=True, help="Security id, e.g. KOSPI.005930")
    p_sum.add_argument("--metric", required=True, choices=METRIC_KEYS)
    p_sum.add_argument("--as-of", default=None, help="Reference date YYYY-MM-DD (default: today KST)")
    p_sum.set_defaults(func=cmd_summary)

    p_ch = sub.add_parser("chart", help="Chart buckets for one security")
    p_ch.add_argument("--security", required=True)
    p_ch.add_argument("--metric", required=True, choices=METRIC_KEYS)
    p_ch.add_argument("--unit", default="month", choices=("day", "week", "month", "year"))
    p_ch.add_argument("--as-of", default=None)
    p_ch.set_defaults(func=cmd_chart)

    p_rank = sub.add_parser("rank", help="One ranking page (page 1: 20 rows, later pages: 100)")
    p_rank.add_argument("--metric", required=True, choices=RANK_METRICS)
    p_rank.add_argument("--page", type=int, default=1)
    p_rank.add_argument("--order", default="asc", choices=("asc", "desc"))
    p_rank.add_argument("--csv", default=None, help="Also write the page as CSV to this path")
    p_rank.set_defaults(func=cmd_rank)

    p_search = sub.add_parser("search", help="Search securities by ticker or name")
    p_search.add_argument("query")
    p_search.add_argument("--limit", type=int, default=None)
    p_search.set_defaults(func=cmd_search)

    p_sm = sub.add_parser("sitemap", help="Write sitemap index + chunk files")
    p_sm.add_argument("--out", required=True)
    p_sm.add_argument("--base-url", default=None, help="Site URL (default: SITE_URL)")
    p_sm.set_defaults(func=cmd_sitemap)

    p_rec = sub.add_parser("recent", help="Recently viewed securities")
    p_rec.add_argument("action", choices=("list", "add", "remove", "clear"))
    p_rec.add_argument("--store", default=None, help="JSON store path (default: RECENT_STORE_PATH)")
    p_rec.add_argument("--security", default=None)
    p_rec.add_argument("--metric", default=None, choices=RANK_METRICS)
    p_rec.add_argument("--value", type=float, default=None)
    p_rec.set_defaults(func=cmd_recent)

    return p

def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    p = build_parser()
    args = p.parse_args(argv)
    try:
        args.func(args)
    except ValueError as exc:
        _p({"ok": False, "error": str(exc)})
        return 1
    return 0

if __name__ == "__main__":
    raise SystemExit(main())
