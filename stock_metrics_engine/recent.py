from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .formatting import METRIC_LABELS, format_metric_value

class RecentSecurities:
    """Recently viewed securities, newest first, persisted as a JSON list.

    Each entry: {sec_code, name, kor_name, ticker, exchange, last_viewed,
    metrics: {metric: {value, last_viewed}}}.
    """

    def __init__(self, path: str = "data/recent_securities.json", max_items: int = 10):
        self.path = Path(path)
        self.max_items = max(1, int(max_items))

    def _load(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logging.warning("recent store unreadable (%s): %s", self.path, exc)
            return []
        if not isinstance(data, list):
            return []
        return [d for d in data if isinstance(d, dict) and d.get("sec_code")]

    def _save(self, items: List[Dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(items, ensure_ascii=False, indent=2), encoding="utf-8")

    def list(self) -> List[Dict[str, Any]]:
        return sorted(self._load(), key=lambda d: float(d.get("last_viewed") or 0.0), reverse=True)

    def add(self, security: Mapping[str, Any], metric: str, value: Optional[float] = None) -> Dict[str, Any]:
        if metric not in METRIC_LABELS:
            raise ValueError(f"Unknown metric: {metric}")
        sec_code = str(security.get("sec_code") or "").strip()
        if not sec_code:
            raise ValueError("security.sec_code is required")

        now = time.time()
        items = self.list()
        existing = next((d for d in items if d["sec_code"] == sec_code), None)
        if existing is not None:
            items.remove(existing)
            entry = existing
        else:
            entry = {
                "sec_code": sec_code,
                "name": security.get("name"),
                "kor_name": security.get("kor_name"),
                "ticker": security.get("ticker"),
                "exchange": security.get("exchange"),
                "metrics": {},
            }
        entry.setdefault("metrics", {})[metric] = {
            "value": value,
            "display": format_metric_value(metric, value),
            "last_viewed": now,
        }
        entry["last_viewed"] = now
        items.insert(0, entry)
        del items[self.max_items :]
        self._save(items)
        return entry

    def remove(self, sec_code: str) -> bool:
        items = self.list()
        kept = [d for d in items if d["sec_code"] != sec_code]
        if len(kept) == len(items):
            return False
        self._save(kept)
        return True

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass

    def contains(self, sec_code: str) -> bool:
        return any(d["sec_code"] == sec_code for d in self._load())
