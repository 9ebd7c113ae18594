from __future__ import annotations

import os
from dataclasses import dataclass

def _env_int(key: str, default: int) -> int:
    v = os.getenv(key)
    if v is None or v == "":
        return default
    try:
        return int(v)
    except ValueError:
        return default

def _env_str(key: str, default: str) -> str:
    v = os.getenv(key)
    return v if v not in (None, "") else default

def _env_bool(key: str, default: bool = True) -> bool:
    v = os.getenv(key)
    if v is None or v == "":
        return default
    return v.strip().lower() not in ("0", "false", "no", "off")

@dataclass(frozen=True)
class EngineConfig:
    # Data
    db_path: str = _env_str("STOCK_DB_PATH", "data/market_data.db")
    metric_table: str = _env_str("STOCK_METRIC_TABLE", "bppedd")

    # Calendar dates are bucketed in this zone (KRX trading days)
    tz: str = _env_str("METRICS_TZ", "Asia/Seoul")

    # Sitemap
    site_url: str = _env_str("SITE_URL", "https://example.kr")
    sitemap_chunk_size: int = _env_int("SITEMAP_CHUNK_SIZE", 5000)

    # Recently viewed securities (per-user JSON file)
    recent_store_path: str = _env_str("RECENT_STORE_PATH", "data/recent_securities.json")
    recent_max_items: int = _env_int("RECENT_MAX_ITEMS", 10)

    # Search
    search_limit: int = _env_int("SEARCH_LIMIT", 20)

    # Server
    server_host: str = _env_str("METRICS_SERVER_HOST", "0.0.0.0")
    server_port: int = _env_int("METRICS_SERVER_PORT", 5002)
    cors_enabled: bool = _env_bool("METRICS_CORS", True)
