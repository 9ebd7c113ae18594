"""Shared fixtures: a small seeded SQLite database."""

import sqlite3
from pathlib import Path

import pytest

from stock_metrics_engine.db import init_schema, upsert_metric_rows

SAMSUNG = "KOSPI.005930"
HYNIX = "KOSPI.000660"
KAKAO = "KOSDAQ.035720"
DELISTED = "KOSPI.999999"
RANK_DATE = "2024-01-02"


def _seed(db_path: str) -> None:
    init_schema(db_path)
    conn = sqlite3.connect(db_path)
    try:
        conn.executemany(
            "INSERT INTO company(company_id, name, kor_name, marketcap) VALUES (?,?,?,?)",
            [
                ("C005930", "Samsung Electronics", "삼성전자", 400_000_000_000_000),
                ("C000660", "SK hynix", "SK하이닉스", 100_000_000_000_000),
                ("C035720", "Kakao", "카카오", 20_000_000_000_000),
            ],
        )
        conn.executemany(
            "INSERT INTO security(security_id, company_id, ticker, name, kor_name, exchange, type,"
            " delisting_date, marketcap, per, pbr, eps, bps, div, dps)"
            " VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)",
            [
                (SAMSUNG, "C005930", "005930", "Samsung Electronics", "삼성전자", "KOSPI", "EQUITY",
                 None, 400_000_000_000_000, 40.0, 1.5, 2000.0, 50000.0, 2.0, 1444.0),
                (HYNIX, "C000660", "000660", "SK hynix", "SK하이닉스", "KOSPI", "EQUITY",
                 None, 100_000_000_000_000, 25.0, 2.1, 4000.0, 70000.0, 1.0, 1200.0),
                (KAKAO, "C035720", "035720", "Kakao", "카카오", "KOSDAQ", "EQUITY",
                 None, 20_000_000_000_000, 80.0, 2.5, 500.0, 30000.0, 0.1, 60.0),
                (DELISTED, None, "999999", "Gone Corp", "사라진회사", "KOSPI", "EQUITY",
                 "2020-01-01", None, None, None, None, None, None, None),
            ],
        )
        conn.executemany(
            "INSERT INTO security_rank(security_id, metric_type, rank_date, current_rank, prior_rank, value)"
            " VALUES (?,?,?,?,?,?)",
            [
                (HYNIX, "per", RANK_DATE, 1, 2, 25.0),
                (SAMSUNG, "per", RANK_DATE, 2, 1, 40.0),
                (KAKAO, "per", RANK_DATE, 3, 3, 80.0),
                (DELISTED, "per", RANK_DATE, 4, 4, 99.0),
                (SAMSUNG, "per", "2023-12-01", 5, 5, 30.0),
                (SAMSUNG, "marketcap", RANK_DATE, 1, 1, 4e14),
            ],
        )
        conn.commit()
    finally:
        conn.close()

    # yearly PER/DPS history for Samsung, one junk row (NULL per)
    upsert_metric_rows(
        db_path,
        [
            (SAMSUNG, "2021-12-31", "005930", "KOSPI", 40000.0, 10.0, 1.2, 1500.0, 2.5, 1416.0),
            (SAMSUNG, "2022-12-31", "005930", "KOSPI", 45000.0, 20.0, 1.3, 1800.0, 2.2, 1444.0),
            (SAMSUNG, "2023-12-31", "005930", "KOSPI", 50000.0, 40.0, 1.5, 2000.0, 2.0, 1444.0),
            (SAMSUNG, "2023-06-30", "005930", "KOSPI", 48000.0, None, 1.4, 1900.0, 2.1, 0.0),
        ],
    )


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    path = str(tmp_path / "market_data.db")
    _seed(path)
    return path
