"""Pytest configuration and fixtures."""
import os
import sqlite3

# The suite runs against a throwaway SQLite file
os.environ.pop("DATABASE_URL", None)

import pytest

import db
import app as app_module
from setup_database import create_database

# (ticker, company_name, sector, price, final_rank)
STOCKS = [
    ("ITSA4", "Itausa", "Financeiro", 10.0, 1),
    ("PETR4", "Petrobras", "Petroleo", 20.0, 2),
    ("VALE3", "Vale", "Mineracao", 30.0, 3),
    ("BBAS3", "Banco do Brasil", "Financeiro", 40.0, 4),
    ("CMIG4", "Cemig", "Energia", 50.0, 5),
    ("TAEE11", "Taesa", "Energia", 60.0, 6),
    ("GOAU4", "Metalurgica Gerdau", "Siderurgia", 70.0, 7),
    ("CSMG3", "Copasa", "Saneamento", 80.0, 8),
    ("UNIP6", "Unipar", "Quimica", 90.0, 9),
    ("WEGE3", "WEG", "Industria", 100.0, 10),
    ("KLBN11", "Klabin", "Papel", 110.0, 11),
    ("RENT3", "Localiza", "Locacao", 120.0, 25),
]
# In the snapshot but not ranked
UNRANKED = ("MGLU3", "Magazine Luiza", "Varejo", 5.0)


def seed(path):
    conn = sqlite3.connect(path)
    for idx, (ticker, name, sector, price, rank) in enumerate(STOCKS, start=1):
        conn.execute(
            """INSERT INTO statusinvest_latest
               (ticker, company_name, sector, price, earning_yield, roic_pct, i10_score, liquidity, market_cap)
               VALUES (?,?,?,?,?,?,?,?,?)""",
            (ticker, name, sector, price, idx / 100, idx * 2.0, idx * 1.5, idx * 1_000_000, idx * 1e9),
        )
        conn.execute(
            """INSERT INTO ranking_magic_checklist
               (ticker, earning_yield, roic_pct, i10_score, mf_rank, final_rank, liquidity, market_cap, notes)
               VALUES (?,?,?,?,?,?,?,?,?)""",
            (ticker, idx / 100, idx * 2.0, idx * 1.5, rank, rank, idx * 1_000_000, idx * 1e9, None),
        )
    ticker, name, sector, price = UNRANKED
    idx = len(STOCKS) + 1
    conn.execute(
        """INSERT INTO statusinvest_latest
           (ticker, company_name, sector, price, earning_yield, roic_pct, i10_score, liquidity, market_cap)
           VALUES (?,?,?,?,?,?,?,?,?)""",
        (ticker, name, sector, price, idx / 100, idx * 2.0, idx * 1.5, idx * 1_000_000, idx * 1e9),
    )
    conn.commit()
    conn.close()


def use_database(path, monkeypatch):
    monkeypatch.setattr(db, "DB_PATH", path)
    app_module.COLUMN_CACHE.clear()


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    path = str(tmp_path / "ranking.db")
    create_database(path)
    seed(path)
    use_database(path, monkeypatch)
    yield path
    app_module.COLUMN_CACHE.clear()


@pytest.fixture
def portfolio_path(tmp_path, monkeypatch):
    path = str(tmp_path / "portfolio.json")
    monkeypatch.setattr(app_module.portfolio_store, "path", path)
    return path


@pytest.fixture
def client(db_path, portfolio_path):
    app_module.app.config["TESTING"] = True
    with app_module.app.test_client() as c:
        yield c


@pytest.fixture
def app_ctx(db_path):
    with app_module.app.app_context():
        yield
