"""
Database access for the ranking dashboard.
Supports Postgres (DATABASE_URL) and SQLite (local dev).
"""
import os
import re
import time
import sqlite3
import logging
from concurrent.futures import ThreadPoolExecutor
from flask import g

# ── Database config ────────────────────────────────────────
# If DATABASE_URL is set, use Postgres. Otherwise fall back to SQLite.
DATABASE_URL = os.environ.get("DATABASE_URL")
DB_PATH = os.environ.get("DB_PATH", "ranking.db")
DB_SCHEMA = os.environ.get("DB_SCHEMA", "public")
PGSSLMODE = os.environ.get("PGSSLMODE")

USE_POSTGRES = DATABASE_URL is not None

if USE_POSTGRES:
    import psycopg2
    print("[DB] Using Postgres")
else:
    print(f"[DB] Using SQLite: {DB_PATH}")

P = '%s' if USE_POSTGRES else '?'
LIKE = 'ILIKE' if USE_POSTGRES else 'LIKE'

T_LATEST = "statusinvest_latest"
T_RANK = "ranking_magic_checklist"


class ConfigError(RuntimeError):
    pass


def check_config():
    """Fail fast when there is no usable database configured."""
    if USE_POSTGRES:
        if not DATABASE_URL.strip():
            raise ConfigError("DATABASE_URL is set but empty")
        return
    if not os.path.exists(DB_PATH):
        raise ConfigError(
            f"DATABASE_URL not set and SQLite database not found at {DB_PATH}. "
            "Run setup_database.py first."
        )


def _use_ssl():
    return PGSSLMODE == "require" or bool(re.search(r"sslmode=require", DATABASE_URL or ""))


def connect():
    """Open a new connection. Callers own it and must close it."""
    if USE_POSTGRES:
        kwargs = {"connect_timeout": 10}
        if _use_ssl() and "sslmode" not in DATABASE_URL:
            kwargs["sslmode"] = "require"
        return psycopg2.connect(DATABASE_URL, **kwargs)
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    return conn


def qualified(table):
    """Schema-qualified, quoted table name. SQLite has no schemas here."""
    if USE_POSTGRES:
        return f'"{DB_SCHEMA}"."{table}"'
    return f'"{table}"'


# ── Per-request connection ─────────────────────────────────

def get_db():
    if 'db' not in g:
        g.db = connect()
    return g.db


def close_db(exc=None):
    db = g.pop('db', None)
    if db:
        db.close()


def _run(conn, query, params, fetch):
    start = time.monotonic()
    cur = conn.cursor()
    try:
        cur.execute(query, params or ())
        columns = [desc[0] for desc in cur.description] if cur.description else []
        if fetch == "one":
            rows = cur.fetchone()
        elif fetch == "all":
            rows = cur.fetchall()
        else:
            rows = None
    finally:
        cur.close()
    duration = (time.monotonic() - start) * 1000
    logging.debug(f"SQL {duration:.0f}ms | {' '.join(query.split())} | {list(params or ())}")
    return columns, rows


def db_execute(query, params=None):
    """Execute a query, returning (columns, rows). Handles both PG and SQLite."""
    return _run(get_db(), query, params, "all")


def db_fetchone(query, params=None):
    """Fetch a single row."""
    return _run(get_db(), query, params, "one")


def db_execute_write(query, params=None):
    """Execute a write query (INSERT/UPDATE/DELETE)."""
    db = get_db()
    try:
        _run(db, query, params, None)
        db.commit()
    except Exception:
        db.rollback()
        raise


def _execute_standalone(query, params):
    conn = connect()
    try:
        return _run(conn, query, params, "all")
    finally:
        conn.close()


def db_execute_concurrent(*statements):
    """
    Run independent read statements at the same time, each on its own
    connection. Takes (query, params) pairs and returns their (columns, rows)
    results in the same order.
    """
    with ThreadPoolExecutor(max_workers=len(statements)) as pool:
        futures = [pool.submit(_execute_standalone, q, p) for q, p in statements]
        return [f.result() for f in futures]


# ── Row conversion ─────────────────────────────────────────

def to_python(val):
    # Decimal -> float for JSON
    if hasattr(val, 'as_tuple'):
        return float(val)
    return val


def row_to_dict(columns, row):
    return {col: to_python(row[i]) for i, col in enumerate(columns)}


def rows_to_dicts(columns, rows):
    return [row_to_dict(columns, r) for r in rows]
