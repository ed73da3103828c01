import sqlite3
import psycopg2
from psycopg2.extras import execute_batch
import sys

from load_data import clean_value

POSTGRES_SCHEMA = """
CREATE TABLE IF NOT EXISTS statusinvest_latest (
    ticker VARCHAR(12) PRIMARY KEY,
    company_name TEXT,
    sector TEXT,
    price NUMERIC,
    earning_yield NUMERIC,
    roic_pct NUMERIC,
    i10_score NUMERIC,
    liquidity NUMERIC,
    market_cap NUMERIC,
    last_updated TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
CREATE TABLE IF NOT EXISTS ranking_magic_checklist (
    ticker VARCHAR(12) PRIMARY KEY,
    earning_yield NUMERIC,
    roic_pct NUMERIC,
    i10_score NUMERIC,
    mf_rank NUMERIC,
    final_rank INTEGER,
    liquidity NUMERIC,
    market_cap NUMERIC,
    notes TEXT
);
CREATE INDEX IF NOT EXISTS idx_latest_sector ON statusinvest_latest(sector);
CREATE INDEX IF NOT EXISTS idx_rank_final_rank ON ranking_magic_checklist(final_rank);
"""

TEXT_COLUMNS = {'ticker', 'company_name', 'sector', 'notes', 'last_updated'}

def clean_text(value):
    if value is None or value == '' or value == '-' or value == '- -':
        return None
    return str(value).strip()

def copy_table(sqlite_cursor, pg_conn, table, batch_size=50):
    sqlite_cursor.execute(f"SELECT * FROM {table}")
    rows = sqlite_cursor.fetchall()
    cols = [desc[0] for desc in sqlite_cursor.description]

    cleaned = []
    for row in rows:
        cleaned_row = []
        for i, value in enumerate(row):
            if cols[i] in TEXT_COLUMNS:
                cleaned_row.append(clean_text(value))
            else:
                cleaned_row.append(clean_value(value))
        cleaned.append(tuple(cleaned_row))

    insert_sql = f"INSERT INTO {table} ({','.join(cols)}) VALUES ({','.join(['%s']*len(cols))}) ON CONFLICT (ticker) DO NOTHING"

    pg_cursor = pg_conn.cursor()
    for i in range(0, len(cleaned), batch_size):
        batch = cleaned[i:i+batch_size]
        execute_batch(pg_cursor, insert_sql, batch, page_size=batch_size)
        pg_conn.commit()
        print(f"  Progress: {min(i+batch_size, len(cleaned))}/{len(cleaned)}")
    return len(cleaned)

def migrate(sqlite_db='ranking.db', postgres_url=None):
    if not postgres_url:
        print("Error: PostgreSQL URL required")
        print("Usage: python migrate.py <postgres_url>")
        return

    print("Connecting to SQLite...")
    sqlite_conn = sqlite3.connect(sqlite_db)
    sqlite_cursor = sqlite_conn.cursor()

    print("Connecting to PostgreSQL...")
    if 'sslmode' not in postgres_url:
        postgres_url += '?sslmode=require'
    pg_conn = psycopg2.connect(postgres_url)
    pg_cursor = pg_conn.cursor()

    print("Creating schema...")
    pg_cursor.execute(POSTGRES_SCHEMA)
    pg_conn.commit()

    for table in ('statusinvest_latest', 'ranking_magic_checklist'):
        print(f"\nMigrating {table}...")
        count = copy_table(sqlite_cursor, pg_conn, table)
        print(f"Migrated {count} rows")

    sqlite_conn.close()
    pg_conn.close()
    print("\nMigration complete!")

if __name__ == "__main__":
    postgres_url = sys.argv[1] if len(sys.argv) > 1 else None
    migrate('ranking.db', postgres_url)
