import sqlite3

def create_database(db_path='ranking.db'):
    conn = sqlite3.connect(db_path)
    cursor = conn.cursor()

    # Latest market snapshot, one row per ticker
    cursor.execute("""
    CREATE TABLE IF NOT EXISTS statusinvest_latest (
        ticker TEXT PRIMARY KEY,
        company_name TEXT,
        sector TEXT,
        price REAL,
        earning_yield REAL,
        roic_pct REAL,
        i10_score REAL,
        liquidity REAL,
        market_cap REAL,
        last_updated TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """)

    # Output of the ranking batch; notes are the only user-edited column
    cursor.execute("""
    CREATE TABLE IF NOT EXISTS ranking_magic_checklist (
        ticker TEXT PRIMARY KEY,
        earning_yield REAL,
        roic_pct REAL,
        i10_score REAL,
        mf_rank REAL,
        final_rank INTEGER,
        liquidity REAL,
        market_cap REAL,
        notes TEXT
    )
    """)

    for idx in [
        "CREATE INDEX IF NOT EXISTS idx_latest_sector ON statusinvest_latest(sector)",
        "CREATE INDEX IF NOT EXISTS idx_latest_market_cap ON statusinvest_latest(market_cap)",
        "CREATE INDEX IF NOT EXISTS idx_rank_final_rank ON ranking_magic_checklist(final_rank)",
    ]:
        cursor.execute(idx)

    conn.commit()
    conn.close()
    print(f"Database ready: {db_path}")

if __name__ == "__main__":
    import sys
    create_database(sys.argv[1] if len(sys.argv) > 1 else 'ranking.db')
