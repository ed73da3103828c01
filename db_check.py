#!/usr/bin/env python3
"""
db_check.py -- Verify the configured database is reachable and populated.

Uses Postgres if DATABASE_URL is set, otherwise SQLite (DB_PATH).
Exits 0 on success, 1 on any failure.
"""
import sys

import db


def check():
    db.check_config()
    conn = db.connect()
    try:
        cur = conn.cursor()
        cur.execute("SELECT 1")
        if cur.fetchone()[0] != 1:
            raise RuntimeError("database ping failed")
        cur.execute(f'SELECT "ticker" FROM {db.qualified(db.T_LATEST)} LIMIT 1')
        row = cur.fetchone()
        cur.close()
        return row[0] if row else None
    finally:
        conn.close()


def main():
    try:
        sample = check()
    except Exception as e:
        print(f"Database check failed: {e}")
        return 1
    print(f"Connection OK. Sample ticker: {sample}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
