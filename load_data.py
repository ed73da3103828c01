"""
Load CSV exports of the market snapshot and the ranking into SQLite.

Usage:
    python load_data.py [snapshot.csv] [ranking.csv] [db_path]
"""
import sqlite3
import csv
import re
from datetime import datetime

SNAPSHOT_COLUMNS = [
    'ticker', 'company_name', 'sector', 'price', 'earning_yield',
    'roic_pct', 'i10_score', 'liquidity', 'market_cap',
]
RANKING_COLUMNS = [
    'ticker', 'earning_yield', 'roic_pct', 'i10_score', 'mf_rank',
    'final_rank', 'liquidity', 'market_cap', 'notes',
]
TEXT_COLUMNS = {'ticker', 'company_name', 'sector', 'notes'}

# Header spellings seen in exports -> column name
HEADER_ALIASES = {
    'nome_empresa': 'company_name', 'empresa': 'company_name', 'company': 'company_name',
    'setor': 'sector',
    'preco': 'price', 'cotacao': 'price', 'last_price': 'price', 'current_price': 'price',
    'liquidez': 'liquidity', 'liquidez_media_diaria': 'liquidity',
    'marketcap': 'market_cap', 'valor_de_mercado': 'market_cap',
    'ey': 'earning_yield', 'roic': 'roic_pct',
    'mf_rank': 'mf_rank', 'rank': 'final_rank',
}

def clean_value(value):
    """Numbers from Brazilian or plain exports: '1.234,56' and '1234.56' both parse."""
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return value
    value = str(value).strip().replace('%', '').replace('R$', '').strip()
    if value in ('', '-', '- -', 'N/A'):
        return None
    if re.match(r'^-?[\d.]+,\d+$', value):
        value = value.replace('.', '').replace(',', '.')
    else:
        value = value.replace(',', '')
    try:
        return float(value) if '.' in value else int(value)
    except ValueError:
        return None

def clean_company_name(name):
    if not name:
        return None
    name = name.replace('\r', '').replace('\n', '')
    name = ' '.join(name.split())
    return name.strip() or None

def normalize_header(header):
    key = header.strip().lower().replace(' ', '_')
    return HEADER_ALIASES.get(key, key)

def read_rows(csv_file, columns):
    """Rows of csv_file restricted to columns, cleaned. Rows without a ticker are skipped."""
    rows = []
    with open(csv_file, 'r', encoding='utf-8') as f:
        reader = csv.DictReader(f)
        for raw in reader:
            row = {}
            for header, value in raw.items():
                if header is None:
                    continue
                col = normalize_header(header)
                if col not in columns or col in row:
                    continue
                if col == 'company_name':
                    row[col] = clean_company_name(value)
                elif col in TEXT_COLUMNS:
                    row[col] = (value or '').strip() or None
                else:
                    row[col] = clean_value(value)
            if row.get('ticker'):
                row['ticker'] = row['ticker'].upper()
                rows.append(row)
    return rows

def upsert_rows(cursor, table, rows):
    for row in rows:
        columns = list(row.keys())
        placeholders = ','.join(['?' for _ in columns])
        cursor.execute(
            f"INSERT OR REPLACE INTO {table} ({','.join(columns)}) VALUES ({placeholders})",
            [row[c] for c in columns],
        )

def load_data(snapshot_csv='statusinvest_latest.csv', ranking_csv='ranking_magic_checklist.csv', db_path='ranking.db'):
    conn = sqlite3.connect(db_path)
    cursor = conn.cursor()

    snapshot = read_rows(snapshot_csv, SNAPSHOT_COLUMNS)
    for row in snapshot:
        row['last_updated'] = datetime.now()
    print(f"Loading {len(snapshot)} snapshot rows...")
    upsert_rows(cursor, 'statusinvest_latest', snapshot)
    conn.commit()

    ranking = read_rows(ranking_csv, RANKING_COLUMNS)
    print(f"Loading {len(ranking)} ranking rows...")
    upsert_rows(cursor, 'ranking_magic_checklist', ranking)
    conn.commit()

    cursor.execute("SELECT COUNT(*) FROM statusinvest_latest")
    total = cursor.fetchone()[0]
    cursor.execute("SELECT COUNT(*) FROM ranking_magic_checklist WHERE final_rank IS NOT NULL")
    ranked = cursor.fetchone()[0]
    conn.close()

    print(f"Complete: {total} stocks in snapshot")
    print(f"{ranked} stocks have a final rank")

if __name__ == "__main__":
    import sys
    load_data(sys.argv[1] if len(sys.argv) > 1 else 'statusinvest_latest.csv',
              sys.argv[2] if len(sys.argv) > 2 else 'ranking_magic_checklist.csv',
              sys.argv[3] if len(sys.argv) > 3 else 'ranking.db')
