"""
Read paths over the Magic Formula ranking (ranking_magic_checklist) and the
latest market snapshot (statusinvest_latest).
"""
from dataclasses import dataclass, asdict
from typing import Optional

import db
from db import T_LATEST, T_RANK
from query_builder import (
    build_filters, build_order_by, allowed_sort_cols, select_snapshot_columns,
    first_present, normalize_tickers, NAME_COLS, SECTOR_COLS,
)

PRICE_COLS = ("price", "preco", "cotacao", "last_price", "current_price")

CHECKLIST_SORT = [
    "ticker", "earning_yield", "roic_pct", "i10_score",
    "MF_rank", "final_rank", "liquidity", "market_cap",
]
CHECKLIST_PHYSICAL = {"MF_rank": "mf_rank"}

CHECKLIST_NUMERIC = ["earning_yield", "roic_pct", "i10_score", "mf_rank", "liquidity", "market_cap"]


class SchemaError(RuntimeError):
    """A column the query needs is missing from the table."""


# ── Row shapes ─────────────────────────────────────────────

@dataclass
class StockSnapshot:
    ticker: str
    company_name: Optional[str] = None
    sector: Optional[str] = None
    earning_yield: Optional[float] = None
    roic_pct: Optional[float] = None
    i10_score: Optional[float] = None
    liquidity: Optional[float] = None
    market_cap: Optional[float] = None

    def to_json(self):
        return asdict(self)


@dataclass
class TickerDetail(StockSnapshot):
    notes: Optional[str] = None
    in_checklist: bool = False


@dataclass
class RankedStock:
    ticker: str
    company_name: Optional[str] = None
    sector: Optional[str] = None
    earning_yield: Optional[float] = None
    roic_pct: Optional[float] = None
    i10_score: Optional[float] = None
    mf_rank: Optional[float] = None
    final_rank: Optional[int] = None
    liquidity: Optional[float] = None
    market_cap: Optional[float] = None
    notes: Optional[str] = None

    def to_json(self):
        d = asdict(self)
        d["MF_rank"] = d.pop("mf_rank")
        return d


def as_rank(val):
    val = db.to_python(val)
    return int(val) if val is not None else None


def _records(cls, columns, rows):
    out = []
    for d in db.rows_to_dicts(columns, rows):
        if "final_rank" in d:
            d["final_rank"] = as_rank(d["final_rank"])
        out.append(cls(**d))
    return out


# ── Listings ───────────────────────────────────────────────

def _list(select_sql, from_sql, where_sql, values, order_by, page):
    P = db.P
    sql = f"""
        SELECT {select_sql}
          FROM {from_sql}
          {where_sql}
          {order_by}
         LIMIT {P} OFFSET {P}
    """
    count_sql = f"""
        SELECT CAST(COUNT(*) AS integer) AS total
          FROM {from_sql}
          {where_sql}
    """
    (cols, rows), (_, count_rows) = db.db_execute_concurrent(
        (sql, [*values, page.page_size, page.offset]),
        (count_sql, values),
    )
    total = count_rows[0][0] if count_rows else 0
    return cols, rows, total or 0


def list_checklist(cache, flt, sort, page):
    """Ranked stocks joined with their snapshot. Returns (rows, total)."""
    rank_cols = cache.get_columns(T_RANK)
    latest_cols = cache.get_columns(T_LATEST)

    def rank_num(col):
        if col in rank_cols:
            return f'CAST(r."{col}" AS double precision) AS {col}'
        return f"NULL AS {col}"

    def latest_text(out, *candidates):
        col = first_present(latest_cols, *candidates)
        return f'l."{col}" AS {out}' if col else f"NULL AS {out}"

    select_sql = ", ".join([
        'r."ticker"',
        latest_text("company_name", *NAME_COLS),
        latest_text("sector", *SECTOR_COLS),
        *[rank_num(c) for c in CHECKLIST_NUMERIC],
        'r."final_rank" AS final_rank' if "final_rank" in rank_cols else "NULL AS final_rank",
        'r."notes" AS notes' if "notes" in rank_cols else "NULL AS notes",
    ])
    from_sql = f'{db.qualified(T_RANK)} r LEFT JOIN {db.qualified(T_LATEST)} l ON l."ticker" = r."ticker"'

    where_sql, values = build_filters(flt, rank_cols, "r", joined=[("l", latest_cols)])
    allowed = [c for c in CHECKLIST_SORT if CHECKLIST_PHYSICAL.get(c, c) in rank_cols]
    default = "final_rank" if "final_rank" in rank_cols else "ticker"
    order_by = build_order_by(sort, allowed, "r", default=default, physical=CHECKLIST_PHYSICAL)

    cols, rows, total = _list(select_sql, from_sql, where_sql, values, order_by, page)
    return _records(RankedStock, cols, rows), total


def list_stocks(cache, flt, sort, page):
    """Snapshot rows filtered/sorted/paged. Returns (rows, total)."""
    cols = cache.get_columns(T_LATEST)
    where_sql, values = build_filters(flt, cols, "l")
    order_by = build_order_by(sort, allowed_sort_cols(cols), "l", default="ticker")
    from_sql = f"{db.qualified(T_LATEST)} l"

    out_cols, rows, total = _list(select_snapshot_columns(cols, "l"), from_sql, where_sql, values, order_by, page)
    return _records(StockSnapshot, out_cols, rows), total


# ── Lookups ────────────────────────────────────────────────

def get_ranks_by_tickers(raw):
    """One {ticker, final_rank} per normalized ticker; unranked tickers get None."""
    tickers = normalize_tickers(raw)
    if not tickers:
        return []
    placeholders = ",".join([db.P] * len(tickers))
    _, rows = db.db_execute(
        f'SELECT "ticker", "final_rank" FROM {db.qualified(T_RANK)} WHERE "ticker" IN ({placeholders})',
        tickers,
    )
    found = {str(r[0]).upper(): as_rank(r[1]) for r in rows}
    return [{"ticker": t, "final_rank": found.get(t)} for t in tickers]


def top_ranked(cache, limit=10):
    """Best-ranked tickers with their current price."""
    cols = cache.get_columns(T_LATEST)
    price_col = first_present(cols, *PRICE_COLS)
    if not price_col:
        raise SchemaError("price column not found")
    P = db.P
    columns, rows = db.db_execute(
        f"""SELECT r."ticker",
                   CAST(l."{price_col}" AS double precision) AS price,
                   r."final_rank"
              FROM {db.qualified(T_RANK)} r
              JOIN {db.qualified(T_LATEST)} l ON l."ticker" = r."ticker"
             WHERE r."final_rank" IS NOT NULL
             ORDER BY r."final_rank" ASC
             LIMIT {P}""",
        (limit,),
    )
    result = db.rows_to_dicts(columns, rows)
    for d in result:
        d["final_rank"] = as_rank(d["final_rank"])
    return result


def get_ticker(cache, ticker):
    latest_cols = cache.get_columns(T_LATEST)
    rank_cols = cache.get_columns(T_RANK)
    select_sql = ", ".join([
        select_snapshot_columns(latest_cols, "l"),
        'c."notes" AS notes' if "notes" in rank_cols else "NULL AS notes",
        '(c."ticker" IS NOT NULL) AS in_checklist',
    ])
    columns, row = db.db_fetchone(
        f"""SELECT {select_sql}
              FROM {db.qualified(T_LATEST)} l
              LEFT JOIN {db.qualified(T_RANK)} c ON c."ticker" = l."ticker"
             WHERE l."ticker" = {db.P}
             LIMIT 1""",
        (ticker,),
    )
    if not row:
        return None
    d = db.row_to_dict(columns, row)
    d["in_checklist"] = bool(d["in_checklist"])
    return TickerDetail(**d)


def update_ticker(ticker, in_checklist=None, notes=None):
    """
    in_checklist=True or a notes string upserts the checklist row (notes are
    kept when not given); in_checklist=False deletes it. No transaction spans
    the two statements.
    """
    P = db.P
    if not isinstance(notes, str):
        notes = None
    if in_checklist is True or notes is not None:
        db.db_execute_write(
            f"""INSERT INTO {db.qualified(T_RANK)} ("ticker", "notes")
                     VALUES ({P}, COALESCE({P}, ''))
                ON CONFLICT ("ticker") DO UPDATE
                       SET "notes" = COALESCE({P}, "{T_RANK}"."notes")""",
            (ticker, notes, notes),
        )
    if in_checklist is False:
        db.db_execute_write(f'DELETE FROM {db.qualified(T_RANK)} WHERE "ticker" = {P}', (ticker,))


def sample_rows(limit=5):
    columns, rows = db.db_execute(f"SELECT * FROM {db.qualified(T_LATEST)} LIMIT {db.P}", (limit,))
    return db.rows_to_dicts(columns, rows)
